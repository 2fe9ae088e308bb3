# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_notifier, to_http
from storefront.data.database import get_db
from storefront.domain.errors import StoreError
from storefront.domain.order_status import OrderStatus
from storefront.domain.schemas import OrderCreate, OrderOut, OrderPageOut
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.order_state import OrderStateMachine
from storefront.services.stock_ledger import StockLedger

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session, notifier: NotificationService) -> OrderService:
    product_repo = ProductRepo(db)
    return OrderService(
        order_repo=OrderRepo(db),
        cart_repo=CartRepo(db),
        product_repo=product_repo,
        ledger=StockLedger(product_repo),
        notifier=notifier,
    )


def get_state_machine(db: Session, notifier: NotificationService) -> OrderStateMachine:
    return OrderStateMachine(
        order_repo=OrderRepo(db),
        ledger=StockLedger(ProductRepo(db)),
        notifier=notifier,
    )


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """
    Places an order from the user's active cart.
    Sends the notification asynchronously.
    """
    svc = get_service(db, notifier)
    try:
        order = svc.place_order(
            user_id,
            shipping_address=payload.shipping_address.model_dump(),
            billing_address=payload.billing_address.model_dump() if payload.billing_address else None,
            payment_method=payload.payment_method,
            payment_id=payload.payment_id,
            notes=payload.notes,
        )
    except StoreError as e:
        raise to_http(e)
    return svc.order_to_dict(order)


@router.get("", response_model=OrderPageOut)
def list_orders(
    user_id: int = Query(..., gt=0),
    status: OrderStatus | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    svc = get_service(db, notifier)
    return svc.list_orders(
        user_id=user_id,
        status=status.value if status else None,
        page=page,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    svc = get_service(db, notifier)
    try:
        return svc.order_to_dict(svc.get_order(order_id, user_id))
    except StoreError as e:
        raise to_http(e)


@router.put("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    machine = get_state_machine(db, notifier)
    try:
        order = machine.cancel_for_user(order_id, user_id)
    except StoreError as e:
        raise to_http(e)
    return get_service(db, notifier).order_to_dict(order)
