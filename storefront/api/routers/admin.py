# storefront/api/routers/admin.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_notifier, require_admin, to_http
from storefront.api.routers.orders import get_service, get_state_machine
from storefront.data.database import get_db
from storefront.domain.errors import StoreError
from storefront.domain.order_status import OrderStatus, PaymentStatus
from storefront.domain.schemas import OrderOut, OrderPageOut, OrderStatusUpdate, RestockIn, StockOut
from storefront.repos.product_repo import ProductRepo
from storefront.services.notification_service import NotificationService
from storefront.services.stock_ledger import StockLedger

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/orders", response_model=OrderPageOut)
def list_all_orders(
    status: OrderStatus | None = Query(None),
    payment_status: PaymentStatus | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    svc = get_service(db, notifier)
    return svc.list_all_orders(
        status=status.value if status else None,
        payment_status=payment_status.value if payment_status else None,
        page=page,
        limit=limit,
    )


@router.put("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    machine = get_state_machine(db, notifier)
    try:
        order = machine.update_status(
            order_id,
            payload.status,
            tracking_number=payload.tracking_number,
            notes=payload.notes,
        )
    except StoreError as e:
        raise to_http(e)
    return get_service(db, notifier).order_to_dict(order)


@router.post("/products/{product_id}/restock", response_model=StockOut)
def restock_product(
    product_id: int,
    payload: RestockIn,
    db: Session = Depends(get_db),
):
    ledger = StockLedger(ProductRepo(db))
    try:
        stock = ledger.restock(product_id, payload.quantity)
    except StoreError as e:
        raise to_http(e)
    return {"product_id": product_id, "stock": stock}
