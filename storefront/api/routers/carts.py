#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_lock_service, get_owner, to_http
from storefront.data.database import get_db
from storefront.domain.errors import StoreError
from storefront.domain.owner import Owner, UserOwner
from storefront.domain.schemas import (
    CartLineIn,
    CartLineUpdateIn,
    CartOut,
    MergeIn,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.cart_service import CartService
from storefront.services.lock_service import LockService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session, lock_service: LockService) -> CartService:
    return CartService(
        cart_repo=CartRepo(db),
        product_repo=ProductRepo(db),
        lock_service=lock_service,
    )


@router.get("", response_model=CartOut)
def get_cart(
    owner: Owner = Depends(get_owner),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    return svc.get_cart_view(owner)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartLineIn,
    owner: Owner = Depends(get_owner),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    try:
        cart = svc.get_or_create_active_cart(owner)
        svc.add_line(cart, payload.product_id, payload.quantity)
    except StoreError as e:
        raise to_http(e)
    return svc.get_cart_view(owner)


@router.put("/items/{line_id}", response_model=CartOut)
def update_item(
    line_id: int,
    payload: CartLineUpdateIn,
    owner: Owner = Depends(get_owner),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    try:
        cart = svc.get_or_create_active_cart(owner)
        svc.set_line_quantity(cart, line_id, payload.quantity)
    except StoreError as e:
        raise to_http(e)
    return svc.get_cart_view(owner)


@router.delete("/items/{line_id}", response_model=CartOut)
def remove_item(
    line_id: int,
    owner: Owner = Depends(get_owner),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    try:
        cart = svc.get_or_create_active_cart(owner)
        svc.remove_line(cart, line_id)
    except StoreError as e:
        raise to_http(e)
    return svc.get_cart_view(owner)


@router.delete("", response_model=CartOut)
def clear_cart(
    owner: Owner = Depends(get_owner),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    cart = svc.get_or_create_active_cart(owner)
    svc.clear(cart)
    return svc.get_cart_view(owner)


@router.post("/merge", response_model=CartOut)
def merge_cart(
    payload: MergeIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    """
    Called at login: guest cart of the session goes into the user's cart.
    Safe to repeat, a second call finds no guest cart.
    """
    svc = get_service(db, lock_service)
    try:
        svc.merge(payload.session_id, user_id)
    except StoreError as e:
        raise to_http(e)
    return svc.get_cart_view(UserOwner(user_id))
