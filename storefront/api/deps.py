# storefront/api/deps.py
from fastapi import Header, HTTPException, Query

from storefront.domain.errors import (
    DuplicateOrderNumber,
    NotFound,
    OwnerRequired,
    StockViolation,
    StoreError,
)
from storefront.domain.owner import Owner, resolve_owner
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService


def to_http(e: StoreError) -> HTTPException:
    if isinstance(e, NotFound):
        status_code = 404
    elif isinstance(e, StockViolation):
        #lost a stock race at commit time, distinct from the pre-flight 400
        status_code = 409
    elif isinstance(e, DuplicateOrderNumber):
        status_code = 500
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail=e.to_dict())


def get_owner(
    user_id: int | None = Query(None, gt=0),
    x_session_id: str | None = Header(None),
) -> Owner:
    #identity and session come from the upstream auth layer
    try:
        return resolve_owner(user_id, x_session_id)
    except OwnerRequired as e:
        raise to_http(e)


def require_admin(x_user_role: str | None = Header(None)):
    if x_user_role != "admin":
        raise HTTPException(status_code=403, detail="Admin role required")


def get_lock_service() -> LockService:
    return LockService()


def get_notifier() -> NotificationService:
    return NotificationService()
