# storefront/domain/order_status.py
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CARD = "card"
    PAYPAL = "paypal"
    CASH_ON_DELIVERY = "cash_on_delivery"


FORWARD_PATH = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

# stock already went back to the ledger for these, leaving them would debit nothing
SIDE_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING})

# admin path is permissive on purpose: any forward-path status may be set from
# any other forward-path status, only the side states are closed
ADMIN_TARGETS = frozenset(FORWARD_PATH)

TRANSITIONS = {
    status: frozenset(
        (ADMIN_TARGETS - {status})
        | ({OrderStatus.CANCELLED} if status in CANCELLABLE_STATUSES else set())
    )
    for status in FORWARD_PATH
}
TRANSITIONS.update({status: frozenset() for status in SIDE_STATUSES})


def can_cancel(status: OrderStatus) -> bool:
    return status in CANCELLABLE_STATUSES


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current == target:
        return current not in SIDE_STATUSES
    return target in TRANSITIONS[current]
