# storefront/domain/errors.py
"""
Expected, caller-recoverable failures of the cart and order pipeline.

Every error carries a stable ``kind`` and a human-readable message;
``to_dict()`` is what the HTTP layer puts into the response ``detail``.
"""
from typing import Any, Dict


class StoreError(Exception):
    kind = "store_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extra(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **self.extra()}


class NotFound(StoreError):
    kind = "not_found"


class OwnerRequired(StoreError):
    kind = "owner_required"

    def __init__(self):
        super().__init__("User authentication or session ID required")


class InvalidQuantity(StoreError):
    kind = "invalid_quantity"

    def __init__(self, quantity: int):
        super().__init__(f"Quantity must be at least 1, got {quantity}")
        self.quantity = quantity

    def extra(self):
        return {"quantity": self.quantity}


class InsufficientStock(StoreError):
    kind = "insufficient_stock"

    def __init__(self, product_id: int, available: int, requested: int, title: str | None = None):
        name = title or f"product {product_id}"
        super().__init__(f"Insufficient stock for {name}. Only {available} available.")
        self.product_id = product_id
        self.available = available
        self.requested = requested

    def extra(self):
        return {
            "product_id": self.product_id,
            "available": self.available,
            "requested": self.requested,
        }


class EmptyCart(StoreError):
    kind = "empty_cart"

    def __init__(self):
        super().__init__("Cart is empty")


class InvalidTransition(StoreError):
    kind = "invalid_transition"

    def __init__(self, current_status: str, target_status: str):
        super().__init__(f"Cannot move order with status: {current_status} to {target_status}")
        self.current_status = current_status
        self.target_status = target_status

    def extra(self):
        return {
            "current_status": self.current_status,
            "target_status": self.target_status,
        }


class StockViolation(StoreError):
    """The ledger guard rejected an adjustment (stock would go negative)."""

    kind = "stock_violation"

    def __init__(self, product_id: int, delta: int):
        super().__init__(
            f"Stock adjustment {delta:+d} rejected for product {product_id}, stock cannot go below 0"
        )
        self.product_id = product_id
        self.delta = delta

    def extra(self):
        return {"product_id": self.product_id, "delta": self.delta}


class DuplicateOrderNumber(StoreError):
    kind = "duplicate_order_number"

    def __init__(self, order_number: str):
        super().__init__(f"Order number {order_number} already exists")
        self.order_number = order_number

    def extra(self):
        return {"order_number": self.order_number}


class LineNotFound(NotFound):
    kind = "line_not_found"

    def __init__(self, line_id: int):
        super().__init__("Cart item not found")
        self.line_id = line_id

    def extra(self):
        return {"line_id": self.line_id}


class OrderNotFound(NotFound):
    kind = "order_not_found"

    def __init__(self, order_id: int):
        super().__init__("Order not found")
        self.order_id = order_id

    def extra(self):
        return {"order_id": self.order_id}


class ProductNotFound(NotFound):
    kind = "product_not_found"

    def __init__(self, product_id: int):
        super().__init__("Product not found")
        self.product_id = product_id

    def extra(self):
        return {"product_id": self.product_id}
