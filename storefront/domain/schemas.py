# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List
from decimal import Decimal
from datetime import datetime

from storefront.domain.order_status import OrderStatus, PaymentMethod


class AddressIn(BaseModel):
    """Shipping / billing address, stored as a snapshot on the order."""

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    phone: str | None = None


class CartLineIn(BaseModel):
    """Adding a product to the cart."""

    product_id: int = Field(..., gt=0, description="Product ID (> 0)")
    quantity: int = Field(1, ge=1, description="Quantity (>= 1)")


class CartLineUpdateIn(BaseModel):
    quantity: int = Field(..., ge=1, description="New quantity (>= 1)")


class MergeIn(BaseModel):
    session_id: str = Field(..., min_length=1, description="Guest session whose cart gets merged")


class CartProductOut(BaseModel):
    id: int
    title: str
    thumbnail: str | None = None
    brand: str | None = None
    stock: int
    category: str | None = None


class CartLineOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    price_at_time: Decimal
    discount_percentage: Decimal
    discounted_price: Decimal
    total: Decimal
    product: CartProductOut


class CartTotalsOut(BaseModel):
    total_quantity: int
    total_amount: Decimal
    total_discounted_amount: Decimal
    total_savings: Decimal


class CartOut(BaseModel):
    """Cart with lines and totals (response)."""

    cart_id: int
    user_id: int | None = None
    session_id: str | None = None
    is_active: bool
    items: List[CartLineOut]
    totals: CartTotalsOut

    model_config = ConfigDict(from_attributes=True)


class OrderCreate(BaseModel):
    """Checkout of the current user's active cart."""

    shipping_address: AddressIn
    billing_address: AddressIn | None = None
    payment_method: PaymentMethod
    payment_id: str | None = None
    notes: str | None = Field(None, max_length=1000)


class OrderItemOut(BaseModel):
    id: int
    product_id: int | None = None
    quantity: int
    price: Decimal
    discount_percentage: Decimal
    discounted_price: Decimal
    total: Decimal
    product_snapshot: Dict[str, Any]


class OrderOut(BaseModel):
    """Order with frozen lines (response)."""

    id: int
    order_number: str
    user_id: int
    status: OrderStatus
    payment_status: str
    payment_method: str
    payment_id: str | None = None
    total_amount: Decimal
    discounted_total: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total_products: int
    total_quantity: int
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any] | None = None
    tracking_number: str | None = None
    estimated_delivery: datetime | None = None
    delivered_at: datetime | None = None
    notes: str | None = None
    created_at: datetime
    items: List[OrderItemOut]

    model_config = ConfigDict(from_attributes=True)


class PaginationOut(BaseModel):
    page: int
    limit: int
    pages: int


class OrderPageOut(BaseModel):
    orders: List[OrderOut]
    total: int
    pagination: PaginationOut


class OrderStatusUpdate(BaseModel):
    """Admin status change."""

    status: OrderStatus
    tracking_number: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=1000)


class RestockIn(BaseModel):
    quantity: int = Field(..., ge=1, description="Units added to stock (>= 1)")


class StockOut(BaseModel):
    product_id: int
    stock: int
