# storefront/services/order_service.py
import math
import secrets
import time
from datetime import datetime, timezone, timedelta
from typing import Any, Dict

from storefront.data.models.cart import CartModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.errors import EmptyCart, InsufficientStock, OrderNotFound, OwnerRequired, StockViolation
from storefront.domain.order_status import OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.owner import UserOwner
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services import pricing
from storefront.services.notification_service import NotificationService
from storefront.services.stock_ledger import StockLedger
from storefront.utils.retry import order_number_retry
from storefront.utils.settings import ESTIMATED_DELIVERY_DAYS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def generate_order_number() -> str:
    #ms timestamp + 32 random bits, the unique index on order_number is the real guarantee
    return f"ORD-{time.time_ns() // 1_000_000}-{secrets.token_hex(4).upper()}"


def product_snapshot(product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "title": product.title,
        "description": product.description,
        "brand": product.brand,
        "thumbnail": product.thumbnail,
        "category": product.category,
    }


class OrderService:
    """
    Order assembler: turns the active cart into an immutable order.
    Separate from CartService, the two only meet through the cart repo.
    """

    def __init__(
        self,
        order_repo: OrderRepo,
        cart_repo: CartRepo,
        product_repo: ProductRepo,
        ledger: StockLedger,
        notifier: NotificationService,
    ):
        self.repo = order_repo
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.ledger = ledger
        self.notifier = notifier

    # =====================================================
    # COMMANDS
    # =====================================================
    def place_order(self, user_id: int, **checkout) -> OrderModel:
        """Checkout of the user's active cart."""
        cart = self.cart_repo.get_active_cart(UserOwner(user_id))
        if cart is None:
            raise EmptyCart()
        return self.create_order(cart, **checkout)

    def create_order(
        self,
        cart: CartModel,
        shipping_address: Dict[str, Any],
        billing_address: Dict[str, Any] | None = None,
        payment_method: PaymentMethod | str = PaymentMethod.CARD,
        payment_id: str | None = None,
        notes: str | None = None,
    ) -> OrderModel:
        """
        Use Case: create an order from a cart.

        1. empty cart -> EmptyCart
        2. pre-flight stock check on fresh product rows -> InsufficientStock
        3-4. totals, shipping and tax
        5-6. header, lines with product snapshots, ledger decrements
        7. cart lines deleted and cart deactivated

        Steps 5-7 are one transaction. The pre-flight check is advisory,
        a concurrent order can still take the stock before the decrement;
        the ledger guard then raises StockViolation and nothing is kept.
        """
        if cart.user_id is None:
            #guest carts are merged into a user cart before checkout
            raise OwnerRequired()

        lines = self.cart_repo.get_cart_lines(cart.id)
        if not lines:
            raise EmptyCart()

        products = {p.id: p for p in self.product_repo.get_products(line.product_id for line in lines)}

        for line in lines:
            product = products.get(line.product_id)
            available = product.stock if product is not None else 0
            if line.quantity > available:
                raise InsufficientStock(
                    line.product_id,
                    available,
                    line.quantity,
                    product.title if product is not None else None,
                )

        total_quantity, total_amount, discounted_subtotal = pricing.accumulate(lines)
        shipping_cost, tax, discounted_total = pricing.order_costs(discounted_subtotal)

        payment_method = PaymentMethod(payment_method)
        if payment_method == PaymentMethod.CASH_ON_DELIVERY:
            payment_status = PaymentStatus.PENDING
        else:
            #payment confirmation is an opaque signal from the client/gateway
            payment_status = PaymentStatus.PAID

        header = {
            "user_id": cart.user_id,
            "cart_id": cart.id,
            "status": OrderStatus.PENDING.value,
            "payment_status": payment_status.value,
            "payment_method": payment_method.value,
            "payment_id": payment_id,
            "total_amount": pricing.round_money(total_amount),
            "discounted_total": discounted_total,
            "shipping_cost": shipping_cost,
            "tax": tax,
            "total_products": len(lines),
            "total_quantity": total_quantity,
            "shipping_address": shipping_address,
            "billing_address": billing_address or shipping_address,
            "estimated_delivery": datetime.now(timezone.utc) + timedelta(days=ESTIMATED_DELIVERY_DAYS),
            "notes": notes,
        }

        cart_id = cart.id
        try:
            order = self._insert_header(header)

            for line in lines:
                product = line.product
                self.repo.add_order_item(
                    OrderItemModel(
                        order_id=order.id,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        price=line.price_at_time,
                        discount_percentage=line.discount_at_time,
                        discounted_price=pricing.round_money(
                            pricing.discounted_unit_price(line.price_at_time, line.discount_at_time)
                        ),
                        total=pricing.round_money(
                            pricing.line_total(line.price_at_time, line.discount_at_time, line.quantity)
                        ),
                        product_snapshot=product_snapshot(product),
                    )
                )
                self.ledger.adjust(line.product_id, -line.quantity)

            self.cart_repo.delete_lines(cart.id)
            self.cart_repo.deactivate_cart(cart)

            self.repo.commit()

        except StockViolation as e:
            self.repo.rollback()
            logger.warning(f"Order from cart {cart_id} lost a stock race on product {e.product_id}, rolled back")
            raise

        except Exception as e:
            self.repo.rollback()
            logger.error(f"Order from cart {cart_id} failed, rolled back: {e}")
            raise

        logger.info(
            f"Order {order.order_number} created from cart {cart_id}: "
            f"{order.total_quantity} units, total {order.discounted_total}"
        )

        # async notification
        self.notifier.send_order_notification(order.user_id, order.order_number, "placed")

        return order

    @order_number_retry()
    def _insert_header(self, header: Dict[str, Any]) -> OrderModel:
        order = OrderModel(order_number=generate_order_number(), **header)
        return self.repo.add_order(order)

    # =====================================================
    # QUERY
    # =====================================================
    def get_order(self, order_id: int, user_id: int | None = None) -> OrderModel:
        """Owner-scoped when user_id is given, foreign orders look like missing ones."""
        order = self.repo.get_order(order_id)

        if order is None or (user_id is not None and order.user_id != user_id):
            raise OrderNotFound(order_id)

        return order

    def list_orders(
        self,
        user_id: int | None = None,
        status: str | None = None,
        payment_status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        orders, total = self.repo.list_orders(
            user_id=user_id,
            status=status,
            payment_status=payment_status,
            page=page,
            limit=limit,
        )
        return {
            "orders": [self.order_to_dict(o) for o in orders],
            "total": total,
            "pagination": {
                "page": page,
                "limit": limit,
                "pages": math.ceil(total / limit) if limit else 0,
            },
        }

    def list_all_orders(
        self,
        status: str | None = None,
        payment_status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        """Admin listing across every user."""
        return self.list_orders(
            user_id=None,
            status=status,
            payment_status=payment_status,
            page=page,
            limit=limit,
        )

    def order_to_dict(self, order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "status": order.status,
            "payment_status": order.payment_status,
            "payment_method": order.payment_method,
            "payment_id": order.payment_id,
            "total_amount": order.total_amount,
            "discounted_total": order.discounted_total,
            "shipping_cost": order.shipping_cost,
            "tax": order.tax,
            "total_products": order.total_products,
            "total_quantity": order.total_quantity,
            "shipping_address": order.shipping_address,
            "billing_address": order.billing_address,
            "tracking_number": order.tracking_number,
            "estimated_delivery": order.estimated_delivery,
            "delivered_at": order.delivered_at,
            "notes": order.notes,
            "created_at": order.created_at,
            "items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "price": item.price,
                    "discount_percentage": item.discount_percentage,
                    "discounted_price": item.discounted_price,
                    "total": item.total,
                    "product_snapshot": item.product_snapshot,
                }
                for item in self.repo.get_order_items(order.id)
            ],
        }
