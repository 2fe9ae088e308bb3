# storefront/services/order_state.py
from datetime import datetime, timezone

from storefront.data.models.order import OrderModel
from storefront.domain.errors import InvalidTransition, OrderNotFound
from storefront.domain.order_status import (
    ADMIN_TARGETS,
    CANCELLABLE_STATUSES,
    OrderStatus,
    PaymentStatus,
    can_cancel,
    can_transition,
)
from storefront.repos.order_repo import OrderRepo
from storefront.services.notification_service import NotificationService
from storefront.services.stock_ledger import StockLedger
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OrderStateMachine:
    """
    Status / payment-status transitions of an order and their side effects.

    cancel() is the only transition with a compensating action: every frozen
    order line quantity goes back to the ledger, exactly what creation debited.
    set_status() is the admin door and stays permissive (no forward-only check),
    it only refuses to enter or leave cancelled/refunded.
    """

    def __init__(self, order_repo: OrderRepo, ledger: StockLedger, notifier: NotificationService):
        self.repo = order_repo
        self.ledger = ledger
        self.notifier = notifier

    def _load(self, order_id: int, user_id: int | None = None) -> OrderModel:
        order = self.repo.get_order(order_id)
        if order is None or (user_id is not None and order.user_id != user_id):
            raise OrderNotFound(order_id)
        return order

    def cancel_for_user(self, order_id: int, user_id: int) -> OrderModel:
        return self.cancel(self._load(order_id, user_id))

    def update_status(self, order_id: int, new_status, tracking_number: str | None = None, notes: str | None = None) -> OrderModel:
        return self.set_status(self._load(order_id), new_status, tracking_number, notes)

    def cancel(self, order: OrderModel) -> OrderModel:
        current = OrderStatus(order.status)
        if not can_cancel(current):
            raise InvalidTransition(current.value, OrderStatus.CANCELLED.value)

        try:
            #status flip first and conditional, a concurrent cancel gets 0 rows and credits nothing
            flipped = self.repo.transition_status(
                order.id,
                [s.value for s in CANCELLABLE_STATUSES],
                status=OrderStatus.CANCELLED.value,
                payment_status=PaymentStatus.REFUNDED.value,
            )
            if not flipped:
                self.repo.rollback()
                self.repo.refresh(order)
                raise InvalidTransition(order.status, OrderStatus.CANCELLED.value)

            restored = 0
            for item in self.repo.get_order_items(order.id):
                if item.product_id is None:
                    #product deleted after the order, there is no stock left to credit
                    logger.warning(f"Order {order.order_number} line {item.id} has no product, skipping restock")
                    continue
                self.ledger.adjust(item.product_id, item.quantity)
                restored += item.quantity

            self.repo.commit()

        except InvalidTransition:
            raise

        except Exception as e:
            self.repo.rollback()
            logger.error(f"Cancellation of order {order.id} failed, rolled back: {e}")
            raise

        logger.info(f"Order {order.order_number} cancelled, {restored} units returned to stock")

        self.notifier.send_order_notification(order.user_id, order.order_number, "cancelled")
        return order

    def set_status(
        self,
        order: OrderModel,
        new_status,
        tracking_number: str | None = None,
        notes: str | None = None,
    ) -> OrderModel:
        current = OrderStatus(order.status)
        target = OrderStatus(new_status)

        #cancelled/refunded only through cancel(), which moves stock
        if target not in ADMIN_TARGETS or not can_transition(current, target):
            raise InvalidTransition(current.value, target.value)

        order.status = target.value

        if tracking_number:
            order.tracking_number = tracking_number

        if notes is not None:
            order.notes = notes

        if target == OrderStatus.DELIVERED:
            order.delivered_at = datetime.now(timezone.utc)

        self.repo.commit()

        logger.info(f"Order {order.order_number} status {current.value} -> {target.value}")

        self.notifier.send_order_notification(order.user_id, order.order_number, f"status_changed:{target.value}")
        return order
