# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Order notifications.
    Sent through Celery so the request never waits for delivery.
    """

    @staticmethod
    def send_order_notification(user_id: int, order_number: str, event: str):
        send_order_notification_task.delay(user_id, order_number, event)


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_number: str, event: str):
    """
    Celery task - a real deployment would hand this to an email/SMS/push provider.
    For now it only logs.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_number} {event}")

    return {"user_id": user_id, "order_number": order_number, "event": event, "status": "sent"}
