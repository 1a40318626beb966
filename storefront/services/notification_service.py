# storefront/services/notification_service.py
from kombu.exceptions import KombuError

from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Przekazanie zdarzenia "zamowienie zlozone" do dostawcy push/email.
    Uzywa Celery, request nie czeka na dostarczenie.
    """

    @staticmethod
    def send_order_notification(order_id: int, order_number: str, user_id: int | None) -> bool:
        try:
            send_order_notification_task.delay(order_id, order_number, user_id)
            return True
        except KombuError as e:
            # zamowienie juz zapisane, brak brokera nie cofa checkoutu
            logger.error(f"Could not queue notification for order {order_number}: {e}")
            return False


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(order_id: int, order_number: str, user_id: int | None):
    """
    Celery task - dostarczenie (push, email) robi zewnetrzny kolaborator.
    Tu tylko log.
    """
    logger.info(f"[NOTIFICATION] Order {order_number} (id {order_id}) placed by user {user_id}")
    return {"order_id": order_id, "order_number": order_number, "status": "queued"}
