# numbershop/services/notification_service.py
from typing import List

from numbershop.celery_worker import celery_app
from numbershop.data.database import SessionLocal
from numbershop.data.models.order import OrderModel
from numbershop.data.models.purchased_number import PurchasedNumberModel
from numbershop.data.models.user import UserModel
from numbershop.services.email_client import get_email_client
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Powiadomienia wysylane przez Celery.
    Blad dispatchu nigdy nie wychodzi do wywolujacego - stan jest juz zacommitowany.
    """

    @staticmethod
    def _dispatch(task, *args):
        try:
            task.delay(*args)
        except Exception as e:
            logger.warning(f"Failed to dispatch {task.name}{args}: {e}")

    @staticmethod
    def send_order_notification(user_id: int, order_id: int):
        NotificationService._dispatch(send_order_notification_task, user_id, order_id)

    @staticmethod
    def send_provisioning_notification(number_id: int, success: bool, error: str | None = None):
        NotificationService._dispatch(send_provisioning_notification_task, number_id, success, error)

    @staticmethod
    def forward_sms(emails: List[str], from_number: str, to_number: str, message: str):
        NotificationService._dispatch(forward_sms_task, emails, from_number, to_number, message)


@celery_app.task(name="numbershop.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_id: int):
    db = SessionLocal()
    try:
        user = db.get(UserModel, user_id)
        order = db.get(OrderModel, order_id)
        if not user or not order:
            logger.warning(f"[NOTIFICATION] order {order_id} / user {user_id} not found, skipping")
            return {"user_id": user_id, "order_id": order_id, "status": "skipped"}

        numbers = ", ".join(n.phone_number for n in order.numbers)
        get_email_client().send(
            [user.email],
            "Your phone number order is confirmed",
            f"<p>Order #{order.id} ({order.total_amount} {order.currency.upper()}) is confirmed.</p>"
            f"<p>Numbers: {numbers}. We are activating them now.</p>",
        )
        logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} confirmed")
        return {"user_id": user_id, "order_id": order_id, "status": "sent"}
    finally:
        db.close()


@celery_app.task(name="numbershop.services.notification_service.send_provisioning_notification_task")
def send_provisioning_notification_task(number_id: int, success: bool, error: str | None = None):
    db = SessionLocal()
    try:
        number = db.get(PurchasedNumberModel, number_id)
        user = db.get(UserModel, number.user_id) if number else None
        if not user:
            logger.warning(f"[NOTIFICATION] number {number_id} has no owner, skipping")
            return {"number_id": number_id, "status": "skipped"}

        if success:
            subject = f"Your number {number.phone_number} is active"
            body = f"<p>{number.phone_number} is now active and ready to use.</p>"
        else:
            subject = f"Activation of {number.phone_number} failed"
            body = (
                f"<p>We could not activate {number.phone_number}: {error or 'unknown error'}.</p>"
                "<p>You can request a retry from your numbers page, or contact support if it fails again.</p>"
            )

        get_email_client().send([user.email], subject, body)
        logger.info(f"[NOTIFICATION] number {number_id} success={success}")
        return {"number_id": number_id, "status": "sent"}
    finally:
        db.close()


@celery_app.task(name="numbershop.services.notification_service.forward_sms_task")
def forward_sms_task(emails: List[str], from_number: str, to_number: str, message: str):
    get_email_client().send(
        emails,
        f"New SMS from {from_number}",
        f"<p><b>From:</b> {from_number}<br><b>To:</b> {to_number}</p><p>{message}</p>",
    )
    logger.info(f"[NOTIFICATION] SMS to {to_number} forwarded to {len(emails)} recipient(s)")
    return {"to": to_number, "recipients": len(emails)}
