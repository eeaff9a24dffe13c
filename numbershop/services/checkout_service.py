# numbershop/services/checkout_service.py
import json
from decimal import Decimal
from typing import List, Optional, Dict, Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from numbershop.data.models.order import OrderModel
from numbershop.data.models.purchased_number import PurchasedNumberModel, ProvisioningStatus
from numbershop.data.models.user import UserModel
from numbershop.domain.errors import NotFound, Unauthorized, ValidationError
from numbershop.domain.pricing import to_checkout_item, from_minor_units
from numbershop.domain.schemas import CheckoutItem
from numbershop.repos.order_repo import OrderRepo
from numbershop.repos.purchased_number_repo import PurchasedNumberRepo
from numbershop.services.cart_service import CartService
from numbershop.services.notification_service import NotificationService
from numbershop.services.provisioning_queue import ProvisioningQueue, PRIORITY_HIGH
from numbershop.utils.settings import APP_BASE_URL, CURRENCY
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)

# platnosc jednorazowa (mode=payment) - dopasowanie po id PaymentIntent
PAYMENT_INTENT_EVENTS = {
    "payment_intent.succeeded": {"payment_status": "paid"},
    "payment_intent.payment_failed": {"payment_status": "failed", "status": "failed"},
}

# subskrypcja - kolejne faktury, dopasowanie po id subskrypcji
INVOICE_EVENTS = {
    "invoice.paid": {"payment_status": "paid"},
    "invoice.payment_failed": {"payment_status": "failed"},
}


class CheckoutService:
    """
    Koszyk -> sesja platnosci -> zamowienie.
    fulfill jest idempotentny po stripe_session_id: jedna sesja = jedno zamowienie.
    """

    def __init__(self, db: Session, gateway, cart: CartService, notifications: NotificationService | None = None):
        self.db = db
        self.orders = OrderRepo(db)
        self.numbers = PurchasedNumberRepo(db)
        self.queue = ProvisioningQueue(db)
        self.gateway = gateway
        self.cart = cart
        self.notifications = notifications or NotificationService()

    # =====================================================
    # SESSION
    # =====================================================
    def create_session(
        self,
        user: UserModel | None,
        items: Optional[List[CheckoutItem]] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        if user is None:
            raise Unauthorized("Authentication required")

        if items is None:
            items = [to_checkout_item(i) for i in self.cart.items(user.id)]
        if not items:
            raise ValidationError("Cart is empty")

        session = self.gateway.create_checkout_session(
            user_id=user.id,
            email=user.email,
            items=items,
            success_url=success_url or f"{APP_BASE_URL}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=cancel_url or f"{APP_BASE_URL}/checkout/cancel",
        )
        logger.info(f"Checkout session {session['id']} for user {user.id} with {len(items)} item(s)")
        return {"session_id": session["id"], "redirect_url": session.get("url")}

    # =====================================================
    # FULFILLMENT
    # =====================================================
    @staticmethod
    def _parse_items(metadata: Dict[str, Any]) -> List[CheckoutItem]:
        try:
            raw = json.loads(metadata.get("items") or "[]")
            return [CheckoutItem.model_validate(i) for i in raw]
        except (ValueError, PydanticValidationError) as e:
            raise ValidationError(f"Invalid items in session metadata: {e}")

    def fulfill(self, session: Dict[str, Any]) -> OrderModel:
        session_id = session["id"]

        existing = self.orders.get_by_session_id(session_id)
        if existing:
            logger.info(f"Session {session_id} already fulfilled as order {existing.id}")
            return existing

        metadata = session.get("metadata") or {}
        if not metadata.get("userId"):
            raise ValidationError("Missing userId in checkout session metadata")
        user_id = int(metadata["userId"])
        items = self._parse_items(metadata)
        if not items:
            raise ValidationError("Checkout session has no items")

        amount = session.get("amount_total")
        total = from_minor_units(amount) if amount is not None else sum(
            (i.monthly_price + i.setup_price for i in items), Decimal("0.00")
        )
        subscription_id = self._stripe_id(session.get("subscription"))

        try:
            order = self.orders.add(
                OrderModel(
                    user_id=user_id,
                    stripe_session_id=session_id,
                    stripe_subscription_id=subscription_id,
                    stripe_payment_intent_id=self._stripe_id(session.get("payment_intent")),
                    status="completed",
                    payment_status=session.get("payment_status"),
                    total_amount=total,
                    currency=session.get("currency") or CURRENCY,
                )
            )

            for item in items:
                number = self.numbers.add(
                    PurchasedNumberModel(
                        user_id=user_id,
                        order_id=order.id,
                        phone_number=item.number,
                        country_code=item.country_code,
                        area_code=item.area_code or None,
                        monthly_price=item.monthly_price,
                        setup_price=item.setup_price,
                        monthly_duration=item.monthly_duration,
                        sms_enabled=item.sms_enabled,
                        forwarding_type=item.forwarding_type,
                        provisioning_status=ProvisioningStatus.PENDING.value,
                        is_active=False,
                        provisioning_attempts=0,
                        stripe_session_id=session_id,
                        stripe_subscription_id=subscription_id,
                    )
                )
                self.queue.enqueue(
                    number.id,
                    priority=PRIORITY_HIGH,
                    payload={"userId": user_id, "orderId": order.id, "sessionId": session_id},
                    commit=False,
                )

            self.db.commit()
        except IntegrityError:
            # rownolegly webhook/confirm wygral wyscig na unique stripe_session_id
            self.db.rollback()
            existing = self.orders.get_by_session_id(session_id)
            if existing is None:
                raise
            logger.info(f"Session {session_id} fulfilled concurrently as order {existing.id}")
            return existing

        logger.info(f"Order {order.id} created from session {session_id} with {len(items)} number(s)")

        try:
            self.cart.clear(user_id)
        except Exception as e:
            logger.warning(f"Failed to clear cart of user {user_id}: {e}")

        self.notifications.send_order_notification(user_id, order.id)
        return order

    def confirm(self, session_id: str, user: UserModel) -> OrderModel:
        """Rekoncyliacja: pobiera sesje ze Stripe i realizuje ja, jesli oplacona."""
        session = self.gateway.retrieve_session(session_id)

        owner = (session.get("metadata") or {}).get("userId")
        if owner != str(user.id):
            raise NotFound("Checkout session not found")
        if session.get("payment_status") not in ("paid", "no_payment_required"):
            raise ValidationError(f"Checkout session is not paid (status: {session.get('payment_status')})")

        return self.fulfill(session)

    @staticmethod
    def _stripe_id(value) -> Optional[str]:
        # webhook daje samo id, rozwiniety obiekt ma je w polu "id"
        if isinstance(value, dict):
            return value.get("id")
        return value

    def handle_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            self.fulfill(obj)
            return

        if event_type in PAYMENT_INTENT_EVENTS:
            payment_intent_id = obj.get("id")
            if not payment_intent_id:
                logger.info(f"{event_type} without payment intent id, ignored")
                return
            updated = self.orders.annotate_by_payment_intent(payment_intent_id, **PAYMENT_INTENT_EVENTS[event_type])
        elif event_type in INVOICE_EVENTS:
            # puste id dopasowaloby IS NULL, czyli wszystkie zamowienia bez subskrypcji
            subscription_id = self._stripe_id(obj.get("subscription"))
            if not subscription_id:
                logger.info(f"{event_type} {obj.get('id')} without subscription, ignored")
                return
            updated = self.orders.annotate_by_subscription(subscription_id, **INVOICE_EVENTS[event_type])
        else:
            logger.info(f"Unhandled Stripe event {event_type}")
            return

        if updated:
            logger.info(f"{event_type} {obj.get('id')} annotated {updated} order(s)")
        else:
            logger.info(f"{event_type} {obj.get('id')} matches no order yet, ignored")
