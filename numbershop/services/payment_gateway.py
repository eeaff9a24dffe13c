# numbershop/services/payment_gateway.py
import json
from functools import lru_cache
from typing import List, Dict, Any

import stripe

from numbershop.domain.errors import PaymentGatewayError, ValidationError
from numbershop.domain.pricing import to_minor_units
from numbershop.domain.schemas import CheckoutItem
from numbershop.utils.settings import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    STRIPE_API_VERSION,
    CURRENCY,
)
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)


class StripeGateway:
    """
    Hosted checkout w Stripe.
    Zwraca zwykle dicty, reszta kodu nie zna obiektow stripe.
    """

    def __init__(
        self,
        api_key: str | None = None,
        webhook_secret: str | None = None,
        currency: str = CURRENCY,
    ):
        self.api_key = api_key or STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or STRIPE_WEBHOOK_SECRET
        self.currency = currency
        stripe.api_version = STRIPE_API_VERSION

    def _line_items(self, items: List[CheckoutItem]) -> List[Dict[str, Any]]:
        line_items = []

        setup_total = sum((i.setup_price for i in items), 0)
        if setup_total > 0:
            line_items.append({
                "price_data": {
                    "currency": self.currency,
                    "product_data": {
                        "name": "Setup Fees",
                        "description": f"One-time setup fee for {len(items)} number(s)",
                    },
                    "unit_amount": to_minor_units(setup_total),
                },
                "quantity": 1,
            })

        for item in items:
            line_items.append({
                "price_data": {
                    "currency": self.currency,
                    "product_data": {
                        "name": f"Phone Number: {item.number}",
                        "description": f"{item.country_code} - {item.area_code}",
                        "metadata": {
                            "numberId": item.id,
                            "number": item.number,
                            "countryCode": item.country_code,
                            "areaCode": item.area_code,
                        },
                    },
                    "unit_amount": to_minor_units(item.monthly_price),
                    # oplata za caly okres, odnawiana co monthly_duration miesiecy
                    "recurring": {"interval": "month", "interval_count": item.monthly_duration},
                },
                "quantity": 1,
            })

        return line_items

    def create_checkout_session(
        self,
        user_id: int,
        email: str | None,
        items: List[CheckoutItem],
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        recurring = any(i.monthly_price > 0 for i in items)
        metadata = {
            "userId": str(user_id),
            "itemCount": str(len(items)),
            "items": json.dumps([i.model_dump(mode="json", by_alias=True) for i in items]),
        }

        params: Dict[str, Any] = {
            "mode": "subscription" if recurring else "payment",
            "line_items": self._line_items(items),
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "api_key": self.api_key,
        }
        if email:
            params["customer_email"] = email
        if recurring:
            params["subscription_data"] = {"metadata": {"userId": str(user_id)}}
        else:
            params["payment_intent_data"] = {"metadata": {"userId": str(user_id)}}

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session failed for user {user_id}: {e}")
            raise PaymentGatewayError(f"Failed to create checkout session: {e}")

        logger.info(f"Stripe checkout session {session.id} created for user {user_id}")
        return {"id": session.id, "url": session.url}

    def construct_event(self, payload: bytes, signature: str | None) -> Dict[str, Any]:
        if not signature:
            raise ValidationError("Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Stripe webhook rejected: {e}")
            raise ValidationError("Invalid signature")
        return event.to_dict()

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.InvalidRequestError as e:
            raise PaymentGatewayError(f"Unknown checkout session {session_id}: {e}")
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Failed to retrieve checkout session: {e}")
        return session.to_dict()


@lru_cache
def get_payment_gateway() -> StripeGateway:
    return StripeGateway()
