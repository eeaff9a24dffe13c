# numbershop/api/routers/checkout.py
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from numbershop.api.dependencies import get_db, get_current_user, get_cart_service, get_payment_gateway
from numbershop.data.models.user import UserModel
from numbershop.domain.schemas import CheckoutSessionIn, CheckoutSessionOut, OrderOut
from numbershop.services.cart_service import CartService
from numbershop.services.checkout_service import CheckoutService
from numbershop.services.order_service import OrderService

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_service(db: Session, gateway, cart: CartService) -> CheckoutService:
    return CheckoutService(db, gateway, cart)


async def raw_body(request: Request) -> bytes:
    # podpis Stripe liczony jest z surowego body
    return await request.body()


@router.post("/sessions", response_model=CheckoutSessionOut)
def create_session(
    payload: Optional[CheckoutSessionIn] = None,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway=Depends(get_payment_gateway),
    cart: CartService = Depends(get_cart_service),
):
    payload = payload or CheckoutSessionIn()
    svc = get_service(db, gateway, cart)
    return svc.create_session(user, payload.items, payload.success_url, payload.cancel_url)


@router.post("/webhook")
def stripe_webhook(
    body: bytes = Depends(raw_body),
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    gateway=Depends(get_payment_gateway),
    cart: CartService = Depends(get_cart_service),
):
    event = gateway.construct_event(body, stripe_signature)
    get_service(db, gateway, cart).handle_event(event)
    return {"received": True}


@router.post("/sessions/{session_id}/confirm", response_model=OrderOut)
def confirm_session(
    session_id: str,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway=Depends(get_payment_gateway),
    cart: CartService = Depends(get_cart_service),
):
    """Rekoncyliacja po powrocie ze Stripe, gdy webhook jeszcze nie dotarl."""
    svc = get_service(db, gateway, cart)
    svc.confirm(session_id, user)
    return OrderService(db).get_order(session_id, user.id)
