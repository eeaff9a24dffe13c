# numbershop/domain/pricing.py
"""
Czyste funkcje cennika koszyka.

Ta sama funkcja `item_total` liczy podsumowanie koszyka i kwoty wysylane
do checkoutu, wiec te dwie wartosci nie moga sie rozjechac.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Dict

from numbershop.domain.schemas import CartItem, CheckoutItem

SMS_MIN_DURATION_MONTHS = 6
ZERO = Decimal("0.00")


def enforce_sms_minimum(item: CartItem) -> CartItem:
    """SMS wymaga minimum 6 miesiecy - podnosimy, nigdy nie odrzucamy."""
    if item.sms_enabled and item.monthly_duration < SMS_MIN_DURATION_MONTHS:
        return item.model_copy(update={"monthly_duration": SMS_MIN_DURATION_MONTHS})
    return item


def item_total(item: CartItem) -> Decimal:
    months = item.monthly_duration
    total = item.base_price * months

    if item.sms_enabled:
        total += item.sms_price * months

    if item.forwarding_type != "none":
        total += item.forwarding_price * months

    return total


def cart_total(items: Iterable[CartItem]) -> Decimal:
    return sum((item_total(i) for i in items), ZERO)


def price_breakdown(items: Iterable[CartItem]) -> Dict[str, Decimal]:
    base_total = ZERO
    sms_total = ZERO
    forwarding_total = ZERO

    for item in items:
        months = item.monthly_duration
        base_total += item.base_price * months
        if item.sms_enabled:
            sms_total += item.sms_price * months
        if item.forwarding_type != "none":
            forwarding_total += item.forwarding_price * months

    return {
        "base_total": base_total,
        "sms_total": sms_total,
        "forwarding_total": forwarding_total,
        "grand_total": base_total + sms_total + forwarding_total,
    }


def to_checkout_item(item: CartItem) -> CheckoutItem:
    return CheckoutItem(
        id=item.id,
        number=item.phone_number,
        country_code=item.country_code,
        area_code=item.area_code,
        monthly_price=item_total(item),
        setup_price=ZERO,
        monthly_duration=item.monthly_duration,
        sms_enabled=item.sms_enabled,
        forwarding_type=item.forwarding_type,
    )


def to_minor_units(amount: Decimal) -> int:
    """Kwota w centach dla bramki platnosci."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int | None) -> Decimal:
    if not amount:
        return ZERO
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))
