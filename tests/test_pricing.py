from decimal import Decimal

from numbershop.domain.pricing import (
    cart_total,
    enforce_sms_minimum,
    from_minor_units,
    item_total,
    price_breakdown,
    to_checkout_item,
    to_minor_units,
)
from numbershop.domain.schemas import CartItem


def make_item(**overrides):
    data = dict(
        id="item-1",
        country_code="US",
        country_name="United States",
        area_code="212",
        city_name="New York",
        phone_number="+12125550100",
        base_price=Decimal("5.00"),
    )
    data.update(overrides)
    return CartItem(**data)


def test_item_total_base_only():
    assert item_total(make_item(monthly_duration=3)) == Decimal("15.00")


def test_item_total_with_sms_and_forwarding():
    item = make_item(
        sms_enabled=True,
        sms_price=Decimal("2.00"),
        forwarding_type="call",
        forwarding_price=Decimal("1.50"),
        monthly_duration=6,
    )
    assert item_total(item) == Decimal("51.00")


def test_prices_ignored_when_feature_disabled():
    item = make_item(sms_price=Decimal("2.00"), forwarding_price=Decimal("9.99"), forwarding_type="none")
    assert item_total(item) == Decimal("5.00")


def test_sms_minimum_raises_duration_to_six():
    item = enforce_sms_minimum(make_item(sms_enabled=True, sms_price=Decimal("2.00"), monthly_duration=1))
    assert item.monthly_duration == 6
    assert item_total(item) == (Decimal("5.00") + Decimal("2.00")) * 6


def test_sms_minimum_keeps_longer_duration():
    item = enforce_sms_minimum(make_item(sms_enabled=True, monthly_duration=12))
    assert item.monthly_duration == 12


def test_sms_minimum_ignores_items_without_sms():
    item = make_item(monthly_duration=1)
    assert enforce_sms_minimum(item) is item


def test_cart_total_is_sum_of_item_totals():
    items = [
        make_item(id="a", monthly_duration=2),
        make_item(id="b", base_price=Decimal("3.25"), sms_enabled=True, sms_price=Decimal("1"), monthly_duration=6),
    ]
    assert cart_total(items) == sum(item_total(i) for i in items)
    assert cart_total([]) == Decimal("0.00")


def test_breakdown_splits_components():
    items = [
        make_item(
            sms_enabled=True,
            sms_price=Decimal("2.00"),
            forwarding_type="both",
            forwarding_price=Decimal("1.00"),
            monthly_duration=6,
        )
    ]
    breakdown = price_breakdown(items)
    assert breakdown["base_total"] == Decimal("30.00")
    assert breakdown["sms_total"] == Decimal("12.00")
    assert breakdown["forwarding_total"] == Decimal("6.00")
    assert breakdown["grand_total"] == cart_total(items)


def test_checkout_item_carries_item_total():
    item = make_item(sms_enabled=True, sms_price=Decimal("2.00"), monthly_duration=6)
    checkout = to_checkout_item(item)
    assert checkout.number == "+12125550100"
    assert checkout.monthly_price == item_total(item)
    assert checkout.setup_price == Decimal("0.00")
    assert checkout.monthly_duration == 6
    assert checkout.sms_enabled is True


def test_minor_units():
    assert to_minor_units(Decimal("12.345")) == 1235
    assert to_minor_units(Decimal("0")) == 0
    assert from_minor_units(4200) == Decimal("42.00")
    assert from_minor_units(None) == Decimal("0.00")
