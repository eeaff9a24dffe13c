import json
from decimal import Decimal
from unittest import mock

import pytest
import requests
import stripe
from pydantic import ValidationError as PydanticValidationError

from numbershop.domain.errors import PaymentGatewayError, TelephonyProviderError, ValidationError
from numbershop.domain.schemas import CartItem, CheckoutItem
from numbershop.services.cart_service import CartStore
from numbershop.services.email_client import EmailClient
from numbershop.services.payment_gateway import StripeGateway
from numbershop.services.telephony import DidwwClient, MockTelephonyProvider, verify_webhook_signature


def checkout_item(**overrides):
    data = dict(id="i1", number="+12125550100", country_code="US", area_code="212",
                monthly_price=Decimal("36.00"), setup_price=Decimal("0"), monthly_duration=6, sms_enabled=True)
    data.update(overrides)
    return CheckoutItem(**data)


def json_response(status, body):
    resp = mock.Mock(spec=requests.Response)
    resp.status_code = status
    resp.content = json.dumps(body).encode()
    resp.json.return_value = body
    resp.reason = "error"
    return resp


class TestStripeGateway:
    def test_subscription_session(self):
        gateway = StripeGateway(api_key="sk_test", webhook_secret="whsec")
        session = mock.Mock(id="cs_1", url="https://stripe.test/cs_1")

        with mock.patch("stripe.checkout.Session.create", return_value=session) as create:
            result = gateway.create_checkout_session(7, "a@example.com", [checkout_item()], "https://ok", "https://no")

        assert result == {"id": "cs_1", "url": "https://stripe.test/cs_1"}
        params = create.call_args.kwargs
        assert params["mode"] == "subscription"
        assert params["metadata"]["userId"] == "7"
        assert json.loads(params["metadata"]["items"])[0]["monthlyPrice"] == "36.00"
        line = params["line_items"][0]["price_data"]
        assert line["unit_amount"] == 3600
        assert line["recurring"] == {"interval": "month", "interval_count": 6}

    def test_setup_fee_line(self):
        gateway = StripeGateway(api_key="sk_test")
        items = [checkout_item(setup_price=Decimal("2.50")), checkout_item(id="i2", setup_price=Decimal("1.00"))]

        with mock.patch("stripe.checkout.Session.create", return_value=mock.Mock(id="cs", url=None)) as create:
            gateway.create_checkout_session(1, None, items, "s", "c")

        lines = create.call_args.kwargs["line_items"]
        assert len(lines) == 3
        assert lines[0]["price_data"]["unit_amount"] == 350
        assert "customer_email" not in create.call_args.kwargs

    def test_duration_is_one_subscription_interval(self):
        gateway = StripeGateway(api_key="sk_test")
        with mock.patch("stripe.checkout.Session.create", return_value=mock.Mock(id="cs", url=None)) as create:
            gateway.create_checkout_session(1, None, [checkout_item(monthly_duration=12)], "s", "c")

        line = create.call_args.kwargs["line_items"][0]["price_data"]
        assert line["recurring"] == {"interval": "month", "interval_count": 12}

        # Stripe nie przyjmie interwalu dluzszego niz rok
        with pytest.raises(PydanticValidationError):
            checkout_item(monthly_duration=24)
        with pytest.raises(PydanticValidationError):
            CartItem(country_code="US", phone_number="+1212", base_price=Decimal("5.00"), monthly_duration=13)

    def test_free_items_use_payment_mode(self):
        gateway = StripeGateway(api_key="sk_test")
        with mock.patch("stripe.checkout.Session.create", return_value=mock.Mock(id="cs", url=None)) as create:
            gateway.create_checkout_session(1, None, [checkout_item(monthly_price=Decimal("0"))], "s", "c")
        assert create.call_args.kwargs["mode"] == "payment"

    def test_stripe_error_is_wrapped(self):
        gateway = StripeGateway(api_key="sk_test")
        with mock.patch("stripe.checkout.Session.create", side_effect=stripe.StripeError("boom")):
            with pytest.raises(PaymentGatewayError):
                gateway.create_checkout_session(1, None, [checkout_item()], "s", "c")

    def test_missing_signature(self):
        with pytest.raises(ValidationError):
            StripeGateway(api_key="sk_test", webhook_secret="whsec").construct_event(b"{}", None)

    def test_bad_signature(self):
        gateway = StripeGateway(api_key="sk_test", webhook_secret="whsec")
        error = stripe.SignatureVerificationError("bad", "sig")
        with mock.patch("stripe.Webhook.construct_event", side_effect=error):
            with pytest.raises(ValidationError):
                gateway.construct_event(b"{}", "t=1,v1=abc")


class TestDidwwClient:
    def test_place_order(self):
        client = DidwwClient(api_key="key", base_url="https://didww.test/v3/")

        with mock.patch("numbershop.services.telephony.requests.get",
                        return_value=json_response(200, {"data": [{"id": "avail_1"}]})) as get, \
                mock.patch("numbershop.services.telephony.requests.request",
                           return_value=json_response(201, {"data": {"id": "ord_1"}})) as request:
            order_id = client.place_order("+1 (212) 555-0100", "US", "212")

        assert order_id == "ord_1"
        assert get.call_args.kwargs["params"]["filter[number]"] == "12125550100"
        assert request.call_args.args[:2] == ("POST", "https://didww.test/v3/orders")
        body = request.call_args.kwargs["json"]
        assert body["data"]["attributes"]["items"][0]["attributes"]["available_did_id"] == "avail_1"

    def test_did_for_order(self):
        client = DidwwClient(api_key="key")
        with mock.patch("numbershop.services.telephony.requests.get",
                        return_value=json_response(200, {"data": [{"id": "did_42"}]})) as get:
            assert client.did_for_order("ord_1") == "did_42"
        assert get.call_args.kwargs["params"]["filter[order.id]"] == "ord_1"

    def test_did_for_order_not_ready(self):
        client = DidwwClient(api_key="key")
        with mock.patch("numbershop.services.telephony.requests.get", return_value=json_response(200, {"data": []})), \
                mock.patch("numbershop.services.telephony.requests.request") as request:
            with pytest.raises(TelephonyProviderError, match="ord_1"):
                client.did_for_order("ord_1")
        request.assert_not_called()

    def test_unavailable_number(self):
        client = DidwwClient(api_key="key")
        with mock.patch("numbershop.services.telephony.requests.get", return_value=json_response(200, {"data": []})):
            with pytest.raises(TelephonyProviderError):
                client.place_order("+12125550100", "US", "212")

    def test_order_is_not_retried(self):
        client = DidwwClient(api_key="key")
        with mock.patch("numbershop.services.telephony.requests.get",
                        return_value=json_response(200, {"data": [{"id": "a"}]})), \
                mock.patch("numbershop.services.telephony.requests.request",
                           side_effect=requests.ConnectionError("reset")) as request:
            with pytest.raises(TelephonyProviderError):
                client.place_order("+12125550100", "US", "212")
        assert request.call_count == 1

    def test_error_details(self):
        client = DidwwClient(api_key="key")
        resp = json_response(422, {"errors": [{"detail": "number reserved"}]})
        with mock.patch("numbershop.services.telephony.requests.get", return_value=resp):
            with pytest.raises(TelephonyProviderError, match="number reserved"):
                client.ping()

    def test_get_retries_server_errors(self):
        client = DidwwClient(api_key="key")
        busy = json_response(503, {})
        busy.raise_for_status.side_effect = requests.HTTPError("503", response=busy)
        gets = [busy, json_response(200, {"data": [{"id": "US"}]})]

        with mock.patch("numbershop.services.telephony.requests.get", side_effect=gets) as get:
            assert client.ping() is True
        assert get.call_count == 2

    def test_client_errors_are_not_retried(self):
        client = DidwwClient(api_key="key")
        with mock.patch("numbershop.services.telephony.requests.get",
                        return_value=json_response(404, {"errors": [{"title": "not found"}]})) as get:
            with pytest.raises(TelephonyProviderError):
                client.ping()
        assert get.call_count == 1

    def test_missing_api_key(self):
        with mock.patch("numbershop.services.telephony.DIDWW_API_KEY", ""):
            with pytest.raises(TelephonyProviderError):
                DidwwClient(api_key="").ping()

    def test_invalid_sip_uri(self):
        with pytest.raises(ValidationError):
            DidwwClient(api_key="key").configure_voice_forwarding("did_1", "voip", "not-a-sip-uri")


class TestMockProvider:
    def test_deterministic_order_and_did(self):
        provider = MockTelephonyProvider()
        order_id = provider.place_order("+1 212 555 0100", "US", "212")
        assert order_id == "order_12125550100"
        assert provider.did_for_order(order_id) == "did_12125550100"

    def test_configured_failures(self):
        provider = MockTelephonyProvider(fail_numbers={"+10000000000"})
        with pytest.raises(TelephonyProviderError):
            provider.place_order("+10000000000", "US", None)


def test_webhook_signature():
    import hashlib
    import hmac

    body = b'{"type":"cdr.created"}'
    signature = hmac.new(b"secret", body, hashlib.sha256).hexdigest()

    assert verify_webhook_signature(body, signature, "secret")
    assert verify_webhook_signature(body, signature.upper(), "secret")
    assert not verify_webhook_signature(body, signature, "other")
    assert not verify_webhook_signature(body, None, "secret")


class TestEmailClient:
    def test_without_key_only_logs(self):
        with mock.patch("numbershop.services.email_client.requests.post") as post:
            assert EmailClient(api_key="").send(["a@example.com"], "Hi", "<p>x</p>") is None
        post.assert_not_called()

    def test_send(self):
        resp = mock.Mock()
        resp.json.return_value = {"id": "em_1"}
        with mock.patch("numbershop.services.email_client.requests.post", return_value=resp) as post:
            assert EmailClient(api_key="re_key").send(["a@example.com"], "Hi", "<p>x</p>") == "em_1"
        assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer re_key"


class TestCartStore:
    def test_save_sets_ttl_and_load_parses(self):
        store = CartStore(url="redis://localhost:6379/0", ttl=60)
        store.redis = mock.Mock()
        item = CartItem(id="a", country_code="US", phone_number="+1212", base_price=Decimal("5.00"))

        store.save(3, [item])

        key, payload = store.redis.set.call_args.args
        assert key == "cart:3"
        assert store.redis.set.call_args.kwargs == {"ex": 60}

        store.redis.get.return_value = payload
        assert store.load(3) == [item]

    def test_missing_cart(self):
        store = CartStore(url="redis://localhost:6379/0")
        store.redis = mock.Mock()
        store.redis.get.return_value = None
        assert store.load(1) == []
