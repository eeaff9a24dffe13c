# numbershop/services/telephony.py
"""
Klienci operatora telefonii.

DidwwClient mowi JSON:API z api.didww.com. MockTelephonyProvider jest
deterministyczny i sluzy do developmentu i testow (TELEPHONY_PROVIDER=mock).
"""
import hashlib
import hmac
import re
import uuid
from functools import lru_cache
from typing import Dict, Any, Optional

import requests

from numbershop.domain.errors import TelephonyProviderError, ValidationError
from numbershop.utils.retry import RETRYABLE_STATUS, http_retry
from numbershop.utils.settings import TELEPHONY_PROVIDER, DIDWW_API_KEY, DIDWW_API_URL
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)

JSON_API = "application/vnd.api+json"


class DidwwClient:
    def __init__(self, api_key: str | None = None, base_url: str | None = None, timeout: int = 10):
        self.api_key = api_key or DIDWW_API_KEY
        self.base_url = (base_url or DIDWW_API_URL).rstrip("/")
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise TelephonyProviderError("DIDWW_API_KEY is not configured")
        return {"Api-Key": self.api_key, "Accept": JSON_API, "Content-Type": JSON_API}

    def _check(self, resp: requests.Response) -> Dict[str, Any]:
        if resp.status_code == 401:
            raise TelephonyProviderError("DIDWW authentication failed")
        if resp.status_code == 429:
            raise TelephonyProviderError("DIDWW rate limit exceeded")
        if resp.status_code >= 400:
            try:
                errors = resp.json().get("errors", [])
            except ValueError:
                errors = []
            detail = "; ".join(e.get("detail") or e.get("title", "") for e in errors) or resp.reason
            raise TelephonyProviderError(f"DIDWW request failed ({resp.status_code}): {detail}")
        return resp.json() if resp.content else {}

    @http_retry()
    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.info(f"DIDWW GET {url}")
        resp = requests.get(url, params=params, headers=self._headers(), timeout=self.timeout)
        if resp.status_code in RETRYABLE_STATUS:
            resp.raise_for_status()
        return self._check(resp)

    # zapisy nie sa ponawiane - zamowienie numeru kosztuje
    def _send(self, method: str, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.info(f"DIDWW {method} {url}")
        try:
            resp = requests.request(method, url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise TelephonyProviderError(f"DIDWW {method} {path} failed: {e}")
        return self._check(resp)

    def _get_or_fail(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            return self._get(path, params)
        except requests.RequestException as e:
            raise TelephonyProviderError(f"DIDWW GET {path} failed: {e}")

    def place_order(self, phone_number: str, country_code: str, area_code: str | None) -> str:
        """Platne zamowienie numeru. Zwraca id zamowienia DIDWW, bez ponawiania."""
        digits = re.sub(r"\D", "", phone_number)
        available = self._get_or_fail("/available_dids", {"filter[number]": digits, "page[size]": 1})
        data = available.get("data") or []
        if not data:
            raise TelephonyProviderError(f"Number {phone_number} is no longer available")

        order = self._send("POST", "/orders", {
            "data": {
                "type": "orders",
                "attributes": {
                    "reference": f"order-{uuid.uuid4().hex[:12]}",
                    "items": [{
                        "type": "did_order_items",
                        "attributes": {"available_did_id": data[0]["id"]},
                    }],
                },
            },
        })
        order_id = order["data"]["id"]
        logger.info(f"DIDWW order {order_id} placed for {phone_number}")
        return order_id

    def did_for_order(self, order_id: str) -> str:
        dids = self._get_or_fail("/dids", {"filter[order.id]": order_id, "page[size]": 1})
        if not dids.get("data"):
            raise TelephonyProviderError(f"DID for order {order_id} is not available yet")
        return dids["data"][0]["id"]

    def _attach(self, did_id: str, relation: str, resource_type: str, attributes: Dict[str, Any]) -> None:
        did = self._get_or_fail(f"/dids/{did_id}", {"include": relation})
        existing = ((did.get("data") or {}).get("relationships", {}).get(relation) or {}).get("data")

        body = {"data": {"type": resource_type, "attributes": attributes}}
        if existing:
            body["data"]["id"] = existing["id"]
            self._send("PATCH", f"/{resource_type}/{existing['id']}", body)
            return

        created = self._send("POST", f"/{resource_type}", body)
        self._send("PATCH", f"/dids/{did_id}", {
            "data": {
                "type": "dids",
                "id": did_id,
                "relationships": {relation: {"data": {"type": resource_type, "id": created["data"]["id"]}}},
            },
        })

    def configure_voice_forwarding(self, did_id: str, forwarding_type: str, destination: str) -> None:
        if forwarding_type == "voip":
            match = re.match(r"sip:(.+)@([^:]+):?(\d+)?", destination)
            if not match:
                raise ValidationError("Invalid SIP URI format. Expected: sip:username@host:port")
            attributes = {
                "configuration_type": "sip_configuration",
                "configuration": {
                    "username": match.group(1),
                    "host": match.group(2),
                    "port": int(match.group(3) or 5060),
                    "transport": "UDP",
                },
            }
        else:
            attributes = {
                "configuration_type": "pstn_configuration",
                "configuration": {"dst_number": re.sub(r"\D", "", destination)},
            }
        self._attach(did_id, "voice_in_trunk", "voice_in_trunks", attributes)

    def configure_sms_forwarding(self, did_id: str, email: str) -> None:
        self._attach(did_id, "sms_configuration", "sms_configurations", {
            "enabled": True,
            "url": f"mailto:{email}",
            "method": "POST",
            "max_characters": 160,
        })

    def ping(self) -> bool:
        self._get_or_fail("/countries", {"page[size]": 1})
        return True


class MockTelephonyProvider:
    """Deterministyczny operator: DID id wynika z numeru."""

    def __init__(self, fail_numbers: set | None = None):
        self.fail_numbers = set(fail_numbers or ())
        self.ordered: list = []
        self.forwarding: Dict[str, Dict[str, Any]] = {}

    def place_order(self, phone_number: str, country_code: str, area_code: str | None) -> str:
        if phone_number in self.fail_numbers:
            raise TelephonyProviderError(f"Mock provisioning failed for {phone_number}")
        order_id = f"order_{re.sub(r'[^0-9A-Za-z]', '', phone_number)}"
        self.ordered.append(phone_number)
        logger.info(f"[MOCK] Order {order_id} placed for {phone_number}")
        return order_id

    def did_for_order(self, order_id: str) -> str:
        did_id = f"did_{order_id.removeprefix('order_')}"
        logger.info(f"[MOCK] Order {order_id} has DID ID: {did_id}")
        return did_id

    def configure_voice_forwarding(self, did_id: str, forwarding_type: str, destination: str) -> None:
        self.forwarding.setdefault(did_id, {})["voice"] = (forwarding_type, destination)
        logger.info(f"[MOCK] Voice forwarding for {did_id}: {forwarding_type} -> {destination}")

    def configure_sms_forwarding(self, did_id: str, email: str) -> None:
        self.forwarding.setdefault(did_id, {})["sms"] = email
        logger.info(f"[MOCK] SMS forwarding for {did_id} -> {email}")

    def ping(self) -> bool:
        return True


@lru_cache
def get_telephony_provider():
    if TELEPHONY_PROVIDER == "didww":
        return DidwwClient()
    return MockTelephonyProvider()


def verify_webhook_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """HMAC-SHA256 (hex) calego body, naglowek X-DIDWW-Signature."""
    if not signature:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())
