# numbershop/api/routers/webhooks.py
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from numbershop.api.dependencies import get_db
from numbershop.domain.errors import Unauthorized, ValidationError
from numbershop.domain.schemas import TelephonyEventIn
from numbershop.repos.purchased_number_repo import PurchasedNumberRepo
from numbershop.services.sms_config_service import SmsConfigService
from numbershop.services.telephony import verify_webhook_signature
from numbershop.services.usage_service import UsageService
from numbershop.utils import settings
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def raw_body(request: Request) -> bytes:
    return await request.body()


def _find_number(repo: PurchasedNumberRepo, data: dict):
    did_id = data.get("did_id")
    if did_id:
        number = repo.get_by_provider_did(str(did_id))
        if number:
            return number
    phone = data.get("to") or data.get("destination")
    return repo.get_by_phone_number(phone) if phone else None


@router.post("/telephony")
def telephony_webhook(
    body: bytes = Depends(raw_body),
    signature: Optional[str] = Header(None, alias="X-DIDWW-Signature"),
    db: Session = Depends(get_db),
):
    """Zdarzenia operatora: cdr.created i sms.received. Reszta jest logowana."""
    if settings.DIDWW_WEBHOOK_SECRET:
        if not verify_webhook_signature(body, signature, settings.DIDWW_WEBHOOK_SECRET):
            raise Unauthorized("Invalid webhook signature")
    elif settings.TELEPHONY_PROVIDER != "mock":
        # bez sekretu przyjmujemy zdarzenia tylko od mocka
        raise Unauthorized("Telephony webhook secret is not configured")

    try:
        event = TelephonyEventIn.model_validate_json(body)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid webhook payload: {e.error_count()} error(s)")

    number = _find_number(PurchasedNumberRepo(db), event.data)
    if number is None:
        logger.warning(f"Telephony event {event.type} for unknown number, ignored")
        return {"received": True, "processed": False}

    if event.type == "sms.received":
        SmsConfigService(db).process_incoming_sms(
            number,
            from_number=event.data.get("from", ""),
            to_number=event.data.get("to") or number.phone_number,
            message=event.data.get("message") or event.data.get("text") or "",
            provider_sms_id=event.data.get("id"),
        )
    elif event.type == "cdr.created":
        UsageService(db).record_call(number, event.data)
    else:
        logger.info(f"Unhandled telephony event {event.type}")
        return {"received": True, "processed": False}

    return {"received": True, "processed": True}
