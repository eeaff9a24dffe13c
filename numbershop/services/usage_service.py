# numbershop/services/usage_service.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List, Optional

from sqlalchemy.orm import Session

from numbershop.data.models.call_record import CallRecordModel
from numbershop.data.models.purchased_number import PurchasedNumberModel
from numbershop.domain.errors import NotFound, ValidationError
from numbershop.domain.usage import DateRange, call_stats, sms_stats, calls_to_csv, sms_to_csv
from numbershop.repos.purchased_number_repo import PurchasedNumberRepo
from numbershop.repos.usage_repo import UsageRepo
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)

EXPORT_FORMATS = ("csv", "json")


class UsageService:
    """CDR i historia SMS z lokalnych tabel (zasilanych webhookiem operatora)."""

    def __init__(self, db: Session):
        self.repo = UsageRepo(db)
        self.numbers = PurchasedNumberRepo(db)

    def owned_number(self, phone_number: str, user_id: int) -> PurchasedNumberModel:
        number = self.numbers.get_by_phone_number(phone_number)
        if not number or number.user_id != user_id:
            raise NotFound(f"Phone number {phone_number} not found")
        return number

    def fetch_call_records(self, phone_number: str, date_range: Optional[DateRange] = None) -> List[CallRecordModel]:
        date_range = date_range or DateRange()
        return self.repo.call_records(phone_number, date_range.start, date_range.end)

    def fetch_sms_records(self, phone_number: str, date_range: Optional[DateRange] = None):
        date_range = date_range or DateRange()
        return self.repo.sms_records(phone_number, date_range.start, date_range.end)

    def call_stats(self, phone_number: str, date_range: Optional[DateRange] = None) -> Dict[str, Any]:
        return call_stats(self.fetch_call_records(phone_number, date_range))

    def sms_stats(self, phone_number: str, date_range: Optional[DateRange] = None) -> Dict[str, Any]:
        return sms_stats(self.fetch_sms_records(phone_number, date_range))

    @staticmethod
    def check_format(fmt: str) -> str:
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Unsupported export format {fmt!r}, use csv or json")
        return fmt

    def export_calls_csv(self, phone_number: str, date_range: Optional[DateRange] = None) -> str:
        return calls_to_csv(self.fetch_call_records(phone_number, date_range))

    def export_sms_csv(self, phone_number: str, date_range: Optional[DateRange] = None) -> str:
        return sms_to_csv(self.fetch_sms_records(phone_number, date_range))

    # =====================================================
    # INGEST
    # =====================================================
    def record_call(self, number: PurchasedNumberModel, data: Dict[str, Any]) -> CallRecordModel:
        provider_id = data.get("id")
        if provider_id:
            existing = self.repo.call_by_provider_id(str(provider_id))
            if existing:
                logger.info(f"CDR {provider_id} already stored, skipping")
                return existing

        duration = int(data.get("duration") or 0)
        record = self.repo.add(
            CallRecordModel(
                purchased_number_id=number.id,
                phone_number=number.phone_number,
                provider_cdr_id=str(provider_id) if provider_id else None,
                direction=data.get("direction") or "inbound",
                from_number=data.get("source") or data.get("from") or "",
                to_number=data.get("destination") or data.get("to") or number.phone_number,
                destination_name=data.get("destination_name"),
                started_at=_parse_time(data.get("start_time")) or datetime.now(timezone.utc),
                ended_at=_parse_time(data.get("end_time")),
                duration_seconds=duration,
                answered=bool(data.get("answered", duration > 0)),
                status=data.get("status") or ("completed" if duration > 0 else "missed"),
                cost=Decimal(str(data.get("cost") or 0)),
                currency=(data.get("currency") or "USD").upper(),
            )
        )
        logger.info(f"CDR {record.provider_cdr_id} stored for {number.phone_number}")
        return record


def _parse_time(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
