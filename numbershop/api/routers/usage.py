# numbershop/api/routers/usage.py
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from numbershop.api.dependencies import get_db, get_current_user
from numbershop.data.models.user import UserModel
from numbershop.domain.errors import ValidationError
from numbershop.domain.schemas import CallRecordOut, CallStatsOut, SmsRecordOut, SmsStatsOut
from numbershop.domain.usage import DateRange
from numbershop.services.usage_service import UsageService

router = APIRouter(prefix="/cdr", tags=["cdr"])


def get_service(db: Session) -> UsageService:
    return UsageService(db)


def date_range(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
) -> DateRange:
    if start_date and end_date and start_date > end_date:
        raise ValidationError("startDate must not be after endDate")
    return DateRange(start=_aware(start_date), end=_aware(end_date))


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo:
        return value
    return value.replace(tzinfo=timezone.utc)


def _csv_response(content: str, prefix: str, phone_number: str) -> Response:
    filename = f"{prefix}-{phone_number}-{datetime.now(timezone.utc).date().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _json_export(records, schema):
    data = [schema.model_validate(r).model_dump(mode="json", by_alias=True) for r in records]
    return {"data": data, "count": len(data), "exportDate": datetime.now(timezone.utc).isoformat()}


@router.get("/fetch")
def fetch_calls(
    phone_number: str = Query(..., alias="phoneNumber"),
    period: DateRange = Depends(date_range),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    svc.owned_number(phone_number, user.id)
    records = svc.fetch_call_records(phone_number, period)
    return {
        "records": [CallRecordOut.model_validate(r).model_dump(mode="json", by_alias=True) for r in records],
        "count": len(records),
        "dateRange": period.label(),
    }


@router.get("/stats", response_model=CallStatsOut)
def call_stats(
    phone_number: str = Query(..., alias="phoneNumber"),
    period: DateRange = Depends(date_range),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    svc.owned_number(phone_number, user.id)
    return svc.call_stats(phone_number, period)


@router.get("/export")
def export_calls(
    phone_number: str = Query(..., alias="phoneNumber"),
    fmt: str = Query("csv", alias="format"),
    period: DateRange = Depends(date_range),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    svc.check_format(fmt)
    svc.owned_number(phone_number, user.id)

    if fmt == "csv":
        return _csv_response(svc.export_calls_csv(phone_number, period), "cdr", phone_number)
    return _json_export(svc.fetch_call_records(phone_number, period), CallRecordOut)


@router.get("/sms")
def sms_usage(
    phone_number: str = Query(..., alias="phoneNumber"),
    action: Literal["fetch", "stats", "export"] = Query("fetch"),
    fmt: str = Query("csv", alias="format"),
    period: DateRange = Depends(date_range),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Historia SMS - jeden endpoint, akcja w parametrze."""
    svc = get_service(db)
    svc.owned_number(phone_number, user.id)

    if action == "stats":
        return SmsStatsOut(**svc.sms_stats(phone_number, period)).model_dump(mode="json", by_alias=True)

    if action == "export":
        svc.check_format(fmt)
        if fmt == "csv":
            return _csv_response(svc.export_sms_csv(phone_number, period), "sms", phone_number)
        return _json_export(svc.fetch_sms_records(phone_number, period), SmsRecordOut)

    records = svc.fetch_sms_records(phone_number, period)
    return {
        "records": [SmsRecordOut.model_validate(r).model_dump(mode="json", by_alias=True) for r in records],
        "count": len(records),
        "dateRange": period.label(),
    }
