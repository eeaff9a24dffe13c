# numbershop/repos/usage_repo.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from numbershop.data.models.call_record import CallRecordModel
from numbershop.data.models.sms import SmsRecordModel


class UsageRepo:
    def __init__(self, db: Session):
        self.db = db

    def call_records(
        self, phone_number: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[CallRecordModel]:
        stmt = select(CallRecordModel).where(CallRecordModel.phone_number == phone_number)
        if start is not None:
            stmt = stmt.where(CallRecordModel.started_at >= start)
        if end is not None:
            stmt = stmt.where(CallRecordModel.started_at <= end)
        stmt = stmt.order_by(CallRecordModel.started_at.desc(), CallRecordModel.id.desc())
        return list(self.db.execute(stmt).scalars())

    def sms_records(
        self, phone_number: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[SmsRecordModel]:
        stmt = select(SmsRecordModel).where(SmsRecordModel.phone_number == phone_number)
        if start is not None:
            stmt = stmt.where(SmsRecordModel.created_at >= start)
        if end is not None:
            stmt = stmt.where(SmsRecordModel.created_at <= end)
        stmt = stmt.order_by(SmsRecordModel.created_at.desc(), SmsRecordModel.id.desc())
        return list(self.db.execute(stmt).scalars())

    def call_by_provider_id(self, provider_cdr_id: str) -> CallRecordModel | None:
        return self.db.execute(
            select(CallRecordModel).where(CallRecordModel.provider_cdr_id == provider_cdr_id)
        ).scalar_one_or_none()

    def add(self, record):
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record
