from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Boolean, Numeric

from numbershop.data.database import Base


class CallRecordModel(Base):
    __tablename__ = "call_detail_records"

    id = Column(Integer, primary_key=True)
    purchased_number_id = Column(Integer, ForeignKey("purchased_numbers.id"), nullable=False, index=True)
    phone_number = Column(String, nullable=False, index=True)
    provider_cdr_id = Column(String, nullable=True, unique=True)

    direction = Column(String(8), nullable=False)  # inbound, outbound
    from_number = Column(String, nullable=False)
    to_number = Column(String, nullable=False)
    destination_name = Column(String, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Integer, nullable=False, default=0)
    answered = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False, default="completed")
    cost = Column(Numeric(10, 4), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
