# numbershop/data/models/provisioning_queue.py
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Text, JSON, Index

from numbershop.data.database import Base


class QueueStatus(str, enum.Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


OPEN_STATUSES = (QueueStatus.QUEUED.value, QueueStatus.IN_PROGRESS.value)


class ProvisioningQueueEntryModel(Base):
    __tablename__ = "provisioning_queue"

    id = Column(Integer, primary_key=True)
    purchased_number_id = Column(Integer, ForeignKey("purchased_numbers.id"), nullable=False, index=True)

    operation = Column(String(32), nullable=False, default="provision")
    priority = Column(Integer, nullable=False, default=5)  # wieksza = pilniejsze
    payload = Column(JSON, nullable=True)

    status = Column(String(16), nullable=False, default=QueueStatus.QUEUED.value)
    attempts = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_provisioning_queue_dequeue", "status", "priority", "created_at"),
    )
