# numbershop/repos/queue_repo.py
from datetime import datetime, timezone
from typing import List, Dict

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from numbershop.data.models.provisioning_queue import (
    ProvisioningQueueEntryModel,
    QueueStatus,
    OPEN_STATUSES,
)


class QueueRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, entry_id: int) -> ProvisioningQueueEntryModel | None:
        return self.db.get(ProvisioningQueueEntryModel, entry_id)

    def add(self, entry: ProvisioningQueueEntryModel) -> ProvisioningQueueEntryModel:
        self.db.add(entry)
        self.db.flush()
        return entry

    def open_entry(self, number_id: int) -> ProvisioningQueueEntryModel | None:
        return self.db.execute(
            select(ProvisioningQueueEntryModel)
            .where(
                ProvisioningQueueEntryModel.purchased_number_id == number_id,
                ProvisioningQueueEntryModel.status.in_(OPEN_STATUSES),
            )
            .order_by(ProvisioningQueueEntryModel.id)
            .limit(1)
        ).scalar_one_or_none()

    def candidates(self, limit: int) -> List[ProvisioningQueueEntryModel]:
        # priorytet malejaco, potem FIFO; skip_locked ignoruje sqlite
        stmt = (
            select(ProvisioningQueueEntryModel)
            .where(ProvisioningQueueEntryModel.status == QueueStatus.QUEUED.value)
            .order_by(
                ProvisioningQueueEntryModel.priority.desc(),
                ProvisioningQueueEntryModel.created_at.asc(),
                ProvisioningQueueEntryModel.id.asc(),
            )
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(self.db.execute(stmt).scalars())

    def claim(self, entry_id: int) -> int:
        res = self.db.execute(
            update(ProvisioningQueueEntryModel)
            .where(
                ProvisioningQueueEntryModel.id == entry_id,
                ProvisioningQueueEntryModel.status == QueueStatus.QUEUED.value,
            )
            .values(
                status=QueueStatus.IN_PROGRESS.value,
                attempts=ProvisioningQueueEntryModel.attempts + 1,
                started_at=datetime.now(timezone.utc),
            )
        )
        return res.rowcount

    def set_status(self, entry_id: int, status: str, error: str | None = None) -> int:
        values = {"status": status, "finished_at": datetime.now(timezone.utc)}
        if error is not None:
            values["error_message"] = error
        res = self.db.execute(
            update(ProvisioningQueueEntryModel)
            .where(ProvisioningQueueEntryModel.id == entry_id)
            .values(**values)
        )
        return res.rowcount

    def settle_for_number(self, number_id: int, from_statuses, status: str, error: str | None = None) -> int:
        values = {"status": status, "finished_at": datetime.now(timezone.utc)}
        if error is not None:
            values["error_message"] = error
        res = self.db.execute(
            update(ProvisioningQueueEntryModel)
            .where(
                ProvisioningQueueEntryModel.purchased_number_id == number_id,
                ProvisioningQueueEntryModel.status.in_(tuple(from_statuses)),
            )
            .values(**values)
        )
        return res.rowcount

    def recent_for_number(self, number_id: int, limit: int = 5) -> List[ProvisioningQueueEntryModel]:
        return list(
            self.db.execute(
                select(ProvisioningQueueEntryModel)
                .where(ProvisioningQueueEntryModel.purchased_number_id == number_id)
                .order_by(ProvisioningQueueEntryModel.id.desc())
                .limit(limit)
            ).scalars()
        )

    def count_by_status(self) -> Dict[str, int]:
        rows = self.db.execute(
            select(ProvisioningQueueEntryModel.status, func.count(ProvisioningQueueEntryModel.id))
            .group_by(ProvisioningQueueEntryModel.status)
        ).all()
        return {status: count for status, count in rows}

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
