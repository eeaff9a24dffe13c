# numbershop/services/provisioning_queue.py
from typing import Dict, Any, Optional

from sqlalchemy.orm import Session

from numbershop.data.models.provisioning_queue import (
    ProvisioningQueueEntryModel,
    QueueStatus,
    OPEN_STATUSES,
)
from numbershop.domain.errors import DuplicateQueueEntry, NotFound
from numbershop.repos.queue_repo import QueueRepo
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)

PRIORITY_HIGH = 10  # nowe zakupy i re-drive
PRIORITY_NORMAL = 5  # wyzwolone przez uzytkownika


class ProvisioningQueue:
    """
    Trwala kolejka zadan provisioningu (tabela provisioning_queue).
    Maksymalnie jeden wpis queued/in_progress na numer.
    """

    # ile kandydatow brac naraz przy dequeue
    CANDIDATE_BATCH = 5

    def __init__(self, db: Session):
        self.repo = QueueRepo(db)

    def enqueue(
        self,
        purchased_number_id: int,
        operation: str = "provision",
        priority: int = PRIORITY_NORMAL,
        payload: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> ProvisioningQueueEntryModel:
        if self.repo.open_entry(purchased_number_id):
            raise DuplicateQueueEntry(f"Number {purchased_number_id} already has an open provisioning task")

        entry = self.repo.add(
            ProvisioningQueueEntryModel(
                purchased_number_id=purchased_number_id,
                operation=operation,
                priority=priority,
                payload=payload or {},
                status=QueueStatus.QUEUED.value,
                attempts=0,
            )
        )
        if commit:
            self.repo.commit()

        logger.info(f"Queued {operation} for number {purchased_number_id} (entry {entry.id}, priority {priority})")
        return entry

    def open_entry(self, purchased_number_id: int) -> ProvisioningQueueEntryModel | None:
        return self.repo.open_entry(purchased_number_id)

    def dequeue_next(self) -> ProvisioningQueueEntryModel | None:
        """
        Bierze najpilniejszy wpis queued i przestawia go na in_progress.
        Claim to warunkowy UPDATE - jak rowcount 0, inny worker byl szybszy
        i probujemy nastepnego kandydata.
        """
        while True:
            candidates = self.repo.candidates(self.CANDIDATE_BATCH)
            if not candidates:
                self.repo.rollback()
                return None

            for candidate in candidates:
                if self.repo.claim(candidate.id) == 1:
                    self.repo.commit()
                    entry = self.repo.get(candidate.id)
                    self.repo.db.refresh(entry)
                    logger.info(f"Claimed queue entry {entry.id} for number {entry.purchased_number_id}")
                    return entry

            # wszyscy kandydaci zabrani - odswiez i sprobuj jeszcze raz
            self.repo.rollback()

    def mark_completed(self, entry_id: int) -> None:
        entry = self.repo.get(entry_id)
        if not entry:
            raise NotFound(f"Queue entry {entry_id} not found")
        if entry.status == QueueStatus.COMPLETED.value:
            return
        self.repo.set_status(entry_id, QueueStatus.COMPLETED.value)
        self.repo.commit()
        self.repo.db.refresh(entry)
        logger.info(f"Queue entry {entry_id} completed")

    def mark_failed(self, entry_id: int, reason: str) -> None:
        entry = self.repo.get(entry_id)
        if not entry:
            raise NotFound(f"Queue entry {entry_id} not found")
        self.repo.set_status(entry_id, QueueStatus.FAILED.value, reason)
        self.repo.commit()
        self.repo.db.refresh(entry)
        logger.warning(f"Queue entry {entry_id} failed: {reason}")

    def settle_open(self, purchased_number_id: int, status: str, reason: str | None = None) -> int:
        """Zamyka wszystkie otwarte wpisy numeru. Bez commita - czesc wiekszej transakcji."""
        return self.repo.settle_for_number(purchased_number_id, OPEN_STATUSES, status, reason)

    def cleanup_failed(self, purchased_number_id: int) -> int:
        count = self.repo.settle_for_number(
            purchased_number_id, (QueueStatus.FAILED.value,), QueueStatus.COMPLETED.value
        )
        if count:
            logger.info(f"Cleaned up {count} failed queue entries for number {purchased_number_id}")
        return count

    def recent(self, purchased_number_id: int, limit: int = 5):
        return self.repo.recent_for_number(purchased_number_id, limit)

    def stats(self) -> Dict[str, int]:
        counts = self.repo.count_by_status()
        return {s.value: counts.get(s.value, 0) for s in QueueStatus}
