# numbershop/tasks/provisioning.py
from typing import Dict, Any, Optional

from sqlalchemy.orm import Session

from numbershop.celery_worker import celery_app
from numbershop.data.database import SessionLocal
from numbershop.data.models.provisioning_queue import ProvisioningQueueEntryModel
from numbershop.domain.errors import AlreadyProvisioned, ProvisioningInProgress, ServiceError
from numbershop.domain.schemas import ProvisioningConfig
from numbershop.services.provisioning_queue import ProvisioningQueue
from numbershop.services.provisioning_service import ProvisioningService
from numbershop.services.telephony import get_telephony_provider
from numbershop.utils.settings import PROVISIONING_BATCH_SIZE
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)


def _config_from_payload(payload: Optional[Dict[str, Any]]) -> Optional[ProvisioningConfig]:
    raw = (payload or {}).get("config")
    return ProvisioningConfig.model_validate(raw) if raw else None


def process_next(db: Session, provider) -> Optional[ProvisioningQueueEntryModel]:
    """
    Jeden krok workera: claim wpisu z kolejki i provisioning numeru.
    Zwraca wpis po przetworzeniu albo None, gdy kolejka jest pusta.
    """
    queue = ProvisioningQueue(db)
    entry = queue.dequeue_next()
    if entry is None:
        return None

    service = ProvisioningService(db, provider)
    try:
        service.provision_number(entry.purchased_number_id, _config_from_payload(entry.payload))
    except AlreadyProvisioned:
        logger.info(f"Number {entry.purchased_number_id} already active, closing entry {entry.id}")
        queue.mark_completed(entry.id)
    except ProvisioningInProgress:
        # trwajaca proba zamknie wszystkie otwarte wpisy numeru, takze ten
        logger.info(f"Number {entry.purchased_number_id} is being provisioned, entry {entry.id} left to that attempt")
        db.refresh(entry)
    except ServiceError as e:
        # ProvisioningFailed juz zamknal wpis; pozostale bledy zamykamy tutaj
        db.refresh(entry)
        if entry.status != "failed":
            queue.mark_failed(entry.id, e.message)
    else:
        # provision_number zamyka otwarte wpisy numeru, ten tez
        db.refresh(entry)

    return entry


def run_provisioning(number_id: int, config: Optional[Dict[str, Any]] = None, provider=None) -> None:
    """
    Bezposrednia proba provisioningu (FastAPI background task).
    Best-effort: wlasna sesja, bledy tylko logowane - kolejka jest sciezka trwala.
    """
    db = SessionLocal()
    try:
        service = ProvisioningService(db, provider or get_telephony_provider())
        parsed = ProvisioningConfig.model_validate(config) if config else None
        service.provision_number(number_id, parsed)
    except ServiceError as e:
        logger.warning(f"Direct provisioning of number {number_id} skipped: {e.message}")
    finally:
        db.close()


@celery_app.task(name="numbershop.tasks.provisioning.drain_provisioning_queue_task")
def drain_provisioning_queue_task(limit: int = PROVISIONING_BATCH_SIZE):
    logger.info("Drain provisioning queue task started")

    db = SessionLocal()
    processed = 0
    try:
        provider = get_telephony_provider()
        while processed < limit:
            entry = process_next(db, provider)
            if entry is None:
                break
            processed += 1
    finally:
        db.close()

    logger.info(f"Drain provisioning queue task processed {processed} entries")
    return {"processed": processed}
