# numbershop/api/routers/admin.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from numbershop.api.dependencies import get_db, require_admin, get_telephony_provider
from numbershop.data.models.user import UserModel
from numbershop.domain.schemas import ProcessNextOut, QueueEntryOut, QueueStatsOut
from numbershop.services.provisioning_queue import ProvisioningQueue
from numbershop.tasks.provisioning import process_next
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/provisioning", tags=["admin"])


@router.get("/queue", response_model=QueueStatsOut)
def queue_stats(
    admin: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ProvisioningQueue(db).stats()


@router.post("/process-next", response_model=ProcessNextOut)
def process_next_entry(
    admin: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
    provider=Depends(get_telephony_provider),
):
    entry = process_next(db, provider)
    logger.info(f"Admin {admin.id} processed queue entry {entry.id if entry else None}")
    return ProcessNextOut(
        processed=entry is not None,
        entry=QueueEntryOut.model_validate(entry) if entry else None,
    )
