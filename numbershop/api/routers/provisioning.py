# numbershop/api/routers/provisioning.py
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from numbershop.api.dependencies import get_db, get_current_user, get_admin_policy, get_telephony_provider
from numbershop.data.models.user import UserModel
from numbershop.domain.schemas import (
    ProvisionAccepted,
    ProvisionRequest,
    ProvisioningStatusOut,
    QueueEntryOut,
    RetryRequest,
)
from numbershop.services.auth_policy import AdminPolicy
from numbershop.services.provisioning_service import ProvisioningService
from numbershop.tasks.provisioning import run_provisioning

router = APIRouter(prefix="/provisioning", tags=["provisioning"])


def get_service(db: Session, provider) -> ProvisioningService:
    return ProvisioningService(db, provider)


@router.post("/provision", response_model=ProvisionAccepted, status_code=202)
def provision(
    payload: ProvisionRequest,
    background: BackgroundTasks,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider=Depends(get_telephony_provider),
):
    """
    Wpis do kolejki + bezposrednia proba w tle.
    Odpowiedz 202 wraca od razu, wynik widac w /provisioning/status.
    """
    entry = get_service(db, provider).request_provisioning(payload.purchased_number_id, user.id, payload.config)

    config = payload.config.model_dump(mode="json") if payload.config else None
    background.add_task(run_provisioning, payload.purchased_number_id, config, provider)

    return ProvisionAccepted(
        purchased_number_id=payload.purchased_number_id,
        queue_entry_id=entry.id,
        status=entry.status,
    )


@router.post("/retry", response_model=ProvisionAccepted)
def retry(
    payload: RetryRequest,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider=Depends(get_telephony_provider),
    policy: AdminPolicy = Depends(get_admin_policy),
):
    entry = get_service(db, provider).redrive(payload.purchased_number_id, user, policy.is_admin(user))
    return ProvisionAccepted(
        purchased_number_id=payload.purchased_number_id,
        queue_entry_id=entry.id,
        status=entry.status,
    )


@router.get("/status/{purchased_number_id}", response_model=ProvisioningStatusOut)
def status(
    purchased_number_id: int,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider=Depends(get_telephony_provider),
):
    data = get_service(db, provider).status(purchased_number_id, user.id)
    data["queue"] = [QueueEntryOut.model_validate(e) for e in data["queue"]]
    return data
