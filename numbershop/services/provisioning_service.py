# numbershop/services/provisioning_service.py
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from sqlalchemy.orm import Session

from numbershop.data.models.purchased_number import PurchasedNumberModel, ProvisioningStatus
from numbershop.data.models.provisioning_queue import QueueStatus
from numbershop.domain.errors import (
    AlreadyProvisioned,
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
    ProvisioningFailed,
    ProvisioningInProgress,
    ServiceError,
)
from numbershop.domain.schemas import ProvisioningConfig
from numbershop.repos.purchased_number_repo import PurchasedNumberRepo
from numbershop.services.notification_service import NotificationService
from numbershop.services.provisioning_queue import ProvisioningQueue, PRIORITY_HIGH, PRIORITY_NORMAL
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)


class ProvisioningService:
    """
    Maszyna stanow numeru:
        pending -> provisioning -> active
        pending -> provisioning -> failed
        failed -> pending (tylko re-drive operatora)

    Jedyne wejscie do pending -> provisioning to warunkowy UPDATE w
    provision_number, wiec kolejka i bezposrednie wywolanie moga isc
    rownolegle dla tego samego numeru.
    """

    def __init__(self, db: Session, provider, notifications: NotificationService | None = None):
        self.numbers = PurchasedNumberRepo(db)
        self.queue = ProvisioningQueue(db)
        self.provider = provider
        self.notifications = notifications or NotificationService()

    # =====================================================
    # QUERY
    # =====================================================
    def get_owned(self, number_id: int, user_id: int) -> PurchasedNumberModel:
        number = self.numbers.get(number_id)
        if not number or number.user_id != user_id:
            raise NotFound("Purchased number not found")
        return number

    def status(self, number_id: int, user_id: int) -> Dict[str, Any]:
        number = self.get_owned(number_id, user_id)
        return {
            "purchased_number_id": number.id,
            "phone_number": number.phone_number,
            "provisioning_status": number.provisioning_status,
            "is_active": number.is_active,
            "provider_did_id": number.provider_did_id,
            "last_provision_error": number.last_provision_error,
            "queue": self.queue.recent(number.id),
        }

    # =====================================================
    # COMMANDS
    # =====================================================
    def provision_number(self, number_id: int, config: Optional[ProvisioningConfig] = None) -> PurchasedNumberModel:
        number = self.numbers.get(number_id)
        if not number:
            raise NotFound(f"Purchased number {number_id} not found")
        self.numbers.refresh(number)

        if number.provisioning_status == ProvisioningStatus.ACTIVE.value:
            raise AlreadyProvisioned(f"Number {number.phone_number} is already provisioned")

        # atomowy claim pending -> provisioning
        claimed = self.numbers.transition(
            number_id,
            ProvisioningStatus.PENDING.value,
            {
                "provisioning_status": ProvisioningStatus.PROVISIONING.value,
                "provisioning_attempts": PurchasedNumberModel.provisioning_attempts + 1,
                "last_provision_error": None,
            },
        )
        self.numbers.commit()

        if claimed == 0:
            self.numbers.refresh(number)
            current = number.provisioning_status
            if current == ProvisioningStatus.ACTIVE.value:
                raise AlreadyProvisioned(f"Number {number.phone_number} is already provisioned")
            if current == ProvisioningStatus.PROVISIONING.value:
                raise ProvisioningInProgress(f"Number {number.phone_number} is being provisioned")
            raise InvalidTransition(
                f"Number {number.phone_number} is {current}, it needs a retry before provisioning"
            )

        logger.info(f"Provisioning number {number.phone_number} (id {number_id})")

        try:
            did_id = self._allocate(number)
        except ServiceError as e:
            return self._fail(number, e.message)
        except Exception as e:
            logger.exception(f"Unexpected provider error for number {number_id}")
            return self._fail(number, str(e))

        self.numbers.transition(
            number_id,
            ProvisioningStatus.PROVISIONING.value,
            {
                "provisioning_status": ProvisioningStatus.ACTIVE.value,
                "is_active": True,
                "provider_did_id": did_id,
                "provisioned_at": datetime.now(timezone.utc),
            },
        )
        self.queue.settle_open(number_id, QueueStatus.COMPLETED.value)
        self.numbers.commit()
        self.numbers.refresh(number)

        logger.info(f"Number {number.phone_number} active with DID {did_id}")

        if config:
            self._apply_forwarding(number, config)

        self.notifications.send_provisioning_notification(number_id, True)
        return number

    def _allocate(self, number: PurchasedNumberModel) -> str:
        """
        Zamowienie u operatora + odczyt DID.
        Id zamowienia jest commitowane zanim czytamy DID, wiec kolejna proba
        (po re-drive) tylko dopytuje o DID i nie placi drugi raz.
        """
        order_id = number.provider_order_id
        if order_id:
            logger.info(f"Number {number.phone_number} already ordered as {order_id}, looking up DID")
        else:
            order_id = self.provider.place_order(number.phone_number, number.country_code, number.area_code)
            self.numbers.transition(
                number.id,
                ProvisioningStatus.PROVISIONING.value,
                {"provider_order_id": order_id},
            )
            self.numbers.commit()
            self.numbers.refresh(number)

        return self.provider.did_for_order(order_id)

    def _fail(self, number: PurchasedNumberModel, reason: str):
        self.numbers.transition(
            number.id,
            ProvisioningStatus.PROVISIONING.value,
            {
                "provisioning_status": ProvisioningStatus.FAILED.value,
                "is_active": False,
                "last_provision_error": reason,
            },
        )
        self.queue.settle_open(number.id, QueueStatus.FAILED.value, reason)
        self.numbers.commit()
        self.numbers.refresh(number)

        logger.error(f"Provisioning of number {number.phone_number} failed: {reason}")
        self.notifications.send_provisioning_notification(number.id, False, reason)
        raise ProvisioningFailed(f"Provisioning failed: {reason}")

    def _apply_forwarding(self, number: PurchasedNumberModel, config: ProvisioningConfig) -> None:
        # numer juz aktywny - blad konfiguracji tylko logujemy
        try:
            if config.forwarding_type != "none" and config.forwarding_number:
                self.provider.configure_voice_forwarding(
                    number.provider_did_id, config.forwarding_type, config.forwarding_number
                )
            if config.sms_forwarding_email:
                self.provider.configure_sms_forwarding(number.provider_did_id, config.sms_forwarding_email)
        except Exception as e:
            logger.warning(f"Forwarding setup for number {number.id} failed: {e}")

    def request_provisioning(self, number_id: int, user_id: int, config: Optional[ProvisioningConfig] = None):
        """
        Trigger uzytkownika: walidacja i wpis do kolejki.
        Bezposrednie wywolanie provision_number robi router jako background task.
        """
        number = self.get_owned(number_id, user_id)

        if number.provisioning_status == ProvisioningStatus.ACTIVE.value:
            raise AlreadyProvisioned(f"Number {number.phone_number} is already provisioned")
        if number.provisioning_status == ProvisioningStatus.FAILED.value:
            raise Conflict(f"Number {number.phone_number} failed to provision, use retry")

        entry = self.queue.open_entry(number_id)
        if entry is None:
            entry = self.queue.enqueue(
                number_id,
                priority=PRIORITY_NORMAL,
                payload={
                    "userId": user_id,
                    "config": config.model_dump(mode="json") if config else None,
                },
            )
        return entry

    def redrive(self, number_id: int, user, is_admin: bool):
        """Re-drive operatora: failed -> pending, sprzatanie starych wpisow, nowe zadanie."""
        number = self.numbers.get(number_id)
        if not number:
            raise NotFound("Purchased number not found")
        if number.user_id != user.id and not is_admin:
            raise Forbidden("Not allowed to retry this number")

        self.numbers.refresh(number)
        if number.provisioning_status != ProvisioningStatus.FAILED.value:
            raise InvalidTransition(
                f"Only failed numbers can be retried, number is {number.provisioning_status}"
            )

        previous_attempts = number.provisioning_attempts
        moved = self.numbers.transition(
            number_id,
            ProvisioningStatus.FAILED.value,
            {"provisioning_status": ProvisioningStatus.PENDING.value},
        )
        if moved == 0:
            self.numbers.rollback()
            raise InvalidTransition("Number changed state, retry again")

        self.queue.cleanup_failed(number_id)
        entry = self.queue.enqueue(
            number_id,
            priority=PRIORITY_HIGH,
            payload={"userId": user.id, "isRetry": True, "previousAttempts": previous_attempts},
            commit=False,
        )
        self.numbers.commit()
        self.numbers.refresh(number)

        logger.info(f"Number {number.phone_number} re-driven by user {user.id} (entry {entry.id})")
        return entry
