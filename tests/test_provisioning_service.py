from unittest import mock

import pytest

from numbershop.data.database import SessionLocal
from numbershop.data.models import ProvisioningQueueEntryModel
from numbershop.domain.errors import (
    AlreadyProvisioned,
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
    ProvisioningFailed,
    ProvisioningInProgress,
    TelephonyProviderError,
)
from numbershop.domain.schemas import ProvisioningConfig
from numbershop.services.notification_service import send_provisioning_notification_task
from numbershop.services.provisioning_queue import ProvisioningQueue
from numbershop.services.provisioning_service import ProvisioningService
from numbershop.services.telephony import MockTelephonyProvider
from numbershop.tasks.provisioning import process_next


@pytest.fixture
def service(db, provider):
    return ProvisioningService(db, provider)


def test_provision_pending_number(service, db, user, make_number):
    number = make_number(user)
    entry = ProvisioningQueue(db).enqueue(number.id, priority=10)

    result = service.provision_number(number.id)

    assert result.provisioning_status == "active"
    assert result.is_active is True
    assert result.provider_did_id == "did_12125550001"
    assert result.provisioned_at is not None
    assert result.provisioning_attempts == 1
    db.refresh(entry)
    assert entry.status == "completed"


def test_provision_missing_number(service):
    with pytest.raises(NotFound):
        service.provision_number(999)


def test_provision_active_number_mutates_nothing(service, db, user, make_number, provider):
    number = make_number(user, status="active")

    with pytest.raises(AlreadyProvisioned) as exc:
        service.provision_number(number.id)

    assert isinstance(exc.value, Conflict)
    db.refresh(number)
    assert number.provisioning_attempts == 0
    assert number.provider_did_id == "did_fixture"
    assert provider.ordered == []


def test_provision_in_progress_number(service, user, make_number):
    number = make_number(user, status="provisioning")
    with pytest.raises(ProvisioningInProgress):
        service.provision_number(number.id)


def test_provision_failed_number_needs_redrive(service, user, make_number):
    number = make_number(user, status="failed")
    with pytest.raises(InvalidTransition):
        service.provision_number(number.id)


def test_provider_failure_marks_number_and_entries_failed(db, user, make_number):
    number = make_number(user)
    entry = ProvisioningQueue(db).enqueue(number.id)
    provider = MockTelephonyProvider(fail_numbers={number.phone_number})

    with pytest.raises(ProvisioningFailed):
        ProvisioningService(db, provider).provision_number(number.id)

    db.refresh(number)
    db.refresh(entry)
    assert number.provisioning_status == "failed"
    assert number.is_active is False
    assert number.provider_did_id is None
    assert "Mock provisioning failed" in number.last_provision_error
    assert entry.status == "failed"
    assert entry.error_message == number.last_provision_error


def test_second_call_after_success_is_conflict(service, user, make_number, provider):
    number = make_number(user)
    service.provision_number(number.id)

    with pytest.raises(AlreadyProvisioned):
        service.provision_number(number.id)
    assert provider.ordered == [number.phone_number]


def test_forwarding_applied_after_activation(service, user, make_number, provider):
    number = make_number(user)
    config = ProvisioningConfig(forwarding_type="mobile", forwarding_number="+15550001111",
                                sms_forwarding_email="me@example.com")

    result = service.provision_number(number.id, config)

    assert provider.forwarding[result.provider_did_id] == {
        "voice": ("mobile", "+15550001111"),
        "sms": "me@example.com",
    }


def test_forwarding_failure_keeps_number_active(db, user, make_number):
    class BrokenForwarding(MockTelephonyProvider):
        def configure_voice_forwarding(self, did_id, forwarding_type, destination):
            raise RuntimeError("trunk error")

    number = make_number(user)
    config = ProvisioningConfig(forwarding_type="landline", forwarding_number="+15550001111")

    result = ProvisioningService(db, BrokenForwarding()).provision_number(number.id, config)

    assert result.provisioning_status == "active"


def test_request_provisioning_reuses_open_entry(service, db, user, make_number):
    number = make_number(user)
    existing = ProvisioningQueue(db).enqueue(number.id, priority=10)

    entry = service.request_provisioning(number.id, user.id)

    assert entry.id == existing.id


def test_request_provisioning_enqueues_normal_priority(service, user, make_number):
    number = make_number(user)
    entry = service.request_provisioning(number.id, user.id)
    assert entry.priority == 5
    assert entry.status == "queued"


def test_request_provisioning_rules(service, user, other_user, make_number):
    with pytest.raises(NotFound):
        service.request_provisioning(make_number(other_user).id, user.id)
    with pytest.raises(AlreadyProvisioned):
        service.request_provisioning(make_number(user, status="active").id, user.id)
    with pytest.raises(Conflict):
        service.request_provisioning(make_number(user, status="failed").id, user.id)


def test_redrive_failed_number(db, user, make_number):
    number = make_number(user)
    queue = ProvisioningQueue(db)
    old = queue.enqueue(number.id)
    failing = ProvisioningService(db, MockTelephonyProvider(fail_numbers={number.phone_number}))
    with pytest.raises(ProvisioningFailed):
        failing.provision_number(number.id)

    entry = ProvisioningService(db, MockTelephonyProvider()).redrive(number.id, user, is_admin=False)

    db.refresh(number)
    db.refresh(old)
    assert number.provisioning_status == "pending"
    assert old.status == "completed"
    assert entry.priority == 10
    assert entry.payload["isRetry"] is True
    assert entry.payload["previousAttempts"] == 1


def test_redrive_requires_failed_status(service, user, make_number):
    number = make_number(user)
    with pytest.raises(InvalidTransition):
        service.redrive(number.id, user, is_admin=False)


def test_redrive_by_stranger_forbidden_admin_allowed(service, user, other_user, make_number):
    number = make_number(user, status="failed")

    with pytest.raises(Forbidden):
        service.redrive(number.id, other_user, is_admin=False)

    entry = service.redrive(number.id, other_user, is_admin=True)
    assert entry.purchased_number_id == number.id


def test_process_next_drains_queue(db, user, make_number, provider):
    number = make_number(user)
    ProvisioningQueue(db).enqueue(number.id, priority=10)

    entry = process_next(db, provider)

    db.refresh(number)
    assert entry.status == "completed"
    assert number.provisioning_status == "active"
    assert process_next(db, provider) is None


def test_process_next_completes_entry_for_active_number(db, user, make_number, provider):
    number = make_number(user, status="active")
    ProvisioningQueue(db).enqueue(number.id)

    entry = process_next(db, provider)

    assert entry.status == "completed"
    assert provider.ordered == []


def test_process_next_fails_entry_on_provider_error(db, user, make_number):
    number = make_number(user)
    ProvisioningQueue(db).enqueue(number.id)

    entry = process_next(db, MockTelephonyProvider(fail_numbers={number.phone_number}))

    assert entry.status == "failed"
    assert db.query(ProvisioningQueueEntryModel).filter_by(status="queued").count() == 0


def test_direct_then_queue_runs_provider_once(db, user, make_number, provider):
    number = make_number(user)
    ProvisioningQueue(db).enqueue(number.id, priority=10)

    ProvisioningService(db, provider).provision_number(number.id)
    process_next(db, provider)

    assert provider.ordered == [number.phone_number]


def test_queue_entry_claimed_during_direct_attempt_is_closed_by_it(db, user, make_number):
    number = make_number(user)
    entry = ProvisioningQueue(db).enqueue(number.id, priority=10)
    seen = {}

    class RacingProvider(MockTelephonyProvider):
        def place_order(self, phone_number, country_code, area_code):
            # drain workera trafia na numer w trakcie bezposredniej proby
            worker = SessionLocal()
            try:
                claimed = process_next(worker, MockTelephonyProvider())
                seen["status"] = claimed.status
            finally:
                worker.close()
            return super().place_order(phone_number, country_code, area_code)

    ProvisioningService(db, RacingProvider()).provision_number(number.id)

    db.refresh(entry)
    db.refresh(number)
    assert seen["status"] == "in_progress"
    assert entry.status == "completed"
    assert number.provisioning_status == "active"
    assert ProvisioningQueue(db).stats()["failed"] == 0


def test_redrive_reuses_placed_order(db, user, make_number):
    class SlowDidProvider(MockTelephonyProvider):
        def __init__(self):
            super().__init__()
            self.lookups = 0

        def did_for_order(self, order_id):
            self.lookups += 1
            if self.lookups == 1:
                raise TelephonyProviderError(f"DID for order {order_id} is not available yet")
            return super().did_for_order(order_id)

    number = make_number(user)
    provider = SlowDidProvider()
    service = ProvisioningService(db, provider)

    with pytest.raises(ProvisioningFailed):
        service.provision_number(number.id)
    db.refresh(number)
    assert number.provisioning_status == "failed"
    assert number.provider_order_id == "order_12125550001"

    service.redrive(number.id, user, is_admin=False)
    entry = process_next(db, provider)

    db.refresh(number)
    assert entry.status == "completed"
    assert number.provisioning_status == "active"
    assert number.provider_did_id == "did_12125550001"
    assert provider.ordered == [number.phone_number]


def test_failure_email_offers_customer_retry(db, user, make_number):
    number = make_number(user)
    email = mock.Mock()

    with mock.patch("numbershop.services.notification_service.get_email_client", return_value=email):
        result = send_provisioning_notification_task(number.id, False, "carrier timeout")

    assert result["status"] == "sent"
    recipients, subject, body = email.send.call_args.args
    assert recipients == [user.email]
    assert "carrier timeout" in body
    assert "request a retry" in body
    assert "will retry" not in body
