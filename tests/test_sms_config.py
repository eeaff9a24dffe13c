from types import SimpleNamespace
from unittest import mock

import pytest

from numbershop.data.models import SmsRecordModel
from numbershop.domain.errors import Conflict, NotFound, ValidationError
from numbershop.domain.schemas import SmsConfigurationUpdate, SmsFilterRuleIn
from numbershop.services.notification_service import NotificationService
from numbershop.services.sms_config_service import SmsConfigService, apply_filters


def rule(rule_type, pattern, action, priority=0, enabled=True):
    return SimpleNamespace(rule_type=rule_type, pattern=pattern, action=action, priority=priority, enabled=enabled)


@pytest.fixture
def notifications():
    return mock.Mock(spec=NotificationService)


@pytest.fixture
def service(db, notifications):
    return SmsConfigService(db, notifications)


@pytest.fixture
def sms_number(user, make_number):
    return make_number(user, status="active", sms_enabled=True)


class TestApplyFilters:
    def test_default_is_forward(self):
        assert apply_filters([], "+1555", "hello") == "forward"

    def test_keyword_is_case_insensitive(self):
        assert apply_filters([rule("keyword", "STOP", "block")], "+1555", "please stop now") == "block"

    def test_sender_substring(self):
        assert apply_filters([rule("sender", "555", "auto_reply")], "+15551234", "hi") == "auto_reply"

    def test_blacklist_exact_match_only(self):
        rules = [rule("blacklist", "+15551234", "block")]
        assert apply_filters(rules, "+15551234", "hi") == "block"
        assert apply_filters(rules, "+155512345", "hi") == "forward"

    def test_priority_order_and_disabled_rules(self):
        rules = [
            rule("keyword", "promo", "forward", priority=2),
            rule("keyword", "promo", "block", priority=1),
            rule("keyword", "promo", "auto_reply", priority=0, enabled=False),
        ]
        assert apply_filters(rules, "+1", "big PROMO") == "block"


def test_configuration_requires_sms_enabled_active_number(service, user, make_number):
    with pytest.raises(Conflict):
        service.get_or_create(make_number(user, status="active", sms_enabled=False))
    with pytest.raises(Conflict):
        service.get_or_create(make_number(user, status="pending", sms_enabled=True))


def test_get_or_create_is_lazy_and_stable(service, sms_number):
    first = service.get_or_create(sms_number)
    second = service.get_or_create(sms_number)

    assert first.id == second.id
    assert first.enabled is True
    assert first.forward_to_emails == []
    assert first.auto_reply_enabled is False


def test_update_rejects_invalid_emails(service, sms_number):
    config = service.get_or_create(sms_number)

    with pytest.raises(ValidationError) as exc:
        service.update_configuration(config.id, SmsConfigurationUpdate(forward_to_emails=["ok@example.com", "nope"]))

    assert "nope" in exc.value.message
    assert "ok@example.com" not in exc.value.message


def test_update_configuration(service, sms_number):
    config = service.get_or_create(sms_number)

    updated = service.update_configuration(
        config.id,
        SmsConfigurationUpdate(forward_to_emails=["a@example.com"], filter_enabled=True),
    )

    assert updated.forward_to_emails == ["a@example.com"]
    assert updated.filter_enabled is True
    assert updated.enabled is True


def test_auto_reply_needs_message(service, sms_number):
    config = service.get_or_create(sms_number)

    with pytest.raises(ValidationError):
        service.set_auto_reply(config.id, True, None)

    updated = service.set_auto_reply(config.id, True, "Away until Monday")
    assert updated.auto_reply_enabled is True


def test_recipients(service, sms_number):
    config = service.get_or_create(sms_number)

    service.add_email_recipient(config.id, "a@example.com")
    service.add_email_recipient(config.id, "a@example.com")
    service.add_email_recipient(config.id, "b@example.com")
    updated = service.remove_email_recipient(config.id, "a@example.com")

    assert updated.forward_to_emails == ["b@example.com"]


def test_filter_rules_crud(service, sms_number):
    config = service.get_or_create(sms_number)

    created = service.add_filter_rule(config.id, SmsFilterRuleIn(rule_type="keyword", pattern="spam", action="block"))
    assert [r.id for r in service.list_filter_rules(config.id)] == [created.id]

    service.delete_filter_rule(created.id)
    assert service.list_filter_rules(config.id) == []
    with pytest.raises(NotFound):
        service.delete_filter_rule(created.id)


def test_incoming_sms_forwarded_to_recipients(service, db, sms_number, notifications):
    config = service.get_or_create(sms_number)
    service.add_email_recipient(config.id, "a@example.com")

    record = service.process_incoming_sms(sms_number, "+15550009999", sms_number.phone_number, "hello", "sms_1")

    assert record.direction == "inbound"
    assert record.forwarded_count == 1
    notifications.forward_sms.assert_called_once_with(
        ["a@example.com"], "+15550009999", sms_number.phone_number, "hello"
    )


def test_incoming_sms_blocked_by_filter(service, sms_number, notifications):
    config = service.get_or_create(sms_number)
    service.update_configuration(config.id, SmsConfigurationUpdate(forward_to_emails=["a@example.com"],
                                                                    filter_enabled=True))
    service.add_filter_rule(config.id, SmsFilterRuleIn(rule_type="keyword", pattern="win", action="block"))

    record = service.process_incoming_sms(sms_number, "+1555", sms_number.phone_number, "You WIN a prize")

    assert record.forwarded_count == 0
    notifications.forward_sms.assert_not_called()


def test_incoming_sms_auto_reply_recorded(service, db, sms_number):
    config = service.get_or_create(sms_number)
    service.set_auto_reply(config.id, True, "Thanks!")

    record = service.process_incoming_sms(sms_number, "+1555", sms_number.phone_number, "hi")

    assert record.auto_replied is True
    outbound = db.query(SmsRecordModel).filter_by(direction="outbound").one()
    assert outbound.message == "Thanks!"
    assert outbound.to_number == "+1555"


def test_duplicate_provider_sms_id_ignored(service, db, sms_number):
    service.process_incoming_sms(sms_number, "+1555", sms_number.phone_number, "hi", "sms_dup")
    service.process_incoming_sms(sms_number, "+1555", sms_number.phone_number, "hi", "sms_dup")

    assert db.query(SmsRecordModel).count() == 1


def test_send_test_sms(service, sms_number):
    config = service.get_or_create(sms_number)
    service.add_email_recipient(config.id, "a@example.com")

    result = service.send_test_sms(sms_number)

    assert result["success"] is True
    assert "1 recipient" in result["message"]
