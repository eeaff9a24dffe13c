# numbershop/services/sms_config_service.py
import re
import uuid
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Sequence

from sqlalchemy.orm import Session

from numbershop.data.models.purchased_number import PurchasedNumberModel, ProvisioningStatus
from numbershop.data.models.sms import SmsConfigurationModel, SmsFilterRuleModel, SmsRecordModel
from numbershop.domain.errors import Conflict, NotFound, ValidationError
from numbershop.domain.schemas import SmsConfigurationUpdate, SmsFilterRuleIn
from numbershop.domain.usage import sms_segments
from numbershop.repos.sms_repo import SmsRepo
from numbershop.services.notification_service import NotificationService
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TEST_SENDER = "+15555550100"


def invalid_emails(emails: Sequence[str]) -> List[str]:
    return [e for e in emails if not EMAIL_RE.match(e)]


def apply_filters(rules: Sequence[Any], from_number: str, message: str) -> str:
    """
    Zwraca akcje pierwszej pasujacej reguly (w kolejnosci priorytetu),
    domyslnie forward.
    """
    text = message.lower()
    for rule in sorted((r for r in rules if r.enabled), key=lambda r: r.priority):
        if rule.rule_type == "keyword" and rule.pattern.lower() in text:
            return rule.action
        if rule.rule_type == "sender" and rule.pattern in from_number:
            return rule.action
        if rule.rule_type == "blacklist" and rule.pattern == from_number:
            return rule.action
    return "forward"


class SmsConfigService:
    """
    Konfiguracja SMS dla aktywnych numerow z wlaczonym SMS.
    Wlasnosc numeru sprawdza router, zanim wywola serwis.
    """

    def __init__(self, db: Session, notifications: NotificationService | None = None):
        self.repo = SmsRepo(db)
        self.notifications = notifications or NotificationService()

    @staticmethod
    def ensure_sms_capable(number: PurchasedNumberModel) -> None:
        if not number.sms_enabled:
            raise Conflict(f"SMS is not enabled for {number.phone_number}")
        if number.provisioning_status != ProvisioningStatus.ACTIVE.value:
            raise Conflict(f"Number {number.phone_number} is not active yet")

    def get_or_create(self, number: PurchasedNumberModel) -> SmsConfigurationModel:
        self.ensure_sms_capable(number)

        config = self.repo.get_configuration_for_number(number.id)
        if config:
            return config

        config = self.repo.save(
            SmsConfigurationModel(
                purchased_number_id=number.id,
                enabled=True,
                forward_to_emails=[],
                auto_reply_enabled=False,
                filter_enabled=False,
            )
        )
        logger.info(f"SMS configuration {config.id} created for number {number.id}")
        return config

    def get_configuration(self, config_id: int) -> SmsConfigurationModel:
        config = self.repo.get_configuration(config_id)
        if not config:
            raise NotFound("SMS configuration not found")
        return config

    def update_configuration(self, config_id: int, changes: SmsConfigurationUpdate) -> SmsConfigurationModel:
        config = self.get_configuration(config_id)
        data = changes.model_dump(exclude_unset=True)

        if data.get("forward_to_emails") is not None:
            bad = invalid_emails(data["forward_to_emails"])
            if bad:
                raise ValidationError(f"Invalid email addresses: {', '.join(bad)}")
            data["forward_to_emails"] = list(dict.fromkeys(data["forward_to_emails"]))

        data = {k: v for k, v in data.items() if v is not None}
        auto_reply = data.get("auto_reply_enabled", config.auto_reply_enabled)
        if auto_reply and not data.get("auto_reply_message", config.auto_reply_message):
            raise ValidationError("Auto-reply message is required when auto-reply is enabled")

        for field, value in data.items():
            setattr(config, field, value)

        config = self.repo.save(config)
        logger.info(f"SMS configuration {config_id} updated: {sorted(data)}")
        return config

    def set_auto_reply(self, config_id: int, enabled: bool, message: Optional[str]) -> SmsConfigurationModel:
        return self.update_configuration(
            config_id,
            SmsConfigurationUpdate(auto_reply_enabled=enabled, auto_reply_message=message),
        )

    def add_email_recipient(self, config_id: int, email: str) -> SmsConfigurationModel:
        config = self.get_configuration(config_id)
        if invalid_emails([email]):
            raise ValidationError(f"Invalid email addresses: {email}")
        if email in config.forward_to_emails:
            return config
        # nowa lista - JSON kolumna nie sledzi mutacji in-place
        config.forward_to_emails = [*config.forward_to_emails, email]
        return self.repo.save(config)

    def remove_email_recipient(self, config_id: int, email: str) -> SmsConfigurationModel:
        config = self.get_configuration(config_id)
        config.forward_to_emails = [e for e in config.forward_to_emails if e != email]
        return self.repo.save(config)

    # reguly filtrow
    def add_filter_rule(self, config_id: int, rule: SmsFilterRuleIn) -> SmsFilterRuleModel:
        self.get_configuration(config_id)
        created = self.repo.save(SmsFilterRuleModel(sms_configuration_id=config_id, **rule.model_dump()))
        logger.info(f"Filter rule {created.id} ({rule.rule_type}:{rule.pattern}) added to config {config_id}")
        return created

    def list_filter_rules(self, config_id: int) -> List[SmsFilterRuleModel]:
        return self.repo.list_rules(config_id)

    def get_filter_rule(self, rule_id: int) -> SmsFilterRuleModel:
        rule = self.repo.get_rule(rule_id)
        if not rule:
            raise NotFound("Filter rule not found")
        return rule

    def delete_filter_rule(self, rule_id: int) -> None:
        self.repo.delete(self.get_filter_rule(rule_id))
        logger.info(f"Filter rule {rule_id} deleted")

    # =====================================================
    # INCOMING
    # =====================================================
    def process_incoming_sms(
        self,
        number: PurchasedNumberModel,
        from_number: str,
        to_number: str,
        message: str,
        provider_sms_id: Optional[str] = None,
    ) -> SmsRecordModel:
        if provider_sms_id:
            duplicate = self.repo.get_record_by_provider_id(provider_sms_id)
            if duplicate:
                logger.info(f"SMS {provider_sms_id} already stored, skipping")
                return duplicate

        now = datetime.now(timezone.utc)
        record = SmsRecordModel(
            purchased_number_id=number.id,
            phone_number=number.phone_number,
            provider_sms_id=provider_sms_id,
            direction="inbound",
            from_number=from_number,
            to_number=to_number,
            message=message,
            status="delivered",
            segments=sms_segments(message),
            cost=0,
            created_at=now,
            delivered_at=now,
        )

        config = self.repo.get_configuration_for_number(number.id)
        if config and config.enabled:
            action = "forward"
            if config.filter_enabled:
                action = apply_filters(self.repo.list_rules(config.id), from_number, message)

            if action != "block" and config.forward_to_emails:
                self.notifications.forward_sms(list(config.forward_to_emails), from_number, to_number, message)
                record.forwarded_count = len(config.forward_to_emails)

            if config.auto_reply_enabled and config.auto_reply_message and action != "block":
                record.auto_replied = True
                self.repo.db.add(
                    SmsRecordModel(
                        purchased_number_id=number.id,
                        phone_number=number.phone_number,
                        direction="outbound",
                        from_number=to_number,
                        to_number=from_number,
                        message=config.auto_reply_message,
                        status="sent",
                        segments=sms_segments(config.auto_reply_message),
                        cost=0,
                        created_at=now,
                    )
                )

            logger.info(f"SMS for {number.phone_number} from {from_number}: action={action}")
        else:
            logger.info(f"SMS for {number.phone_number} stored, forwarding disabled")

        return self.repo.save(record)

    def send_test_sms(self, number: PurchasedNumberModel, message: Optional[str] = None) -> Dict[str, Any]:
        self.ensure_sms_capable(number)
        text = message or f"Test message for {number.phone_number}"
        record = self.process_incoming_sms(
            number, TEST_SENDER, number.phone_number, text, provider_sms_id=f"test_{uuid.uuid4().hex}"
        )
        return {
            "success": True,
            "message": f"Test SMS processed, forwarded to {record.forwarded_count} recipient(s)",
        }
