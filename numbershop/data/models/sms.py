from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Boolean, Text, JSON, Numeric
from sqlalchemy.orm import relationship

from numbershop.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class SmsConfigurationModel(Base):
    __tablename__ = "sms_configurations"

    id = Column(Integer, primary_key=True)
    purchased_number_id = Column(Integer, ForeignKey("purchased_numbers.id"), nullable=False, unique=True)

    enabled = Column(Boolean, nullable=False, default=True)
    forward_to_emails = Column(JSON, nullable=False, default=list)
    auto_reply_enabled = Column(Boolean, nullable=False, default=False)
    auto_reply_message = Column(Text, nullable=True)
    filter_enabled = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    filter_rules = relationship(
        "SmsFilterRuleModel",
        back_populates="configuration",
        cascade="all, delete-orphan",
        order_by="SmsFilterRuleModel.priority",
    )


class SmsFilterRuleModel(Base):
    __tablename__ = "sms_filter_rules"

    id = Column(Integer, primary_key=True)
    sms_configuration_id = Column(
        Integer, ForeignKey("sms_configurations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rule_type = Column(String(16), nullable=False)  # keyword, sender, blacklist
    pattern = Column(String, nullable=False)
    action = Column(String(16), nullable=False, default="forward")  # forward, block, auto_reply
    priority = Column(Integer, nullable=False, default=0)
    enabled = Column(Boolean, nullable=False, default=True)

    configuration = relationship("SmsConfigurationModel", back_populates="filter_rules")


class SmsRecordModel(Base):
    __tablename__ = "sms_records"

    id = Column(Integer, primary_key=True)
    purchased_number_id = Column(Integer, ForeignKey("purchased_numbers.id"), nullable=False, index=True)
    phone_number = Column(String, nullable=False, index=True)
    provider_sms_id = Column(String, nullable=True, unique=True)

    direction = Column(String(8), nullable=False)  # inbound, outbound
    from_number = Column(String, nullable=False)
    to_number = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="delivered")
    segments = Column(Integer, nullable=False, default=1)
    cost = Column(Numeric(10, 4), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    forwarded_count = Column(Integer, nullable=False, default=0)
    auto_replied = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now, index=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
