# numbershop/data/models/purchased_number.py
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Boolean, Text
from sqlalchemy.orm import relationship

from numbershop.data.database import Base


class ProvisioningStatus(str, enum.Enum):
    PENDING = "pending"
    PROVISIONING = "provisioning"
    ACTIVE = "active"
    FAILED = "failed"


def _now():
    return datetime.now(timezone.utc)


class PurchasedNumberModel(Base):
    __tablename__ = "purchased_numbers"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    phone_number = Column(String, nullable=False, index=True)
    country_code = Column(String(8), nullable=False)
    area_code = Column(String(16), nullable=True)

    monthly_price = Column(Numeric(10, 2), nullable=False)
    setup_price = Column(Numeric(10, 2), nullable=False, default=0)
    monthly_duration = Column(Integer, nullable=False, default=1)
    sms_enabled = Column(Boolean, nullable=False, default=False)
    forwarding_type = Column(String(8), nullable=False, default="none")

    # stan zmienia tylko worker provisioningu
    provisioning_status = Column(String(16), nullable=False, default=ProvisioningStatus.PENDING.value)
    is_active = Column(Boolean, nullable=False, default=False)
    # zamowienie u operatora zapisane przed odczytem DID - re-drive go nie powtarza
    provider_order_id = Column(String, nullable=True)
    provider_did_id = Column(String, nullable=True)
    provisioning_attempts = Column(Integer, nullable=False, default=0)
    last_provision_error = Column(Text, nullable=True)
    provisioned_at = Column(DateTime(timezone=True), nullable=True)

    stripe_session_id = Column(String, nullable=False, index=True)
    stripe_subscription_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    order = relationship("OrderModel", back_populates="numbers")
