# numbershop/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional, Dict, Any
from decimal import Decimal
from datetime import datetime


ForwardingType = Literal["none", "call", "sms", "both"]

# okres jest jednoczesnie interwalem subskrypcji Stripe, a ten ma max 12 miesiecy
MAX_DURATION_MONTHS = 12


class CamelModel(BaseModel):
    """API mowi camelCase, kod snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# =====================================================
# CART
# =====================================================
class CartItem(CamelModel):
    """Pozycja koszyka - jeden wybrany numer."""

    id: str = ""
    country_code: str = Field(..., min_length=1)
    country_name: str = ""
    area_code: str = ""
    city_name: str = ""
    phone_number: str = Field(..., min_length=1)
    base_price: Decimal = Field(..., ge=0)
    sms_enabled: bool = False
    sms_price: Decimal = Field(Decimal("0"), ge=0)
    forwarding_type: ForwardingType = "none"
    forwarding_destination: str = ""
    forwarding_price: Decimal = Field(Decimal("0"), ge=0)
    monthly_duration: int = Field(1, ge=1, le=MAX_DURATION_MONTHS)


class CartItemUpdate(CamelModel):
    """Czesciowa aktualizacja pozycji (PATCH)."""

    sms_enabled: Optional[bool] = None
    sms_price: Optional[Decimal] = Field(None, ge=0)
    forwarding_type: Optional[ForwardingType] = None
    forwarding_destination: Optional[str] = None
    forwarding_price: Optional[Decimal] = Field(None, ge=0)
    monthly_duration: Optional[int] = Field(None, ge=1, le=MAX_DURATION_MONTHS)


class CartOut(CamelModel):
    items: List[CartItem]
    total: Decimal
    item_count: int


class CartSummaryOut(CamelModel):
    item_count: int
    base_total: Decimal
    sms_total: Decimal
    forwarding_total: Decimal
    grand_total: Decimal


# =====================================================
# CHECKOUT / ORDERS
# =====================================================
class CheckoutItem(CamelModel):
    """Pozycja wysylana do bramki platnosci i zapisywana w metadanych sesji."""

    id: str = ""
    number: str = Field(..., min_length=1)
    country_code: str = Field(..., min_length=1)
    area_code: str = ""
    monthly_price: Decimal = Field(..., ge=0)
    setup_price: Decimal = Field(Decimal("0"), ge=0)
    monthly_duration: int = Field(1, ge=1, le=MAX_DURATION_MONTHS)
    sms_enabled: bool = False
    forwarding_type: ForwardingType = "none"


class CheckoutSessionIn(CamelModel):
    items: Optional[List[CheckoutItem]] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutSessionOut(CamelModel):
    session_id: str
    redirect_url: Optional[str] = None


class OrderItemOut(CamelModel):
    number: str
    country_code: str
    area_code: Optional[str] = None
    monthly_price: Decimal


class OrderOut(CamelModel):
    order_id: int
    session_id: str
    total_amount: Decimal
    currency: str
    status: str
    payment_status: Optional[str] = None
    subscription_id: Optional[str] = None
    items: List[OrderItemOut]


class PurchasedNumberOut(CamelModel):
    id: int
    phone_number: str
    country_code: str
    area_code: Optional[str] = None
    monthly_price: Decimal
    setup_price: Decimal
    sms_enabled: bool
    provisioning_status: str
    is_active: bool
    provider_order_id: Optional[str] = None
    provider_did_id: Optional[str] = None
    provisioning_attempts: int
    last_provision_error: Optional[str] = None
    provisioned_at: Optional[datetime] = None
    created_at: datetime


# =====================================================
# PROVISIONING
# =====================================================
class ProvisioningConfig(CamelModel):
    forwarding_type: Literal["mobile", "landline", "voip", "none"] = "none"
    forwarding_number: Optional[str] = None
    voicemail_enabled: bool = True
    voicemail_email: Optional[str] = None
    sms_forwarding_email: Optional[str] = None
    call_recording_enabled: bool = False


class ProvisionRequest(CamelModel):
    purchased_number_id: int = Field(..., gt=0)
    config: Optional[ProvisioningConfig] = None


class RetryRequest(CamelModel):
    purchased_number_id: int = Field(..., gt=0)


class ProvisionAccepted(CamelModel):
    purchased_number_id: int
    queue_entry_id: Optional[int] = None
    status: str


class QueueEntryOut(CamelModel):
    id: int
    purchased_number_id: int
    operation: str
    priority: int
    status: str
    attempts: int
    error_message: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class ProvisioningStatusOut(CamelModel):
    purchased_number_id: int
    phone_number: str
    provisioning_status: str
    is_active: bool
    provider_did_id: Optional[str] = None
    last_provision_error: Optional[str] = None
    queue: List[QueueEntryOut]


class QueueStatsOut(CamelModel):
    queued: int = 0
    in_progress: int = 0
    completed: int = 0
    failed: int = 0


class ProcessNextOut(CamelModel):
    processed: bool
    entry: Optional[QueueEntryOut] = None


# =====================================================
# SMS CONFIG
# =====================================================
class SmsFilterRuleIn(CamelModel):
    rule_type: Literal["keyword", "sender", "blacklist"]
    pattern: str = Field(..., min_length=1)
    action: Literal["forward", "block", "auto_reply"] = "forward"
    priority: int = 0
    enabled: bool = True


class SmsFilterRuleOut(SmsFilterRuleIn):
    id: int


class SmsConfigurationOut(CamelModel):
    id: int
    purchased_number_id: int
    enabled: bool
    forward_to_emails: List[str]
    auto_reply_enabled: bool
    auto_reply_message: Optional[str] = None
    filter_enabled: bool
    filter_rules: List[SmsFilterRuleOut] = []


class SmsConfigurationUpdate(CamelModel):
    enabled: Optional[bool] = None
    forward_to_emails: Optional[List[str]] = None
    auto_reply_enabled: Optional[bool] = None
    auto_reply_message: Optional[str] = None
    filter_enabled: Optional[bool] = None


class AutoReplyIn(CamelModel):
    auto_reply_enabled: bool
    auto_reply_message: Optional[str] = None


class RecipientIn(CamelModel):
    email: str = Field(..., min_length=3)


class TestSmsIn(CamelModel):
    purchased_number_id: int = Field(..., gt=0)
    message: Optional[str] = None


class TestSmsOut(CamelModel):
    success: bool
    message: str


# =====================================================
# USAGE (CDR / SMS)
# =====================================================
class CallRecordOut(CamelModel):
    id: int
    phone_number: str
    direction: str
    from_number: str
    to_number: str
    destination_name: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: int
    answered: bool
    status: str
    cost: Decimal
    currency: str


class SmsRecordOut(CamelModel):
    id: int
    phone_number: str
    direction: str
    from_number: str
    to_number: str
    message: str
    status: str
    segments: int
    cost: Decimal
    currency: str
    created_at: datetime
    delivered_at: Optional[datetime] = None


class TelephonyEventIn(BaseModel):
    """Webhook operatora: {"type": "...", "data": {...}}."""

    type: str
    data: Dict[str, Any] = {}


class CallStatsOut(CamelModel):
    total_calls: int
    total_duration_seconds: int
    total_duration_formatted: str
    total_cost: Decimal
    answered_calls: int
    missed_calls: int
    average_duration_seconds: int
    average_duration_formatted: str
    inbound_calls: int
    outbound_calls: int


class SmsStatsOut(CamelModel):
    total_messages: int
    total_cost: Decimal
    delivered_messages: int
    failed_messages: int
    inbound_messages: int
    outbound_messages: int
    total_segments: int
