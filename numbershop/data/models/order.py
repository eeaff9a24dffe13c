from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from numbershop.data.database import Base

class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # klucz idempotencji - jedna sesja platnosci = jedno zamowienie
    stripe_session_id = Column(String, nullable=False, unique=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)
    stripe_payment_intent_id = Column(String, nullable=True, index=True)

    status = Column(String, nullable=False, default="completed")  # completed, failed
    payment_status = Column(String, nullable=True)  # paid, unpaid, failed
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    numbers = relationship("PurchasedNumberModel", back_populates="order")
