"""
Payment model for transaction handling
Integrates with payment gateways
"""

from sqlalchemy import Column, String, Numeric, ForeignKey, Index, Enum, DateTime, Text, Boolean, JSON, Uuid
from sqlalchemy.orm import relationship
import enum

from .base import Base, TimestampedModel, UUIDModel

class PaymentStatus(str, enum.Enum):
    """Payment status enumeration"""
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"

class Payment(Base, TimestampedModel, UUIDModel):
    """Gateway payment record, one per online order"""

    __tablename__ = "payments"

    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id"), unique=True, nullable=False)

    # Payment details
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    method = Column(String(50), nullable=True)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)

    # Gateway details
    gateway_order_id = Column(String(255), unique=True, nullable=False)
    gateway_payment_id = Column(String(255), nullable=True)
    gateway_signature = Column(String(500), nullable=True)
    gateway_response = Column(JSON, nullable=True)

    # Timestamps
    captured_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)

    failure_reason = Column(Text, nullable=True)

    # Relationships
    order = relationship("Order", back_populates="payment")

    # Indexes
    __table_args__ = (
        Index("idx_payments_status", "status"),
        Index("idx_payments_gateway_payment", "gateway_payment_id"),
    )

    def __str__(self):
        return f"Payment {self.id} - {self.amount} {self.currency} ({self.status})"

class WebhookEvent(Base, TimestampedModel, UUIDModel):
    """Append-only log of gateway webhook deliveries"""

    __tablename__ = "webhook_events"

    event_id = Column(String(255), nullable=True, index=True)
    event_type = Column(String(100), nullable=True, index=True)
    payload = Column(Text, nullable=False)
    signature = Column(String(500), nullable=True)

    verified = Column(Boolean, default=False, nullable=False)
    processed = Column(Boolean, default=False, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_webhook_events_pending", "verified", "processed"),
    )
