"""Order model with state machine"""

from sqlalchemy import Column, String, Numeric, Integer, Enum, ForeignKey, Index, DateTime, JSON, Uuid
from sqlalchemy.orm import relationship
import enum

from .base import Base, TimestampedModel, UUIDModel, OwnedModel

class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class OrderPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"

class PaymentMethod(str, enum.Enum):
    COD = "cod"
    CARD = "card"
    UPI = "upi"

    @property
    def is_online(self) -> bool:
        return self is not PaymentMethod.COD

class Order(Base, TimestampedModel, UUIDModel, OwnedModel):
    """
    Customer order

    A non-null cart_snapshot means the order is waiting for its payment to
    be verified; it is cleared in the same statement that confirms the order.
    """

    __tablename__ = "orders"

    # Contact
    email = Column(String(255), nullable=True)

    # Status
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    payment_status = Column(Enum(OrderPaymentStatus), default=OrderPaymentStatus.PENDING, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)

    # Amounts
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="INR", nullable=False)

    # Address
    address_id = Column(Uuid(as_uuid=True), ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    shipping_address = Column(JSON, nullable=True)

    # Awaiting-payment line items, SQL NULL once finalized
    cart_snapshot = Column(JSON(none_as_null=True), nullable=True)

    # Deduplicates concurrent checkout submissions, released on finalize
    checkout_key = Column(String(64), unique=True, nullable=True)

    # Timestamps
    confirmed_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    payment = relationship("Payment", back_populates="order", uselist=False)

    # Indexes
    __table_args__ = (
        Index("idx_orders_user_created", "user_id", "created_at"),
        Index("idx_orders_guest_created", "guest_id", "created_at"),
        Index("idx_orders_payment_status", "payment_status"),
    )

    @property
    def awaiting_payment(self) -> bool:
        return self.cart_snapshot is not None

class OrderItem(Base, TimestampedModel, UUIDModel):
    """Individual items within an order, priced at purchase time"""

    __tablename__ = "order_items"

    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)

    product_name = Column(String(255), nullable=True)
    size = Column(String(50), nullable=True)
    color = Column(String(50), nullable=True)

    quantity = Column(Integer, nullable=False)
    price_at_purchase = Column(Numeric(10, 2), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="items")

    # Constraints
    __table_args__ = (
        Index("idx_order_items_order_product", "order_id", "product_id"),
    )
