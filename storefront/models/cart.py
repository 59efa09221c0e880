"""
Shopping cart model
Handles both authenticated and guest carts
"""

from sqlalchemy import Column, String, Integer, ForeignKey, Index, UniqueConstraint, CheckConstraint, Uuid
from sqlalchemy.orm import relationship

from .base import Base, TimestampedModel, UUIDModel, OwnedModel

class Cart(Base, TimestampedModel, UUIDModel, OwnedModel):
    """One open cart per owner"""

    __tablename__ = "carts"

    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # The owner key is the uniqueness constraint that settles first-add races
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_carts_user"),
        UniqueConstraint("guest_id", name="uq_carts_guest"),
        CheckConstraint(
            "(user_id IS NULL) <> (guest_id IS NULL)",
            name="check_cart_single_owner"
        ),
    )

class CartItem(Base, TimestampedModel, UUIDModel):
    """Shopping cart line; prices are never stored here"""

    __tablename__ = "cart_items"

    cart_id = Column(Uuid(as_uuid=True), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)

    # Empty string means "no variant" so the unique key treats it as a value
    size = Column(String(50), nullable=False, default="")
    color = Column(String(50), nullable=False, default="")

    quantity = Column(Integer, nullable=False, default=1)

    # Relationships
    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")

    # Constraints
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "size", "color", name="uq_cart_product_variant"),
        CheckConstraint("quantity > 0", name="check_positive_cart_quantity"),
        Index("idx_cart_items_cart", "cart_id"),
    )
