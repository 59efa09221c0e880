"""
Address model for shipping
"""

from sqlalchemy import Column, String, Boolean, Index, CheckConstraint

from .base import Base, TimestampedModel, UUIDModel, OwnedModel

class Address(Base, TimestampedModel, UUIDModel, OwnedModel):
    """Shipping addresses for users and guests"""

    __tablename__ = "addresses"

    # Contact
    full_name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    email = Column(String(255), nullable=True)

    # Location
    address_line1 = Column(String(500), nullable=False)
    address_line2 = Column(String(500), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(100), default="India", nullable=False)

    # Flags
    is_default = Column(Boolean, default=False, nullable=False)

    # Indexes
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (guest_id IS NULL)",
            name="check_address_owner"
        ),
        Index("idx_addresses_postal_code", "postal_code"),
    )

    def to_snapshot(self) -> dict:
        """Frozen copy stored on orders"""
        return {
            "fullName": self.full_name,
            "phone": self.phone,
            "email": self.email,
            "addressLine1": self.address_line1,
            "addressLine2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "country": self.country,
        }
