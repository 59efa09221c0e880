"""
Catalog product model
Products are maintained by the catalog service; checkout only reads
their live price and availability
"""

from sqlalchemy import Column, String, Numeric, Boolean

from .base import Base, TimestampedModel, UUIDModel

class Product(Base, TimestampedModel, UUIDModel):
    """Sellable product"""

    __tablename__ = "products"

    name = Column(String(255), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    def __str__(self):
        return f"Product {self.name} ({self.price})"
