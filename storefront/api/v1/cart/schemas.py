"""
Cart schemas for request/response validation
"""

from pydantic import Field, field_validator
from typing import Optional, List
from decimal import Decimal
import uuid

from storefront.core.config import settings
from storefront.core.schemas import CamelModel

class CartItemCreate(CamelModel):
    """Schema for adding item to cart"""
    product_id: uuid.UUID
    quantity: int = Field(1, gt=0)
    size: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=50)

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v):
        if v > settings.MAX_ITEM_QUANTITY_PER_ADD:
            raise ValueError(f"Cannot add more than {settings.MAX_ITEM_QUANTITY_PER_ADD} at once")
        return v

class CartItemUpdate(CamelModel):
    """Schema for updating cart item; zero removes the line"""
    quantity: int = Field(..., ge=0)

class CartItemResponse(CamelModel):
    """Cart line joined with the live catalog price"""
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    size: Optional[str] = None
    color: Optional[str] = None
    is_available: bool

class CartResponse(CamelModel):
    """Schema for complete cart response"""
    cart_id: Optional[uuid.UUID] = None
    items: List[CartItemResponse] = []
    total_items: int = 0
    total_amount: Decimal = Decimal("0.00")
