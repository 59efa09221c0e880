"""Address schemas"""

from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime
import uuid

from storefront.core.schemas import CamelModel

class AddressCreate(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., pattern=r"^\+?[0-9]{10,15}$")
    email: Optional[EmailStr] = None
    address_line1: str = Field(..., min_length=1, max_length=500)
    address_line2: Optional[str] = Field(None, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=3, max_length=20)
    country: str = Field("India", max_length=100)
    is_default: bool = False

class AddressUpdate(CamelModel):
    """Partial update, only the fields sent are changed"""
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")
    email: Optional[EmailStr] = None
    address_line1: Optional[str] = Field(None, min_length=1, max_length=500)
    address_line2: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, min_length=3, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    is_default: Optional[bool] = None

class AddressResponse(CamelModel):
    id: uuid.UUID
    full_name: str
    phone: str
    email: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str
    is_default: bool
    created_at: datetime
