"""Checkout schemas"""

from pydantic import Field
from typing import Optional, List
from decimal import Decimal
import uuid

from storefront.core.schemas import CamelModel
from storefront.models.order import PaymentMethod

class CheckoutRequest(CamelModel):
    """
    Checkout submission

    Totals are always computed server-side; any amount sent by the client
    is ignored.
    """
    address_id: uuid.UUID
    payment_method: PaymentMethod = PaymentMethod.COD
    cart_item_ids: Optional[List[uuid.UUID]] = Field(None, min_length=1)

class CheckoutResponse(CamelModel):
    order_id: uuid.UUID
    requires_payment: bool = False
    total_amount: Decimal
    razorpay_order_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    key: Optional[str] = None
