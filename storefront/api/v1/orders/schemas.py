"""
Order schemas for request/response validation
"""

from pydantic import Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
import uuid

from storefront.core.schemas import CamelModel
from storefront.models.order import OrderStatus, OrderPaymentStatus, PaymentMethod

class OrderItemResponse(CamelModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: Optional[str] = None
    quantity: int
    price_at_purchase: Decimal
    size: Optional[str] = None
    color: Optional[str] = None

class OrderSummaryResponse(CamelModel):
    """Order without its line items"""
    id: uuid.UUID
    status: OrderStatus
    payment_status: OrderPaymentStatus
    payment_method: PaymentMethod
    total_amount: Decimal
    currency: str
    awaiting_payment: bool
    created_at: datetime
    confirmed_at: Optional[datetime] = None

class OrderResponse(OrderSummaryResponse):
    """Schema for order response"""
    email: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

class OrderListResponse(CamelModel):
    """Schema for paginated order list"""
    orders: List[OrderSummaryResponse]
    total: int
    limit: int
    offset: int

class OrderStatusUpdate(CamelModel):
    """Schema for lifecycle updates by staff"""
    status: OrderStatus
    reason: Optional[str] = Field(None, max_length=500)
