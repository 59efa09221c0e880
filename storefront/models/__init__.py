"""Models package initialization"""

from .base import Base
from .catalog import Product
from .cart import Cart, CartItem
from .address import Address
from .order import Order, OrderItem, OrderStatus, OrderPaymentStatus, PaymentMethod
from .payment import Payment, PaymentStatus, WebhookEvent

__all__ = [
    "Base",
    "Product",
    "Cart",
    "CartItem",
    "Address",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderPaymentStatus",
    "PaymentMethod",
    "Payment",
    "PaymentStatus",
    "WebhookEvent",
]
