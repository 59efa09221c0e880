"""
Payment schemas for request/response validation
"""

from pydantic import AliasChoices, Field
import uuid

from storefront.core.schemas import CamelModel

class PaymentVerifyRequest(CamelModel):
    """
    Checkout callback from the payment widget

    Also accepts the razorpay_* field names the Razorpay handler emits.
    """
    gateway_order_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("gatewayOrderId", "razorpay_order_id", "gateway_order_id"),
    )
    gateway_payment_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("gatewayPaymentId", "razorpay_payment_id", "gateway_payment_id"),
    )
    signature: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("signature", "razorpay_signature"),
    )

class PaymentVerifyResponse(CamelModel):
    success: bool = True
    message: str
    order_id: uuid.UUID

class WebhookResponse(CamelModel):
    success: bool = True
