"""
Payment API routes
"""

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from storefront.core.database import get_db
from storefront.middleware.rate_limit import payment_verify_limit
from .razorpay_client import RazorpayClient, get_payment_gateway
from .schemas import PaymentVerifyRequest, PaymentVerifyResponse, WebhookResponse
from .services import PaymentService
from .webhooks import WebhookProcessor

router = APIRouter()

@router.post(
    "/verify",
    response_model=PaymentVerifyResponse,
    summary="Verify payment",
    description="Verify the signed checkout callback and confirm the order"
)
@payment_verify_limit
async def verify_payment(
    request: Request,
    verify_data: PaymentVerifyRequest,
    gateway: RazorpayClient = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db)
):
    service = PaymentService(db, gateway)
    return await service.verify_payment(verify_data)

@router.post(
    "/webhook",
    response_model=WebhookResponse,
    status_code=status.HTTP_200_OK,
    summary="Payment webhook",
    description="Handle payment gateway webhooks"
)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    x_razorpay_event_id: Optional[str] = Header(None),
    gateway: RazorpayClient = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db)
):
    """Handle payment gateway webhook"""
    # The signature covers the exact bytes received
    body = await request.body()

    processor = WebhookProcessor(db, gateway)
    return await processor.receive(body, x_razorpay_signature, x_razorpay_event_id)
