"""Checkout router"""

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from storefront.core.database import get_db
from storefront.core.exceptions import NoActiveSessionException
from storefront.middleware.rate_limit import checkout_limit
from storefront.api.v1.session.dependencies import Identity, get_identity_optional
from storefront.api.v1.payments.razorpay_client import RazorpayClient, get_payment_gateway
from .schemas import CheckoutRequest, CheckoutResponse
from .services import CheckoutService

router = APIRouter()

@router.post(
    "",
    response_model=CheckoutResponse,
    response_model_exclude_none=True,
    summary="Place order",
    description="Create an order from the cart; online methods return a gateway order to pay"
)
@checkout_limit
async def checkout(
    request: Request,
    checkout_data: CheckoutRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    identity: Optional[Identity] = Depends(get_identity_optional),
    gateway: RazorpayClient = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db)
):
    if identity is None:
        raise NoActiveSessionException()

    service = CheckoutService(db, gateway)
    return await service.checkout(identity, checkout_data, idempotency_key=idempotency_key)
