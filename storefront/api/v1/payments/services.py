"""
Payment service layer
Verifies checkout callbacks and finalizes paid orders
"""

from typing import Optional, Dict, Any
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
import logging
import uuid

from storefront.models import Payment, PaymentStatus
from storefront.models.base import utcnow
from storefront.core.config import settings
from storefront.core.exceptions import (
    PaymentNotFoundException,
    InvalidSignatureException,
    UpstreamFailureException,
)
from storefront.api.v1.orders.services import OrderService
from .razorpay_client import RazorpayClient
from .schemas import PaymentVerifyRequest, PaymentVerifyResponse
from .state_machine import PaymentStateMachine

logger = logging.getLogger(__name__)

SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"

async def advance_payment_status(
    db: AsyncSession,
    payment_id: uuid.UUID,
    target: PaymentStatus,
    **values: Any
) -> bool:
    """
    Move a payment record up the status lattice

    The update only matches while the stored status ranks below target, so
    concurrent handlers can never regress a record. Extra column values are
    written only when the move happens.

    Returns:
        True if this call moved the record
    """
    result = await db.execute(
        update(Payment)
        .where(
            Payment.id == payment_id,
            Payment.status.in_(PaymentStateMachine.statuses_below(target)),
        )
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1

class PaymentService:
    """Payment service for processing transactions"""

    def __init__(self, db: AsyncSession, gateway: RazorpayClient):
        self.db = db
        self.razorpay = gateway
        self.order_service = OrderService(db)

    async def get_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.gateway_order_id == gateway_order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _fetch_payment_details(self, gateway_payment_id: str) -> Optional[Dict[str, Any]]:
        if not settings.RAZORPAY_FETCH_PAYMENT_DETAILS:
            return None
        try:
            return await run_in_threadpool(self.razorpay.fetch_payment, gateway_payment_id)
        except Exception as e:
            logger.warning(f"Could not fetch payment {gateway_payment_id} details: {str(e)}")
            return None

    async def verify_payment(self, data: PaymentVerifyRequest) -> PaymentVerifyResponse:
        """
        Verify the checkout callback and finalize the order

        Args:
            data: Gateway order id, payment id and signature

        Returns:
            Success response with the order id

        Raises:
            PaymentNotFoundException: Unknown gateway order id
            InvalidSignatureException: Signature mismatch, payment marked failed
            UpstreamFailureException: Capture or finalization could not be saved
        """
        payment = await self.get_by_gateway_order_id(data.gateway_order_id)
        if not payment:
            raise PaymentNotFoundException()

        if PaymentStateMachine.is_terminal_state(payment.status):
            return PaymentVerifyResponse(
                message="Payment already verified",
                order_id=payment.order_id
            )

        if not self.razorpay.verify_payment_signature(
            data.gateway_order_id,
            data.gateway_payment_id,
            data.signature
        ):
            await advance_payment_status(
                self.db,
                payment.id,
                PaymentStatus.FAILED,
                failure_reason=SIGNATURE_MISMATCH,
                failed_at=utcnow(),
            )
            await self.db.commit()
            logger.warning(f"Signature mismatch for gateway order {data.gateway_order_id}")
            raise InvalidSignatureException()

        details = await self._fetch_payment_details(data.gateway_payment_id)

        values: Dict[str, Any] = {
            "gateway_payment_id": data.gateway_payment_id,
            "gateway_signature": data.signature,
            "captured_at": utcnow(),
        }
        if details:
            values["method"] = details.get("method") or payment.method
            values["gateway_response"] = details

        payment_pk, order_id = payment.id, payment.order_id
        try:
            captured = await advance_payment_status(
                self.db, payment_pk, PaymentStatus.CAPTURED, **values
            )
            finalized = await self.order_service.finalize_paid_order(order_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.critical(
                f"Payment {data.gateway_payment_id} verified but order {order_id} "
                f"could not be finalized: {str(e)}"
            )
            raise UpstreamFailureException("Payment verified but order could not be updated")

        if not captured:
            logger.info(f"Payment for gateway order {data.gateway_order_id} captured concurrently")

        logger.info(
            f"Payment {data.gateway_payment_id} verified for order {order_id}"
            f" (finalized: {finalized})"
        )
        return PaymentVerifyResponse(
            message="Payment verified successfully",
            order_id=order_id
        )
