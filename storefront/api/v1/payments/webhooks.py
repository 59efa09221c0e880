"""
Payment webhook handlers
"""

from datetime import timedelta
from typing import Any, Callable, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
import json
import logging
import uuid

from storefront.models import Payment, PaymentStatus, WebhookEvent
from storefront.models.base import utcnow
from storefront.core.exceptions import InvalidSignatureException, UpstreamFailureException
from storefront.api.v1.orders.services import OrderService
from .razorpay_client import RazorpayClient
from .services import advance_payment_status

logger = logging.getLogger(__name__)

def _entity(payload: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Entity of a payload section, empty when the section is malformed"""
    section = payload.get(name) if isinstance(payload, dict) else None
    if not isinstance(section, dict):
        return {}
    entity = section.get("entity")
    return entity if isinstance(entity, dict) else {}

def gateway_order_id_of(payload: Dict[str, Any]) -> Optional[str]:
    """Gateway order id from a payment entity, else from an order entity"""
    return _entity(payload, "payment").get("order_id") or _entity(payload, "order").get("id")

class WebhookProcessor:
    """Handle payment gateway webhooks"""

    def __init__(self, db: AsyncSession, gateway: Optional[RazorpayClient] = None):
        self.db = db
        self.razorpay = gateway
        self.order_service = OrderService(db)

    def get_event_handler(self, event: Optional[str]) -> Optional[Callable]:
        """
        Get handler for specific event

        Args:
            event: Event name

        Returns:
            Handler coroutine, None for events we do not act on
        """
        handlers = {
            "payment.authorized": self.handle_payment_authorized,
            "payment.captured": self.handle_payment_captured,
            "order.paid": self.handle_payment_captured,
            "payment.failed": self.handle_payment_failed,
        }

        return handlers.get(event)

    async def receive(
        self,
        body: bytes,
        signature: Optional[str],
        event_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Record a webhook delivery and process it if its signature is valid

        Every delivery is logged, including forged ones. Unverified
        deliveries never touch payment or order state.
        """
        verified = self.razorpay.verify_webhook_signature(body, signature)
        payload_text = body.decode("utf-8", errors="replace")
        data = self._parse(payload_text)

        event = WebhookEvent(
            event_id=event_id,
            event_type=data.get("event") if data else None,
            payload=payload_text,
            signature=signature,
            verified=verified,
        )
        self.db.add(event)
        await self.db.commit()

        if not verified:
            logger.warning(f"Rejected webhook with invalid signature (event {event_id})")
            raise InvalidSignatureException("Invalid webhook signature")

        if event_id and await self._already_processed(event_id, event.id):
            logger.info(f"Duplicate webhook delivery {event_id}, skipping")
            await self._mark_processed(event.id)
            await self.db.commit()
            return {"success": True}

        await self.process_event(event.id, data)
        return {"success": True}

    @staticmethod
    def _parse(payload_text: str) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(payload_text)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    async def _already_processed(self, event_id: str, current_id: uuid.UUID) -> bool:
        count = await self.db.scalar(
            select(func.count(WebhookEvent.id)).where(
                WebhookEvent.event_id == event_id,
                WebhookEvent.processed.is_(True),
                WebhookEvent.id != current_id,
            )
        )
        return bool(count)

    async def _mark_processed(self, event_pk: uuid.UUID) -> None:
        await self.db.execute(
            update(WebhookEvent)
            .where(WebhookEvent.id == event_pk)
            .values(processed=True, processed_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def process_event(self, event_pk: uuid.UUID, data: Optional[Dict[str, Any]]) -> None:
        """Dispatch a verified event and mark it processed in one transaction"""
        event_type = data.get("event") if data else None
        handler = self.get_event_handler(event_type)

        try:
            if handler is None:
                logger.info(f"Ignoring webhook event type {event_type!r}")
            else:
                payload = data.get("payload")
                await handler(payload if isinstance(payload, dict) else {})

            await self._mark_processed(event_pk)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.critical(f"Webhook {event_pk} ({event_type}) could not be applied: {str(e)}")
            raise UpstreamFailureException("Webhook could not be processed")

    async def _payment_for(self, payload: Dict[str, Any], event_type: str) -> Optional[Payment]:
        gateway_order_id = gateway_order_id_of(payload)
        if not gateway_order_id:
            logger.warning(f"{event_type} webhook without an order id")
            return None

        result = await self.db.execute(
            select(Payment).where(Payment.gateway_order_id == gateway_order_id)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            logger.warning(f"{event_type} webhook for unknown gateway order {gateway_order_id}")
        return payment

    async def handle_payment_authorized(self, payload: Dict[str, Any]) -> None:
        """Handle payment authorized event"""
        payment = await self._payment_for(payload, "payment.authorized")
        if not payment:
            return

        entity = _entity(payload, "payment")
        values = {"gateway_payment_id": entity.get("id") or payment.gateway_payment_id}
        if entity.get("method"):
            values["method"] = entity["method"]

        if await advance_payment_status(self.db, payment.id, PaymentStatus.AUTHORIZED, **values):
            logger.info(f"Payment {payment.id} authorized")

    async def handle_payment_captured(self, payload: Dict[str, Any]) -> None:
        """Handle payment captured and order paid events"""
        payment = await self._payment_for(payload, "payment.captured")
        if not payment:
            return

        entity = _entity(payload, "payment")
        values = {
            "gateway_payment_id": entity.get("id") or payment.gateway_payment_id,
            "captured_at": utcnow(),
        }
        if entity.get("method"):
            values["method"] = entity["method"]

        if await advance_payment_status(self.db, payment.id, PaymentStatus.CAPTURED, **values):
            logger.info(f"Payment {payment.id} captured")

        # Safe to repeat, only the first caller finds a snapshot to clear
        await self.order_service.finalize_paid_order(payment.order_id)

    async def handle_payment_failed(self, payload: Dict[str, Any]) -> None:
        """Handle payment failed event"""
        payment = await self._payment_for(payload, "payment.failed")
        if not payment:
            return

        entity = _entity(payload, "payment")
        reason = entity.get("error_description") or "PAYMENT_FAILED"

        advanced = await advance_payment_status(
            self.db,
            payment.id,
            PaymentStatus.FAILED,
            gateway_payment_id=entity.get("id") or payment.gateway_payment_id,
            failure_reason=reason,
            failed_at=utcnow(),
        )
        if not advanced:
            # Already failed (e.g. bad checkout signature) still cancels the order
            current = await self.db.scalar(
                select(Payment.status).where(Payment.id == payment.id)
            )
            if current != PaymentStatus.FAILED:
                logger.info(f"Ignoring late failure for payment {payment.id} ({current.value})")
                return

        if await self.order_service.cancel_unpaid_order(payment.order_id):
            logger.info(f"Order {payment.order_id} cancelled after failed payment: {reason}")

async def replay_unprocessed_events(
    db: AsyncSession,
    limit: int = 100,
    min_age_seconds: int = 60
) -> int:
    """
    Re-dispatch verified events whose processing never completed

    Events younger than min_age_seconds are left to the request that is
    still handling them. Returns the number of events processed.
    """
    cutoff = utcnow() - timedelta(seconds=min_age_seconds)
    result = await db.execute(
        select(WebhookEvent.id, WebhookEvent.event_id, WebhookEvent.payload)
        .where(
            WebhookEvent.verified.is_(True),
            WebhookEvent.processed.is_(False),
            WebhookEvent.created_at <= cutoff,
        )
        .order_by(WebhookEvent.created_at)
        .limit(limit)
    )
    events = result.all()

    processor = WebhookProcessor(db)
    replayed = 0
    for event_pk, event_id, payload in events:
        if event_id and await processor._already_processed(event_id, event_pk):
            await processor._mark_processed(event_pk)
            await db.commit()
            continue

        try:
            await processor.process_event(event_pk, processor._parse(payload))
            replayed += 1
        except UpstreamFailureException:
            logger.error(f"Replay of webhook {event_pk} failed, will retry")
        except Exception:
            await db.rollback()
            logger.exception(f"Replay of webhook {event_pk} crashed, skipping")

    if events:
        logger.info(f"Replayed {replayed} of {len(events)} unprocessed webhook events")
    return replayed
