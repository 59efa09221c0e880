"""
Checkout service layer
Turns a cart into an order, either confirmed immediately (cash on delivery)
or pending until the gateway payment is verified
"""

from typing import List, Optional
from decimal import Decimal, ROUND_HALF_UP
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload
import hashlib
import logging
import uuid

from storefront.core.config import settings
from storefront.core.exceptions import (
    EmptyCartException,
    ProductUnavailableException,
    InvalidAddressException,
    CheckoutConflictException,
    UpstreamFailureException,
)
from storefront.models import (
    Address, CartItem, Order, OrderItem, OrderStatus, OrderPaymentStatus,
    PaymentMethod, Payment, PaymentStatus
)
from storefront.models.base import utcnow
from storefront.api.v1.session.dependencies import Identity
from storefront.api.v1.cart.services import CartService, CartLine
from storefront.api.v1.payments.razorpay_client import RazorpayClient
from .schemas import CheckoutRequest, CheckoutResponse

logger = logging.getLogger(__name__)

def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise"""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def compute_checkout_key(
    identity: Identity,
    address_id: uuid.UUID,
    payment_method: PaymentMethod,
    lines: List[CartLine],
    idempotency_key: Optional[str] = None
) -> str:
    """
    Fingerprint of a checkout submission

    A caller supplied Idempotency-Key wins; otherwise the same owner
    submitting the same lines, prices, address and method gets the same key.
    """
    if idempotency_key:
        material = f"{identity.owner_key}|idempotency|{idempotency_key}"
    else:
        parts = sorted(
            f"{line.cart_item_id}:{line.quantity}:{line.unit_price}" for line in lines
        )
        material = "|".join([identity.owner_key, str(address_id), payment_method.value, *parts])

    return hashlib.sha256(material.encode("utf-8")).hexdigest()

def build_snapshot(lines: List[CartLine]) -> List[dict]:
    """Frozen cart lines stored on an order awaiting payment"""
    return [
        {
            "cart_item_id": str(line.cart_item_id),
            "product_id": str(line.product_id),
            "product_name": line.product_name,
            "quantity": line.quantity,
            "price": str(line.unit_price),
            "size": line.size,
            "color": line.color,
        }
        for line in lines
    ]

class CheckoutService:
    """Checkout orchestration"""

    def __init__(self, db: AsyncSession, gateway: RazorpayClient):
        self.db = db
        self.gateway = gateway
        self.cart_service = CartService(db)

    async def checkout(
        self,
        identity: Identity,
        data: CheckoutRequest,
        idempotency_key: Optional[str] = None
    ) -> CheckoutResponse:
        """
        Place an order from the owner's cart

        Args:
            identity: Cart owner
            data: Address, payment method and optional subset of cart items
            idempotency_key: Optional client key deduplicating resubmits

        Returns:
            Order id, plus the gateway order to pay for online methods
        """
        cart = await self.cart_service.find_cart(identity)
        if not cart:
            raise EmptyCartException()

        lines = await self.cart_service.load_cart_with_prices(cart, data.cart_item_ids)
        if not lines:
            raise EmptyCartException()

        for line in lines:
            if not line.is_active:
                raise ProductUnavailableException(line.product_name)

        total = sum((line.line_total for line in lines), Decimal("0.00")).quantize(Decimal("0.01"))

        address = await self._get_checkout_address(identity, data.address_id)
        email = identity.email or address.email

        if not data.payment_method.is_online:
            return await self._checkout_cod(identity, address, email, lines, total)

        checkout_key = compute_checkout_key(
            identity, address.id, data.payment_method, lines, idempotency_key
        )
        return await self._checkout_online(
            identity, address, email, lines, total, data.payment_method, checkout_key
        )

    async def _get_checkout_address(self, identity: Identity, address_id: uuid.UUID) -> Address:
        address = await self.db.get(Address, address_id)
        if address is None or not address.is_owned_by(identity):
            raise InvalidAddressException()
        return address

    def _new_order(
        self,
        identity: Identity,
        address: Address,
        email: Optional[str],
        total: Decimal,
        payment_method: PaymentMethod,
        status: OrderStatus
    ) -> Order:
        return Order(
            id=uuid.uuid4(),
            user_id=identity.user_id,
            guest_id=identity.guest_id,
            email=email,
            status=status,
            payment_status=OrderPaymentStatus.PENDING,
            payment_method=payment_method,
            total_amount=total,
            currency=settings.CURRENCY,
            address_id=address.id,
            shipping_address=address.to_snapshot(),
        )

    async def _checkout_cod(
        self,
        identity: Identity,
        address: Address,
        email: Optional[str],
        lines: List[CartLine],
        total: Decimal
    ) -> CheckoutResponse:
        """Cash on delivery: confirm now, consume the cart lines"""
        order = self._new_order(identity, address, email, total, PaymentMethod.COD, OrderStatus.CONFIRMED)
        order.confirmed_at = utcnow()
        self.db.add(order)

        for line in lines:
            self.db.add(OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                price_at_purchase=line.unit_price,
                size=line.size,
                color=line.color,
            ))

        cart_item_ids = [line.cart_item_id for line in lines]
        try:
            await self.db.flush()
            result = await self.db.execute(
                delete(CartItem)
                .where(CartItem.id.in_(cart_item_ids))
                .execution_options(synchronize_session=False)
            )
            consumed = result.rowcount
            if consumed == len(cart_item_ids):
                await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.critical(f"COD checkout for {identity.owner_key} failed: {str(e)}")
            raise UpstreamFailureException("Could not place order")

        if consumed != len(cart_item_ids):
            await self.db.rollback()
            logger.warning(f"Cart items for {identity.owner_key} consumed by a concurrent checkout")
            raise CheckoutConflictException()

        logger.info(f"COD order {order.id} placed for {identity.owner_key}, total {total}")
        return CheckoutResponse(order_id=order.id, requires_payment=False, total_amount=total)

    async def _find_open_checkout(self, checkout_key: str) -> Optional[Order]:
        """
        Order created by an identical earlier submission, if still payable

        A key held by an order that can no longer be paid is released so the
        new submission can take it.
        """
        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.payment))
            .where(Order.checkout_key == checkout_key)
        )
        order = result.scalar_one_or_none()
        if order is None:
            return None

        payment = order.payment
        if (
            order.status == OrderStatus.PENDING
            and order.cart_snapshot is not None
            and payment is not None
            and payment.status in (PaymentStatus.PENDING, PaymentStatus.AUTHORIZED)
        ):
            return order

        await self.db.execute(
            update(Order)
            .where(Order.id == order.id)
            .values(checkout_key=None)
            .execution_options(synchronize_session=False)
        )
        return None

    def _online_response(self, order: Order, gateway_order_id: str) -> CheckoutResponse:
        return CheckoutResponse(
            order_id=order.id,
            requires_payment=True,
            total_amount=order.total_amount,
            razorpay_order_id=gateway_order_id,
            amount=to_minor_units(Decimal(order.total_amount)),
            currency=order.currency,
            key=self.gateway.key_id,
        )

    async def _checkout_online(
        self,
        identity: Identity,
        address: Address,
        email: Optional[str],
        lines: List[CartLine],
        total: Decimal,
        payment_method: PaymentMethod,
        checkout_key: str
    ) -> CheckoutResponse:
        """Card/UPI: pending order with a cart snapshot and a gateway order"""
        existing = await self._find_open_checkout(checkout_key)
        if existing:
            logger.info(f"Reusing pending order {existing.id} for repeated checkout")
            await self.db.commit()
            return self._online_response(existing, existing.payment.gateway_order_id)

        order = self._new_order(identity, address, email, total, payment_method, OrderStatus.PENDING)
        order.cart_snapshot = build_snapshot(lines)
        order.checkout_key = checkout_key
        self.db.add(order)

        try:
            await self.db.flush()
        except IntegrityError:
            # Identical submission won the race for the checkout key
            await self.db.rollback()
            existing = await self._find_open_checkout(checkout_key)
            if existing:
                await self.db.commit()
                return self._online_response(existing, existing.payment.gateway_order_id)
            raise CheckoutConflictException()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.critical(f"Online checkout for {identity.owner_key} failed: {str(e)}")
            raise UpstreamFailureException("Could not place order")

        order_id = order.id
        amount = to_minor_units(total)
        try:
            gateway_order = await run_in_threadpool(
                self.gateway.create_order,
                amount=amount,
                currency=settings.CURRENCY,
                receipt=str(order_id),
                notes={"order_id": str(order_id)},
            )
        except Exception as e:
            # No gateway order means nothing can ever pay for this order
            await self.db.rollback()
            if isinstance(e, UpstreamFailureException):
                raise
            logger.error(f"Gateway order creation failed for order {order_id}: {str(e)}")
            raise UpstreamFailureException("Failed to create payment order")

        payment = Payment(
            order_id=order.id,
            amount=total,
            currency=settings.CURRENCY,
            method=payment_method.value,
            status=PaymentStatus.PENDING,
            gateway_order_id=gateway_order["id"],
            gateway_response=gateway_order,
        )
        self.db.add(payment)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.critical(
                f"Gateway order {gateway_order['id']} created but order {order_id} "
                f"could not be saved: {str(e)}"
            )
            raise UpstreamFailureException("Could not place order")

        logger.info(
            f"Order {order.id} awaiting payment, gateway order {gateway_order['id']}, "
            f"amount {amount}"
        )
        return self._online_response(order, gateway_order["id"])
