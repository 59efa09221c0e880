"""
Order service layer
Handles order finalization, queries and lifecycle updates
"""

from typing import List, Optional, Tuple
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, null
from sqlalchemy.orm import selectinload
import logging
import uuid

from storefront.models import Order, OrderItem, OrderStatus, OrderPaymentStatus, CartItem
from storefront.models.base import utcnow
from storefront.core.exceptions import NotFoundException, BadRequestException
from storefront.api.v1.session.dependencies import Identity
from .state_machine import OrderStateMachine

logger = logging.getLogger(__name__)

class OrderService:
    """Order service for business logic"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.state_machine = OrderStateMachine()

    async def finalize_paid_order(self, order_id: uuid.UUID) -> bool:
        """
        Turn a paid order's cart snapshot into order items

        Clearing the snapshot is a conditional update, so only one caller
        (verify endpoint or webhook) ever gets to create the items. Cart
        items are removed by the ids frozen in the snapshot; the live cart
        may have changed since checkout. Only pending or cancelled orders are
        finalized, anything staff already moved along is left alone. Does not
        commit, callers run this inside the transaction that captures the
        payment.

        Returns:
            True if this call finalized the order
        """
        result = await self.db.execute(
            select(Order.cart_snapshot).where(Order.id == order_id)
        )
        snapshot = result.scalar_one_or_none()
        if snapshot is None:
            logger.info(f"Order {order_id} already finalized or has no snapshot")
            return False

        result = await self.db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.cart_snapshot.is_not(None),
                Order.status.in_([OrderStatus.PENDING, OrderStatus.CANCELLED]),
            )
            .values(
                cart_snapshot=null(),
                status=OrderStatus.CONFIRMED,
                payment_status=OrderPaymentStatus.PAID,
                confirmed_at=utcnow(),
                checkout_key=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(f"Order {order_id} finalized concurrently or no longer finalizable")
            return False

        for entry in snapshot:
            self.db.add(OrderItem(
                order_id=order_id,
                product_id=uuid.UUID(entry["product_id"]),
                product_name=entry.get("product_name"),
                quantity=entry["quantity"],
                price_at_purchase=Decimal(entry["price"]),
                size=entry.get("size"),
                color=entry.get("color"),
            ))

        cart_item_ids = [uuid.UUID(entry["cart_item_id"]) for entry in snapshot]
        await self.db.execute(
            delete(CartItem)
            .where(CartItem.id.in_(cart_item_ids))
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()

        logger.info(f"Order {order_id} finalized with {len(snapshot)} items")
        return True

    async def cancel_unpaid_order(self, order_id: uuid.UUID) -> bool:
        """
        Cancel an order whose payment attempt failed

        Only orders still awaiting finalization are touched. The snapshot is
        kept so a later successful attempt on the same gateway order can
        still finalize it. Does not commit.
        """
        order = await self.db.get(Order, order_id)
        if order is None or order.cart_snapshot is None:
            return False

        if not self.state_machine.is_cancellable(order.status):
            return False

        result = await self.db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.status == order.status,
                Order.cart_snapshot.is_not(None),
            )
            .values(
                status=OrderStatus.CANCELLED,
                payment_status=OrderPaymentStatus.FAILED,
                cancelled_at=utcnow(),
                checkout_key=None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_order(self, identity: Identity, order_id: uuid.UUID) -> Order:
        """
        Get order details for its owner

        Orders of other owners are reported as missing.
        """
        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.id == order_id, Order.owned_by(identity))
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()

        if not order:
            raise NotFoundException("Order not found")

        return order

    async def list_orders(
        self,
        identity: Identity,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[OrderPaymentStatus] = None,
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[Order], int]:
        """Owner's orders, newest first"""
        conditions = [Order.owned_by(identity)]
        if status:
            conditions.append(Order.status == status)
        if payment_status:
            conditions.append(Order.payment_status == payment_status)

        total = await self.db.scalar(
            select(func.count(Order.id)).where(*conditions)
        )

        result = await self.db.execute(
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id)
            .limit(limit)
            .offset(offset)
        )

        return list(result.scalars().all()), total or 0

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        reason: Optional[str] = None
    ) -> Order:
        """Staff lifecycle update validated by the state machine"""
        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.id == order_id)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundException("Order not found")

        if self.state_machine.is_terminal_state(order.status):
            raise BadRequestException(
                f"Order is already {order.status.value}",
                error_code="INVALID_STATUS_TRANSITION"
            )

        # Unpaid online orders can only be cancelled until the payment lands
        if order.awaiting_payment and new_status != OrderStatus.CANCELLED:
            raise BadRequestException(
                "Order is still awaiting payment",
                error_code="ORDER_AWAITING_PAYMENT"
            )

        if not self.state_machine.can_transition(order.status, new_status):
            valid = ", ".join(s.value for s in self.state_machine.get_valid_transitions(order.status))
            raise BadRequestException(
                f"Cannot change order from {order.status.value} to {new_status.value}. "
                f"Valid transitions: {valid or 'none'}",
                error_code="INVALID_STATUS_TRANSITION"
            )

        previous = order.status
        order.status = new_status
        if new_status == OrderStatus.CONFIRMED:
            order.confirmed_at = utcnow()
        elif new_status == OrderStatus.CANCELLED:
            order.cancelled_at = utcnow()

        await self.db.commit()

        logger.info(
            f"Order {order_id} moved from {previous.value} to {new_status.value}"
            + (f": {reason}" if reason else "")
        )
        return order
