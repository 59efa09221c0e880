"""
Order API routes
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.models.order import OrderStatus, OrderPaymentStatus
from storefront.api.v1.session.dependencies import Identity, get_identity, require_admin
from .schemas import OrderResponse, OrderListResponse, OrderStatusUpdate
from .services import OrderService

router = APIRouter()

@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Orders of the current user or guest, newest first"
)
async def list_orders(
    status: Optional[OrderStatus] = None,
    payment_status: Optional[OrderPaymentStatus] = Query(None, alias="paymentStatus"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    service = OrderService(db)
    orders, total = await service.list_orders(
        identity,
        status=status,
        payment_status=payment_status,
        limit=limit,
        offset=offset
    )
    return OrderListResponse(orders=orders, total=total, limit=limit, offset=offset)

@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
    description="Order details with line items"
)
async def get_order(
    order_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    service = OrderService(db)
    return await service.get_order(identity, order_id)

@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Move an order through its lifecycle (admin only)"
)
async def update_order_status(
    order_id: uuid.UUID,
    status_update: OrderStatusUpdate,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = OrderService(db)
    return await service.update_order_status(
        order_id,
        status_update.status,
        reason=status_update.reason
    )
