"""Cart router for signed-in and guest carts"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from storefront.core.database import get_db
from storefront.api.v1.session.dependencies import Identity, get_identity
from .schemas import CartItemCreate, CartItemUpdate, CartResponse
from .services import CartService

router = APIRouter()

@router.get("", response_model=CartResponse)
async def get_cart(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Get cart with live prices"""
    service = CartService(db)
    return await service.get_cart_summary(identity)

@router.post("/items", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    item_data: CartItemCreate,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Add item to cart, creating the cart on first use"""
    service = CartService(db)
    cart = await service.get_or_create_cart(identity)
    await service.add_item(
        cart,
        product_id=item_data.product_id,
        quantity=item_data.quantity,
        size=item_data.size,
        color=item_data.color,
    )
    return await service.get_cart_summary(identity)

@router.patch("/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: uuid.UUID,
    update_data: CartItemUpdate,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Change a line's quantity; zero removes it"""
    service = CartService(db)
    await service.update_item_quantity(identity, item_id, update_data.quantity)
    return await service.get_cart_summary(identity)

@router.delete("/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    item_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Remove a line from the cart"""
    service = CartService(db)
    await service.remove_item(identity, item_id)
    return await service.get_cart_summary(identity)

@router.delete("", response_model=CartResponse)
async def clear_cart(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Empty the cart"""
    service = CartService(db)
    await service.clear_cart(identity)
    return await service.get_cart_summary(identity)
