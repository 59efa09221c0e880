"""
Cart service layer
Handles shopping cart business logic
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from storefront.models import Cart, CartItem, Product
from storefront.core.exceptions import NotFoundException, ConflictException
from storefront.api.v1.session.dependencies import Identity
from .schemas import CartResponse, CartItemResponse

logger = logging.getLogger(__name__)

@dataclass
class CartLine:
    """Cart item joined with its current catalog price"""

    cart_item_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    size: Optional[str]
    color: Optional[str]
    is_active: bool

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

def _variant(value: Optional[str]) -> str:
    return (value or "").strip()

class CartService:
    """Shopping cart service"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_cart(self, identity: Identity) -> Optional[Cart]:
        result = await self.db.execute(
            select(Cart).where(Cart.owned_by(identity))
        )
        return result.scalar_one_or_none()

    async def get_or_create_cart(self, identity: Identity) -> Cart:
        """
        Get the owner's cart, creating an empty one on first use

        Concurrent first calls for the same owner race on the unique owner
        key; the loser rolls back and reads the winner's row.
        """
        cart = await self.find_cart(identity)
        if cart:
            return cart

        cart = Cart(user_id=identity.user_id, guest_id=identity.guest_id)
        self.db.add(cart)
        try:
            await self.db.commit()
            return cart
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Cart for {identity.owner_key} created concurrently, re-reading")

        cart = await self.find_cart(identity)
        if cart is None:
            raise ConflictException("Could not create cart, please retry")
        return cart

    async def get_active_product(self, product_id: uuid.UUID) -> Product:
        result = await self.db.execute(
            select(Product).where(Product.id == product_id, Product.is_active.is_(True))
        )
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundException("Product not found")
        return product

    async def _find_line(
        self,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
        size: str,
        color: str
    ) -> Optional[CartItem]:
        result = await self.db.execute(
            select(CartItem).where(
                CartItem.cart_id == cart_id,
                CartItem.product_id == product_id,
                CartItem.size == size,
                CartItem.color == color,
            )
        )
        return result.scalar_one_or_none()

    async def _increment(self, item_id: uuid.UUID, quantity: int) -> None:
        await self.db.execute(
            update(CartItem)
            .where(CartItem.id == item_id)
            .values(quantity=CartItem.quantity + quantity)
        )

    async def add_item(
        self,
        cart: Cart,
        product_id: uuid.UUID,
        quantity: int = 1,
        size: Optional[str] = None,
        color: Optional[str] = None
    ) -> CartItem:
        """
        Add a product to the cart

        The same product, size and color combination is a single line whose
        quantity grows; a different variant is a separate line.
        """
        await self.get_active_product(product_id)
        size, color = _variant(size), _variant(color)
        cart_id = cart.id

        existing = await self._find_line(cart_id, product_id, size, color)
        if existing:
            await self._increment(existing.id, quantity)
            await self.db.commit()
            return await self._reload_line(existing.id)

        item = CartItem(
            cart_id=cart_id,
            product_id=product_id,
            size=size,
            color=color,
            quantity=quantity,
        )
        self.db.add(item)
        try:
            await self.db.commit()
            return item
        except IntegrityError:
            await self.db.rollback()

        # Another request inserted the same line first
        existing = await self._find_line(cart_id, product_id, size, color)
        if existing is None:
            raise ConflictException("Could not add item, please retry")
        await self._increment(existing.id, quantity)
        await self.db.commit()
        return await self._reload_line(existing.id)

    async def _reload_line(self, item_id: uuid.UUID) -> CartItem:
        result = await self.db.execute(
            select(CartItem)
            .where(CartItem.id == item_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def load_cart_with_prices(
        self,
        cart: Cart,
        item_ids: Optional[Sequence[uuid.UUID]] = None
    ) -> List[CartLine]:
        """Cart lines with the live catalog price, optionally a subset"""
        query = (
            select(CartItem, Product)
            .join(Product, Product.id == CartItem.product_id)
            .where(CartItem.cart_id == cart.id)
            .order_by(CartItem.created_at, CartItem.id)
        )
        if item_ids is not None:
            query = query.where(CartItem.id.in_(list(item_ids)))

        result = await self.db.execute(query)

        return [
            CartLine(
                cart_item_id=item.id,
                product_id=product.id,
                product_name=product.name,
                quantity=item.quantity,
                unit_price=Decimal(product.price),
                size=item.size or None,
                color=item.color or None,
                is_active=product.is_active,
            )
            for item, product in result.all()
        ]

    async def get_cart_summary(self, identity: Identity) -> CartResponse:
        cart = await self.find_cart(identity)
        if not cart:
            return CartResponse()

        lines = await self.load_cart_with_prices(cart)
        items = [
            CartItemResponse(
                id=line.cart_item_id,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
                size=line.size,
                color=line.color,
                is_available=line.is_active,
            )
            for line in lines
        ]
        total = sum((line.line_total for line in lines if line.is_active), Decimal("0.00"))

        return CartResponse(
            cart_id=cart.id,
            items=items,
            total_items=sum(line.quantity for line in lines),
            total_amount=total,
        )

    async def _get_owned_item(self, identity: Identity, item_id: uuid.UUID) -> CartItem:
        result = await self.db.execute(
            select(CartItem)
            .join(Cart, Cart.id == CartItem.cart_id)
            .where(CartItem.id == item_id, Cart.owned_by(identity))
        )
        item = result.scalar_one_or_none()
        if not item:
            raise NotFoundException("Cart item not found")
        return item

    async def update_item_quantity(
        self,
        identity: Identity,
        item_id: uuid.UUID,
        quantity: int
    ) -> Optional[CartItem]:
        """Set a line's quantity; zero removes it"""
        item = await self._get_owned_item(identity, item_id)

        if quantity == 0:
            await self.db.delete(item)
            await self.db.commit()
            return None

        item.quantity = quantity
        await self.db.commit()
        return item

    async def remove_item(self, identity: Identity, item_id: uuid.UUID) -> None:
        item = await self._get_owned_item(identity, item_id)
        await self.db.delete(item)
        await self.db.commit()

    async def clear_cart(self, identity: Identity) -> int:
        cart = await self.find_cart(identity)
        if not cart:
            return 0

        result = await self.db.execute(
            delete(CartItem).where(CartItem.cart_id == cart.id)
        )
        await self.db.commit()
        return result.rowcount

    async def merge_guest_cart(self, user: Identity, guest_id: str) -> int:
        """
        Fold a guest cart into the signed-in user's cart

        Lines present in both keep the higher quantity, guest-only lines are
        moved over keeping their ids. The guest cart is deleted afterwards.
        Returns the number of lines taken from the guest cart.
        """
        guest_cart = await self.find_cart(Identity(guest_id=guest_id))
        if not guest_cart:
            return 0

        user_cart = await self.get_or_create_cart(user)

        result = await self.db.execute(
            select(CartItem).where(CartItem.cart_id == user_cart.id)
        )
        user_lines = {
            (item.product_id, item.size, item.color): item
            for item in result.scalars().all()
        }

        result = await self.db.execute(
            select(CartItem).where(CartItem.cart_id == guest_cart.id)
        )
        guest_items = result.scalars().all()

        merged = 0
        for guest_item in guest_items:
            key = (guest_item.product_id, guest_item.size, guest_item.color)
            existing = user_lines.get(key)
            if existing:
                if guest_item.quantity > existing.quantity:
                    existing.quantity = guest_item.quantity
            else:
                # Ids stay, pending order snapshots reference them
                await self.db.execute(
                    update(CartItem)
                    .where(CartItem.id == guest_item.id)
                    .values(cart_id=user_cart.id)
                    .execution_options(synchronize_session=False)
                )
            merged += 1

        await self.db.execute(delete(CartItem).where(CartItem.cart_id == guest_cart.id))
        await self.db.execute(delete(Cart).where(Cart.id == guest_cart.id))
        await self.db.commit()

        logger.info(f"Merged {merged} guest cart lines into cart {user_cart.id}")
        return merged
