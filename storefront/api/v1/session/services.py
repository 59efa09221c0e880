"""Guest session service"""

from fastapi import Response
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from storefront.core.config import settings
from storefront.core.security import SecurityUtils
from storefront.api.v1.cart.services import CartService
from storefront.api.v1.addresses.services import AddressService
from .dependencies import Identity
from .schemas import MergeResponse

logger = logging.getLogger(__name__)

def set_guest_cookie(response: Response, guest_id: str) -> None:
    response.set_cookie(
        key=settings.GUEST_COOKIE_NAME,
        value=guest_id,
        max_age=settings.GUEST_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )

def clear_guest_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.GUEST_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )

class SessionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def issue_guest_id() -> str:
        guest_id = SecurityUtils.generate_guest_id()
        logger.info("Issued new guest session")
        return guest_id

    async def merge_guest_session(self, user: Identity, guest_id: str) -> MergeResponse:
        """Carry a guest's cart and addresses over to the signed-in user"""
        merged_items = await CartService(self.db).merge_guest_cart(user, guest_id)
        moved_addresses = await AddressService(self.db).rehome_guest_addresses(user, guest_id)

        return MergeResponse(merged_items=merged_items, moved_addresses=moved_addresses)
