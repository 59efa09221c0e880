"""Address book service"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
import logging
import uuid

from storefront.core.config import settings
from storefront.core.exceptions import NotFoundException
from storefront.models import Address
from storefront.api.v1.session.dependencies import Identity
from .schemas import AddressCreate, AddressUpdate

logger = logging.getLogger(__name__)

# Optional columns a partial update may clear
CLEARABLE_FIELDS = {"address_line2", "email"}

def should_become_default(requested: bool, existing_count: int) -> bool:
    """Default-address policy: explicit request, or the owner's first address"""
    if requested:
        return True
    return settings.ADDRESS_FIRST_IS_DEFAULT and existing_count == 0

class AddressService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_addresses(self, identity: Identity) -> List[Address]:
        result = await self.db.execute(
            select(Address)
            .where(Address.owned_by(identity))
            .order_by(Address.is_default.desc(), Address.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_owned_address(self, identity: Identity, address_id: uuid.UUID) -> Address:
        result = await self.db.execute(
            select(Address).where(Address.id == address_id, Address.owned_by(identity))
        )
        address = result.scalar_one_or_none()
        if not address:
            raise NotFoundException("Address not found")
        return address

    async def _unset_defaults(self, identity: Identity, keep_id: Optional[uuid.UUID] = None) -> None:
        query = update(Address).where(Address.owned_by(identity), Address.is_default.is_(True))
        if keep_id is not None:
            query = query.where(Address.id != keep_id)
        await self.db.execute(
            query
            .values(is_default=False)
            .execution_options(synchronize_session=False)
        )

    async def create_address(self, identity: Identity, data: AddressCreate) -> Address:
        existing_count = await self.db.scalar(
            select(func.count(Address.id)).where(Address.owned_by(identity))
        )
        is_default = should_become_default(data.is_default, existing_count or 0)

        if is_default:
            await self._unset_defaults(identity)

        address = Address(
            user_id=identity.user_id,
            guest_id=identity.guest_id,
            **data.model_dump(exclude={"is_default"}),
            is_default=is_default,
        )
        self.db.add(address)
        await self.db.commit()

        return address

    async def set_default(self, identity: Identity, address_id: uuid.UUID) -> Address:
        address = await self.get_owned_address(identity, address_id)

        await self._unset_defaults(identity, keep_id=address.id)
        address.is_default = True
        await self.db.commit()

        return address

    async def update_address(
        self,
        identity: Identity,
        address_id: uuid.UUID,
        data: AddressUpdate
    ) -> Address:
        """Apply the fields sent; making it default unsets the owner's others"""
        address = await self.get_owned_address(identity, address_id)

        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field in CLEARABLE_FIELDS
        }
        is_default = changes.pop("is_default", None)

        if is_default:
            await self._unset_defaults(identity, keep_id=address.id)
        if is_default is not None:
            address.is_default = is_default

        for field, value in changes.items():
            setattr(address, field, value)

        await self.db.commit()
        return address

    async def delete_address(self, identity: Identity, address_id: uuid.UUID) -> None:
        address = await self.get_owned_address(identity, address_id)
        await self.db.delete(address)
        await self.db.commit()

    async def rehome_guest_addresses(self, user: Identity, guest_id: str) -> int:
        """Move a guest's addresses onto the signed-in user"""
        user_has_default = await self.db.scalar(
            select(func.count(Address.id))
            .where(Address.owned_by(user), Address.is_default.is_(True))
        )

        values = {"user_id": user.user_id, "guest_id": None}
        if user_has_default:
            values["is_default"] = False

        result = await self.db.execute(
            update(Address)
            .where(Address.owned_by(Identity(guest_id=guest_id)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        logger.info(f"Moved {result.rowcount} guest addresses to user {user.user_id}")
        return result.rowcount
