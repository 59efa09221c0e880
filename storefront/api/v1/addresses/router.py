"""Address book router"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import uuid

from storefront.core.database import get_db
from storefront.core.schemas import SuccessResponse
from storefront.api.v1.session.dependencies import Identity, get_identity
from .schemas import AddressCreate, AddressUpdate, AddressResponse
from .services import AddressService

router = APIRouter()

@router.post("", response_model=AddressResponse, status_code=status.HTTP_201_CREATED)
async def create_address(
    address_data: AddressCreate,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Save a shipping address"""
    service = AddressService(db)
    return await service.create_address(identity, address_data)

@router.get("", response_model=List[AddressResponse])
async def list_addresses(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """List saved addresses, default first"""
    service = AddressService(db)
    return await service.list_addresses(identity)

@router.put("/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: uuid.UUID,
    address_data: AddressUpdate,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Partially update a saved address"""
    service = AddressService(db)
    return await service.update_address(identity, address_id, address_data)

@router.patch("/{address_id}/default", response_model=AddressResponse)
async def set_default_address(
    address_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    service = AddressService(db)
    return await service.set_default(identity, address_id)

@router.delete("/{address_id}", response_model=SuccessResponse)
async def delete_address(
    address_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    service = AddressService(db)
    await service.delete_address(identity, address_id)
    return SuccessResponse(message="Address deleted")
