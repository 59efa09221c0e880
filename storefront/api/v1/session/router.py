"""Guest session router"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.database import get_db
from storefront.core.schemas import SuccessResponse
from .dependencies import Identity, get_authenticated_identity, read_guest_id
from .schemas import GuestSessionResponse, MergeResponse
from .services import SessionService, set_guest_cookie, clear_guest_cookie

router = APIRouter()

@router.post("/guest/session", response_model=GuestSessionResponse)
async def create_guest_session(response: Response):
    """Issue a guest id and store it in a long-lived cookie"""
    guest_id = SessionService.issue_guest_id()
    set_guest_cookie(response, guest_id)
    return GuestSessionResponse(guest_id=guest_id)

@router.post("/session/merge", response_model=MergeResponse)
async def merge_guest_session(
    request: Request,
    response: Response,
    identity: Identity = Depends(get_authenticated_identity),
    db: AsyncSession = Depends(get_db)
):
    """Move the guest cart and addresses onto the signed-in user"""
    guest_id = read_guest_id(request)
    if not guest_id:
        return MergeResponse()

    service = SessionService(db)
    result = await service.merge_guest_session(identity, guest_id)
    clear_guest_cookie(response)
    return result

@router.post("/session/logout", response_model=SuccessResponse)
async def logout(response: Response):
    """Forget the guest session on this client"""
    clear_guest_cookie(response)
    return SuccessResponse(message="Logged out")
