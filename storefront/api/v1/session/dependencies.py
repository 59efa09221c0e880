"""
Identity dependencies
Resolves the cart/order owner from a bearer token or a guest id
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from storefront.core.config import settings
from storefront.core.security import SecurityUtils
from storefront.core.exceptions import UnauthenticatedException, ForbiddenException

security = HTTPBearer(auto_error=False)

@dataclass(frozen=True)
class Identity:
    """Owner of carts, addresses and orders; exactly one id is set"""

    user_id: Optional[str] = None
    guest_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def owner_key(self) -> str:
        if self.user_id:
            return f"user:{self.user_id}"
        return f"guest:{self.guest_id}"

def resolve_identity(
    claims: Optional[Dict[str, Any]],
    guest_id: Optional[str]
) -> Optional[Identity]:
    """
    Build the identity for a request

    A valid bearer identity always wins over a guest id sent alongside it.
    Returns None when neither is present.
    """
    if claims and claims.get("sub"):
        return Identity(
            user_id=str(claims["sub"]),
            email=claims.get("email"),
            role=claims.get("role"),
        )

    if guest_id:
        return Identity(guest_id=guest_id)

    return None

def read_guest_id(request: Request) -> Optional[str]:
    """Guest id from the cookie, falling back to the header"""
    guest_id = request.cookies.get(settings.GUEST_COOKIE_NAME)
    if not guest_id:
        guest_id = request.headers.get(settings.GUEST_HEADER_NAME)
    return guest_id.strip() if guest_id and guest_id.strip() else None

async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[Dict[str, Any]]:
    """Claims of the bearer token, None if missing or invalid"""
    if not credentials:
        return None
    return SecurityUtils.access_claims(credentials.credentials)

async def get_identity_optional(
    request: Request,
    claims: Optional[Dict[str, Any]] = Depends(get_token_claims)
) -> Optional[Identity]:
    """Identity if the caller has one, otherwise None"""
    return resolve_identity(claims, read_guest_id(request))

async def get_identity(
    identity: Optional[Identity] = Depends(get_identity_optional)
) -> Identity:
    """Identity of the caller (required)"""
    if identity is None:
        raise UnauthenticatedException()
    return identity

async def get_authenticated_identity(
    identity: Identity = Depends(get_identity)
) -> Identity:
    """Signed-in identity, guests are rejected"""
    if not identity.is_authenticated:
        raise UnauthenticatedException("Sign in required")
    return identity

async def require_admin(
    identity: Identity = Depends(get_authenticated_identity)
) -> Identity:
    """Signed-in identity with the admin role"""
    if identity.role != "admin":
        raise ForbiddenException("Admin privileges required")
    return identity
