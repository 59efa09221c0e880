"""
Security utilities for authentication and authorization
Bearer tokens are issued by the identity provider; this module only
validates them and reads their claims
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import secrets

from .config import settings
from .exceptions import UnauthorizedException

class SecurityUtils:
    """Security utility functions"""

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
        """Create JWT access token"""
        to_encode = data.copy()
        expire = datetime.utcnow() + timedelta(
            minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """Decode and validate JWT token"""
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
            return payload
        except JWTError:
            raise UnauthorizedException("Invalid authentication credentials")

    @staticmethod
    def access_claims(token: str) -> Optional[Dict[str, Any]]:
        """
        Claims of a valid access token, None for anything else

        Invalid or expired tokens are treated as absent so that a stale
        token never blocks a guest flow.
        """
        try:
            payload = SecurityUtils.decode_token(token)
        except UnauthorizedException:
            return None

        if payload.get("type") != "access" or not payload.get("sub"):
            return None

        return payload

    @staticmethod
    def generate_guest_id() -> str:
        """Generate an opaque guest identifier"""
        return secrets.token_urlsafe(24)
