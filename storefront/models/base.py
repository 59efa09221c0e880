"""Base models and mixins for database models"""

from sqlalchemy import Column, DateTime, String, Uuid, and_
from sqlalchemy.orm import DeclarativeBase, declared_attr
from sqlalchemy.sql import func
from datetime import datetime, timezone
import uuid

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

# Create declarative base
class Base(DeclarativeBase):
    pass

class TimestampedModel:
    """Mixin for adding created_at and updated_at timestamps"""

    # Python-side defaults keep the values loaded on the instance, async
    # sessions cannot lazily refresh server generated columns.
    @declared_attr
    def created_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
            index=True
        )

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
            onupdate=utcnow
        )

class UUIDModel:
    """Mixin for adding UUID primary key"""

    @declared_attr
    def id(cls):
        return Column(
            Uuid(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            nullable=False
        )

class OwnedModel:
    """
    Mixin for rows owned by a signed-in user or by a guest session

    User ids come from the identity provider's token subject and guest ids
    are opaque client strings, so both are stored as text.
    """

    @declared_attr
    def user_id(cls):
        return Column(String(255), nullable=True, index=True)

    @declared_attr
    def guest_id(cls):
        return Column(String(255), nullable=True, index=True)

    @classmethod
    def owned_by(cls, identity):
        """Filter clause matching the identity's owner key"""
        if identity.user_id:
            return and_(cls.user_id == identity.user_id, cls.guest_id.is_(None))
        return and_(cls.guest_id == identity.guest_id, cls.user_id.is_(None))

    def is_owned_by(self, identity) -> bool:
        if identity.user_id:
            return self.user_id == identity.user_id
        return self.user_id is None and self.guest_id == identity.guest_id

__all__ = [
    'Base',
    'TimestampedModel',
    'UUIDModel',
    'OwnedModel',
    'utcnow',
]
