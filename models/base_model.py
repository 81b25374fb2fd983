#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixins for the auth backend.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps
- UTCDateTime column type: aware UTC datetimes in Python, naive UTC in the DB
- SoftDeleteMixin that tombstones rows instead of deleting them

Notes:
- SQLite drops tzinfo on read, so every timestamp goes through UTCDateTime and
  comparisons against an injected "now" never mix naive and aware values.
- SoftDelete: put the mixin FIRST in the model's inheritance list.
"""

from __future__ import annotations

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class BaseModel:
    """
    Base mixin for persistent models: id, created_at, updated_at.

    Timestamps default on the Python side so that values written in the same
    unit of work share the caller's clock.
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(UTCDateTime(), default=utc_now, nullable=False)
    updated_at = Column(UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False)

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        If you pass created_at/updated_at explicitly (e.g., in tests), they will be set.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        # Ensure an id exists if user passed none
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __str__(self) -> str:
        return f"[{self.__class__.__name__}] ({self.id})"


class SoftDeleteMixin:
    """
    Adds a deleted_at timestamp. Principals are tombstoned, never hard-deleted.
    IMPORTANT: Place this mixin BEFORE BaseModel in your class base list.

    Example:
        class User(SoftDeleteMixin, BaseModel, Base):
            __tablename__ = "users"
            ...
    """

    deleted_at = Column(UTCDateTime(), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, now: datetime | None = None):
        """Set deleted_at; the caller commits."""
        self.deleted_at = now or utc_now()
