"""
Session-bound stores used by the auth services.

RefreshTokenStore owns the refresh_tokens table. UserStore is the read-mostly
view of principals (users + accounts) that signup and OAuth also write to.

Both take a SQLAlchemy session (the request's scoped session in the API, a
plain session in tests). Every mutating call commits its own unit of work and
rolls back on failure, raising StorageError / ConstraintViolation.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, exists, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models.account import Account
from models.base_model import _uuid_str
from models.errors import ConstraintViolation, StorageError
from models.refresh_token import RefreshToken
from models.user import User

logger = logging.getLogger(__name__)


class _SessionStore:
    def __init__(self, session: Session):
        self._session = session

    def _commit(self, action: str):
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise ConstraintViolation(
                f"{action}: constraint violated", detail={"db_error": str(exc.orig)}
            ) from exc
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError(f"{action}: {exc}") from exc

    def _run(self, action: str, fn):
        try:
            return fn()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError(f"{action}: {exc}") from exc


class RefreshTokenStore(_SessionStore):
    """Durable record of issued refresh tokens, keyed by the token value."""

    def create(self, value: str, principal_id: str, ttl_days: int, now: datetime) -> RefreshToken:
        record = RefreshToken(
            id=_uuid_str(),
            token=value,
            user_id=principal_id,
            expires_at=now + timedelta(days=ttl_days),
            created_at=now,
        )
        self._session.add(record)
        self._commit("create refresh token")
        return record

    def find_by_value(self, value: str) -> Optional[RefreshToken]:
        stmt = select(RefreshToken).where(RefreshToken.token == value)
        return self._run("find refresh token", lambda: self._session.scalars(stmt).first())

    def exists(self, value: str) -> bool:
        stmt = select(exists().where(RefreshToken.token == value))
        return bool(self._run("check refresh token", lambda: self._session.scalar(stmt)))

    def is_expired(self, value: str, now: datetime) -> bool:
        """True when no record exists or its expires_at is before now."""
        record = self.find_by_value(value)
        if record is None:
            return True
        return record.expires_at < now

    def delete_by_value(self, value: str) -> int:
        stmt = delete(RefreshToken).where(RefreshToken.token == value)
        result = self._run("delete refresh token", lambda: self._session.execute(stmt))
        self._commit("delete refresh token")
        return result.rowcount or 0

    def delete_all_for_principal(self, principal_id: str) -> int:
        stmt = delete(RefreshToken).where(RefreshToken.user_id == principal_id)
        result = self._run("delete principal refresh tokens", lambda: self._session.execute(stmt))
        self._commit("delete principal refresh tokens")
        return result.rowcount or 0

    def count_for_principal(self, principal_id: str) -> int:
        stmt = select(func.count()).select_from(RefreshToken).where(RefreshToken.user_id == principal_id)
        return self._run("count refresh tokens", lambda: self._session.scalar(stmt)) or 0


class UserStore(_SessionStore):
    """Principal lookups; tombstoned users are invisible to sign-in paths."""

    def get(self, user_id: str) -> Optional[User]:
        user = self._run("get user", lambda: self._session.get(User, user_id))
        if user is None or user.is_deleted:
            return None
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email, User.deleted_at.is_(None))
        return self._run("find user by email", lambda: self._session.scalars(stmt).first())

    def email_taken(self, email: str) -> bool:
        stmt = select(exists().where(User.email == email))
        return bool(self._run("check email", lambda: self._session.scalar(stmt)))

    def name_taken(self, name: str) -> bool:
        stmt = select(exists().where(User.name == name))
        return bool(self._run("check name", lambda: self._session.scalar(stmt)))

    def create(self, name: str, email: str, password_hash: Optional[str],
               email_verified: bool = False) -> User:
        user = User(
            name=name,
            email=email,
            password_hash=password_hash,
            email_verified=email_verified,
        )
        self._session.add(user)
        self._commit("create user")
        return user

    def find_by_external_login(self, provider: str, login: str) -> Optional[User]:
        stmt = (
            select(User)
            .join(Account, Account.user_id == User.id)
            .where(
                Account.provider == provider,
                Account.provider_account_id == login,
                User.deleted_at.is_(None),
            )
        )
        return self._run("find user by external login", lambda: self._session.scalars(stmt).first())

    def create_external(self, provider: str, login: str, name: str, email: str) -> User:
        """Create a password-less principal and link it to (provider, login) in one commit."""
        user = User(name=name, email=email, password_hash=None, email_verified=False)
        self._session.add(user)
        self._session.add(
            Account(user_id=user.id, provider=provider, provider_account_id=login)
        )
        self._commit("create external user")
        return user
