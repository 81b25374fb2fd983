"""
Session lifecycle: issuance, refresh (rotation) and termination.

A session is an access token (stateless JWT) plus a refresh token (JWT that is
also the key of a refresh_tokens row). The refresh token is single-use: a
successful refresh deletes its row before minting the replacement, and the
request whose delete affects no row lost a race and is rejected.

All collaborators are injected; nothing here touches Flask or the environment.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from models.errors import StorageError
from services.errors import DatabaseError, InternalServerError, Unauthorized
from utils.settings import AuthSettings
from utils.tokens import TokenCodec, TokenError, TokenKind, utc_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class RefreshRecord(Protocol):
    token: str
    user_id: str
    expires_at: datetime
    created_at: datetime


class RefreshTokenRepository(Protocol):
    def create(self, value: str, principal_id: str, ttl_days: int, now: datetime) -> RefreshRecord: ...

    def find_by_value(self, value: str) -> Optional[RefreshRecord]: ...

    def exists(self, value: str) -> bool: ...

    def is_expired(self, value: str, now: datetime) -> bool: ...

    def delete_by_value(self, value: str) -> int: ...

    def delete_all_for_principal(self, principal_id: str) -> int: ...


@dataclass(frozen=True)
class SessionPair:
    principal_id: str
    access_token: str
    refresh_token: str
    issued_at: datetime
    access_expires_at: datetime
    refresh_expires_at: datetime

    @property
    def expires_in(self) -> int:
        """Access token lifetime in seconds, for the response body."""
        return int((self.access_expires_at - self.issued_at).total_seconds())


def best_effort_delete(store: RefreshTokenRepository, value: str, why: str) -> None:
    """Delete value, logging (not raising) storage failures."""
    try:
        store.delete_by_value(value)
    except StorageError:
        logger.exception("Best-effort delete of refresh token failed (%s)", why)


class SessionIssuer:
    def __init__(self, codec: TokenCodec, store: RefreshTokenRepository,
                 settings: AuthSettings, clock: Clock = utc_now):
        self.codec = codec
        self.store = store
        self.settings = settings
        self.clock = clock

    def issue(self, principal_id: str) -> SessionPair:
        """Mint an access/refresh pair for principal_id and persist the refresh row."""
        # Whole seconds so the JWT exp and the stored expires_at are the same instant.
        now = self.clock().replace(microsecond=0)
        access = self.codec.mint(TokenKind.ACCESS, principal_id, now)
        refresh = self.codec.mint(TokenKind.REFRESH, principal_id, now)
        try:
            record = self.store.create(refresh, principal_id, self.settings.refresh_ttl_days, now)
        except StorageError as exc:
            logger.error("Failed to store refresh token for user %s: %s", principal_id, exc)
            raise DatabaseError("Failed to create user session", reason=str(exc)) from exc

        access_expires = now + self.codec.lifetime(TokenKind.ACCESS)
        refresh_expires = now + self.codec.lifetime(TokenKind.REFRESH)
        if record.expires_at != refresh_expires:
            # The row and the claims must describe the same session.
            best_effort_delete(self.store, refresh, "expiry mismatch")
            raise InternalServerError(
                "Failed to create user session",
                reason=f"stored expiry {record.expires_at} != token expiry {refresh_expires}",
            )
        logger.info("Issued session for user %s", principal_id)
        return SessionPair(
            principal_id=principal_id,
            access_token=access,
            refresh_token=refresh,
            issued_at=now,
            access_expires_at=access_expires,
            refresh_expires_at=refresh_expires,
        )

    def release_presented(self, presented: Optional[str], principal_id: str) -> None:
        """
        Clean up a refresh token the client still holds when it signs in.

        A token belonging to someone else wipes every session of principal_id;
        the principal's own token is simply replaced.
        """
        if not presented:
            return
        try:
            record = self.store.find_by_value(presented)
            if record is None:
                return
            if record.user_id != principal_id:
                removed = self.store.delete_all_for_principal(principal_id)
                logger.warning(
                    "Token mismatch at sign in, revoked %d session(s) for user %s",
                    removed, principal_id,
                )
            else:
                self.store.delete_by_value(presented)
        except StorageError as exc:
            logger.error("Failed to clean up existing session for user %s: %s", principal_id, exc)
            raise DatabaseError("Failed to update user session", reason=str(exc)) from exc


class SessionRefresher:
    def __init__(self, codec: TokenCodec, store: RefreshTokenRepository,
                 issuer: SessionIssuer, clock: Clock = utc_now):
        self.codec = codec
        self.store = store
        self.issuer = issuer
        self.clock = clock

    def refresh(self, value: Optional[str]) -> SessionPair:
        """Validate and consume value, then issue a brand-new pair."""
        if not value:
            raise Unauthorized("no refresh token provided")

        now = self.clock()
        try:
            claims = self.codec.verify(TokenKind.REFRESH, value, now)
        except TokenError as exc:
            logger.warning("Rejected refresh token (%s): %s", type(exc).__name__, exc)
            raise Unauthorized(f"refresh token rejected by codec: {type(exc).__name__}") from exc
        user_id = claims.subject

        try:
            record = self.store.find_by_value(value)
        except StorageError as exc:
            logger.error("Failed to look up refresh token: %s", exc)
            raise DatabaseError("Failed to validate session", reason=str(exc)) from exc
        if record is None:
            logger.info("Refresh token for user %s not found in store", user_id)
            raise Unauthorized("refresh token not in store")

        if record.user_id != user_id:
            logger.error(
                "Token user ID mismatch. Token user: %s, Decoded user: %s",
                record.user_id, user_id,
            )
            best_effort_delete(self.store, value, "subject mismatch")
            raise Unauthorized("refresh token subject mismatch")

        try:
            expired = self.store.is_expired(value, now)
        except StorageError as exc:
            logger.error("Failed to check token expiration: %s", exc)
            raise DatabaseError("Failed to validate token expiration", reason=str(exc)) from exc
        if expired:
            logger.info("Expired refresh token used for user: %s", user_id)
            best_effort_delete(self.store, value, "expired")
            raise Unauthorized("refresh token expired in store")

        try:
            consumed = self.store.delete_by_value(value)
        except StorageError as exc:
            logger.error("Failed to delete old refresh token: %s", exc)
            raise DatabaseError("Failed to invalidate old token", reason=str(exc)) from exc
        if consumed == 0:
            logger.warning("Refresh token for user %s was already rotated", user_id)
            raise Unauthorized("refresh token already consumed")

        pair = self.issuer.issue(user_id)
        logger.info("Successfully refreshed tokens for user: %s", user_id)
        return pair


class SessionTerminator:
    def __init__(self, store: RefreshTokenRepository):
        self.store = store

    def terminate(self, value: Optional[str]) -> None:
        """Delete the stored refresh token. Clearing the cookie is the caller's job."""
        if not value:
            raise Unauthorized("no refresh token provided")
        try:
            if not self.store.exists(value):
                logger.warning("Attempt to sign out with unknown refresh token")
                raise Unauthorized("refresh token not in store")
            self.store.delete_by_value(value)
        except StorageError as exc:
            logger.error("Failed to delete refresh token during sign out: %s", exc)
            raise DatabaseError("Failed to invalidate session", reason=str(exc)) from exc
        logger.info("User successfully signed out")
