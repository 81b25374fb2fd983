"""
Token codec: mints and verifies the signed JWTs used for sessions.

- ACCESS tokens: short-lived (hours), never stored.
- REFRESH tokens: long-lived (days), also stored as the refresh_tokens key.

Each kind has its own secret. Expiry is checked against the caller's "now",
not the wall clock, so issuance and verification are deterministic in tests.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

import jwt

from utils.settings import AuthSettings

REQUIRED_CLAIMS = ["sub", "iat", "exp", "typ", "jti"]


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenError(Exception):
    """Base class for token verification failures."""


class ExpiredToken(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class MalformedToken(TokenError):
    pass


@dataclass(frozen=True)
class Claims:
    subject: str
    issued_at: datetime
    expires_at: datetime
    kind: TokenKind
    token_id: str


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _from_ts(value: int) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class TokenCodec:
    def __init__(self, settings: AuthSettings):
        self._settings = settings

    def _secret(self, kind: TokenKind) -> str:
        if kind is TokenKind.ACCESS:
            return self._settings.access_secret
        return self._settings.refresh_secret

    def lifetime(self, kind: TokenKind) -> timedelta:
        if kind is TokenKind.ACCESS:
            return self._settings.access_lifetime
        return self._settings.refresh_lifetime

    def mint(self, kind: TokenKind, subject: str, now: datetime) -> str:
        """Sign {sub, iat, exp, typ, jti} for subject; exp = now + lifetime(kind)."""
        issued = int(now.timestamp())
        payload = {
            "sub": str(subject),
            "iat": issued,
            "exp": issued + int(self.lifetime(kind).total_seconds()),
            "typ": kind.value,
            # keeps two tokens minted in the same second for one subject distinct
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(payload, self._secret(kind), algorithm=self._settings.algorithm)

    def verify(self, kind: TokenKind, token: str, now: datetime) -> Claims:
        """
        Decode and validate token as kind.

        Raises ExpiredToken when now is past exp, InvalidSignature when the
        signature does not match kind's secret, MalformedToken otherwise.
        """
        if not token or not isinstance(token, str):
            raise MalformedToken("empty token")
        try:
            decoded = jwt.decode(
                token,
                self._secret(kind),
                algorithms=[self._settings.algorithm],
                options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS},
            )
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignature(str(exc)) from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(str(exc)) from exc

        if decoded.get("typ") != kind.value:
            raise MalformedToken(f"expected a {kind.value} token, got {decoded.get('typ')!r}")
        try:
            claims = Claims(
                subject=str(decoded["sub"]),
                issued_at=_from_ts(decoded["iat"]),
                expires_at=_from_ts(decoded["exp"]),
                kind=kind,
                token_id=str(decoded["jti"]),
            )
        except (TypeError, ValueError, OverflowError) as exc:
            raise MalformedToken(f"bad claim value: {exc}") from exc

        if now > claims.expires_at:
            raise ExpiredToken(f"{kind.value} token expired at {claims.expires_at.isoformat()}")
        return claims
