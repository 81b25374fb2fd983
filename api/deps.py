"""
Per-app components and per-request service wiring.

create_app() builds one AuthComponents (settings, codec, hasher, GitHub client,
clock) and stores it in app.extensions. Services are cheap and built per
request around the request's scoped SQLAlchemy session.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from models import storage
from models.stores import RefreshTokenStore, UserStore
from services.accounts import AccountService
from services.github import GitHubOAuthClient
from services.sessions import Clock, SessionIssuer, SessionRefresher, SessionTerminator
from utils.security import PasswordHasher
from utils.settings import AuthSettings
from utils.tokens import TokenCodec

EXTENSION_KEY = "tsumi_auth"


@dataclass(frozen=True)
class AuthComponents:
    settings: AuthSettings
    codec: TokenCodec
    hasher: PasswordHasher
    clock: Clock
    github: Optional[GitHubOAuthClient] = None


def components() -> AuthComponents:
    return current_app.extensions[EXTENSION_KEY]


def refresh_store() -> RefreshTokenStore:
    return RefreshTokenStore(storage.get_session())


def user_store() -> UserStore:
    return UserStore(storage.get_session())


def session_issuer() -> SessionIssuer:
    c = components()
    return SessionIssuer(c.codec, refresh_store(), c.settings, clock=c.clock)


def account_service() -> AccountService:
    return AccountService(user_store(), session_issuer(), components().hasher)


def session_refresher() -> SessionRefresher:
    c = components()
    issuer = session_issuer()
    return SessionRefresher(c.codec, issuer.store, issuer, clock=c.clock)


def session_terminator() -> SessionTerminator:
    return SessionTerminator(refresh_store())
