"""
Refresh-token cookie handling.

The refresh token travels only as a Secure, HttpOnly, SameSite=Strict cookie
on path "/" whose max-age matches the refresh lifetime.
"""
from __future__ import annotations

from flask import Response, request

from utils.settings import AuthSettings

OAUTH_STATE_COOKIE = "oauth_state"
OAUTH_STATE_MAX_AGE = 600


def read_refresh_cookie(settings: AuthSettings) -> str | None:
    return request.cookies.get(settings.cookie_name) or None


def set_refresh_cookie(response: Response, token: str, settings: AuthSettings) -> Response:
    response.set_cookie(
        settings.cookie_name,
        token,
        max_age=settings.refresh_max_age,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="Strict",
    )
    return response


def clear_refresh_cookie(response: Response, settings: AuthSettings) -> Response:
    response.delete_cookie(
        settings.cookie_name,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="Strict",
    )
    return response


def set_state_cookie(response: Response, state: str, settings: AuthSettings) -> Response:
    # Lax: the callback arrives as a top-level navigation from github.com
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="Lax",
    )
    return response


def clear_state_cookie(response: Response, settings: AuthSettings) -> Response:
    response.delete_cookie(
        OAUTH_STATE_COOKIE, path="/", secure=settings.cookie_secure, httponly=True, samesite="Lax"
    )
    return response
