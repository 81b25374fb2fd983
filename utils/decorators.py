from __future__ import annotations
from functools import wraps
import logging

from flask import request, g

from api.deps import components, user_store
from services.errors import Unauthorized
from utils.tokens import TokenError, TokenKind

logger = logging.getLogger(__name__)


def jwt_required():
    """Require a valid access token in the Authorization header.

    Sets g.current_user and g.current_token_claims; every failure is Unauthorized.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                raise Unauthorized("missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()

            c = components()
            try:
                claims = c.codec.verify(TokenKind.ACCESS, token, c.clock())
            except TokenError as exc:
                logger.info("Rejected access token (%s)", type(exc).__name__)
                raise Unauthorized(f"access token rejected: {type(exc).__name__}") from exc

            user = user_store().get(claims.subject)
            if user is None:
                raise Unauthorized("access token subject not found")
            g.current_user = user
            g.current_token_claims = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator
