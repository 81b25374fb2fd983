"""
Authentication blueprint:
- POST /api/v1/auth/signup
- POST /api/v1/auth/signin
- POST /api/v1/auth/refresh
- POST /api/v1/auth/signout
- GET  /api/v1/auth/github
- GET  /api/v1/auth/github/callback

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs signed with HS256)
- Stores refresh tokens in the DB so they can be rotated (single use) and revoked
- The access token is returned in the JSON body, the refresh token only as an HttpOnly cookie
"""
from __future__ import annotations

import hmac
import logging

from flask import Blueprint, request, jsonify, redirect

from api.deps import account_service, components, session_refresher, session_terminator
from api.errors import auth_error_response
from models.schemas.user import SignUpSchema, SignInSchema, UserOutSchema
from services.errors import AuthError, InternalServerError
from services.github import OAuthError
from services.sessions import SessionPair
from utils.cookies import (
    OAUTH_STATE_COOKIE,
    clear_refresh_cookie,
    clear_state_cookie,
    read_refresh_cookie,
    set_refresh_cookie,
    set_state_cookie,
)
from utils.security import generate_state

logger = logging.getLogger(__name__)

OAUTH_FAILURE_URL = "/login?error=oauth_failed"

bp = Blueprint("auth", __name__)

signup_schema = SignUpSchema()
signin_schema = SignInSchema()
user_out_schema = UserOutSchema()


def _token_body(pair: SessionPair) -> dict:
    return {
        "access_token": pair.access_token,
        "token_type": "bearer",
        "expires_in": pair.expires_in,
    }


def _now_iso() -> str:
    return components().clock().isoformat()


@bp.post("/signup")
def signup():
    """
    Register a new user (email must be verified before signing in).
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created
      409:
        description: Email or username already registered
      422:
        description: Validation error
    """
    data = signup_schema.load(request.get_json(silent=True) or {})
    user = account_service().signup(data["name"], data["email"], data["password"])
    return jsonify({"data": user_out_schema.dump(user)}), 201


@bp.post("/signin")
def signin():
    """
    Sign in: returns an access token and sets the refresh token cookie
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns access token)
      401:
        description: Unauthorized
    """
    data = signin_schema.load(request.get_json(silent=True) or {})
    settings = components().settings
    user, pair = account_service().signin(
        data["email"], data["password"], presented_refresh=read_refresh_cookie(settings)
    )
    body = {"data": user_out_schema.dump(user), "signed_in_at": _now_iso(), **_token_body(pair)}
    return set_refresh_cookie(jsonify(body), pair.refresh_token, settings), 200


@bp.post("/refresh")
def refresh():
    """
    Rotate the refresh token cookie and return a new access token
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (returns access token, replaces the cookie)
      401:
        description: Unauthorized
    """
    settings = components().settings
    pair = session_refresher().refresh(read_refresh_cookie(settings))
    body = {"message": "Tokens refreshed successfully", "refreshed_at": _now_iso(), **_token_body(pair)}
    return set_refresh_cookie(jsonify(body), pair.refresh_token, settings), 200


@bp.post("/signout")
def signout():
    """
    Sign out: deletes the stored refresh token; the cookie is always cleared
    ---
    tags:
      - Auth
    responses:
      200:
        description: Signed out
      401:
        description: No active session
    """
    settings = components().settings
    try:
        session_terminator().terminate(read_refresh_cookie(settings))
    except AuthError as err:
        response, status = auth_error_response(err)
        return clear_refresh_cookie(response, settings), status
    body = {"message": "Successfully signed out", "signed_out_at": _now_iso()}
    return clear_refresh_cookie(jsonify(body), settings), 200


@bp.get("/github")
def github_start():
    """
    Redirect to GitHub's authorize page
    ---
    tags:
      - Auth
    responses:
      302:
        description: Redirect to GitHub
    """
    c = components()
    if c.github is None:
        raise InternalServerError("GitHub sign in is not configured", reason="missing GitHub OAuth credentials")
    state = generate_state()
    return set_state_cookie(redirect(c.github.authorize_url(state)), state, c.settings)


@bp.get("/github/callback")
def github_callback():
    """
    GitHub OAuth callback: signs the user in and redirects home
    ---
    tags:
      - Auth
    parameters:
      - in: query
        name: code
        type: string
      - in: query
        name: state
        type: string
    responses:
      302:
        description: Redirect to / on success, to the login page on failure
    """
    c = components()
    try:
        pair = _complete_github_signin(c)
    except (OAuthError, AuthError) as exc:
        logger.error("OAuth error: %s", exc)
        return clear_state_cookie(redirect(OAUTH_FAILURE_URL), c.settings)

    response = set_refresh_cookie(redirect("/"), pair.refresh_token, c.settings)
    logger.info("Successfully processed github oauth callback")
    return clear_state_cookie(response, c.settings)


def _complete_github_signin(c) -> SessionPair:
    if c.github is None:
        raise InternalServerError("GitHub sign in is not configured", reason="missing GitHub OAuth credentials")
    code = request.args.get("code")
    state = request.args.get("state") or ""
    expected = request.cookies.get(OAUTH_STATE_COOKIE) or ""
    if not code:
        raise OAuthError("callback without code")
    if not expected or not hmac.compare_digest(state, expected):
        raise OAuthError("CSRF validation failed")

    external_token = c.github.exchange_code_for_token(code)
    login = c.github.fetch_identity(external_token)
    _, pair = account_service().oauth_signin(login)
    return pair
