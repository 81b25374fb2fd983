"""
Account flows that end in a session: signup, password signin and GitHub signin.

Signin never reveals which check failed; every rejection is Unauthorized and
the concrete cause goes to the log only.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Tuple

from models.account import GITHUB
from models.errors import ConstraintViolation, StorageError
from models.user import User
from services.errors import Conflict, DatabaseError, InternalServerError, Unauthorized
from services.sessions import SessionIssuer, SessionPair
from utils.security import HashingError, PasswordHasher

logger = logging.getLogger(__name__)

NOREPLY_DOMAIN = "users.noreply.github.com"
MAX_NAME_ATTEMPTS = 20


class PrincipalStore(Protocol):
    def get(self, user_id: str) -> Optional[User]: ...

    def find_by_email(self, email: str) -> Optional[User]: ...

    def email_taken(self, email: str) -> bool: ...

    def name_taken(self, name: str) -> bool: ...

    def create(self, name: str, email: str, password_hash: Optional[str],
               email_verified: bool = False) -> User: ...

    def find_by_external_login(self, provider: str, login: str) -> Optional[User]: ...

    def create_external(self, provider: str, login: str, name: str, email: str) -> User: ...


class AccountService:
    def __init__(self, users: PrincipalStore, issuer: SessionIssuer, hasher: PasswordHasher):
        self.users = users
        self.issuer = issuer
        self.hasher = hasher

    def signup(self, name: str, email: str, password: str) -> User:
        """Create an unverified principal. No session is issued."""
        logger.info("Processing signup request for user %s", name)
        try:
            if self.users.email_taken(email):
                logger.info("Signup attempt with existing email")
                raise Conflict("Email address is already registered")
            if self.users.name_taken(name):
                logger.info("Signup attempt with existing username: %s", name)
                raise Conflict("Username is already taken")
        except StorageError as exc:
            logger.error("Database query failed while checking availability: %s", exc)
            raise DatabaseError("Failed to verify email availability", reason=str(exc)) from exc

        try:
            password_hash = self.hasher.hash(password)
        except HashingError as exc:
            logger.error("Password hashing failed: %s", exc)
            raise InternalServerError("Failed to process password", reason=str(exc)) from exc

        try:
            user = self.users.create(name, email, password_hash, email_verified=False)
        except ConstraintViolation as exc:
            # lost a race against a concurrent signup with the same email or name
            logger.info("Unique violation while creating user %s", name)
            raise Conflict("Email or username already exists", reason=str(exc)) from exc
        except StorageError as exc:
            logger.error("Failed to create user in database: %s", exc)
            raise DatabaseError("Failed to create user account", reason=str(exc)) from exc

        logger.info("Successfully created user account: %s", user.id)
        return user

    def signin(self, email: str, password: str,
               presented_refresh: Optional[str] = None) -> Tuple[User, SessionPair]:
        """Check credentials and the verification gate, then issue a session."""
        try:
            user = self.users.find_by_email(email)
        except StorageError as exc:
            logger.error("Database query failed while finding user: %s", exc)
            raise DatabaseError("Failed to verify user credentials", reason=str(exc)) from exc
        if user is None:
            logger.info("Sign in attempt with non-existent email")
            raise Unauthorized("unknown email")

        if not user.password_hash:
            logger.info("Password sign in attempt for OAuth-only user: %s", user.id)
            raise Unauthorized("no password set")
        try:
            valid = self.hasher.verify(password, user.password_hash)
        except HashingError as exc:
            logger.error("Password verification failed for user %s: %s", user.id, exc)
            raise Unauthorized("password verification error") from exc
        if not valid:
            logger.info("Invalid password attempt for user: %s", user.id)
            raise Unauthorized("wrong password")

        if not user.email_verified:
            logger.info("Sign in attempt with unverified email for user: %s", user.id)
            raise Unauthorized("email not verified")

        self.issuer.release_presented(presented_refresh, user.id)
        pair = self.issuer.issue(user.id)
        logger.info("User %s successfully signed in", user.id)
        return user, pair

    def oauth_signin(self, login: str) -> Tuple[User, SessionPair]:
        """Resolve (or create) the principal linked to a GitHub login and issue a session."""
        if not login:
            raise Unauthorized("empty external login")
        try:
            user = self.users.find_by_external_login(GITHUB, login)
            if user is None:
                user = self._create_external(login)
        except StorageError as exc:
            logger.error("Failed to resolve GitHub login %s: %s", login, exc)
            raise DatabaseError("Failed to resolve external account", reason=str(exc)) from exc

        pair = self.issuer.issue(user.id)
        logger.info("User %s signed in with GitHub", user.id)
        return user, pair

    def _create_external(self, login: str) -> User:
        email = f"{login}@{NOREPLY_DOMAIN}"
        if self.users.email_taken(email):
            raise Conflict("Email address is already registered", reason=f"{email} already linked elsewhere")
        name = self._free_name(login)
        user = self.users.create_external(GITHUB, login, name, email)
        logger.info("Created user %s for GitHub login %s", user.id, login)
        return user

    def _free_name(self, login: str) -> str:
        base = login[:44]
        if not self.users.name_taken(base):
            return base
        for n in range(2, MAX_NAME_ATTEMPTS + 2):
            candidate = f"{base}-{n}"
            if not self.users.name_taken(candidate):
                return candidate
        raise Conflict("Username is already taken", reason=f"no free name derived from {login}")
