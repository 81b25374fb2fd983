"""
GitHub OAuth client: authorize URL, code exchange and identity lookup.

Only the login name is used; it becomes the external account id that is
mapped to a principal by AccountService.oauth_signin().
"""
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

_GH_AUTH_URL = "https://github.com/login/oauth/authorize"
_GH_TOKEN_URL = "https://github.com/login/oauth/access_token"
_GH_USER_URL = "https://api.github.com/user"
USER_AGENT = "tsumi/1.0"
SCOPE = "read:user"


class OAuthError(Exception):
    """Base class for GitHub OAuth failures. Details are for logs only."""


class OAuthNetworkError(OAuthError):
    pass


class OAuthInvalidResponse(OAuthError):
    pass


class OAuthProviderError(OAuthError):
    pass


class GitHubOAuthClient:
    def __init__(self, client_id: str, client_secret: str,
                 http: Optional[httpx.Client] = None, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self._http = http or httpx.Client(timeout=timeout, follow_redirects=False)

    def authorize_url(self, state: str) -> str:
        params = {"client_id": self.client_id, "scope": SCOPE, "state": state}
        return f"{_GH_AUTH_URL}?{urlencode(params)}"

    def _headers(self, token: Optional[str] = None) -> dict:
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def exchange_code_for_token(self, code: str) -> str:
        """Trade the callback code for a GitHub access token."""
        try:
            resp = self._http.post(
                _GH_TOKEN_URL,
                json={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise OAuthNetworkError(f"token exchange failed: {exc}") from exc

        if resp.status_code != 200:
            raise OAuthInvalidResponse(f"Token exchange failed with status: {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise OAuthInvalidResponse(f"token response is not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise OAuthInvalidResponse("token response is not an object")
        if "error" in data:
            # GitHub answers 200 with an error body for bad or reused codes
            raise OAuthProviderError(data.get("error_description") or data["error"])
        token = data.get("access_token")
        if not token:
            raise OAuthInvalidResponse("token response has no access_token")
        return token

    def fetch_identity(self, access_token: str) -> str:
        """Return the GitHub login for access_token."""
        try:
            resp = self._http.get(_GH_USER_URL, headers=self._headers(access_token))
        except httpx.HTTPError as exc:
            raise OAuthNetworkError(f"user lookup failed: {exc}") from exc

        if resp.status_code != 200:
            raise OAuthInvalidResponse(
                f"User API failed with status {resp.status_code}: {resp.text[:200]}"
            )
        try:
            login = resp.json().get("login")
        except (ValueError, AttributeError) as exc:
            raise OAuthInvalidResponse(f"Failed to parse GitHub user response: {exc}") from exc
        if not login or not isinstance(login, str):
            raise OAuthInvalidResponse("GitHub user response has no login")
        return login

    def close(self):
        self._http.close()
