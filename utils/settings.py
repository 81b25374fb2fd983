"""
Immutable auth settings built once at startup.

load_auth_settings() reads a mapping (Flask's app.config, or a plain dict in
tests), collects every problem it finds and raises ConfigError with the full
list, so a misconfigured process never starts accepting requests.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, List, Mapping

DEV_ACCESS_SECRET = "dev-access-secret-change-me"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"
DEV_SECRETS = {DEV_ACCESS_SECRET, DEV_REFRESH_SECRET}
SUPPORTED_ALGORITHMS = {"HS256", "HS384", "HS512"}


class ConfigError(Exception):
    def __init__(self, problems: List[str]):
        super().__init__("invalid auth configuration: " + "; ".join(problems))
        self.problems = problems


@dataclass(frozen=True)
class AuthSettings:
    access_secret: str
    refresh_secret: str
    access_ttl_hours: int
    refresh_ttl_days: int
    algorithm: str = "HS256"
    cookie_name: str = "refresh_token"
    cookie_secure: bool = True
    github_client_id: str = ""
    github_client_secret: str = ""

    @property
    def access_lifetime(self) -> timedelta:
        return timedelta(hours=self.access_ttl_hours)

    @property
    def refresh_lifetime(self) -> timedelta:
        return timedelta(days=self.refresh_ttl_days)

    @property
    def refresh_max_age(self) -> int:
        """Refresh cookie max-age in seconds."""
        return int(self.refresh_lifetime.total_seconds())

    @property
    def github_enabled(self) -> bool:
        return bool(self.github_client_id and self.github_client_secret)


def _positive_int(config: Mapping[str, Any], key: str, problems: List[str]) -> int:
    raw = config.get(key)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        problems.append(f"{key} must be an integer, got {raw!r}")
        return 0
    if value <= 0:
        problems.append(f"{key} must be positive, got {value}")
    return value


def validate_auth_config(config: Mapping[str, Any]) -> List[str]:
    """Return the list of configuration problems (empty when valid)."""
    problems: List[str] = []
    access_secret = config.get("ACCESS_SECRET") or ""
    refresh_secret = config.get("REFRESH_SECRET") or ""
    if not access_secret:
        problems.append("ACCESS_SECRET must be set")
    if not refresh_secret:
        problems.append("REFRESH_SECRET must be set")
    if access_secret and access_secret == refresh_secret:
        problems.append("ACCESS_SECRET and REFRESH_SECRET must differ")
    _positive_int(config, "ACCESS_EXPIRES", problems)
    _positive_int(config, "REFRESH_EXPIRES", problems)
    if not config.get("COOKIE_NAME"):
        problems.append("COOKIE_NAME must be set")
    if config.get("JWT_ALGORITHM", "HS256") not in SUPPORTED_ALGORITHMS:
        problems.append(f"JWT_ALGORITHM must be one of {sorted(SUPPORTED_ALGORITHMS)}")
    if str(config.get("APP_ENV", "")).lower() in ("prod", "production"):
        if access_secret in DEV_SECRETS or refresh_secret in DEV_SECRETS:
            problems.append("development token secrets are not allowed in production")
    return problems


def load_auth_settings(config: Mapping[str, Any]) -> AuthSettings:
    problems = validate_auth_config(config)
    if problems:
        raise ConfigError(problems)
    return AuthSettings(
        access_secret=config["ACCESS_SECRET"],
        refresh_secret=config["REFRESH_SECRET"],
        access_ttl_hours=int(config["ACCESS_EXPIRES"]),
        refresh_ttl_days=int(config["REFRESH_EXPIRES"]),
        algorithm=config.get("JWT_ALGORITHM", "HS256"),
        cookie_name=config["COOKIE_NAME"],
        cookie_secure=bool(config.get("COOKIE_SECURE", True)),
        github_client_id=config.get("GITHUB_OAUTH_CLIENT_ID") or "",
        github_client_secret=config.get("GITHUB_OAUTH_CLIENT_SECRET") or "",
    )
