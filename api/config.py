"""
Environment-aware configuration.
Values are read from the environment (and .env if present) into config
classes; create_app() then turns the auth-related keys into an immutable
utils.settings.AuthSettings and validates them before serving traffic.
"""
import os
from dotenv import load_dotenv

from utils.settings import DEV_ACCESS_SECRET, DEV_REFRESH_SECRET

load_dotenv()  # Read .env if present


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///tsumi.db")
    SQL_ECHO = _env_bool("SQL_ECHO", "false")

    # Access tokens: lifetime in hours. Refresh tokens: lifetime in days,
    # shared by the JWT exp claim, the stored row and the cookie max-age.
    ACCESS_SECRET = os.getenv("ACCESS_SECRET", DEV_ACCESS_SECRET)
    ACCESS_EXPIRES = os.getenv("ACCESS_EXPIRES", "1")
    REFRESH_SECRET = os.getenv("REFRESH_SECRET", DEV_REFRESH_SECRET)
    REFRESH_EXPIRES = os.getenv("REFRESH_EXPIRES", "7")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    COOKIE_NAME = os.getenv("COOKIE_NAME", "refresh_token")
    COOKIE_SECURE = _env_bool("COOKIE_SECURE", "true")

    GITHUB_OAUTH_CLIENT_ID = os.getenv("GITHUB_OAUTH_CLIENT_ID", "")
    GITHUB_OAUTH_CLIENT_SECRET = os.getenv("GITHUB_OAUTH_CLIENT_SECRET", "")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQL_ECHO = _env_bool("SQL_ECHO", "true")


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    DATABASE_URL = "sqlite://"
    SQL_ECHO = False
    ACCESS_SECRET = "test-access-secret-0123456789abcdef0123"
    REFRESH_SECRET = "test-refresh-secret-0123456789abcdef012"
    ACCESS_EXPIRES = "1"
    REFRESH_EXPIRES = "7"
    GITHUB_OAUTH_CLIENT_ID = "test-client-id"
    GITHUB_OAUTH_CLIENT_SECRET = "test-client-secret"


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "prod"


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
