import os
import sys
from pathlib import Path

os.environ.setdefault("APP_ENV", "test")

import httpx  # noqa: E402
import pytest  # noqa: E402
from argon2 import PasswordHasher as Argon2Hasher  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from api import create_app  # noqa: E402
from api.deps import AuthComponents  # noqa: E402
from models import storage  # noqa: E402
from models.base_model import Base  # noqa: E402
from services.accounts import AccountService  # noqa: E402
from services.github import GitHubOAuthClient  # noqa: E402
from services.sessions import SessionIssuer, SessionRefresher, SessionTerminator  # noqa: E402
from tests.fakes import T0, FrozenClock, MemoryRefreshTokenStore, MemoryUserStore, github_transport  # noqa: E402
from utils.security import PasswordHasher  # noqa: E402
from utils.settings import AuthSettings  # noqa: E402
from utils.tokens import TokenCodec  # noqa: E402


@pytest.fixture
def settings():
    return AuthSettings(
        access_secret="access-secret-for-tests-0123456789abcdef",
        refresh_secret="refresh-secret-for-tests-0123456789abcde",
        access_ttl_hours=1,
        refresh_ttl_days=7,
        github_client_id="gh-client",
        github_client_secret="gh-secret",
    )


@pytest.fixture
def clock():
    return FrozenClock(T0)


@pytest.fixture
def codec(settings):
    return TokenCodec(settings)


@pytest.fixture
def hasher():
    # cheap parameters; the algorithm is the same
    return PasswordHasher(Argon2Hasher(time_cost=1, memory_cost=8, parallelism=1))


@pytest.fixture
def token_store():
    return MemoryRefreshTokenStore()


@pytest.fixture
def user_store():
    return MemoryUserStore()


@pytest.fixture
def issuer(codec, token_store, settings, clock):
    return SessionIssuer(codec, token_store, settings, clock=clock)


@pytest.fixture
def refresher(codec, token_store, issuer, clock):
    return SessionRefresher(codec, token_store, issuer, clock=clock)


@pytest.fixture
def terminator(token_store):
    return SessionTerminator(token_store)


@pytest.fixture
def accounts(user_store, issuer, hasher):
    return AccountService(user_store, issuer, hasher)


@pytest.fixture
def verified_user(user_store, hasher):
    return user_store.create("alice", "a@x.com", hasher.hash("longenough1"), email_verified=True)


@pytest.fixture
def db_session():
    """A plain SQLAlchemy session on a private in-memory SQLite database."""
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )

    @event.listens_for(engine, "connect")
    def _foreign_keys(dbapi_connection, connection_record):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, expire_on_commit=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def github_client():
    return GitHubOAuthClient("gh-client", "gh-secret", http=httpx.Client(transport=github_transport()))


@pytest.fixture
def app(settings, codec, hasher, clock, github_client):
    components = AuthComponents(
        settings=settings,
        codec=codec,
        hasher=hasher,
        clock=clock,
        github=github_client,
    )
    app = create_app("testing", components=components)
    yield app
    storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
