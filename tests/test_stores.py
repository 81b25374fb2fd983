"""SQL store tests against a private in-memory SQLite database."""
from datetime import timedelta

import pytest

from models.account import GITHUB
from models.errors import ConstraintViolation, StorageError
from models.stores import RefreshTokenStore, UserStore
from tests.fakes import T0


@pytest.fixture
def users(db_session):
    return UserStore(db_session)


@pytest.fixture
def tokens(db_session):
    return RefreshTokenStore(db_session)


@pytest.fixture
def alice(users):
    return users.create("alice", "a@x.com", "hash", email_verified=True)


class TestRefreshTokenStore:
    def test_create_and_find(self, tokens, alice):
        created = tokens.create("tok-1", alice.id, 7, T0)

        found = tokens.find_by_value("tok-1")
        assert found.id == created.id
        assert found.user_id == alice.id
        assert found.expires_at == T0 + timedelta(days=7)
        assert found.created_at == T0

    def test_datetimes_come_back_aware(self, tokens, alice, db_session):
        tokens.create("tok-1", alice.id, 7, T0)
        db_session.expire_all()

        found = tokens.find_by_value("tok-1")
        assert found.expires_at.tzinfo is not None
        assert found.expires_at == T0 + timedelta(days=7)

    def test_exists(self, tokens, alice):
        tokens.create("tok-1", alice.id, 7, T0)

        assert tokens.exists("tok-1")
        assert not tokens.exists("tok-2")
        assert tokens.find_by_value("tok-2") is None

    def test_is_expired(self, tokens, alice):
        tokens.create("tok-1", alice.id, 1, T0)

        assert not tokens.is_expired("tok-1", T0)
        assert not tokens.is_expired("tok-1", T0 + timedelta(days=1))
        assert tokens.is_expired("tok-1", T0 + timedelta(days=1, seconds=1))
        assert tokens.is_expired("missing", T0)

    def test_delete_by_value_counts_rows(self, tokens, alice):
        tokens.create("tok-1", alice.id, 7, T0)

        assert tokens.delete_by_value("tok-1") == 1
        assert tokens.delete_by_value("tok-1") == 0
        assert not tokens.exists("tok-1")

    def test_delete_all_for_principal(self, tokens, users, alice):
        bob = users.create("bob", "b@x.com", "hash")
        tokens.create("a-1", alice.id, 7, T0)
        tokens.create("a-2", alice.id, 7, T0)
        tokens.create("b-1", bob.id, 7, T0)

        assert tokens.delete_all_for_principal(alice.id) == 2
        assert tokens.count_for_principal(alice.id) == 0
        assert tokens.count_for_principal(bob.id) == 1
        assert tokens.delete_all_for_principal(alice.id) == 0

    def test_duplicate_value_is_constraint_violation(self, tokens, alice):
        tokens.create("tok-1", alice.id, 7, T0)

        with pytest.raises(ConstraintViolation) as info:
            tokens.create("tok-1", alice.id, 7, T0)
        assert isinstance(info.value, StorageError)
        # the session is usable again after the rollback
        assert tokens.exists("tok-1")

    def test_unknown_principal_is_rejected(self, tokens):
        with pytest.raises(StorageError):
            tokens.create("tok-1", "no-such-user", 7, T0)


class TestUserStore:
    def test_create_and_lookup(self, users, alice):
        assert users.get(alice.id).email == "a@x.com"
        assert users.find_by_email("a@x.com").id == alice.id
        assert users.email_taken("a@x.com")
        assert users.name_taken("alice")
        assert not users.email_taken("b@x.com")

    def test_new_users_are_unverified(self, users):
        user = users.create("bob", "b@x.com", "hash")

        assert user.email_verified is False
        assert user.created_at is not None

    def test_duplicate_email(self, users, alice):
        with pytest.raises(ConstraintViolation):
            users.create("alice2", "a@x.com", "hash")

    def test_tombstoned_user_is_hidden(self, users, alice, db_session):
        alice.soft_delete(T0)
        db_session.commit()

        assert users.get(alice.id) is None
        assert users.find_by_email("a@x.com") is None
        # the address stays reserved
        assert users.email_taken("a@x.com")

    def test_external_login(self, users):
        user = users.create_external(GITHUB, "octocat", "octocat", "octocat@users.noreply.github.com")

        found = users.find_by_external_login(GITHUB, "octocat")
        assert found.id == user.id
        assert found.password_hash is None
        assert users.find_by_external_login(GITHUB, "someone-else") is None

    def test_external_login_is_unique_per_provider(self, users):
        users.create_external(GITHUB, "octocat", "octocat", "octocat@users.noreply.github.com")

        with pytest.raises(ConstraintViolation):
            users.create_external(GITHUB, "octocat", "octocat-2", "other@x.com")
