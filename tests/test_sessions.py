"""Unit tests for session issuance, refresh and termination.

All tests run against the in-memory refresh token store.
"""
import threading
from datetime import timedelta

import pytest

from models.errors import StorageError
from services.errors import DatabaseError, InternalServerError, Unauthorized
from services.sessions import SessionIssuer, SessionRefresher
from tests.fakes import T0, MemoryRefreshTokenStore
from utils.tokens import TokenKind


class TestIssuance:
    def test_issue_persists_refresh_record(self, issuer, token_store, codec):
        pair = issuer.issue("user-1")

        record = token_store.find_by_value(pair.refresh_token)
        assert record is not None
        assert record.user_id == "user-1"
        assert codec.verify(TokenKind.ACCESS, pair.access_token, T0).subject == "user-1"

    def test_record_expiry_matches_claim_expiry(self, issuer, token_store, codec):
        pair = issuer.issue("user-1")

        record = token_store.find_by_value(pair.refresh_token)
        claims = codec.verify(TokenKind.REFRESH, pair.refresh_token, T0)
        assert record.expires_at == claims.expires_at
        assert record.expires_at == pair.refresh_expires_at == T0 + timedelta(days=7)

    def test_sub_second_clock_still_agrees(self, codec, token_store, settings, clock):
        clock.now = T0 + timedelta(microseconds=987654)
        issuer = SessionIssuer(codec, token_store, settings, clock=clock)

        pair = issuer.issue("user-1")

        record = token_store.find_by_value(pair.refresh_token)
        claims = codec.verify(TokenKind.REFRESH, pair.refresh_token, clock.now)
        assert record.expires_at == claims.expires_at
        assert record.created_at == claims.issued_at == T0

    def test_expires_in_is_access_lifetime(self, issuer):
        assert issuer.issue("user-1").expires_in == 3600

    def test_store_diverging_from_codec_is_rejected(self, codec, settings, clock):
        class ShortLivedStore(MemoryRefreshTokenStore):
            def create(self, value, principal_id, ttl_days, now):
                return super().create(value, principal_id, ttl_days - 1, now)

        store = ShortLivedStore()
        issuer = SessionIssuer(codec, store, settings, clock=clock)

        with pytest.raises(InternalServerError):
            issuer.issue("user-1")
        assert store.records == {}

    def test_storage_failure_is_database_error(self, codec, settings, clock):
        class BrokenStore(MemoryRefreshTokenStore):
            def create(self, *args):
                raise StorageError("create refresh token: disk full")

        issuer = SessionIssuer(codec, BrokenStore(), settings, clock=clock)

        with pytest.raises(DatabaseError):
            issuer.issue("user-1")


class TestReleasePresented:
    def test_own_token_is_replaced(self, issuer, token_store):
        old = issuer.issue("user-1")
        other = issuer.issue("user-1")

        issuer.release_presented(old.refresh_token, "user-1")

        assert not token_store.exists(old.refresh_token)
        assert token_store.exists(other.refresh_token)

    def test_foreign_token_wipes_signing_in_principal(self, issuer, token_store):
        mine_1 = issuer.issue("user-1")
        mine_2 = issuer.issue("user-1")
        theirs = issuer.issue("user-2")

        issuer.release_presented(theirs.refresh_token, "user-1")

        assert token_store.count_for_principal("user-1") == 0
        assert not token_store.exists(mine_1.refresh_token)
        assert not token_store.exists(mine_2.refresh_token)
        # the other principal's session is left alone
        assert token_store.exists(theirs.refresh_token)

    @pytest.mark.parametrize("presented", [None, "", "unknown-token"])
    def test_nothing_to_release(self, issuer, token_store, presented):
        kept = issuer.issue("user-1")

        issuer.release_presented(presented, "user-1")

        assert token_store.exists(kept.refresh_token)


class TestRefresh:
    def test_rotates_pair(self, issuer, refresher, token_store, codec):
        first = issuer.issue("user-1")

        second = refresher.refresh(first.refresh_token)

        assert second.refresh_token != first.refresh_token
        assert not token_store.exists(first.refresh_token)
        assert token_store.exists(second.refresh_token)
        assert codec.verify(TokenKind.ACCESS, second.access_token, T0).subject == "user-1"

    def test_refresh_token_is_single_use(self, issuer, refresher):
        first = issuer.issue("user-1")

        refresher.refresh(first.refresh_token)
        with pytest.raises(Unauthorized):
            refresher.refresh(first.refresh_token)

    def test_rotated_token_keeps_working(self, issuer, refresher, clock):
        pair = issuer.issue("user-1")
        for _ in range(3):
            clock.advance(hours=2)
            pair = refresher.refresh(pair.refresh_token)

        assert pair.issued_at == T0 + timedelta(hours=6)

    @pytest.mark.parametrize("value", [None, ""])
    def test_absent_token(self, refresher, value):
        with pytest.raises(Unauthorized):
            refresher.refresh(value)

    def test_malformed_token(self, refresher):
        with pytest.raises(Unauthorized):
            refresher.refresh("garbage")

    def test_access_token_cannot_refresh(self, issuer, refresher):
        pair = issuer.issue("user-1")

        with pytest.raises(Unauthorized):
            refresher.refresh(pair.access_token)

    def test_codec_expiry_rejects(self, issuer, refresher, token_store, clock):
        pair = issuer.issue("user-1")
        clock.advance(days=7, seconds=1)

        with pytest.raises(Unauthorized):
            refresher.refresh(pair.refresh_token)

    def test_signed_but_unknown_token(self, refresher, codec):
        orphan = codec.mint(TokenKind.REFRESH, "user-1", T0)

        with pytest.raises(Unauthorized):
            refresher.refresh(orphan)

    def test_subject_mismatch_deletes_record(self, refresher, codec, token_store):
        value = codec.mint(TokenKind.REFRESH, "user-1", T0)
        token_store.create(value, "user-2", 7, T0)

        with pytest.raises(Unauthorized):
            refresher.refresh(value)
        assert not token_store.exists(value)

    def test_store_expiry_rejects_and_deletes(self, refresher, codec, token_store, clock):
        # claims still valid for 7 days, the row only for one
        value = codec.mint(TokenKind.REFRESH, "user-1", T0)
        token_store.create(value, "user-1", 1, T0)
        clock.advance(days=2)

        with pytest.raises(Unauthorized):
            refresher.refresh(value)
        assert not token_store.exists(value)

    def test_cleanup_failure_keeps_unauthorized(self, refresher, codec, token_store):
        value = codec.mint(TokenKind.REFRESH, "user-1", T0)
        token_store.create(value, "user-2", 7, T0)
        token_store.fail_deletes = True

        with pytest.raises(Unauthorized):
            refresher.refresh(value)

    def test_unauthorized_message_is_generic(self, refresher, codec, token_store, clock):
        value = codec.mint(TokenKind.REFRESH, "user-1", T0)
        token_store.create(value, "user-1", 1, T0)
        clock.advance(days=2)

        messages = set()
        for bad in (None, "garbage", value):
            with pytest.raises(Unauthorized) as info:
                refresher.refresh(bad)
            messages.add(info.value.public_message)
        assert messages == {"Authentication failed"}


class TestConcurrentRefresh:
    def test_double_refresh_has_one_winner(self, codec, settings, clock):
        class RacingStore(MemoryRefreshTokenStore):
            """Holds both requests at the delete so they race on the same row."""
            def __init__(self):
                super().__init__()
                self.barrier = threading.Barrier(2, timeout=5)
                self.racing_value = None

            def delete_by_value(self, value):
                if value == self.racing_value:
                    self.barrier.wait()
                return super().delete_by_value(value)

        store = RacingStore()
        issuer = SessionIssuer(codec, store, settings, clock=clock)
        refresher = SessionRefresher(codec, store, issuer, clock=clock)
        stale = issuer.issue("user-1")
        store.racing_value = stale.refresh_token

        results, errors = [], []

        def worker():
            try:
                results.append(refresher.refresh(stale.refresh_token))
            except Unauthorized as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(results) == 1
        assert len(errors) == 1
        assert store.count_for_principal("user-1") == 1
        assert store.exists(results[0].refresh_token)


class TestTerminate:
    def test_deletes_record(self, issuer, terminator, token_store):
        pair = issuer.issue("user-1")

        terminator.terminate(pair.refresh_token)

        assert not token_store.exists(pair.refresh_token)

    def test_signed_out_token_cannot_refresh(self, issuer, terminator, refresher):
        pair = issuer.issue("user-1")
        terminator.terminate(pair.refresh_token)

        with pytest.raises(Unauthorized):
            refresher.refresh(pair.refresh_token)

    @pytest.mark.parametrize("value", [None, "", "not-stored"])
    def test_unknown_token_is_unauthorized(self, terminator, value):
        with pytest.raises(Unauthorized):
            terminator.terminate(value)

    def test_only_presented_session_ends(self, issuer, terminator, token_store):
        laptop = issuer.issue("user-1")
        phone = issuer.issue("user-1")

        terminator.terminate(laptop.refresh_token)

        assert token_store.exists(phone.refresh_token)
