"""Unit tests for auth/sessions.py -- session lifecycle over a real in-memory store.

Covers:
- create_session() token shape, expiry, metadata, and foreign key propagation
- find_by_token() returns active records (expired or not) with the user loaded
- validate_session() lazy expiry: first read deactivates, second read is a no-op
- invalidate_session() / invalidate_all_sessions_for_user() idempotence
- delete_session() / delete_expired_sessions() physical removal
- refresh_session() extends to now + TTL; unknown token performs no write
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.sessions import SessionManager

HEX_DIGITS = set("0123456789abcdef")


def _expire(session_store, session, days_ago: int = 1) -> None:
    """Move a session's expires_at into the past without touching is_active."""
    session_store.update_expiry(session.id, datetime.now(timezone.utc) - timedelta(days=days_ago))


# ---------------------------------------------------------------------------
# create_session
# ---------------------------------------------------------------------------


class TestCreateSession:
    def test_token_is_64_hex_chars(self, session_manager, alice) -> None:
        session = session_manager.create_session(alice.id)
        assert len(session.token) == 64
        assert set(session.token) <= HEX_DIGITS

    def test_tokens_are_unique(self, session_manager, alice) -> None:
        tokens = {session_manager.create_session(alice.id).token for _ in range(20)}
        assert len(tokens) == 20

    def test_new_session_is_active_with_seven_day_expiry(self, session_manager, session_store, alice) -> None:
        before = datetime.now(timezone.utc)
        session = session_manager.create_session(alice.id, user_agent="Mozilla/5.0", ip_address="192.168.1.1")
        after = datetime.now(timezone.utc)

        assert session.is_active is True
        assert before + timedelta(days=7) <= session.expires_at <= after + timedelta(days=7)

        stored = session_store.get_by_token(session.token)
        assert stored is not None
        assert stored.id == session.id
        assert stored.user_id == alice.id
        assert stored.user_agent == "Mozilla/5.0"
        assert stored.ip_address == "192.168.1.1"
        assert stored.is_active is True
        assert stored.expires_at == session.expires_at

    def test_optional_metadata_defaults_to_none(self, session_manager, session_store, alice) -> None:
        session = session_manager.create_session(alice.id)
        stored = session_store.get_by_token(session.token)
        assert stored.user_agent is None
        assert stored.ip_address is None

    def test_ttl_comes_from_constructor(self, session_store, alice) -> None:
        manager = SessionManager(session_store, expires_in_days=1)
        before = datetime.now(timezone.utc)
        session = manager.create_session(alice.id)
        assert session.expires_at - before < timedelta(days=1, seconds=5)
        assert session.expires_at - before >= timedelta(days=1)

    def test_unknown_user_propagates_store_error(self, session_manager) -> None:
        with pytest.raises(IntegrityError):
            session_manager.create_session("no-such-user")


# ---------------------------------------------------------------------------
# find_by_token
# ---------------------------------------------------------------------------


class TestFindByToken:
    def test_returns_session_with_user(self, session_manager, alice) -> None:
        created = session_manager.create_session(alice.id)
        found = session_manager.find_by_token(created.token)
        assert found is not None
        assert found.id == created.id
        assert found.user is not None
        assert found.user.username == "alice"

    def test_unknown_token_returns_none(self, session_manager) -> None:
        assert session_manager.find_by_token("0" * 64) is None

    def test_inactive_session_not_returned(self, session_manager, alice) -> None:
        created = session_manager.create_session(alice.id)
        session_manager.invalidate_session(created.token)
        assert session_manager.find_by_token(created.token) is None

    def test_expired_but_active_session_is_returned(self, session_manager, session_store, alice) -> None:
        created = session_manager.create_session(alice.id)
        _expire(session_store, created)
        found = session_manager.find_by_token(created.token)
        assert found is not None
        assert found.is_active is True


# ---------------------------------------------------------------------------
# validate_session
# ---------------------------------------------------------------------------


class TestValidateSession:
    def test_valid_session_returned_unchanged(self, session_manager, session_store, alice) -> None:
        created = session_manager.create_session(alice.id)
        before = session_store.get_by_token(created.token)

        result = session_manager.validate_session(created.token)

        assert result is not None
        assert result.id == created.id
        assert result.expires_at == created.expires_at
        after = session_store.get_by_token(created.token)
        assert after.is_active is True
        assert after.updated_at == before.updated_at

    def test_unknown_token_returns_none(self, session_manager) -> None:
        assert session_manager.validate_session("missing") is None

    def test_expired_session_deactivated_on_first_read(self, session_manager, session_store, alice) -> None:
        created = session_manager.create_session(alice.id)
        _expire(session_store, created)

        assert session_manager.validate_session(created.token) is None
        first = session_store.get_by_token(created.token)
        assert first.is_active is False

        # Second read: still rejected, record not touched again.
        assert session_manager.validate_session(created.token) is None
        second = session_store.get_by_token(created.token)
        assert second.is_active is False
        assert second.updated_at == first.updated_at

    def test_session_validated_eight_days_later_is_rejected(self, session_manager, session_store, alice, monkeypatch) -> None:
        """Created at T0 with a 7-day TTL, validated at T0 + 8 days."""
        created = session_manager.create_session(alice.id)
        t0 = created.created_at
        monkeypatch.setattr("auth.sessions.utcnow", lambda: t0 + timedelta(days=8))

        assert session_manager.validate_session(created.token) is None
        assert session_store.get_by_token(created.token).is_active is False

    def test_session_validated_six_days_later_is_accepted(self, session_manager, alice, monkeypatch) -> None:
        created = session_manager.create_session(alice.id)
        t0 = created.created_at
        monkeypatch.setattr("auth.sessions.utcnow", lambda: t0 + timedelta(days=6))

        assert session_manager.validate_session(created.token) is not None

    def test_session_is_still_valid_at_the_exact_expiry_instant(self, session_manager, session_store, alice, monkeypatch) -> None:
        created = session_manager.create_session(alice.id)
        monkeypatch.setattr("auth.sessions.utcnow", lambda: created.expires_at)

        assert session_manager.validate_session(created.token) is not None
        assert session_store.get_by_token(created.token).is_active is True

    def test_session_one_microsecond_past_expiry_is_rejected(self, session_manager, alice, monkeypatch) -> None:
        created = session_manager.create_session(alice.id)
        monkeypatch.setattr("auth.sessions.utcnow", lambda: created.expires_at + timedelta(microseconds=1))

        assert session_manager.validate_session(created.token) is None


# ---------------------------------------------------------------------------
# invalidation
# ---------------------------------------------------------------------------


class TestInvalidation:
    def test_invalidate_session_is_idempotent(self, session_manager, session_store, alice) -> None:
        created = session_manager.create_session(alice.id)

        session_manager.invalidate_session(created.token)
        first = session_store.get_by_token(created.token)
        assert first.is_active is False

        session_manager.invalidate_session(created.token)
        second = session_store.get_by_token(created.token)
        assert second.is_active is False
        assert second.updated_at == first.updated_at

    def test_invalidate_unknown_token_is_noop(self, session_manager) -> None:
        session_manager.invalidate_session("does-not-exist")

    def test_invalidate_only_touches_matching_token(self, session_manager, session_store, alice) -> None:
        a = session_manager.create_session(alice.id)
        b = session_manager.create_session(alice.id)
        session_manager.invalidate_session(a.token)
        assert session_store.get_by_token(a.token).is_active is False
        assert session_store.get_by_token(b.token).is_active is True

    def test_invalidate_all_for_user(self, session_manager, session_store, alice, bob) -> None:
        alice_sessions = [session_manager.create_session(alice.id) for _ in range(3)]
        bob_session = session_manager.create_session(bob.id)

        session_manager.invalidate_all_sessions_for_user(alice.id)

        assert all(session_store.get_by_token(s.token).is_active is False for s in alice_sessions)
        assert session_store.get_by_token(bob_session.token).is_active is True

        # Repeat on already inactive targets: no error, nothing changes.
        stamps = [session_store.get_by_token(s.token).updated_at for s in alice_sessions]
        session_manager.invalidate_all_sessions_for_user(alice.id)
        assert [session_store.get_by_token(s.token).updated_at for s in alice_sessions] == stamps

    def test_invalidate_all_for_user_without_sessions(self, session_manager, bob) -> None:
        session_manager.invalidate_all_sessions_for_user(bob.id)


# ---------------------------------------------------------------------------
# deletion
# ---------------------------------------------------------------------------


class TestDeletion:
    def test_delete_session_removes_record(self, session_manager, session_store, alice) -> None:
        created = session_manager.create_session(alice.id)
        session_manager.delete_session(created.token)
        assert session_store.get_by_token(created.token) is None

    def test_delete_unknown_session_is_noop(self, session_manager) -> None:
        session_manager.delete_session("nope")

    def test_delete_expired_sessions(self, session_manager, session_store, alice) -> None:
        live = session_manager.create_session(alice.id)
        expired_active = session_manager.create_session(alice.id)
        expired_inactive = session_manager.create_session(alice.id)
        inactive_live = session_manager.create_session(alice.id)
        _expire(session_store, expired_active)
        _expire(session_store, expired_inactive)
        session_manager.invalidate_session(expired_inactive.token)
        session_manager.invalidate_session(inactive_live.token)

        assert session_manager.delete_expired_sessions() == 2

        assert session_store.get_by_token(live.token) is not None
        assert session_store.get_by_token(inactive_live.token) is not None
        assert session_store.get_by_token(expired_active.token) is None
        assert session_store.get_by_token(expired_inactive.token) is None

    def test_delete_expired_sessions_with_nothing_expired(self, session_manager, alice) -> None:
        session_manager.create_session(alice.id)
        assert session_manager.delete_expired_sessions() == 0


# ---------------------------------------------------------------------------
# refresh_session
# ---------------------------------------------------------------------------


class TestRefreshSession:
    def test_refresh_sets_expiry_to_now_plus_ttl(self, session_manager, session_store, alice) -> None:
        created = session_manager.create_session(alice.id)
        session_store.update_expiry(created.id, datetime.now(timezone.utc) + timedelta(hours=1))

        before = datetime.now(timezone.utc)
        refreshed = session_manager.refresh_session(created.token)
        after = datetime.now(timezone.utc)

        assert refreshed is not None
        assert refreshed.id == created.id
        assert refreshed.token == created.token
        assert before + timedelta(days=7) <= refreshed.expires_at <= after + timedelta(days=7)
        assert session_store.get_by_token(created.token).expires_at == refreshed.expires_at

    def test_refresh_unknown_token_returns_none_without_write(self, session_manager, session_store, monkeypatch) -> None:
        calls = []
        monkeypatch.setattr(session_store, "update_expiry", lambda *a, **kw: calls.append(a))

        assert session_manager.refresh_session("unknown") is None
        assert calls == []

    def test_refresh_inactive_session_returns_none(self, session_manager, alice) -> None:
        created = session_manager.create_session(alice.id)
        session_manager.invalidate_session(created.token)
        assert session_manager.refresh_session(created.token) is None

    def test_refresh_extends_expired_but_active_session(self, session_manager, session_store, alice) -> None:
        """Refresh does not check expiry: a not-yet-deactivated expired session is extended."""
        created = session_manager.create_session(alice.id)
        _expire(session_store, created)

        refreshed = session_manager.refresh_session(created.token)

        assert refreshed is not None
        assert refreshed.expires_at > datetime.now(timezone.utc)
        assert session_manager.validate_session(created.token) is not None

    def test_refresh_racing_a_sign_out_returns_none(self, session_manager, session_store, alice, monkeypatch) -> None:
        """The session is signed out after the lookup but before the expiry update."""
        created = session_manager.create_session(alice.id)
        snapshot = session_manager.find_by_token(created.token)
        session_manager.invalidate_session(created.token)
        monkeypatch.setattr(session_manager, "find_by_token", lambda token: snapshot)

        assert session_manager.refresh_session(created.token) is None

        stored = session_store.get_by_token(created.token)
        assert stored.is_active is False
        assert stored.expires_at == created.expires_at
