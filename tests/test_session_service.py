from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from passwordless.core.errors import ErrorCode, StorageFailure
from passwordless.core.security import session_id_from_token
from passwordless.models.session import UserSession
from passwordless.services.session_service import SessionService
from passwordless.services.user_directory import UserDirectory


@pytest.fixture
def user_id(db):
    return UserDirectory(db).find_or_create("a@example.com").user_id


@pytest.fixture
def sessions(db, clock):
    return SessionService(db, clock=clock)


class TestCreate:
    """Opening sessions."""

    def test_stores_digest_not_token(self, db, sessions, user_id, clock):
        token = sessions.create(user_id)

        row = db.get(UserSession, session_id_from_token(token))
        assert row is not None
        assert row.user_id == user_id
        assert row.expires_at == clock.now + timedelta(days=30)
        assert db.get(UserSession, token) is None

    def test_each_login_gets_its_own_session(self, db, sessions, user_id):
        first = sessions.create(user_id)
        second = sessions.create(user_id)

        assert first != second
        assert db.query(UserSession).filter(UserSession.user_id == user_id).count() == 2

    def test_storage_error_raises(self, db, sessions, user_id, monkeypatch):
        def broken_commit():
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "commit", broken_commit)

        with pytest.raises(StorageFailure):
            sessions.create(user_id)


class TestValidate:
    """Resolving tokens and sliding expiry."""

    def test_matching_token_resolves_user(self, sessions, user_id):
        token = sessions.create(user_id)

        result = sessions.validate(token)

        assert result.is_valid
        assert result.user_id == user_id
        assert result.user.email == "a@example.com"

    @pytest.mark.parametrize("other", ["", "not-a-token", "a" * 32])
    def test_other_strings_are_invalid(self, sessions, user_id, other):
        sessions.create(user_id)

        result = sessions.validate(other)

        assert not result.is_valid
        assert result.error == ErrorCode.INVALID_SESSION

    def test_far_from_expiry_is_left_alone(self, db, sessions, user_id, clock):
        token = sessions.create(user_id)
        original = clock.now + timedelta(days=30)
        clock.advance(days=1)

        result = sessions.validate(token)

        assert result.session.expires_at == original
        assert db.get(UserSession, session_id_from_token(token)).expires_at == original

    def test_inside_renewal_window_slides_forward(self, db, sessions, user_id, clock):
        token = sessions.create(user_id)
        original = clock.now + timedelta(days=30)
        clock.advance(days=16)

        result = sessions.validate(token)

        assert result.session.expires_at > original
        assert result.session.expires_at == clock.now + timedelta(days=30)
        db.expire_all()
        assert db.get(UserSession, session_id_from_token(token)).expires_at == clock.now + timedelta(days=30)

    def test_renewal_starts_exactly_at_window_edge(self, sessions, user_id, clock):
        token = sessions.create(user_id)
        clock.advance(days=15)

        result = sessions.validate(token)

        assert result.session.expires_at == clock.now + timedelta(days=30)

    def test_zero_renewal_window_never_slides(self, db, user_id, clock):
        sessions = SessionService(db, clock=clock, renewal_days=0)
        token = sessions.create(user_id)
        original = clock.now + timedelta(days=30)
        clock.advance(days=29)

        result = sessions.validate(token)

        assert result.is_valid
        assert result.session.expires_at == original

    def test_expired_session_is_purged(self, db, sessions, user_id, clock):
        token = sessions.create(user_id)
        clock.advance(days=30)

        assert not sessions.validate(token).is_valid
        assert db.get(UserSession, session_id_from_token(token)) is None

        # Still unreachable even if the clock went backwards
        clock.advance(days=-29)
        assert not sessions.validate(token).is_valid

    def test_regular_use_keeps_session_alive(self, sessions, user_id, clock):
        token = sessions.create(user_id)

        for _ in range(6):
            clock.advance(days=20)
            assert sessions.validate(token).is_valid


class TestInvalidate:
    """Revoking sessions."""

    def test_logout_removes_one_session(self, sessions, user_id):
        kept = sessions.create(user_id)
        dropped = sessions.create(user_id)

        sessions.invalidate(session_id_from_token(dropped))

        assert not sessions.validate(dropped).is_valid
        assert sessions.validate(kept).is_valid

    def test_invalidate_token_uses_digest(self, sessions, user_id):
        token = sessions.create(user_id)

        sessions.invalidate_token(token)

        assert not sessions.validate(token).is_valid

    def test_invalidate_all_revokes_every_session_of_user(self, db, sessions, user_id):
        other_user = UserDirectory(db).find_or_create("b@example.com").user_id
        tokens = [sessions.create(user_id) for _ in range(3)]
        bystander = sessions.create(other_user)

        deleted = sessions.invalidate_all(user_id)

        assert deleted == 3
        assert all(not sessions.validate(t).is_valid for t in tokens)
        assert sessions.validate(bystander).is_valid

    def test_sweep_removes_expired_sessions(self, sessions, user_id, clock):
        stale = sessions.create(user_id)
        clock.advance(days=20)
        fresh = sessions.create(user_id)
        clock.advance(days=10)

        assert sessions.sweep_expired() == 1
        assert sessions.validate(fresh).is_valid
        assert not sessions.validate(stale).is_valid
