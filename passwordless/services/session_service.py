"""
Session Service
Server-side sessions with sliding expiration.

The client holds a random token; the database stores only its SHA-256 digest
as the session id, so a leaked table cannot be turned back into live tokens.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from passwordless.core.config import settings
from passwordless.core.errors import ErrorCode, StorageFailure
from passwordless.core.security import session_id_from_token
from passwordless.core.timezone import get_utc_now
from passwordless.core.tokens import new_opaque_token
from passwordless.models.session import UserSession
from passwordless.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionValidationResult:
    session: Optional[UserSession] = None
    user: Optional[User] = None
    error: Optional[ErrorCode] = None

    @property
    def is_valid(self) -> bool:
        return self.session is not None and self.user is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user is not None else None

    @classmethod
    def invalid(cls) -> "SessionValidationResult":
        return cls(error=ErrorCode.INVALID_SESSION)


class SessionService:
    """Creates, validates, slides and revokes sessions"""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = get_utc_now,
        ttl_days: Optional[int] = None,
        renewal_days: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock
        if ttl_days is None:
            ttl_days = settings.SESSION_TTL_DAYS
        if renewal_days is None:
            renewal_days = settings.SESSION_RENEWAL_DAYS
        self.ttl = timedelta(days=ttl_days)
        self.renewal_window = timedelta(days=renewal_days)

    def create(self, user_id: str) -> str:
        """
        Start a session for the user.

        Returns:
            the raw token; it is never stored and never logged
        """
        token = new_opaque_token()
        session = UserSession(
            id=session_id_from_token(token),
            user_id=user_id,
            expires_at=self.clock() + self.ttl,
        )
        try:
            self.db.add(session)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to create session for user %s: %s", user_id, str(e))
            raise StorageFailure("failed to create session") from e

        logger.info("Created session for user %s", user_id)
        return token

    def validate(self, raw_token: str) -> SessionValidationResult:
        """
        Resolve a token to its session and user.

        Expired sessions are deleted on sight. A session inside the renewal
        window is pushed out to a full TTL and committed before returning.
        Unknown and expired tokens give the same invalid result.
        """
        if not raw_token:
            return SessionValidationResult.invalid()

        session_id = session_id_from_token(raw_token)

        try:
            row = (
                self.db.query(UserSession, User)
                .join(User, UserSession.user_id == User.id)
                .filter(UserSession.id == session_id)
                .first()
            )
            if row is None:
                return SessionValidationResult.invalid()

            session, user = row
            now = self.clock()

            if now >= session.expires_at:
                self.db.delete(session)
                self.db.commit()
                return SessionValidationResult.invalid()

            if now >= session.expires_at - self.renewal_window:
                session.expires_at = now + self.ttl
                self.db.commit()
                logger.info("Extended session for user %s", user.id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Session validation query failed: %s", str(e))
            raise StorageFailure("failed to validate session") from e

        return SessionValidationResult(session=session, user=user)

    def invalidate(self, session_id: str) -> None:
        """Delete one session by its storage id (the digest, not the raw token)"""
        try:
            self.db.query(UserSession).filter(UserSession.id == session_id).delete(
                synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to invalidate session: %s", str(e))
            raise StorageFailure("failed to invalidate session") from e

    def invalidate_token(self, raw_token: str) -> None:
        self.invalidate(session_id_from_token(raw_token))

    def invalidate_all(self, user_id: str) -> int:
        """Delete every session of the user, e.g. after a suspected compromise"""
        try:
            deleted = (
                self.db.query(UserSession)
                .filter(UserSession.user_id == user_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to invalidate sessions for user %s: %s", user_id, str(e))
            raise StorageFailure("failed to invalidate sessions") from e

        logger.info("Invalidated %s session(s) for user %s", deleted, user_id)
        return deleted

    def sweep_expired(self) -> int:
        """Delete sessions already past expiry"""
        try:
            deleted = (
                self.db.query(UserSession)
                .filter(UserSession.expires_at <= self.clock())
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error cleaning up expired sessions: %s", str(e))
            raise StorageFailure("failed to sweep sessions") from e

        logger.info("Cleaned up %s expired sessions", deleted)
        return deleted
