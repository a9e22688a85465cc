"""
OTP Service
Issues, verifies, consumes and sweeps one-time login codes.

Only the SHA-256 digest of a code is stored. A user has at most one live code:
issuing a new one deletes every earlier row for that user.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from passwordless.core.config import settings
from passwordless.core.errors import ErrorCode, NotFound, StorageFailure
from passwordless.core.security import hash_secret
from passwordless.core.timezone import get_utc_now
from passwordless.core.tokens import new_numeric_code
from passwordless.models.otp_code import OTPCode
from passwordless.models.user import User

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Fresh draws tried when a code is already held by another user
ISSUE_ATTEMPTS = 5


@dataclass(frozen=True)
class OTPVerificationResult:
    success: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    error: Optional[ErrorCode] = None

    @classmethod
    def fail(cls, error: ErrorCode) -> "OTPVerificationResult":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class OTPDeletionResult:
    success: bool
    initial_count: int = 0
    deleted_count: int = 0
    remaining_count: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class CleanupResult:
    success: bool
    deleted_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON body expected by the scheduler"""
        if self.success:
            return {"success": True, "deletedCount": self.deleted_count}
        return {"success": False, "error": self.error}


class OTPService:
    """Service for one-time login codes"""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = get_utc_now,
        digits: Optional[int] = None,
        expiry_minutes: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock
        self.digits = digits if digits is not None else settings.OTP_DIGITS
        if expiry_minutes is None:
            expiry_minutes = settings.OTP_EXPIRY_MINUTES
        self.expiry = timedelta(minutes=expiry_minutes)
        self._shape = re.compile(rf"[0-9]{{{self.digits}}}")

    def issue(self, user_id: str) -> str:
        """
        Replace any existing code for the user with a fresh one.

        The user row is locked for the delete-then-insert so two concurrent
        issues serialize and only the last one survives. A code that another
        user already holds fails the unique index on code_hash and is redrawn.

        Returns:
            the raw code, for delivery to the user
        """
        now = self.clock()

        for attempt in range(1, ISSUE_ATTEMPTS + 1):
            code = new_numeric_code(self.digits)
            try:
                replaced = self._store(user_id, code, now)
            except IntegrityError:
                self.db.rollback()
                logger.warning(
                    "OTP for user %s collided with a live code (attempt %s/%s)",
                    user_id, attempt, ISSUE_ATTEMPTS,
                )
                continue
            except NotFound:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error("Failed to store OTP for user %s: %s", user_id, str(e))
                raise StorageFailure("failed to store OTP code", ErrorCode.OTP_GENERATION_FAILED) from e

            if replaced:
                logger.info("Replaced %s earlier OTP(s) for user %s", replaced, user_id)
            logger.info("Issued OTP for user %s, expires %s", user_id, (now + self.expiry).isoformat())
            return code

        logger.error("Gave up issuing OTP for user %s after %s collisions", user_id, ISSUE_ATTEMPTS)
        raise StorageFailure("could not draw an unused OTP code", ErrorCode.OTP_GENERATION_FAILED)

    def _store(self, user_id: str, code: str, now: datetime) -> int:
        owner = (
            self.db.query(User.id)
            .filter(User.id == user_id)
            .with_for_update()
            .first()
        )
        if owner is None:
            raise NotFound(f"user {user_id} does not exist")

        replaced = (
            self.db.query(OTPCode)
            .filter(OTPCode.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.db.add(OTPCode(
            id=str(uuid4()),
            user_id=user_id,
            code_hash=hash_secret(code),
            created_at=now,
            expires_at=now + self.expiry,
        ))
        self.db.commit()
        return replaced

    def verify(self, raw_code: str) -> OTPVerificationResult:
        """
        Check a submitted code.

        A wrong code and a missing code both give INVALID_CODE. Expiry is only
        reported once a row has matched. Storage errors raise StorageFailure.
        """
        if not isinstance(raw_code, str) or not self._shape.fullmatch(raw_code):
            return OTPVerificationResult.fail(ErrorCode.MALFORMED_CODE)

        code_hash = hash_secret(raw_code)

        try:
            entry = (
                self.db.query(OTPCode)
                .filter(OTPCode.code_hash == code_hash)
                .first()
            )

            if entry is None:
                return OTPVerificationResult.fail(ErrorCode.INVALID_CODE)

            if self.clock() > entry.expires_at:
                self._discard(entry)
                return OTPVerificationResult.fail(ErrorCode.EXPIRED_CODE)

            user = self.db.get(User, entry.user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("OTP verification query failed: %s", str(e))
            raise StorageFailure("failed to verify OTP code") from e

        if user is None:
            logger.error("OTP %s references missing user %s", entry.id, entry.user_id)
            return OTPVerificationResult.fail(ErrorCode.USER_NOT_FOUND)

        return OTPVerificationResult(
            success=True,
            user_id=user.id,
            email=user.email,
            created_at=entry.created_at,
        )

    def _discard(self, entry: OTPCode) -> None:
        # Expired row found during verification; the sweep will retry on failure
        try:
            self.db.delete(entry)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Could not remove expired OTP %s: %s", entry.id, str(e))

    def _count_for_user(self, user_id: str) -> int:
        return (
            self.db.query(func.count(OTPCode.id))
            .filter(OTPCode.user_id == user_id)
            .scalar()
        ) or 0

    def consume(self, user_id: str) -> OTPDeletionResult:
        """
        Delete every code for the user and confirm none remain.

        Idempotent. Leftover rows are reported as a warning, not raised: by
        the time this runs the user has already authenticated.
        """
        try:
            initial_count = self._count_for_user(user_id)
            if initial_count == 0:
                return OTPDeletionResult(success=True)

            deleted_count = (
                self.db.query(OTPCode)
                .filter(OTPCode.user_id == user_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
            remaining_count = self._count_for_user(user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to remove OTPs for user %s: %s", user_id, str(e))
            raise StorageFailure("failed to remove OTP codes") from e

        if remaining_count > 0:
            logger.warning(
                "Failed to delete all OTP codes for user %s. %s codes remain.",
                user_id, remaining_count,
            )
            return OTPDeletionResult(
                success=False,
                initial_count=initial_count,
                deleted_count=deleted_count,
                remaining_count=remaining_count,
                error="Failed to delete all OTP codes",
            )

        logger.info("Deleted %s of %s OTP codes for user %s", deleted_count, initial_count, user_id)
        return OTPDeletionResult(
            success=True,
            initial_count=initial_count,
            deleted_count=deleted_count,
        )

    def sweep_expired(self) -> CleanupResult:
        """Delete every code past its expiry, regardless of owner"""
        try:
            deleted = (
                self.db.query(OTPCode)
                .filter(OTPCode.expires_at < self.clock())
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error cleaning up expired OTP codes: %s", str(e))
            return CleanupResult(success=False, error=str(e))

        logger.info("Cleaned up %s expired OTP codes", deleted)
        return CleanupResult(success=True, deleted_count=deleted)
