import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from passwordless.core import mailer
from passwordless.core.errors import AuthError, DeliveryFailure, ErrorCode, StorageFailure
from passwordless.services.otp_service import OTPService
from passwordless.services.session_service import SessionService, SessionValidationResult
from passwordless.services.user_directory import UserDirectory

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginRequestResult:
    success: bool
    user_id: Optional[str] = None
    is_new_user: bool = False
    error: Optional[ErrorCode] = None


@dataclass(frozen=True)
class CompleteLoginResult:
    success: bool
    user_id: Optional[str] = None
    token: Optional[str] = None
    error: Optional[ErrorCode] = None


class LoginService:
    """
    The two-step email login.

    request_login: resolve the user, issue a code, mail it.
    complete_login: check the code, open a session, burn the code.
    """

    def __init__(
        self,
        db: Session,
        send_code: Optional[Callable[[str, str], bool]] = None,
        users: Optional[UserDirectory] = None,
        otps: Optional[OTPService] = None,
        sessions: Optional[SessionService] = None,
    ):
        self.users = users or UserDirectory(db)
        self.otps = otps or OTPService(db)
        self.sessions = sessions or SessionService(db)
        self.send_code = send_code or mailer.send_login_code

    def request_login(self, email: str) -> LoginRequestResult:
        try:
            resolved = self.users.find_or_create(email)
            code = self.otps.issue(resolved.user_id)
        except AuthError as e:
            logger.error("Error generating OTP: %s", str(e))
            return LoginRequestResult(success=False, error=ErrorCode.OTP_GENERATION_FAILED)

        try:
            self._deliver(email, code)
        except DeliveryFailure as e:
            logger.warning("Login code delivery failed for user %s: %s", resolved.user_id, str(e))
            return LoginRequestResult(
                success=False,
                user_id=resolved.user_id,
                is_new_user=resolved.is_new_user,
                error=e.code,
            )

        return LoginRequestResult(
            success=True,
            user_id=resolved.user_id,
            is_new_user=resolved.is_new_user,
        )

    def _deliver(self, email: str, code: str) -> None:
        if not self.send_code(email, code):
            raise DeliveryFailure("mail provider did not accept the login code")

    def complete_login(self, raw_code: str) -> CompleteLoginResult:
        try:
            verified = self.otps.verify(raw_code)
            if not verified.success:
                return CompleteLoginResult(success=False, error=verified.error)

            token = self.sessions.create(verified.user_id)
        except AuthError as e:
            logger.error("Error in complete_login: %s", str(e))
            return CompleteLoginResult(success=False, error=ErrorCode.VERIFICATION_FAILED)

        # The user is authenticated from here on; cleanup problems only get logged
        try:
            deletion = self.otps.consume(verified.user_id)
            if not deletion.success:
                logger.warning("OTP deletion issue for user %s: %s", verified.user_id, deletion.error)
        except StorageFailure as e:
            logger.warning("OTP cleanup failed for user %s: %s", verified.user_id, str(e))

        return CompleteLoginResult(success=True, user_id=verified.user_id, token=token)

    def current_session(self, raw_token: Optional[str]) -> SessionValidationResult:
        if not raw_token:
            return SessionValidationResult.invalid()
        return self.sessions.validate(raw_token)

    def logout(self, raw_token: Optional[str]) -> None:
        if raw_token:
            self.sessions.invalidate_token(raw_token)

    def logout_everywhere(self, raw_token: Optional[str]) -> Optional[int]:
        """Revoke all sessions of the token's owner. None when the token is not valid."""
        current = self.current_session(raw_token)
        if not current.is_valid:
            return None
        return self.sessions.invalidate_all(current.user_id)
