"""
Error taxonomy for the login engine.

Every failure carries an opaque ErrorCode. Callers map the code (never the
message) to whatever response they send back to the client.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    MISSING_EMAIL = "missing-email"
    INVALID_EMAIL = "invalid-email"
    MALFORMED_CODE = "invalid-code-format"
    INVALID_CODE = "invalid-code"
    EXPIRED_CODE = "code-expired"
    USER_NOT_FOUND = "user-not-found"
    VERIFICATION_FAILED = "verification-failed"
    OTP_GENERATION_FAILED = "otp-generation-failed"
    EMAIL_SEND_FAILED = "email-send-failed"
    INVALID_SESSION = "invalid-session"


class AuthError(Exception):
    """Base class for every error raised by the login engine"""

    code: ErrorCode = ErrorCode.VERIFICATION_FAILED

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None):
        super().__init__(message or self.__class__.__name__)
        if code is not None:
            self.code = code


class MalformedInput(AuthError):
    """Shape or format violation caught before touching storage"""

    code = ErrorCode.MALFORMED_CODE


class InvalidCredential(AuthError):
    """Code or session token not found, or wrong"""

    code = ErrorCode.INVALID_CODE


class ExpiredCredential(AuthError):
    code = ErrorCode.EXPIRED_CODE


class NotFound(AuthError):
    """A referenced user vanished. Internal consistency fault."""

    code = ErrorCode.USER_NOT_FOUND


class StorageFailure(AuthError):
    """Database call failed. Propagated, never retried here."""

    code = ErrorCode.VERIFICATION_FAILED


class DeliveryFailure(AuthError):
    """Mail provider rejected or never received the message"""

    code = ErrorCode.EMAIL_SEND_FAILED


class EntropySourceUnavailable(AuthError):
    """The operating system RNG could not be read"""

    code = ErrorCode.OTP_GENERATION_FAILED


_CLASS_BY_CODE = {
    ErrorCode.MISSING_EMAIL: MalformedInput,
    ErrorCode.INVALID_EMAIL: MalformedInput,
    ErrorCode.MALFORMED_CODE: MalformedInput,
    ErrorCode.INVALID_CODE: InvalidCredential,
    ErrorCode.INVALID_SESSION: InvalidCredential,
    ErrorCode.EXPIRED_CODE: ExpiredCredential,
    ErrorCode.USER_NOT_FOUND: NotFound,
    ErrorCode.VERIFICATION_FAILED: StorageFailure,
    ErrorCode.OTP_GENERATION_FAILED: StorageFailure,
    ErrorCode.EMAIL_SEND_FAILED: DeliveryFailure,
}


def error_for(code: ErrorCode, message: str = "") -> AuthError:
    """Exception of the matching class for a failed result's code"""
    return _CLASS_BY_CODE.get(code, AuthError)(message, code)
