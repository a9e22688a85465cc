import re
from typing import Any, Optional

from pydantic import BaseModel

from passwordless.core.errors import ErrorCode, MalformedInput

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def normalize_email(value: Any) -> str:
    """Trimmed email, or MalformedInput carrying the matching error code"""
    if value is None:
        raise MalformedInput("email is required", ErrorCode.MISSING_EMAIL)
    if not isinstance(value, str):
        raise MalformedInput("email must be a string", ErrorCode.INVALID_EMAIL)
    email = value.strip()
    if not email:
        raise MalformedInput("email is empty", ErrorCode.MISSING_EMAIL)
    if not EMAIL_PATTERN.match(email):
        raise MalformedInput("email does not look like an address", ErrorCode.INVALID_EMAIL)
    return email


class LoginRequest(BaseModel):
    email: Optional[str] = None


class LoginResponse(BaseModel):
    status: str = "sent"
    expires_in_minutes: int


class VerifyOTPRequest(BaseModel):
    # Shape is checked by OTPService so malformed codes share its error code
    otp: str = ""


class VerifyOTPResponse(BaseModel):
    status: str = "verified"
    user_id: str
    token: str


class MeResponse(BaseModel):
    user_id: str
    email: str
    session_expires_at: str


class LogoutResponse(BaseModel):
    status: str = "logged_out"
    sessions_revoked: Optional[int] = None


class CleanupResponse(BaseModel):
    success: bool
    deletedCount: Optional[int] = None
    error: Optional[str] = None
