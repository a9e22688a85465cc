import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from passwordless.core.config import settings
from passwordless.core.cookies import (
    clear_session_cookie,
    session_token_from_cookies,
    set_session_cookie,
)
from passwordless.core.database import get_db
from passwordless.core.errors import ErrorCode, error_for
from passwordless.core.redis import RateLimiter
from passwordless.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    MeResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
    normalize_email,
)
from passwordless.services.login_service import LoginService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def get_login_service(db: Session = Depends(get_db)) -> LoginService:
    return LoginService(db)


def _session_token(request: Request) -> Optional[str]:
    """Session token from the cookie, or from an Authorization: Bearer header"""
    token = session_token_from_cookies(request.cookies)
    if token:
        return token
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _enforce_rate_limit(identifier: str, action: str, max_requests: int, window_seconds: int):
    is_allowed, _ = RateLimiter.check_rate_limit(
        identifier=identifier,
        action=action,
        max_requests=max_requests,
        window_seconds=window_seconds,
    )
    if not is_allowed:
        retry_after = RateLimiter.get_remaining_time(identifier, action)
        raise HTTPException(
            status_code=429,
            detail={"error": "rate-limited"},
            headers={"Retry-After": str(retry_after)},
        )


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, login_service: LoginService = Depends(get_login_service)):
    """Send a one-time login code to the given email address."""
    email = normalize_email(body.email)

    # Rate limit: max 3 code requests per email per 10 minutes
    _enforce_rate_limit(email, "login_code", max_requests=3, window_seconds=600)

    result = login_service.request_login(email)
    if not result.success:
        raise error_for(result.error)

    return LoginResponse(expires_in_minutes=settings.OTP_EXPIRY_MINUTES)


@router.post("/verify-otp", response_model=VerifyOTPResponse)
def verify_otp(
    body: VerifyOTPRequest,
    request: Request,
    response: Response,
    login_service: LoginService = Depends(get_login_service),
):
    """Exchange a login code for a session."""
    # Rate limit: max 10 verification attempts per client per 5 minutes
    _enforce_rate_limit(_client_id(request), "verify_otp", max_requests=10, window_seconds=300)

    result = login_service.complete_login(body.otp)
    if not result.success:
        logger.info("OTP verification failed: %s", result.error.value)
        raise error_for(result.error)

    set_session_cookie(response, result.token)
    return VerifyOTPResponse(user_id=result.user_id, token=result.token)


@router.get("/me", response_model=MeResponse)
def me(request: Request, login_service: LoginService = Depends(get_login_service)):
    current = login_service.current_session(_session_token(request))
    if not current.is_valid:
        raise error_for(ErrorCode.INVALID_SESSION, "no valid session")

    return MeResponse(
        user_id=current.user.id,
        email=current.user.email,
        session_expires_at=current.session.expires_at.isoformat(),
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(
    request: Request,
    response: Response,
    login_service: LoginService = Depends(get_login_service),
):
    login_service.logout(_session_token(request))
    clear_session_cookie(response)
    return LogoutResponse()


@router.post("/logout-all", response_model=LogoutResponse)
def logout_all(
    request: Request,
    response: Response,
    login_service: LoginService = Depends(get_login_service),
):
    """Revoke every session of the current user, on every device."""
    revoked = login_service.logout_everywhere(_session_token(request))
    if revoked is None:
        raise error_for(ErrorCode.INVALID_SESSION, "no valid session")

    clear_session_cookie(response)
    return LogoutResponse(sessions_revoked=revoked)
