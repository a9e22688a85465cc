"""
HTTP mapping for login engine errors.

Responses only ever carry the opaque error code, never an internal message.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from passwordless.core.errors import AuthError, ErrorCode

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrorCode.MISSING_EMAIL: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_EMAIL: status.HTTP_400_BAD_REQUEST,
    ErrorCode.MALFORMED_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EXPIRED_CODE: status.HTTP_400_BAD_REQUEST,
    # Missing user behind a valid code is our fault, not the caller's
    ErrorCode.USER_NOT_FOUND: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.VERIFICATION_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.OTP_GENERATION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.EMAIL_SEND_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.INVALID_SESSION: status.HTTP_401_UNAUTHORIZED,
}


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Renders any AuthError raised by a route as its opaque code"""
    logger.warning("[%s] %s %s: %s", exc.code.value, request.method, request.url.path, str(exc))
    return JSONResponse(
        status_code=STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST),
        content={"detail": {"error": exc.code.value}},
    )
