from typing import Optional
from urllib.parse import urlparse

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from passwordless.core.cookies import session_token_from_cookies, set_session_cookie

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}


def origin_matches_host(origin: Optional[str], host: Optional[str]) -> bool:
    if not origin or not host:
        return False
    try:
        parsed = urlparse(origin)
    except ValueError:
        return False
    return bool(parsed.scheme) and parsed.netloc == host


def is_bearer_only(request: Request) -> bool:
    """Token sent explicitly in a header with no session cookie for a browser to attach"""
    if session_token_from_cookies(request.cookies) is not None:
        return False
    return request.headers.get("authorization", "").lower().startswith("bearer ")


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Origin check for state-changing requests.

    Non-GET requests need an Origin header whose host equals the Host header,
    otherwise they get an empty 403. Requests authenticated only by an
    Authorization: Bearer header are exempt, as no browser sends one unasked.
    GET responses re-issue the session cookie so its Max-Age keeps pace with
    the server-side sliding expiry.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method in SAFE_METHODS:
            response = await call_next(request)
            token = session_token_from_cookies(request.cookies)
            if token is not None and "set-cookie" not in response.headers:
                set_session_cookie(response, token)
            return response

        if is_bearer_only(request):
            return await call_next(request)

        if not origin_matches_host(request.headers.get("origin"), request.headers.get("host")):
            return Response(status_code=403)

        return await call_next(request)
