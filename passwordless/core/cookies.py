from typing import Optional

from starlette.responses import Response

from passwordless.core.config import settings


def _same_site() -> str:
    return "strict" if settings.is_production else "lax"


def session_token_from_cookies(cookies) -> Optional[str]:
    """
    Session token from either cookie name.

    The __Secure- form is checked first. Both are accepted so a change of
    APP_ENV does not log everyone out.
    """
    secure_token = cookies.get(f"__Secure-{settings.SESSION_COOKIE_NAME}")
    if secure_token:
        return secure_token
    return cookies.get(settings.SESSION_COOKIE_NAME) or None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite=_same_site(),
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite=_same_site(),
    )
