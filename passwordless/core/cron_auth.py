import hmac
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passwordless.core.config import settings

security = HTTPBearer(auto_error=False)


def require_cron_secret(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Only the scheduler holding CRON_SECRET may trigger maintenance jobs"""
    if (
        credentials is None
        or not settings.CRON_SECRET
        or not hmac.compare_digest(credentials.credentials, settings.CRON_SECRET)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return "cron"
