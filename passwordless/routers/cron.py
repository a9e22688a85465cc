import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from passwordless.core.cron_auth import require_cron_secret
from passwordless.core.database import get_db
from passwordless.core.errors import StorageFailure
from passwordless.schemas.auth import CleanupResponse
from passwordless.services.otp_service import OTPService
from passwordless.services.session_service import SessionService

router = APIRouter(prefix="/api/cron", tags=["cron"])

logger = logging.getLogger(__name__)


@router.get("/cleanup-otps", response_model=CleanupResponse, response_model_exclude_none=True)
def cleanup_otps(
    db: Session = Depends(get_db),
    _caller: str = Depends(require_cron_secret),
):
    result = OTPService(db).sweep_expired()
    if not result.success:
        return JSONResponse(status_code=500, content=result.to_dict())
    return CleanupResponse(**result.to_dict())


@router.get("/cleanup-sessions", response_model=CleanupResponse, response_model_exclude_none=True)
def cleanup_sessions(
    db: Session = Depends(get_db),
    _caller: str = Depends(require_cron_secret),
):
    try:
        deleted = SessionService(db).sweep_expired()
    except StorageFailure as e:
        logger.error("Failed to clean up sessions: %s", str(e))
        return JSONResponse(status_code=500, content={"success": False, "error": "Cleanup failed"})
    return CleanupResponse(success=True, deletedCount=deleted)
