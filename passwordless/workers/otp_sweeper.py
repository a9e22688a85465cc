"""
Expired Credential Sweeper

Deletes OTP codes and sessions that are past their expiry. Use this when no
external scheduler calls /api/cron/cleanup-otps.

Run as a separate process:
    python -m passwordless.workers.otp_sweeper
"""

import asyncio
import logging

from passwordless.core.config import settings
from passwordless.core.database import SessionLocal
from passwordless.core.errors import StorageFailure
from passwordless.services.otp_service import OTPService
from passwordless.services.session_service import SessionService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def sweep_once(session_factory=SessionLocal) -> dict:
    """One sweep of both tables, in a fresh database session."""
    db = session_factory()
    try:
        otp_result = OTPService(db).sweep_expired()
        try:
            sessions_deleted = SessionService(db).sweep_expired()
        except StorageFailure:
            sessions_deleted = None
    finally:
        db.close()

    return {
        "otps": otp_result.to_dict(),
        "sessions": sessions_deleted,
    }


async def worker_loop(interval_seconds: int = settings.OTP_SWEEP_INTERVAL_SECONDS):
    """Sweep forever, sleeping between runs"""
    logger.info("Sweeper started, interval %ss", interval_seconds)

    while True:
        try:
            result = await asyncio.to_thread(sweep_once)
            logger.info("Sweep finished: %s", result)
        except Exception as e:
            # Keep the loop alive; a failed sweep is retried next interval
            logger.error("Sweeper error: %s", str(e))

        await asyncio.sleep(interval_seconds)


def run_worker():
    """Entry point for running the worker"""
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Sweeper stopped")


if __name__ == "__main__":
    run_worker()
