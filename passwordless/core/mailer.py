import logging
import httpx

from passwordless.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def render_login_email(code: str) -> str:
    return (
        "<p>Use the code below to sign in.</p>"
        f"<p style=\"font-size:24px;letter-spacing:4px\"><strong>{code}</strong></p>"
        f"<p>This code expires in {settings.OTP_EXPIRY_MINUTES} minutes. "
        "If you did not request it, you can ignore this email.</p>"
    )


def send_mail(to_address: str, subject: str, html: str) -> bool:
    """Send one email through the mail API. Returns False on any failure."""
    payload = {
        "from": settings.MAIL_FROM,
        "to": [to_address],
        "subject": subject,
        "html": html,
    }

    try:
        response = httpx.post(
            settings.MAIL_API_URL,
            json=payload,
            headers={
                "Authorization": f"Bearer {settings.MAIL_API_KEY or ''}",
                "Content-Type": "application/json",
            },
            timeout=10.0,
        )

        if response.status_code in (200, 201, 202):
            logger.info("Mail sent to %s", to_address)
            return True
        else:
            logger.warning("Mail API failed [%s]: %s", response.status_code, response.text)
            return False
    except httpx.HTTPError as e:
        logger.error("Mail API error: %s", str(e))
        return False


def send_login_code(to_address: str, code: str) -> bool:
    """Deliver a login code by email."""
    return send_mail(to_address, settings.MAIL_SUBJECT, render_login_email(code))
