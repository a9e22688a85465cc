import base64
import logging
import secrets

from passwordless.core.errors import EntropySourceUnavailable

logger = logging.getLogger(__name__)

# 20 bytes = 160 bits, encodes to exactly 32 base32 chars (no padding)
TOKEN_BYTES = 20


def _random_bytes(n: int) -> bytes:
    try:
        return secrets.token_bytes(n)
    except (NotImplementedError, OSError) as e:
        logger.error("System RNG unavailable: %s", str(e))
        raise EntropySourceUnavailable("system random source unavailable") from e


def new_opaque_token() -> str:
    """
    Random session token, lowercase base32 without padding.

    Lowercase base32 is safe in cookies and URLs and has no
    case-sensitivity ambiguity.
    """
    raw = _random_bytes(TOKEN_BYTES)
    return base64.b32encode(raw).decode("ascii").rstrip("=").lower()


def new_numeric_code(digits: int = 6) -> str:
    """Uniform decimal code of exactly `digits` characters, leading zeros kept."""
    if digits < 1:
        raise ValueError("digits must be positive")
    try:
        value = secrets.randbelow(10 ** digits)
    except (NotImplementedError, OSError) as e:
        logger.error("System RNG unavailable: %s", str(e))
        raise EntropySourceUnavailable("system random source unavailable") from e
    return str(value).zfill(digits)
