"""Shared-secret authentication for sync and admin endpoints."""
import hmac
import logging
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from freakslots.core.config import settings
from freakslots.core.errors import Unauthorized

logger = logging.getLogger(__name__)

SYNC_SECRET_HEADER = "x-sync-secret"

# Header scheme for secret extraction
sync_secret_scheme = APIKeyHeader(name=SYNC_SECRET_HEADER, auto_error=False)


def secret_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    """
    Constant-time comparison; an unset expected secret rejects everything.

    Example:
        >>> secret_matches("abc", "abc")
        True
        >>> secret_matches("abc", None)
        False
    """
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_sync_secret(
    request: Request,
    provided: Optional[str] = Depends(sync_secret_scheme)
) -> None:
    """
    FastAPI dependency guarding mutating endpoints.

    Raises:
        Unauthorized: If the header is missing or wrong
    """
    if not secret_matches(provided, settings.sync_secret):
        logger.warning(f"Rejected {request.method} {request.url.path}: bad or missing {SYNC_SECRET_HEADER}")
        raise Unauthorized("Unauthorized")
