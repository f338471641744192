import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException

from biabook.core.config import get_settings

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        return ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def require_ops_token(authorization: Optional[str] = Header(default=None)) -> None:
    """Guards operational endpoints (cron triggers, manual cleanup, retries)."""
    settings = get_settings()
    if not settings.cron_secret:
        # Endpoints are hidden entirely when no secret is configured.
        raise HTTPException(404, "Not found")

    token = _bearer_token(authorization)
    if not token or not hmac.compare_digest(token, settings.cron_secret):
        logger.warning("Operational endpoint: invalid or missing token")
        raise HTTPException(401, "Unauthorized")
