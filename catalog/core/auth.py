"""Cron secret verification for the batch job endpoints."""

import hmac
import logging

from fastapi import HTTPException, Request, status

from catalog.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def verify_cron_request(request: Request) -> bool:
    """
    Non-raising check for the cron secret.

    Accepts either of:
        Authorization: Bearer <CRON_SECRET>
        X-Cron-Secret: <CRON_SECRET>

    Always False when no secret is configured, so an unconfigured deployment
    cannot be triggered anonymously.
    """
    if not settings.cron_secret:
        return False

    token = request.headers.get("x-cron-secret", "")
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]  # Strip "Bearer " prefix

    if not token:
        return False

    # Use constant-time comparison to prevent timing attacks
    return hmac.compare_digest(
        token.encode("utf-8"),
        settings.cron_secret.encode("utf-8"),
    )


def unauthorized_response() -> HTTPException:
    """Shared 401 for every cron endpoint."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_cron(request: Request) -> None:
    """
    Dependency that rejects requests without a valid cron secret.

    Usage:
        router = APIRouter(dependencies=[Depends(require_cron)])
    """
    if not verify_cron_request(request):
        client_ip = request.client.host if request.client else "unknown"
        logger.warning("Rejected cron request from %s", client_ip)
        raise unauthorized_response()
