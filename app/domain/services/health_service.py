"""
Health check service - dependency checks (Redis, identity provider).

Two levels:
- liveness: the process is up (no dependency checks)
- readiness: every external dependency answers
"""
from typing import Any

import httpx
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import get_logger
from app.core.redis_client import get_redis

logger = get_logger(__name__)

_STATUS_HEALTHY = "healthy"
_STATUS_DEGRADED = "degraded"

_CHECK_OK = "ok"

# sanitized messages, no infrastructure details
_ERROR_REDIS = "error: redis_unavailable"
_ERROR_IDENTITY_PROVIDER = "error: identity_provider_unavailable"

_PROVIDER_HEALTH_PATH = "/auth/v1/health"
_CHECK_TIMEOUT_SECONDS = 5.0


async def _check_redis() -> str:
    """PING the key-value store."""
    try:
        client = await get_redis()
        await client.ping()
        return _CHECK_OK
    except (RedisError, OSError) as e:
        logger.warning("Redis health check failed", extra_data={"error": str(e)})
        return _ERROR_REDIS


async def _check_identity_provider() -> str:
    """GET the provider's health endpoint."""
    try:
        async with httpx.AsyncClient(timeout=_CHECK_TIMEOUT_SECONDS) as client:
            response = await client.get(
                f"{settings.AUTH_PROVIDER_URL}{_PROVIDER_HEALTH_PATH}",
                headers={"apikey": settings.AUTH_SERVICE_ROLE_KEY},
            )
    except httpx.HTTPError as e:
        logger.warning(
            "Identity provider health check failed",
            extra_data={"error": type(e).__name__},
        )
        return _ERROR_IDENTITY_PROVIDER

    if response.status_code != 200:
        logger.warning(
            "Identity provider returned unexpected status",
            extra_data={"status_code": response.status_code},
        )
        return _ERROR_IDENTITY_PROVIDER
    return _CHECK_OK


async def check_readiness() -> dict[str, Any]:
    """
    Readiness check across all external dependencies.

    Returns a dict with the overall status and one entry per dependency:
    - status: "healthy" when everything answers, "degraded" otherwise
    - redis / identity_provider: "ok" or "error: ..."
    """
    checks = {
        "redis": await _check_redis(),
        "identity_provider": await _check_identity_provider(),
    }

    all_ok = all(v == _CHECK_OK for v in checks.values())
    overall_status = _STATUS_HEALTHY if all_ok else _STATUS_DEGRADED

    if not all_ok:
        logger.warning("Readiness check degraded", extra_data=checks)

    return {"status": overall_status, **checks}
