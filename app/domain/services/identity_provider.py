"""
Identity Provider Client - user creation at the external auth service

The provider issues credentials and access tokens; this service only asks
it to create users at signup (admin endpoint, service-role key, email
auto-confirmed since no email server is configured). Calls go through the
identity-provider circuit breaker.
"""
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from app.core.circuit_breaker import IDENTITY_PROVIDER_SERVICE, get_identity_provider_circuit_breaker
from app.core.config import settings
from app.core.exceptions import ExternalServiceException, IdentityProviderError, ServiceTimeoutError
from app.core.logging import get_logger

logger = get_logger(__name__)

_ADMIN_USERS_PATH = "/auth/v1/admin/users"


class ProviderUser(BaseModel):
    """User record as returned by the provider"""

    model_config = ConfigDict(extra="allow")

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = {}


def _admin_headers() -> dict[str, str]:
    return {
        "apikey": settings.AUTH_SERVICE_ROLE_KEY,
        "Authorization": f"Bearer {settings.AUTH_SERVICE_ROLE_KEY}",
    }


async def create_user(email: str, password: str, name: str, phone: str = "") -> ProviderUser:
    """
    Create a confirmed user at the identity provider.

    Raises:
        IdentityProviderError: the provider rejected the request (4xx), e.g. email taken
        ServiceTimeoutError: no answer within IDENTITY_PROVIDER_TIMEOUT_SECONDS
        ExternalServiceException: provider unreachable or 5xx
        CircuitBreakerOpenError: too many recent failures
    """
    circuit_breaker = get_identity_provider_circuit_breaker()
    timeout = settings.IDENTITY_PROVIDER_TIMEOUT_SECONDS

    async def _create() -> ProviderUser:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(
                    f"{settings.AUTH_PROVIDER_URL}{_ADMIN_USERS_PATH}",
                    headers=_admin_headers(),
                    json={
                        "email": email,
                        "password": password,
                        "user_metadata": {"name": name, "phone": phone},
                        "email_confirm": True,
                    },
                )
        except httpx.TimeoutException as e:
            raise ServiceTimeoutError(IDENTITY_PROVIDER_SERVICE, timeout) from e
        except httpx.HTTPError as e:
            raise ExternalServiceException(
                IDENTITY_PROVIDER_SERVICE,
                "Identity provider is unreachable",
                details={"error": type(e).__name__},
            ) from e

        if response.status_code >= 500:
            raise ExternalServiceException(
                IDENTITY_PROVIDER_SERVICE,
                "Identity provider is unavailable",
                details={"status_code": response.status_code},
            )
        if response.status_code >= 400:
            raise IdentityProviderError.from_response("create_user", response)

        body = response.json()
        # some provider versions wrap the record in {"user": {...}}
        if isinstance(body, dict) and isinstance(body.get("user"), dict):
            body = body["user"]
        return ProviderUser.model_validate(body)

    user = await circuit_breaker.execute(_create)
    logger.info("User created at identity provider", extra_data={"user_id": user.id})
    return user
