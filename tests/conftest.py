"""
Pytest Configuration and Fixtures

Provides fixtures for:
- In-memory Redis (FakeRedis) including WATCH/MULTI/EXEC pipelines and SCAN
- Access tokens signed like the identity provider's
- HTTP test client
- Mocked identity provider
"""
# Settings are read at import time, so the secrets must be set before importing app
import os
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret-for-testing-only-do-not-use-in-production")
os.environ.setdefault("AUTH_SERVICE_ROLE_KEY", "test-service-role-key")
# the signup limiter lives on the shared app for the whole session
os.environ.setdefault("SIGNUP_RATE_LIMIT_MAX_REQUESTS", "10000")

import asyncio
import fnmatch
import time
import uuid
from decimal import Decimal
from typing import Any, AsyncGenerator, AsyncIterator
from unittest.mock import AsyncMock, patch

import jwt as pyjwt
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, WatchError

from app.core.config import settings
from app.db.kv_store import KVStore
from app.domain.services.identity_provider import ProviderUser
from app.domain.services.payment_service import PaymentService
from app.domain.services.wallet_service import WalletService
from app.main import app

TEST_JWT_SECRET = os.environ["AUTH_JWT_SECRET"]


# ============================================================================
# Fake Redis
# ============================================================================

class FakePipeline:
    """
    Pipeline with redis-py semantics: commands after ``watch()`` run
    immediately, commands after ``multi()`` (or without watch) are buffered
    until ``execute()``, which fails with WatchError if a watched key was
    written by someone else in between.
    """

    def __init__(self, redis: "FakeRedis", transaction: bool = True) -> None:
        self._redis = redis
        self._transaction = transaction
        self._watched: dict[str, int] = {}
        self._buffer: list[tuple[str, str]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.reset()

    async def watch(self, *keys: str) -> None:
        self._redis._check_available()
        self._watched = {key: self._redis._versions.get(key, 0) for key in keys}
        # let other tasks run, like a network round trip would
        await asyncio.sleep(0)

    async def mget(self, keys: list[str]) -> list[str | None]:
        self._redis._check_available()
        return [self._redis._store.get(key) for key in keys]

    def multi(self) -> None:
        self._buffer = []

    def set(self, key: str, value: str) -> "FakePipeline":
        self._buffer.append((key, value))
        return self

    async def execute(self) -> list[bool]:
        try:
            self._redis._check_available()
            await asyncio.sleep(0)
            if self._redis.injected_conflicts > 0:
                self._redis.injected_conflicts -= 1
                raise WatchError("Watched variable changed.")
            for key, version in self._watched.items():
                if self._redis._versions.get(key, 0) != version:
                    raise WatchError("Watched variable changed.")
            for key, value in self._buffer:
                self._redis._write(key, value)
            self._redis.executed_transactions += 1
            return [True] * len(self._buffer)
        finally:
            await self.reset()

    async def reset(self) -> None:
        self._watched = {}
        self._buffer = []


class FakeRedis:
    """In-memory Redis replacement with per-key versions for WATCH."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._versions: dict[str, int] = {}
        self.available = True
        self.injected_conflicts = 0  # number of upcoming EXECs that fail with WatchError
        self.executed_transactions = 0

    def _check_available(self) -> None:
        if not self.available:
            raise RedisConnectionError("Connection refused")

    def _write(self, key: str, value: str) -> None:
        self._store[key] = value
        self._versions[key] = self._versions.get(key, 0) + 1

    def touch(self, key: str, value: str) -> None:
        """Write from 'another client' (bumps the WATCH version)"""
        self._write(key, value)

    async def ping(self) -> bool:
        self._check_available()
        return True

    async def get(self, key: str) -> str | None:
        self._check_available()
        return self._store.get(key)

    async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None) -> bool | None:
        """SET with NX (only if absent)"""
        self._check_available()
        if nx and key in self._store:
            return None
        self._write(key, value)
        return True

    async def delete(self, *keys: str) -> int:
        self._check_available()
        removed = 0
        for key in keys:
            if self._store.pop(key, None) is not None:
                self._versions[key] = self._versions.get(key, 0) + 1
                removed += 1
        return removed

    async def scan_iter(self, match: str | None = None) -> AsyncIterator[str]:
        self._check_available()
        for key in list(self._store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self, transaction=transaction)

    async def aclose(self) -> None:
        self._store.clear()
        self._versions.clear()

    def keys_with_prefix(self, prefix: str) -> list[str]:
        return sorted(k for k in self._store if k.startswith(prefix))


@pytest.fixture(autouse=True)
def fake_redis():
    """Replaces get_redis with FakeRedis in every module that uses it."""
    _fake = FakeRedis()

    async def _get_fake_redis():
        return _fake

    with patch("app.core.redis_client.get_redis", _get_fake_redis), \
         patch("app.db.kv_store.get_redis", _get_fake_redis), \
         patch("app.domain.services.health_service.get_redis", _get_fake_redis):
        yield _fake


@pytest.fixture
def store(fake_redis: FakeRedis) -> KVStore:
    return KVStore(fake_redis, max_retries=5)


@pytest.fixture
def wallet_service(store: KVStore) -> WalletService:
    return WalletService(store)


@pytest.fixture
def payment_service(wallet_service: WalletService) -> PaymentService:
    return PaymentService(wallet_service)


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture(autouse=True)
def test_settings():
    """Fast settlement and a known JWT secret for every test"""
    with patch.object(settings, "AUTH_JWT_SECRET", TEST_JWT_SECRET), \
         patch.object(settings, "AUTH_JWT_ALGORITHM", "HS256"), \
         patch.object(settings, "AUTH_JWT_AUDIENCE", "authenticated"), \
         patch.object(settings, "SETTLEMENT_DELAY_SECONDS", 0.0), \
         patch.object(settings, "SETTLEMENT_TIMEOUT_SECONDS", 5.0), \
         patch.object(settings, "STARTING_BALANCE", 25430):
        yield


@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """Reset circuit breakers between tests"""
    from app.core.circuit_breaker import CircuitBreaker
    CircuitBreaker.reset_all()
    yield
    CircuitBreaker.reset_all()


# ============================================================================
# Auth
# ============================================================================

def make_token(
    user_id: str,
    *,
    expires_in: int = 3600,
    audience: str = "authenticated",
    secret: str = TEST_JWT_SECRET,
    **claims: Any,
) -> str:
    """Access token shaped like the identity provider's"""
    payload = {
        "sub": user_id,
        "aud": audience,
        "exp": int(time.time()) + expires_in,
        "role": "authenticated",
        **claims,
    }
    return pyjwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def token_factory():
    """make_token for tests that need custom claims or expiry"""
    return make_token


@pytest.fixture
def user_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


# ============================================================================
# HTTP client
# ============================================================================

@pytest.fixture
async def test_client() -> AsyncGenerator:
    """HTTP client bound to the ASGI app"""
    from httpx import AsyncClient, ASGITransport

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ============================================================================
# Identity provider
# ============================================================================

@pytest.fixture
def mock_identity_provider():
    """Replaces the provider's user creation; returns a fresh id per call"""
    async def _create_user(email: str, password: str, name: str, phone: str = "") -> ProviderUser:
        return ProviderUser(
            id=str(uuid.uuid4()),
            email=email,
            user_metadata={"name": name, "phone": phone},
        )

    with patch(
        "app.domain.services.identity_provider.create_user",
        AsyncMock(side_effect=_create_user),
    ) as mock_create:
        yield mock_create


# ============================================================================
# Test data helpers
# ============================================================================

@pytest.fixture
def seed_wallet(wallet_service: WalletService):
    """Give a user a specific balance"""
    async def _seed(user_id: str, balance: int | str = 25430):
        return await wallet_service.set_balance(user_id, Decimal(str(balance)))

    return _seed
