"""
Key-Value Store: JSON documents in Redis, namespaced per user.

Keys follow ``user:{id}:{entity}``. Besides plain get/set/delete-by-prefix,
the store offers ``update()``: an optimistic read-modify-write over several
keys (WATCH/MULTI/EXEC) that is retried when another writer touches one of
the watched keys. Wallet balance and ledger changes go through it so a
balance check and the matching write can never interleave with another
request for the same user.
"""
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from app.core.config import settings
from app.core.exceptions import LedgerConflictError, StorageError
from app.core.logging import get_logger
from app.core.redis_client import get_redis

logger = get_logger(__name__)

PROFILE = "profile"
WALLET = "wallet"
TRANSACTIONS = "transactions"
CARDS = "cards"

# idempotent reads get one extra attempt on a dropped connection
_READ_ATTEMPTS = 2


def user_key(user_id: str, entity: str) -> str:
    """Storage key for one entity of one user"""
    return f"user:{user_id}:{entity}"


def user_prefix(user_id: str) -> str:
    return f"user:{user_id}:"


def _encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _decode(key: str, raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageError("decode", key=key, reason=str(e)) from e


@asynccontextmanager
async def _storage_errors(operation: str, key: str | None = None) -> AsyncIterator[None]:
    """Translate Redis failures into StorageError"""
    try:
        yield
    except WatchError:
        raise
    except RedisError as e:
        logger.error(
            "Key-value store operation failed",
            extra_data={"operation": operation, "key": key, "error": str(e)},
        )
        raise StorageError(operation, key=key, reason=type(e).__name__) from e


class KVStore:
    """JSON key-value store over a Redis client"""

    def __init__(self, redis: aioredis.Redis, max_retries: int | None = None):
        self.redis = redis
        self.max_retries = max_retries if max_retries is not None else settings.LEDGER_MAX_RETRIES

    async def get(self, key: str) -> Any:
        """Return the decoded value, or None if the key is absent"""
        for attempt in range(1, _READ_ATTEMPTS + 1):
            try:
                async with _storage_errors("get", key):
                    raw = await self.redis.get(key)
                return _decode(key, raw)
            except StorageError:
                if attempt == _READ_ATTEMPTS:
                    raise
                logger.warning("Retrying store read", extra_data={"key": key, "attempt": attempt})
        return None  # pragma: no cover

    async def set(self, key: str, value: Any) -> None:
        async with _storage_errors("set", key):
            await self.redis.set(key, _encode(value))

    async def set_if_absent(self, key: str, value: Any) -> bool:
        """SET NX; True if this call created the key"""
        async with _storage_errors("set_if_absent", key):
            created = await self.redis.set(key, _encode(value), nx=True)
        return bool(created)

    async def set_many(self, values: dict[str, Any]) -> None:
        """Write several keys in one MULTI/EXEC round trip"""
        async with _storage_errors("set_many"):
            async with self.redis.pipeline(transaction=True) as pipe:
                for key, value in values.items():
                    pipe.set(key, _encode(value))
                await pipe.execute()

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        async with _storage_errors("delete", keys[0]):
            await self.redis.delete(*keys)

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; returns the number removed"""
        if not prefix:
            raise ValueError("refusing to delete with an empty prefix")
        async with _storage_errors("delete_prefix", prefix):
            keys = [key async for key in self.redis.scan_iter(match=f"{prefix}*")]
            if keys:
                await self.redis.delete(*keys)
        logger.info("Deleted keys by prefix", extra_data={"prefix": prefix, "count": len(keys)})
        return len(keys)

    async def update(
        self,
        keys: list[str],
        mutate: Callable[[dict[str, Any]], dict[str, Any]],
        *,
        owner: str = "",
    ) -> dict[str, Any]:
        """
        Atomic read-modify-write over ``keys``.

        ``mutate`` receives the current decoded values (None for absent keys)
        and returns the values to write; an empty dict writes nothing. It may
        raise an AppException to abort without writing. If another client
        modifies a watched key before EXEC, the whole cycle re-runs with fresh
        values, up to ``max_retries`` times.

        Raises:
            LedgerConflictError: retries exhausted
            StorageError: Redis unavailable
        """
        async with _storage_errors("update", keys[0]):
            async with self.redis.pipeline(transaction=True) as pipe:
                for attempt in range(1, self.max_retries + 1):
                    try:
                        await pipe.watch(*keys)
                        raw_values = await pipe.mget(keys)
                        current = {
                            key: _decode(key, raw)
                            for key, raw in zip(keys, raw_values)
                        }
                        writes = mutate(current)
                        if not writes:
                            await pipe.reset()
                            return writes
                        pipe.multi()
                        for key, value in writes.items():
                            pipe.set(key, _encode(value))
                        await pipe.execute()
                        return writes
                    except WatchError:
                        logger.warning(
                            "Concurrent write detected, retrying update",
                            extra_data={"keys": keys, "attempt": attempt},
                        )
                        continue

        raise LedgerConflictError(owner, self.max_retries)


async def get_kv_store() -> KVStore:
    """Dependency for getting the key-value store"""
    try:
        redis = await get_redis()
    except (RedisError, OSError) as e:
        logger.error("Key-value store unreachable", extra_data={"error": str(e)})
        raise StorageError("connect", reason=type(e).__name__) from e
    return KVStore(redis)
