from __future__ import annotations

import asyncio
import logging

import redis.asyncio as redis_async

from kyara.core.config import Settings
from kyara.domain.ports.durable_store import DurableStore

logger = logging.getLogger(__name__)


async def create_redis_client(settings: Settings) -> redis_async.Redis | None:
    dsn = settings.redis_dsn_plain()
    client = redis_async.Redis.from_url(
        dsn,
        socket_connect_timeout=float(settings.redis_connect_timeout_seconds),
        socket_timeout=float(settings.redis_operation_timeout_seconds),
        retry_on_timeout=True,
        health_check_interval=10,
        decode_responses=False,
    )
    try:
        await asyncio.wait_for(client.ping(), timeout=float(settings.redis_connect_timeout_seconds))
    except Exception as exc:  # noqa: BLE001
        logger.warning("redis_unavailable", extra={"reason": str(exc)})
        try:
            await client.aclose(close_connection_pool=True)
        except Exception:  # noqa: BLE001
            pass
        return None
    return client


async def close_redis_client(client: redis_async.Redis | None) -> None:
    if client is None:
        return
    try:
        await client.aclose(close_connection_pool=True)
    except Exception:  # noqa: BLE001
        return


class RedisDurableStore(DurableStore):
    """Durable store backed by redis; values are opaque bytes without expiry."""

    def __init__(self, *, redis: redis_async.Redis, operation_timeout_seconds: float, key_prefix: str = "") -> None:
        self._redis = redis
        self._timeout = float(operation_timeout_seconds)
        self._prefix = key_prefix

    async def get(self, key: str) -> bytes | None:
        raw = await asyncio.wait_for(self._redis.get(self._prefix + key), timeout=self._timeout)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw
        return str(raw).encode("utf-8")

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.wait_for(self._redis.set(self._prefix + key, value), timeout=self._timeout)


class InMemoryDurableStore(DurableStore):
    """Process-local stand-in used when redis is unreachable; lost on restart."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    async def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)
