"""Redis-backed named locks shared by the API and the Celery workers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
import redis.exceptions
import structlog

from assetcast.domain.entities.errors import LockError

logger = structlog.get_logger(__name__)


class RedisLockProvider:
    """
    Hands out ``redis.asyncio`` locks by name.

    Each hold opens its own client so the provider can be shared by tasks
    that run their own event loop with ``asyncio.run``.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        key_prefix: str = "assetcast:lock:",
        timeout: float = 120.0,
        blocking_timeout: float = 30.0,
    ) -> None:
        self._redis_url = redis_url
        self._key_prefix = key_prefix
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(
        self, name: str, *, blocking: bool = True, lease: Optional[float] = None
    ) -> AsyncIterator[bool]:
        client = aioredis.from_url(self._redis_url)
        lock = client.lock(
            f"{self._key_prefix}{name}",
            timeout=self._timeout if lease is None else lease,
            blocking=blocking,
            blocking_timeout=self._blocking_timeout if blocking else None,
        )
        try:
            try:
                acquired = await lock.acquire()
            except redis.exceptions.RedisError as exc:
                logger.error("lock.acquire_failed", lock=name, error=str(exc))
                raise LockError(f"Could not acquire lock {name}: {exc}") from exc

            if not acquired:
                if blocking:
                    raise LockError(
                        f"Timed out waiting for lock {name}",
                        {"blocking_timeout": self._blocking_timeout},
                    )
                logger.debug("lock.busy", lock=name)
                yield False
                return

            try:
                yield True
            finally:
                try:
                    await lock.release()
                except redis.exceptions.RedisError as exc:
                    logger.error("lock.release_failed", lock=name, error=str(exc))
                    raise LockError(f"Could not release lock {name}: {exc}") from exc
        finally:
            await client.aclose()
