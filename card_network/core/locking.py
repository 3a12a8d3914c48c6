"""
Lock managers serializing read-modify-write sequences on shared records.

Keys are always taken in sorted order, so two requests touching the same
pair of accounts can never wait on each other in opposite orders.
"""
import asyncio
import time
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional

import redis.asyncio as aioredis
import structlog
from redis.asyncio.lock import Lock
from redis.exceptions import LockNotOwnedError

from card_network.config import Settings, get_settings
from card_network.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class LockAcquisitionError(Exception):
    """Raised when a lock cannot be acquired in time."""

    pass


def account_key(account_id: str) -> str:
    return f"account:{account_id}"


def payment_key(payment_id: str) -> str:
    return f"payment:{payment_id}"


def canonical_order(keys: Iterable[str]) -> List[str]:
    """De-duplicate and sort lock keys into the global acquisition order."""
    return sorted({key for key in keys if key})


class LockManager:
    """Base class for lock managers."""

    backend = "base"

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[List[str]]:
        """
        Hold every key for the duration of the block.

        Args:
            keys: Lock keys, in any order

        Yields:
            List[str]: The keys in the order they were acquired
        """
        ordered = canonical_order(keys)
        start = time.monotonic()
        async with AsyncExitStack() as stack:
            for key in ordered:
                await self._acquire(stack, key)
            metrics.record_lock(self.backend, "acquired", time.monotonic() - start)
            yield ordered

    async def _acquire(self, stack: AsyncExitStack, key: str) -> None:
        raise NotImplementedError


class LocalLockManager(LockManager):
    """
    In-process locks, one asyncio.Lock per key.

    Only serializes requests handled by the same process; run a single
    worker or use the Redis backend.
    """

    backend = "local"

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    async def _acquire(self, stack: AsyncExitStack, key: str) -> None:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        stack.callback(self._forget, key)
        await lock.acquire()
        stack.callback(lock.release)

    def _forget(self, key: str) -> None:
        # Drop idle locks so the table does not grow with every account
        self._waiters[key] -= 1
        if self._waiters[key] == 0:
            del self._waiters[key]
            del self._locks[key]

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


class RedisLockManager(LockManager):
    """
    Redis-backed locks shared by every worker process.

    Args:
        redis_client: Optional Redis client (created from settings if omitted)
        settings: Optional settings
    """

    backend = "redis"

    def __init__(
        self,
        redis_client: Optional[aioredis.Redis] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.redis_client = redis_client or aioredis.from_url(
            self.settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )

    async def _acquire(self, stack: AsyncExitStack, key: str) -> None:
        name = f"{self.settings.lock_prefix}:{key}"
        lock = self.redis_client.lock(
            name,
            timeout=self.settings.lock_timeout,
            blocking_timeout=self.settings.lock_blocking_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            metrics.record_lock(self.backend, "failed")
            logger.warning("lock_acquisition_failed", lock_key=name)
            raise LockAcquisitionError(f"Failed to acquire lock {name}")
        stack.push_async_callback(self._release, lock, name)

    async def _release(self, lock: Lock, name: str) -> None:
        try:
            await lock.release()
        except LockNotOwnedError:
            # Lock timed out while held
            metrics.record_lock(self.backend, "expired")
            logger.warning("lock_expired_before_release", lock_key=name)

    async def close(self) -> None:
        """Close Redis connection."""
        await self.redis_client.aclose()


def create_lock_manager(settings: Optional[Settings] = None) -> LockManager:
    """Build the lock manager selected by ``lock_backend``."""
    settings = settings or get_settings()
    if settings.lock_backend == "redis":
        return RedisLockManager(settings=settings)
    return LocalLockManager()
