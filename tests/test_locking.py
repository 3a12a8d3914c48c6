"""
Unit tests for lock managers.
"""
import asyncio
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockNotOwnedError

from card_network.config import Settings
from card_network.core.locking import (
    LocalLockManager,
    LockAcquisitionError,
    RedisLockManager,
    account_key,
    canonical_order,
    create_lock_manager,
    payment_key,
)


class TestLockKeys:
    """Test suite for lock key helpers."""

    @pytest.mark.unit
    def test_keys(self) -> None:
        assert account_key("4000") == "account:4000"
        assert payment_key("p-1") == "payment:p-1"

    @pytest.mark.unit
    def test_canonical_order(self) -> None:
        keys = ["payment:b", "account:2", "", "account:1", "account:2"]
        assert canonical_order(keys) == ["account:1", "account:2", "payment:b"]


class TestLocalLockManager:
    """Test suite for LocalLockManager."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_hold_acquires_in_canonical_order(self) -> None:
        manager = LocalLockManager()
        async with manager.hold(["account:b", "account:a"]) as held:
            assert held == ["account:a", "account:b"]
            assert manager.is_held("account:a")
            assert manager.is_held("account:b")

        assert not manager.is_held("account:a")
        assert not manager.is_held("account:b")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_opposite_orders_do_not_deadlock(self) -> None:
        manager = LocalLockManager()
        order: List[str] = []

        async def worker(name: str, keys: List[str]) -> None:
            async with manager.hold(keys):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.wait_for(
            asyncio.gather(
                worker("first", ["account:1", "account:2"]),
                worker("second", ["account:2", "account:1"]),
            ),
            timeout=2,
        )

        # Critical sections never interleave
        assert order in (
            ["first-start", "first-end", "second-start", "second-end"],
            ["second-start", "second-end", "first-start", "first-end"],
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_releases_on_error(self) -> None:
        manager = LocalLockManager()
        with pytest.raises(RuntimeError):
            async with manager.hold(["account:1"]):
                raise RuntimeError("boom")

        assert not manager.is_held("account:1")
        assert manager._locks == {}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_disjoint_keys_run_concurrently(self) -> None:
        manager = LocalLockManager()
        entered = asyncio.Event()

        async def holder() -> None:
            async with manager.hold(["account:1"]):
                await asyncio.wait_for(entered.wait(), timeout=1)

        async def other() -> None:
            async with manager.hold(["account:2"]):
                entered.set()

        await asyncio.gather(holder(), other())


class TestRedisLockManager:
    """Test suite for RedisLockManager with a mocked client."""

    @staticmethod
    def _client(acquired: bool = True) -> MagicMock:
        client = MagicMock()
        locks = []

        def make_lock(name: str, timeout: float, blocking_timeout: float) -> MagicMock:
            lock = MagicMock()
            lock.name = name
            lock.acquire = AsyncMock(return_value=acquired)
            lock.release = AsyncMock()
            locks.append(lock)
            return lock

        client.lock.side_effect = make_lock
        client.aclose = AsyncMock()
        client.created_locks = locks
        return client

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_acquire_and_release(self) -> None:
        client = self._client()
        settings = Settings(lock_prefix="test:lock", lock_timeout=5, lock_blocking_timeout=1)
        manager = RedisLockManager(redis_client=client, settings=settings)

        async with manager.hold(["payment:x", "account:1"]) as held:
            assert held == ["account:1", "payment:x"]
            assert all(lock.release.await_count == 0 for lock in client.created_locks)

        names = [lock.name for lock in client.created_locks]
        assert names == ["test:lock:account:1", "test:lock:payment:x"]
        client.lock.assert_any_call("test:lock:account:1", timeout=5, blocking_timeout=1)
        assert all(lock.release.await_count == 1 for lock in client.created_locks)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_acquire_raises_and_releases_held(self) -> None:
        client = self._client()
        manager = RedisLockManager(redis_client=client, settings=Settings())

        original = client.lock.side_effect

        def fail_second(name: str, timeout: float, blocking_timeout: float) -> MagicMock:
            lock = original(name, timeout=timeout, blocking_timeout=blocking_timeout)
            if name.endswith("account:2"):
                lock.acquire = AsyncMock(return_value=False)
            return lock

        client.lock.side_effect = fail_second

        with pytest.raises(LockAcquisitionError, match="account:2"):
            async with manager.hold(["account:2", "account:1"]):
                pass

        first, second = client.created_locks
        first.release.assert_awaited_once()
        second.release.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_expired_lock_release_is_not_an_error(self) -> None:
        client = self._client()
        manager = RedisLockManager(redis_client=client, settings=Settings())

        async with manager.hold(["account:1", "account:2"]):
            for lock in client.created_locks:
                lock.release.side_effect = LockNotOwnedError("lock expired")

        assert all(lock.release.await_count == 1 for lock in client.created_locks)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_other_release_errors_propagate(self) -> None:
        client = self._client()
        manager = RedisLockManager(redis_client=client, settings=Settings())

        with pytest.raises(RedisConnectionError):
            async with manager.hold(["account:1"]):
                client.created_locks[0].release.side_effect = RedisConnectionError("redis down")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close(self) -> None:
        client = self._client()
        await RedisLockManager(redis_client=client, settings=Settings()).close()
        client.aclose.assert_awaited_once()


class TestCreateLockManager:
    """Test suite for create_lock_manager."""

    @pytest.mark.unit
    def test_local_backend(self) -> None:
        assert isinstance(create_lock_manager(Settings(lock_backend="local")), LocalLockManager)

    @pytest.mark.unit
    def test_redis_backend(self) -> None:
        # from_url does not connect until the first command
        manager = create_lock_manager(Settings(lock_backend="REDIS"))
        assert isinstance(manager, RedisLockManager)
