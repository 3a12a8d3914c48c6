"""
Transaction boundary for ledger mutations.

Every balance-mutating sequence runs inside ``TransactionManager.transaction``:
locks on all touched records are taken in canonical order, a database
transaction is opened, and either every write commits or none does.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from card_network.core.locking import LockManager
from card_network.database.gateway import EntityKind, PersistenceGateway

logger = structlog.get_logger(__name__)


def split_lock_key(key: str) -> Tuple[EntityKind, str]:
    """Split ``account:<id>`` / ``payment:<id>`` into entity kind and id."""
    kind, _, entity_id = key.partition(":")
    return EntityKind(kind), entity_id


class TransactionManager:
    """
    Opens locked, all-or-nothing units of work.

    Args:
        session_factory: Factory for database sessions
        lock_manager: Lock manager serializing access to shared records
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lock_manager: LockManager,
    ):
        self.session_factory = session_factory
        self.lock_manager = lock_manager

    @asynccontextmanager
    async def transaction(self, lock_keys: Iterable[str] = ()) -> AsyncIterator[PersistenceGateway]:
        """
        Run a block atomically while holding ``lock_keys``.

        The database rows behind the keys are row-locked up front, in the
        same canonical order as the application locks.

        Commits when the block exits normally; rolls back on any exception,
        cancellation included, and re-raises it.

        Yields:
            PersistenceGateway: Gateway bound to the open transaction
        """
        async with self.lock_manager.hold(lock_keys) as held:
            async with self.session_factory() as session:
                async with session.begin():
                    gateway = PersistenceGateway(session)
                    for key in held:
                        kind, entity_id = split_lock_key(key)
                        await gateway.get(kind, entity_id, for_update=True)
                    yield gateway
            logger.debug("transaction_committed", lock_keys=held)

    @asynccontextmanager
    async def snapshot(self) -> AsyncIterator[PersistenceGateway]:
        """Read-only access without locks; nothing is committed."""
        async with self.session_factory() as session:
            yield PersistenceGateway(session)
