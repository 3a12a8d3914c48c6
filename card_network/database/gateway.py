"""
Persistence gateway: get/put by key for the two entity kinds.

The gateway never commits; the caller owns the transaction boundary.
"""
from enum import Enum
from typing import Dict, Optional, Type, Union

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from card_network.database.models import Account, Payment

logger = structlog.get_logger(__name__)

Entity = Union[Account, Payment]


class EntityKind(str, Enum):
    """Entity kinds addressable through the gateway."""

    ACCOUNT = "account"
    PAYMENT = "payment"


_MODELS: Dict[EntityKind, Type[Entity]] = {
    EntityKind.ACCOUNT: Account,
    EntityKind.PAYMENT: Payment,
}


class PersistenceError(Exception):
    """Raised when the underlying store cannot be read or written."""

    pass


class PersistenceGateway:
    """
    Key-value access to accounts and payments within one session.

    Args:
        session: Database session whose transaction the caller controls
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self, kind: EntityKind, entity_id: str, for_update: bool = False
    ) -> Optional[Entity]:
        """
        Fetch an entity by identifier.

        Args:
            kind: Entity kind
            entity_id: Entity identifier
            for_update: Take a row lock and refresh any cached instance

        Returns:
            Optional[Entity]: The entity, or None if it does not exist

        Raises:
            PersistenceError: If the store cannot be read
        """
        model = _MODELS[kind]
        stmt = select(model).where(model.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("gateway_read_failed", kind=kind.value, entity_id=entity_id, error=str(e))
            raise PersistenceError(f"Failed to read {kind.value} {entity_id}") from e

        return result.scalar_one_or_none()

    async def put(self, kind: EntityKind, entity: Entity) -> None:
        """
        Insert or update an entity.

        Args:
            kind: Entity kind
            entity: Entity to store

        Raises:
            PersistenceError: If the store cannot be written
        """
        if not isinstance(entity, _MODELS[kind]):
            raise TypeError(f"Expected {_MODELS[kind].__name__}, got {type(entity).__name__}")

        self.session.add(entity)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("gateway_write_failed", kind=kind.value, entity_id=entity.id, error=str(e))
            raise PersistenceError(f"Failed to write {kind.value} {entity.id}") from e

    async def get_account(self, account_id: str, for_update: bool = False) -> Optional[Account]:
        """Fetch an account by identifier."""
        return await self.get(EntityKind.ACCOUNT, account_id, for_update=for_update)

    async def get_payment(self, payment_id: str, for_update: bool = False) -> Optional[Payment]:
        """Fetch a payment by identifier."""
        return await self.get(EntityKind.PAYMENT, payment_id, for_update=for_update)
