"""
Account ledger: balance invariants and statement append for single accounts.

All methods operate inside the caller's transaction; nothing here commits.
Invariant: ``available >= 0`` and ``blocked >= 0`` for every account.
"""
from typing import List, Optional

import structlog

from card_network.core.identifiers import CardIssuer
from card_network.database.gateway import EntityKind, PersistenceGateway
from card_network.database.models import Account, Payment

logger = structlog.get_logger(__name__)


class LedgerError(Exception):
    """Base exception for ledger errors."""

    pass


class AccountNotFoundError(LedgerError):
    """Raised when a mutation targets an account that does not exist."""

    pass


class NegativeBalanceError(LedgerError):
    """Raised when a mutation would drive a balance below zero."""

    pass


class InvalidAmountError(LedgerError):
    """Raised when a deposit amount is negative."""

    pass


class AccountLedger:
    """
    Balance and statement operations on accounts.

    Args:
        gateway: Persistence gateway bound to an open transaction
        issuer: Card issuer used when creating accounts
    """

    def __init__(self, gateway: PersistenceGateway, issuer: Optional[CardIssuer] = None):
        self.gateway = gateway
        self.issuer = issuer or CardIssuer()

    async def create_account(self) -> Account:
        """
        Create an account with fresh card credentials and zero balances.

        Returns:
            Account: The persisted account, keyed by its card number
        """
        card = self.issuer.issue_card()
        account = Account(
            id=card.number,
            card_number=card.number,
            card_security_code=card.security_code,
            card_expiry_month=card.expiry_month,
            card_expiry_year=card.expiry_year,
            available=0,
            blocked=0,
            statement=[],
        )
        await self.gateway.put(EntityKind.ACCOUNT, account)
        logger.info("account_created", account_id=account.id)
        return account

    async def get_account(self, account_id: str, for_update: bool = False) -> Optional[Account]:
        """Fetch an account, or None if it does not exist."""
        if not account_id:
            return None
        return await self.gateway.get_account(account_id, for_update=for_update)

    async def deposit(self, account_id: str, amount: int) -> Optional[Account]:
        """
        Increase an account's available balance.

        Args:
            account_id: Account identifier
            amount: Non-negative amount in minor units

        Returns:
            Optional[Account]: Updated account, or None if it does not exist

        Raises:
            InvalidAmountError: If the amount is negative
        """
        if amount < 0:
            raise InvalidAmountError(f"Deposit amount must not be negative: {amount}")

        account = await self.get_account(account_id, for_update=True)
        if account is None:
            return None

        account.available += amount
        await self.gateway.put(EntityKind.ACCOUNT, account)
        logger.info("funds_deposited", account_id=account_id, amount=amount, available=account.available)
        return account

    async def adjust_balances(
        self, account_id: str, available_delta: int, blocked_delta: int
    ) -> Account:
        """
        Apply both deltas to one account, or neither.

        Raises:
            AccountNotFoundError: If the account does not exist
            NegativeBalanceError: If either resulting balance would be negative
        """
        account = await self.get_account(account_id, for_update=True)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")

        available = account.available + available_delta
        blocked = account.blocked + blocked_delta
        if available < 0 or blocked < 0:
            logger.error(
                "negative_balance_rejected",
                account_id=account_id,
                available=account.available,
                blocked=account.blocked,
                available_delta=available_delta,
                blocked_delta=blocked_delta,
            )
            raise NegativeBalanceError(
                f"Account {account_id} would go negative "
                f"(available={available}, blocked={blocked})"
            )

        account.available = available
        account.blocked = blocked
        await self.gateway.put(EntityKind.ACCOUNT, account)
        return account

    async def append_statement(self, account_id: str, payment_id: str) -> None:
        """
        Append a payment id to an account's statement.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        account = await self.get_account(account_id, for_update=True)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")

        # Reassign so the JSON column is flagged dirty
        account.statement = [*account.statement, payment_id]
        await self.gateway.put(EntityKind.ACCOUNT, account)

    async def statement(self, account_id: str) -> Optional[List[Payment]]:
        """
        Resolve an account's statement into payment records, in order.

        Returns:
            Optional[List[Payment]]: Payments, or None if the account does not exist
        """
        account = await self.get_account(account_id)
        if account is None:
            return None

        payments = []
        for payment_id in account.statement:
            payment = await self.gateway.get_payment(payment_id)
            if payment is None:
                raise LedgerError(f"Statement of {account_id} references unknown payment {payment_id}")
            payments.append(payment)
        return payments
