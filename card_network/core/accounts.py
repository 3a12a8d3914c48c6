"""Public account surface: create, deposit, detail and statement."""
from typing import List, Optional

import structlog

from card_network.core.codes import ResponseCode
from card_network.core.identifiers import CardIssuer
from card_network.core.ledger import AccountLedger, InvalidAmountError
from card_network.core.locking import account_key
from card_network.core.operations import AccountResult
from card_network.core.transactions import TransactionManager
from card_network.database.models import Account, Payment
from card_network.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class AccountService:
    """
    Account operations, each run as its own transaction.

    Args:
        transactions: Transaction manager
        issuer: Optional card issuer for new accounts
    """

    def __init__(self, transactions: TransactionManager, issuer: Optional[CardIssuer] = None):
        self.transactions = transactions
        self.issuer = issuer or CardIssuer()

    async def create_account(self) -> Account:
        """Create an account with zero balances and an empty statement."""
        async with self.transactions.transaction() as gateway:
            account = await AccountLedger(gateway, self.issuer).create_account()
        metrics.record_account_operation("create", ResponseCode.APPROVED.value)
        return account

    async def deposit_funds(self, account_id: str, amount: int) -> AccountResult:
        """
        Add funds to an account's available balance.

        Returns:
            AccountResult: ``0`` on success, ``14`` for an unknown account,
            ``13`` for a negative amount
        """
        if not account_id:
            code = ResponseCode.INVALID_CARD_NUMBER
        else:
            try:
                async with self.transactions.transaction([account_key(account_id)]) as gateway:
                    account = await AccountLedger(gateway, self.issuer).deposit(account_id, amount)
                code = ResponseCode.APPROVED if account else ResponseCode.INVALID_CARD_NUMBER
            except InvalidAmountError as e:
                logger.warning("deposit_rejected", account_id=account_id, error=str(e))
                code = ResponseCode.INVALID_AMOUNT

        metrics.record_account_operation("deposit", code.value)
        return AccountResult(id=account_id, code=code)

    async def get_account_detail(self, account_id: str) -> Optional[Account]:
        """Fetch an account, or None if it does not exist."""
        async with self.transactions.snapshot() as gateway:
            account = await AccountLedger(gateway, self.issuer).get_account(account_id)
        metrics.record_account_operation("detail", "found" if account else "not_found")
        return account

    async def get_account_statement(self, account_id: str) -> Optional[List[Payment]]:
        """Fetch the payments on an account's statement, oldest first."""
        async with self.transactions.snapshot() as gateway:
            payments = await AccountLedger(gateway, self.issuer).statement(account_id)
        metrics.record_account_operation("statement", "found" if payments is not None else "not_found")
        return payments
