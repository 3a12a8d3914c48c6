"""
Race condition tests for concurrent payment requests.

Tests that locking serializes read-modify-write sequences on shared records.
"""
import asyncio

import pytest

from card_network.core.accounts import AccountService
from card_network.core.state_machine import PaymentStateMachine
from card_network.core.transactions import TransactionManager


class TestRaceConditions:
    """Test suite for race condition scenarios."""

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_concurrent_captures_never_exceed_authorization(
        self,
        state_machine: PaymentStateMachine,
        account_service: AccountService,
        transactions: TransactionManager,
        parties,
    ) -> None:
        """
        Ten captures of 30 against an authorization of 100.

        Exactly three can succeed; the rest must be declined with 13.
        """
        auth = await state_machine.authorize(parties.authorization(100))

        results = await asyncio.gather(
            *[state_machine.capture(parties.merchant.id, auth.id, 30) for _ in range(10)]
        )

        statuses = sorted(result.status for result in results)
        assert statuses.count("0") == 3
        assert statuses.count("13") == 7

        async with transactions.snapshot() as gateway:
            authorization = await gateway.get_payment(auth.id)
        assert authorization.current_amount == 10

        merchant = await account_service.get_account_detail(parties.merchant.id)
        cardholder = await account_service.get_account_detail(parties.cardholder.id)
        assert (merchant.available, merchant.blocked) == (90, 10)
        assert (cardholder.available, cardholder.blocked) == (900, 10)

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_concurrent_authorizations_never_overdraw(
        self,
        state_machine: PaymentStateMachine,
        account_service: AccountService,
        parties,
    ) -> None:
        """Only as many authorizations as the deposit covers are approved."""
        results = await asyncio.gather(
            *[
                state_machine.authorize(parties.authorization(300, order_id=f"order-{i}"))
                for i in range(6)
            ]
        )

        approved = [result for result in results if result.approved]
        declined = [result for result in results if not result.approved]
        assert len(approved) == 3
        assert {result.status for result in declined} == {"51"}

        cardholder = await account_service.get_account_detail(parties.cardholder.id)
        merchant = await account_service.get_account_detail(parties.merchant.id)
        assert (cardholder.available, cardholder.blocked) == (100, 900)
        assert merchant.blocked == 900
        assert len(cardholder.statement) == 3
        assert len(merchant.statement) == 6

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_concurrent_deposits_are_not_lost(self, account_service: AccountService) -> None:
        account = await account_service.create_account()

        results = await asyncio.gather(
            *[account_service.deposit_funds(account.id, 10) for _ in range(20)]
        )

        assert {result.status for result in results} == {"0"}
        detail = await account_service.get_account_detail(account.id)
        assert detail.available == 200

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_capture_and_reversal_race_on_same_authorization(
        self,
        state_machine: PaymentStateMachine,
        account_service: AccountService,
        parties,
    ) -> None:
        """Capture and reversal of the full amount: exactly one wins."""
        auth = await state_machine.authorize(parties.authorization(100))

        capture, reversal = await asyncio.gather(
            state_machine.capture(parties.merchant.id, auth.id, 100),
            state_machine.reverse(parties.merchant.id, auth.id, 100),
        )

        assert sorted([capture.status, reversal.status]) == ["0", "13"]
        cardholder = await account_service.get_account_detail(parties.cardholder.id)
        assert cardholder.blocked == 0
        assert cardholder.available in (900, 1000)
