"""
Payment state machine.

Orchestrates the complete flow of every payment operation:
1. Validate input
2. Acquire locks on every touched record (canonical order)
3. Run the validation pipeline
4. Apply balance effects to cardholder and merchant
5. Decrement the referenced payment's current amount
6. Persist the new payment record
7. Append it to the statements
8. Commit (or roll back everything)
"""
import time
from typing import Optional

import structlog

from card_network.core.codes import ResponseCode
from card_network.core.identifiers import CardIssuer
from card_network.core.ledger import AccountLedger
from card_network.core.locking import account_key, payment_key
from card_network.core.operations import (
    AuthorizationRequest,
    Operation,
    PaymentResult,
    SuccessiveRequest,
)
from card_network.core.transactions import TransactionManager
from card_network.core.validation import (
    AUTHORIZATION_PIPELINE,
    SUCCESSIVE_PIPELINE,
    AuthorizationContext,
    SuccessiveContext,
)
from card_network.database.gateway import EntityKind, PersistenceGateway
from card_network.database.models import Account, Payment
from card_network.monitoring.logging import payment_context
from card_network.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class PaymentError(Exception):
    """Base exception for payment processing errors."""

    pass


class PaymentValidationError(PaymentError):
    """Raised when payment input validation fails."""

    pass


class ReferenceChangedError(PaymentError):
    """Raised when a referenced payment no longer matches the locks taken for it."""

    pass


class PaymentStateMachine:
    """
    Entry point for authorization, capture, reversal and refund.

    Handles the payment lifecycle: legal transitions, amounts, and the
    lock-step balance changes on both participating accounts.

    Args:
        transactions: Transaction manager providing locked units of work
        issuer: Optional identifier issuer for new payments
    """

    def __init__(self, transactions: TransactionManager, issuer: Optional[CardIssuer] = None):
        self.transactions = transactions
        self.issuer = issuer or CardIssuer()
        logger.info("payment_state_machine_initialized")

    @staticmethod
    def _validate_amount(amount: int) -> None:
        """
        Validate a requested amount.

        Raises:
            PaymentValidationError: If the amount is not a positive integer
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise PaymentValidationError("Amount must be an integer")
        if amount <= 0:
            raise PaymentValidationError("Amount must be positive")

    def _new_payment(
        self,
        operation: Operation,
        code: ResponseCode,
        amount: int,
        merchant_id: str,
        card_number: str,
        order_id: str,
        reference_id: str = "",
    ) -> Payment:
        referenceable = code.approved and operation.effect.referenceable
        return Payment(
            id=self.issuer.payment_id(),
            operation=operation.value,
            reference_id=reference_id,
            order_id=order_id,
            merchant_id=merchant_id,
            card_number=card_number,
            amount=amount,
            current_amount=amount if referenceable else 0,
            status=code.value,
            status_message=code.message,
        )

    @staticmethod
    async def _apply_effect(
        ledger: AccountLedger,
        operation: Operation,
        amount: int,
        cardholder_id: str,
        merchant_id: str,
    ) -> None:
        effect = operation.effect
        await ledger.adjust_balances(
            cardholder_id, effect.card_available * amount, effect.card_blocked * amount
        )
        await ledger.adjust_balances(
            merchant_id, effect.merchant_available * amount, effect.merchant_blocked * amount
        )

    @staticmethod
    async def _append_to_statements(
        ledger: AccountLedger, payment: Payment, *account_ids: str
    ) -> None:
        # An account acting as its own merchant gets one entry
        for account_id in dict.fromkeys(account_ids):
            await ledger.append_statement(account_id, payment.id)

    async def _record_audit(
        self,
        gateway: PersistenceGateway,
        ledger: AccountLedger,
        merchant: Account,
        payment: Payment,
    ) -> None:
        """Persist a declined record on the merchant's statement only."""
        await gateway.put(EntityKind.PAYMENT, payment)
        await ledger.append_statement(merchant.id, payment.id)

    def _finish(
        self, operation: Operation, result: PaymentResult, amount: int, start_time: float
    ) -> PaymentResult:
        duration = time.time() - start_time
        metrics.record_payment_operation(operation.value, result.status, amount, duration)
        logger.info(
            "payment_approved" if result.approved else "payment_declined",
            payment_id=result.id,
            status=result.status,
            message=result.message,
            amount=amount,
            duration_seconds=duration,
        )
        return result

    async def authorize(self, request: AuthorizationRequest) -> PaymentResult:
        """
        Hold funds on a cardholder account on behalf of a merchant.

        Args:
            request: Authorization request

        Returns:
            PaymentResult: Outcome with the new payment id (or the echoed order id)

        Raises:
            PaymentValidationError: If the amount is not a positive integer
        """
        with payment_context(
            Operation.AUTHORIZATION.value, request.merchant_id, order_id=request.order_id
        ):
            return await self._authorize(request)

    async def _authorize(self, request: AuthorizationRequest) -> PaymentResult:
        start_time = time.time()
        self._validate_amount(request.amount)

        logger.info("authorization_started", amount=request.amount)

        lock_keys = []
        if request.merchant_id:
            lock_keys.append(account_key(request.merchant_id))
        if request.card_number:
            lock_keys.append(account_key(request.card_number))

        async with self.transactions.transaction(lock_keys) as gateway:
            ctx = AuthorizationContext(request=request)
            decline = await AUTHORIZATION_PIPELINE.run(ctx, gateway)
            ledger = AccountLedger(gateway, self.issuer)

            if decline is not None:
                if not decline.audit:
                    result = PaymentResult(id=request.order_id, code=decline.code)
                else:
                    payment = self._new_payment(
                        Operation.AUTHORIZATION,
                        decline.code,
                        request.amount,
                        merchant_id=ctx.merchant.id,
                        card_number=ctx.cardholder.id,
                        order_id=request.order_id,
                    )
                    await self._record_audit(gateway, ledger, ctx.merchant, payment)
                    result = PaymentResult(id=payment.id, code=decline.code)
                return self._finish(Operation.AUTHORIZATION, result, request.amount, start_time)

            await self._apply_effect(
                ledger, Operation.AUTHORIZATION, request.amount, ctx.cardholder.id, ctx.merchant.id
            )
            payment = self._new_payment(
                Operation.AUTHORIZATION,
                ResponseCode.APPROVED,
                request.amount,
                merchant_id=ctx.merchant.id,
                card_number=ctx.cardholder.id,
                order_id=request.order_id,
            )
            await gateway.put(EntityKind.PAYMENT, payment)
            await self._append_to_statements(ledger, payment, ctx.merchant.id, ctx.cardholder.id)

        result = PaymentResult(id=payment.id, code=ResponseCode.APPROVED)
        return self._finish(Operation.AUTHORIZATION, result, request.amount, start_time)

    async def capture(self, merchant_id: str, authorization_id: str, amount: int) -> PaymentResult:
        """Settle (part of) an approved authorization to the merchant."""
        return await self._successive(
            SuccessiveRequest(Operation.CAPTURE, merchant_id, authorization_id, amount)
        )

    async def reverse(self, merchant_id: str, authorization_id: str, amount: int) -> PaymentResult:
        """Release (part of) an approved authorization back to the cardholder."""
        return await self._successive(
            SuccessiveRequest(Operation.REVERSAL, merchant_id, authorization_id, amount)
        )

    async def refund(self, merchant_id: str, capture_id: str, amount: int) -> PaymentResult:
        """Return (part of) an approved capture from the merchant to the cardholder."""
        return await self._successive(
            SuccessiveRequest(Operation.REFUND, merchant_id, capture_id, amount)
        )

    async def _lock_keys_for(self, request: SuccessiveRequest) -> list[str]:
        """
        Collect the records a successive operation may touch.

        The cardholder is only known from the referenced payment, so the
        reference is read once without locks; its card number never changes.
        """
        lock_keys = []
        if request.merchant_id:
            lock_keys.append(account_key(request.merchant_id))
        if request.reference_id:
            lock_keys.append(payment_key(request.reference_id))
            async with self.transactions.snapshot() as gateway:
                reference = await gateway.get_payment(request.reference_id)
            if reference is not None and reference.card_number:
                lock_keys.append(account_key(reference.card_number))
        return lock_keys

    async def _successive(self, request: SuccessiveRequest) -> PaymentResult:
        with payment_context(
            request.operation.value, request.merchant_id, reference_id=request.reference_id
        ):
            return await self._run_successive(request)

    async def _run_successive(self, request: SuccessiveRequest) -> PaymentResult:
        start_time = time.time()
        operation = request.operation
        self._validate_amount(request.amount)

        logger.info("successive_operation_started", amount=request.amount)

        lock_keys = await self._lock_keys_for(request)

        async with self.transactions.transaction(lock_keys) as gateway:
            ctx = SuccessiveContext(request=request)
            decline = await SUCCESSIVE_PIPELINE.run(ctx, gateway)
            ledger = AccountLedger(gateway, self.issuer)

            if decline is not None:
                if not decline.audit:
                    result = PaymentResult(id=request.reference_id, code=decline.code)
                else:
                    payment = self._new_payment(
                        operation,
                        decline.code,
                        request.amount,
                        merchant_id=ctx.merchant.id,
                        card_number=ctx.reference.card_number,
                        order_id=ctx.reference.order_id,
                        reference_id=ctx.reference.id,
                    )
                    await self._record_audit(gateway, ledger, ctx.merchant, payment)
                    result = PaymentResult(id=payment.id, code=decline.code)
                return self._finish(operation, result, request.amount, start_time)

            reference = ctx.reference
            if account_key(reference.card_number) not in lock_keys:
                raise ReferenceChangedError(
                    f"Payment {reference.id} was not locked with its cardholder account"
                )

            reference.current_amount -= request.amount
            await gateway.put(EntityKind.PAYMENT, reference)

            await self._apply_effect(
                ledger, operation, request.amount, reference.card_number, ctx.merchant.id
            )
            payment = self._new_payment(
                operation,
                ResponseCode.APPROVED,
                request.amount,
                merchant_id=reference.merchant_id,
                card_number=reference.card_number,
                order_id=reference.order_id,
                reference_id=reference.id,
            )
            await gateway.put(EntityKind.PAYMENT, payment)
            await self._append_to_statements(ledger, payment, ctx.merchant.id, reference.card_number)

            logger.info(
                "reference_amount_decremented",
                reference_id=reference.id,
                current_amount=reference.current_amount,
            )

        result = PaymentResult(id=payment.id, code=ResponseCode.APPROVED)
        return self._finish(operation, result, request.amount, start_time)
