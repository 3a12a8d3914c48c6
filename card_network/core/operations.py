"""
Payment operations, their legal parents and their balance effects.

State machine (keyed by the referenced record's operation, approved only):

    AUTHORIZATION --capture--> CAPTURE --refund--> REFUND
          |
          +------reversal----> REVERSAL

Declined records are terminal. A chain closes once the parent's
current amount reaches zero.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from card_network.core.codes import ResponseCode


class Operation(str, Enum):
    """Payment operation kinds."""

    AUTHORIZATION = "AUTHORIZATION"
    CAPTURE = "CAPTURE"
    REVERSAL = "REVERSAL"
    REFUND = "REFUND"

    @property
    def parent(self) -> Optional["Operation"]:
        """Operation a record of this kind must reference, if any."""
        return PARENT_OPERATION.get(self)

    @property
    def effect(self) -> "BalanceEffect":
        return BALANCE_EFFECTS[self]


PARENT_OPERATION: Dict[Operation, Operation] = {
    Operation.CAPTURE: Operation.AUTHORIZATION,
    Operation.REVERSAL: Operation.AUTHORIZATION,
    Operation.REFUND: Operation.CAPTURE,
}


@dataclass(frozen=True)
class BalanceEffect:
    """Signs applied to the amount on approval, per participant and balance."""

    card_available: int
    card_blocked: int
    merchant_available: int
    merchant_blocked: int
    # Whether the new record can itself be referenced (keeps a current amount)
    referenceable: bool


BALANCE_EFFECTS: Dict[Operation, BalanceEffect] = {
    # Hold funds on both sides
    Operation.AUTHORIZATION: BalanceEffect(-1, +1, 0, +1, referenceable=True),
    # Settle: held cardholder funds become merchant-available
    Operation.CAPTURE: BalanceEffect(0, -1, +1, -1, referenceable=True),
    # Release the hold without settlement
    Operation.REVERSAL: BalanceEffect(+1, -1, 0, -1, referenceable=False),
    # Return settled funds to the cardholder
    Operation.REFUND: BalanceEffect(+1, 0, -1, 0, referenceable=False),
}


@dataclass(frozen=True)
class AuthorizationRequest:
    """Inbound authorization from a merchant."""

    merchant_id: str
    card_number: str
    security_code: str
    expiry_month: str
    expiry_year: str
    amount: int
    order_id: str = ""


@dataclass(frozen=True)
class SuccessiveRequest:
    """Inbound capture, reversal or refund against an earlier payment."""

    operation: Operation
    merchant_id: str
    reference_id: str
    amount: int


@dataclass(frozen=True)
class PaymentResult:
    """
    Outcome of a payment operation.

    ``id`` is the new payment id when a record was written, otherwise the
    echoed order id (authorization) or reference id (successive operation).
    """

    id: str
    code: ResponseCode

    @property
    def status(self) -> str:
        return self.code.value

    @property
    def message(self) -> str:
        return self.code.message

    @property
    def approved(self) -> bool:
        return self.code.approved


@dataclass(frozen=True)
class AccountResult:
    """Outcome of an account operation such as a deposit."""

    id: str
    code: ResponseCode

    @property
    def status(self) -> str:
        return self.code.value

    @property
    def message(self) -> str:
        return self.code.message
