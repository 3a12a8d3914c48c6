"""
Response codes shared by every payment and account operation.

A declined request is a normal response carrying one of these codes, never
a transport-level failure.
"""
from enum import Enum
from typing import Dict


class ResponseCode(str, Enum):
    """Approval and decline codes."""

    APPROVED = "0"
    INVALID_MERCHANT = "3"
    DO_NOT_HONOUR = "5"
    INVALID_TRANSACTION = "12"
    INVALID_AMOUNT = "13"
    INVALID_CARD_NUMBER = "14"
    NO_SUCH_ISSUER = "15"
    INSUFFICIENT_FUNDS = "51"
    NO_CARD_RECORD = "56"

    @property
    def message(self) -> str:
        """Human-readable reason paired with the code."""
        return RESPONSE_MESSAGES[self]

    @property
    def approved(self) -> bool:
        return self is ResponseCode.APPROVED


RESPONSE_MESSAGES: Dict[ResponseCode, str] = {
    ResponseCode.APPROVED: "Approved",
    ResponseCode.INVALID_MERCHANT: "Invalid Merchant",
    ResponseCode.DO_NOT_HONOUR: "Do Not Honour",
    ResponseCode.INVALID_TRANSACTION: "Invalid Transaction",
    ResponseCode.INVALID_AMOUNT: "Invalid Amount",
    ResponseCode.INVALID_CARD_NUMBER: "Invalid Card Number",
    ResponseCode.NO_SUCH_ISSUER: "No Such Issuer",
    ResponseCode.INSUFFICIENT_FUNDS: "Insufficient Funds",
    ResponseCode.NO_CARD_RECORD: "No Card Record",
}

_missing = set(ResponseCode) - set(RESPONSE_MESSAGES)
if _missing:
    raise RuntimeError(f"Response codes without a message: {sorted(c.name for c in _missing)}")
