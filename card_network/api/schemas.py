"""
Pydantic schemas for API request/response models.

Field names on the wire are camelCase; Python attributes are snake_case.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from card_network.core.operations import AccountResult, PaymentResult
from card_network.database.models import Account, Payment


class CamelModel(BaseModel):
    """Base model accepting both alias and attribute names."""

    model_config = ConfigDict(populate_by_name=True)


def _coerce_to_str(v: Any) -> Any:
    # Card fields sometimes arrive as JSON numbers
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class AuthorizationRequestBody(CamelModel):
    """Request schema for an authorization."""

    order_id: str = Field(default="", alias="orderId", description="Merchant order reference")
    card_number: str = Field(default="", alias="cardNumber", description="Card number")
    card_security_code: str = Field(default="", alias="cardSecurityCode", description="CVV")
    card_expiry_month: str = Field(default="", alias="cardExpiryMonth", description="Expiry month")
    card_expiry_year: str = Field(default="", alias="cardExpiryYear", description="Expiry year")
    amount: int = Field(..., gt=0, description="Amount in minor units")

    @field_validator(
        "order_id", "card_number", "card_security_code", "card_expiry_month", "card_expiry_year",
        mode="before",
    )
    @classmethod
    def coerce_card_fields(cls, v: Any) -> Any:
        """Accept numeric card fields."""
        return _coerce_to_str(v)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "orderId": "order-1001",
                    "cardNumber": "4000001234567899",
                    "cardSecurityCode": "123",
                    "cardExpiryMonth": "10",
                    "cardExpiryYear": "2030",
                    "amount": 20000,
                }
            ]
        },
    )


class SuccessiveRequestBody(CamelModel):
    """Request schema for capture, reversal and refund."""

    amount: int = Field(..., gt=0, description="Amount in minor units")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"examples": [{"amount": 15000}]},
    )


class AccountRequestBody(CamelModel):
    """Request schema addressing one account."""

    id: str = Field(default="", description="Account identifier")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept numeric account ids."""
        return _coerce_to_str(v)


class DepositRequestBody(AccountRequestBody):
    """Request schema for a deposit."""

    amount: int = Field(..., description="Amount in minor units (negative amounts are declined)")


class PaymentResponse(CamelModel):
    """Response schema for payment operations."""

    id: str = Field(..., description="Payment id, or the echoed order/reference id")
    status: str = Field(..., description="Response code")
    message: str = Field(..., description="Response message")

    @classmethod
    def from_result(cls, result: PaymentResult) -> "PaymentResponse":
        return cls(id=result.id, status=result.status, message=result.message)


class AccountOperationResponse(CamelModel):
    """Response schema for account operations such as deposits."""

    id: str = Field(..., description="Account identifier")
    status: str = Field(..., description="Response code")
    message: str = Field(..., description="Response message")

    @classmethod
    def from_result(cls, result: AccountResult) -> "AccountOperationResponse":
        return cls(id=result.id, status=result.status, message=result.message)


class CreatedAccountResponse(CamelModel):
    """Response schema for a newly created account (no statement)."""

    id: str
    card_number: str = Field(..., alias="cardNumber")
    card_security_code: str = Field(..., alias="cardSecurityCode")
    card_expiry_month: str = Field(..., alias="cardExpiryMonth")
    card_expiry_year: str = Field(..., alias="cardExpiryYear")
    available: int
    blocked: int

    @classmethod
    def from_account(cls, account: Account) -> "CreatedAccountResponse":
        return cls(
            id=account.id,
            card_number=account.card_number,
            card_security_code=account.card_security_code,
            card_expiry_month=account.card_expiry_month,
            card_expiry_year=account.card_expiry_year,
            available=account.available,
            blocked=account.blocked,
        )


class AccountResponse(CreatedAccountResponse):
    """Response schema for account detail."""

    statement: List[str] = Field(default_factory=list, description="Payment ids, oldest first")

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            **CreatedAccountResponse.from_account(account).model_dump(),
            statement=list(account.statement),
        )


class PaymentRecordResponse(CamelModel):
    """A payment record as it appears on a statement."""

    id: str
    operation: str
    reference_id: str = Field(..., alias="referenceId")
    order_id: str = Field(..., alias="orderId")
    merchant_id: str = Field(..., alias="merchantId")
    card_number: str = Field(..., alias="cardNumber")
    amount: int
    current_amount: int = Field(..., alias="currentAmount")
    status: str
    status_message: str = Field(..., alias="statusMessage")

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentRecordResponse":
        return cls(
            id=payment.id,
            operation=payment.operation,
            reference_id=payment.reference_id,
            order_id=payment.order_id,
            merchant_id=payment.merchant_id,
            card_number=payment.card_number,
            amount=payment.amount,
            current_amount=payment.current_amount,
            status=payment.status,
            status_message=payment.status_message,
        )


class StatementResponse(CamelModel):
    """Response schema for an account statement."""

    statement: List[PaymentRecordResponse] = Field(default_factory=list)


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")
