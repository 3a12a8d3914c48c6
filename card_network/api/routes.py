"""
API routes for payment and account operations.

Business declines are normal 200 responses carrying a response code;
only malformed input and system faults become HTTP errors.
"""
from typing import Awaitable

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from card_network.core.accounts import AccountService
from card_network.core.ledger import LedgerError
from card_network.core.locking import LockAcquisitionError
from card_network.core.operations import AuthorizationRequest, PaymentResult
from card_network.core.state_machine import (
    PaymentError,
    PaymentStateMachine,
    PaymentValidationError,
)
from card_network.database.gateway import PersistenceError
from card_network.monitoring.health import HealthCheck

from .dependencies import (
    get_account_service,
    get_health_check,
    get_merchant_id,
    get_state_machine,
)
from .schemas import (
    AccountOperationResponse,
    AccountRequestBody,
    AccountResponse,
    AuthorizationRequestBody,
    CreatedAccountResponse,
    DepositRequestBody,
    HealthCheckResponse,
    PaymentRecordResponse,
    PaymentResponse,
    StatementResponse,
    SuccessiveRequestBody,
)

logger = structlog.get_logger(__name__)

payment_router = APIRouter(prefix="/v1/payments", tags=["payments"])
account_router = APIRouter(prefix="/v1/accounts", tags=["accounts"])
monitoring_router = APIRouter(tags=["monitoring"])

SYSTEM_FAULTS = (PaymentError, LedgerError, PersistenceError, LockAcquisitionError)


async def _run_payment(operation: str, call: Awaitable[PaymentResult]) -> PaymentResponse:
    """Await a state machine call and translate faults into HTTP errors."""
    try:
        result = await call
        return PaymentResponse.from_result(result)

    except PaymentValidationError as e:
        logger.warning("api_payment_validation_error", operation=operation, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    except SYSTEM_FAULTS as e:
        logger.error(
            "api_payment_fault", operation=operation, error=str(e), error_type=type(e).__name__
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{operation.capitalize()} failed: {str(e)}",
        )


@payment_router.post(
    "/authorization",
    response_model=PaymentResponse,
    summary="Authorize a payment",
    description="Hold funds on a cardholder account for the merchant named in the From header",
)
async def authorize(
    body: AuthorizationRequestBody,
    merchant_id: str = Depends(get_merchant_id),
    state_machine: PaymentStateMachine = Depends(get_state_machine),
) -> PaymentResponse:
    """Authorize a payment."""
    request = AuthorizationRequest(
        merchant_id=merchant_id,
        card_number=body.card_number,
        security_code=body.card_security_code,
        expiry_month=body.card_expiry_month,
        expiry_year=body.card_expiry_year,
        amount=body.amount,
        order_id=body.order_id,
    )
    return await _run_payment("authorization", state_machine.authorize(request))


@payment_router.post(
    "/capture/{authorization_id}",
    response_model=PaymentResponse,
    summary="Capture an authorization",
)
async def capture(
    authorization_id: str,
    body: SuccessiveRequestBody,
    merchant_id: str = Depends(get_merchant_id),
    state_machine: PaymentStateMachine = Depends(get_state_machine),
) -> PaymentResponse:
    """Capture (part of) an authorization."""
    return await _run_payment(
        "capture", state_machine.capture(merchant_id, authorization_id, body.amount)
    )


@payment_router.post(
    "/reversal/{authorization_id}",
    response_model=PaymentResponse,
    summary="Reverse an authorization",
)
async def reverse(
    authorization_id: str,
    body: SuccessiveRequestBody,
    merchant_id: str = Depends(get_merchant_id),
    state_machine: PaymentStateMachine = Depends(get_state_machine),
) -> PaymentResponse:
    """Reverse (part of) an authorization."""
    return await _run_payment(
        "reversal", state_machine.reverse(merchant_id, authorization_id, body.amount)
    )


@payment_router.post(
    "/refund/{capture_id}",
    response_model=PaymentResponse,
    summary="Refund a capture",
)
async def refund(
    capture_id: str,
    body: SuccessiveRequestBody,
    merchant_id: str = Depends(get_merchant_id),
    state_machine: PaymentStateMachine = Depends(get_state_machine),
) -> PaymentResponse:
    """Refund (part of) a capture."""
    return await _run_payment("refund", state_machine.refund(merchant_id, capture_id, body.amount))


@account_router.post(
    "/create",
    response_model=CreatedAccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def create_account(
    accounts: AccountService = Depends(get_account_service),
) -> CreatedAccountResponse:
    """Create an account with fresh card credentials."""
    try:
        account = await accounts.create_account()
    except SYSTEM_FAULTS as e:
        logger.error("api_create_account_error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Account creation failed",
        )
    return CreatedAccountResponse.from_account(account)


@account_router.post(
    "/deposit",
    response_model=AccountOperationResponse,
    summary="Deposit funds",
)
async def deposit(
    body: DepositRequestBody,
    accounts: AccountService = Depends(get_account_service),
) -> AccountOperationResponse:
    """Deposit funds into an account's available balance."""
    try:
        result = await accounts.deposit_funds(body.id, body.amount)
    except SYSTEM_FAULTS as e:
        logger.error("api_deposit_error", account_id=body.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Deposit failed"
        )
    return AccountOperationResponse.from_result(result)


@account_router.post(
    "/detail",
    response_model=AccountResponse,
    summary="Account detail",
)
async def account_detail(
    body: AccountRequestBody,
    accounts: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """Get balances, credentials and statement ids of an account."""
    account = await accounts.get_account_detail(body.id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return AccountResponse.from_account(account)


@account_router.post(
    "/statement",
    response_model=StatementResponse,
    summary="Account statement",
)
async def account_statement(
    body: AccountRequestBody,
    accounts: AccountService = Depends(get_account_service),
) -> StatementResponse:
    """Get the payments on an account's statement, oldest first."""
    try:
        payments = await accounts.get_account_statement(body.id)
    except SYSTEM_FAULTS as e:
        logger.error("api_statement_error", account_id=body.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Statement failed"
        )
    if payments is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return StatementResponse(
        statement=[PaymentRecordResponse.from_payment(payment) for payment in payments]
    )


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
)
async def health(health_check: HealthCheck = Depends(get_health_check)) -> dict:
    """Health check endpoint for monitoring."""
    return await health_check.check_all()


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
)
async def liveness(health_check: HealthCheck = Depends(get_health_check)) -> dict:
    """Liveness probe endpoint."""
    return await health_check.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness probe",
)
async def readiness(health_check: HealthCheck = Depends(get_health_check)) -> dict:
    """Readiness probe endpoint."""
    result = await health_check.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
