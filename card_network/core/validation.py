"""
Validation pipeline for payment operations.

Checks run in a fixed order and the first decline wins:

    authorization: merchant -> card -> card details -> funds
    successive:    merchant -> reference -> reference state (kind, status, owner)
                   -> remaining amount

Checks only read; they resolve the records later steps need and store them
on the context.
"""
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

import structlog

from card_network.core.codes import ResponseCode
from card_network.core.operations import AuthorizationRequest, SuccessiveRequest
from card_network.database.gateway import PersistenceGateway
from card_network.database.models import Account, Payment

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Decline:
    """
    A business decline.

    ``audit`` marks declines that still write a payment record to the
    merchant's statement.
    """

    code: ResponseCode
    audit: bool = False


@dataclass
class AuthorizationContext:
    request: AuthorizationRequest
    merchant: Optional[Account] = None
    cardholder: Optional[Account] = None


@dataclass
class SuccessiveContext:
    request: SuccessiveRequest
    merchant: Optional[Account] = None
    reference: Optional[Payment] = None


ContextT = TypeVar("ContextT", AuthorizationContext, SuccessiveContext)
Check = Callable[[ContextT, PersistenceGateway], Awaitable[Optional[Decline]]]


async def _resolve_merchant(
    merchant_id: str, gateway: PersistenceGateway
) -> tuple[Optional[Account], Optional[Decline]]:
    if not merchant_id:
        return None, Decline(ResponseCode.INVALID_MERCHANT)
    merchant = await gateway.get_account(merchant_id, for_update=True)
    if merchant is None:
        return None, Decline(ResponseCode.NO_SUCH_ISSUER)
    return merchant, None


async def check_authorization_merchant(
    ctx: AuthorizationContext, gateway: PersistenceGateway
) -> Optional[Decline]:
    """Merchant id must be present and resolve to an account."""
    ctx.merchant, decline = await _resolve_merchant(ctx.request.merchant_id, gateway)
    return decline


async def check_card(ctx: AuthorizationContext, gateway: PersistenceGateway) -> Optional[Decline]:
    """Card number must be present and resolve to an account."""
    if not ctx.request.card_number:
        return Decline(ResponseCode.INVALID_TRANSACTION)
    ctx.cardholder = await gateway.get_account(ctx.request.card_number, for_update=True)
    if ctx.cardholder is None:
        return Decline(ResponseCode.NO_CARD_RECORD)
    return None


async def check_card_details(
    ctx: AuthorizationContext, gateway: PersistenceGateway
) -> Optional[Decline]:
    """Presented credentials must match the stored ones verbatim."""
    card, request = ctx.cardholder, ctx.request
    if (
        card.card_number != request.card_number
        or card.card_security_code != request.security_code
        or card.card_expiry_month != request.expiry_month
        or card.card_expiry_year != request.expiry_year
    ):
        return Decline(ResponseCode.DO_NOT_HONOUR, audit=True)
    return None


async def check_funds(ctx: AuthorizationContext, gateway: PersistenceGateway) -> Optional[Decline]:
    """Cardholder must have enough available balance."""
    if ctx.cardholder.available < ctx.request.amount:
        return Decline(ResponseCode.INSUFFICIENT_FUNDS, audit=True)
    return None


async def check_successive_merchant(
    ctx: SuccessiveContext, gateway: PersistenceGateway
) -> Optional[Decline]:
    """Merchant id must be present and resolve to an account."""
    ctx.merchant, decline = await _resolve_merchant(ctx.request.merchant_id, gateway)
    return decline


async def check_reference(ctx: SuccessiveContext, gateway: PersistenceGateway) -> Optional[Decline]:
    """Reference id must be present and resolve to a payment."""
    if not ctx.request.reference_id:
        return Decline(ResponseCode.INVALID_TRANSACTION)
    ctx.reference = await gateway.get_payment(ctx.request.reference_id, for_update=True)
    if ctx.reference is None:
        return Decline(ResponseCode.INVALID_TRANSACTION)
    return None


async def check_reference_state(
    ctx: SuccessiveContext, gateway: PersistenceGateway
) -> Optional[Decline]:
    """
    Referenced payment must be an approved record of the expected parent
    kind, opened by the requesting merchant.
    """
    expected = ctx.request.operation.parent
    if (
        expected is None
        or ctx.reference.operation != expected.value
        or ctx.reference.status != ResponseCode.APPROVED.value
        or ctx.reference.merchant_id != ctx.merchant.id
    ):
        return Decline(ResponseCode.INVALID_TRANSACTION)
    return None


async def check_remaining_amount(
    ctx: SuccessiveContext, gateway: PersistenceGateway
) -> Optional[Decline]:
    """Requested amount must not exceed what is left on the referenced payment."""
    if ctx.request.amount > ctx.reference.current_amount:
        return Decline(ResponseCode.INVALID_AMOUNT, audit=True)
    return None


class ValidationPipeline(Generic[ContextT]):
    """
    Ordered sequence of checks returning the first applicable decline.

    Args:
        name: Pipeline name used in logs
        checks: Checks in precedence order
    """

    def __init__(self, name: str, checks: Sequence[Check]):
        self.name = name
        self.checks = tuple(checks)

    async def run(self, ctx: ContextT, gateway: PersistenceGateway) -> Optional[Decline]:
        """
        Run checks until one declines.

        Returns:
            Optional[Decline]: The first decline, or None if every check passed
        """
        for check in self.checks:
            decline = await check(ctx, gateway)
            if decline is not None:
                logger.info(
                    "validation_declined",
                    pipeline=self.name,
                    check=check.__name__,
                    status=decline.code.value,
                )
                return decline
        return None


AUTHORIZATION_PIPELINE: ValidationPipeline[AuthorizationContext] = ValidationPipeline(
    "authorization",
    [check_authorization_merchant, check_card, check_card_details, check_funds],
)

SUCCESSIVE_PIPELINE: ValidationPipeline[SuccessiveContext] = ValidationPipeline(
    "successive",
    [check_successive_merchant, check_reference, check_reference_state, check_remaining_amount],
)
