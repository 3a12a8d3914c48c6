"""FastAPI dependencies wiring services to the configured database and locks."""
from functools import lru_cache

from fastapi import Request

from card_network.config import get_settings
from card_network.core.accounts import AccountService
from card_network.core.locking import create_lock_manager
from card_network.core.state_machine import PaymentStateMachine
from card_network.core.transactions import TransactionManager
from card_network.database.connection import get_session_factory
from card_network.monitoring.health import HealthCheck


@lru_cache()
def get_transaction_manager() -> TransactionManager:
    """Process-wide transaction manager (one lock table per process)."""
    return TransactionManager(get_session_factory(), create_lock_manager())


@lru_cache()
def get_state_machine() -> PaymentStateMachine:
    return PaymentStateMachine(get_transaction_manager())


@lru_cache()
def get_account_service() -> AccountService:
    return AccountService(get_transaction_manager())


@lru_cache()
def get_health_check() -> HealthCheck:
    return HealthCheck()


def get_merchant_id(request: Request) -> str:
    """Merchant account id from the configured request header."""
    return request.headers.get(get_settings().merchant_header, "")
