"""
Pytest configuration and fixtures.
"""
from dataclasses import dataclass
from datetime import date
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from card_network.api.dependencies import (
    get_account_service,
    get_health_check,
    get_state_machine,
)
from card_network.api.main import app
from card_network.config import Settings
from card_network.core.accounts import AccountService
from card_network.core.identifiers import CardIssuer
from card_network.core.locking import LocalLockManager
from card_network.core.operations import AuthorizationRequest
from card_network.core.state_machine import PaymentStateMachine
from card_network.core.transactions import TransactionManager
from card_network.database.connection import create_session_factory, init_db
from card_network.database.models import Account
from card_network.monitoring.health import HealthCheck


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast tests without I/O beyond SQLite")
    config.addinivalue_line("markers", "integration: tests through the HTTP API")
    config.addinivalue_line("markers", "race: concurrent request tests")


@pytest.fixture
def test_settings(tmp_path: Any) -> Settings:
    """Create test settings."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'card_network.db'}",
        lock_backend="local",
        redis_url="redis://localhost:6379/1",
        app_name="card-network-test",
        app_env="test",
        log_level="DEBUG",
        debug=True,
    )


@pytest_asyncio.fixture
async def engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, Any]:
    """Create a fresh SQLite database per test."""
    engine = create_async_engine(test_settings.database_url, poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def lock_manager() -> LocalLockManager:
    return LocalLockManager()


@pytest.fixture
def transactions(
    session_factory: async_sessionmaker[AsyncSession], lock_manager: LocalLockManager
) -> TransactionManager:
    return TransactionManager(session_factory, lock_manager)


@pytest.fixture
def issuer() -> CardIssuer:
    return CardIssuer(today=date(2026, 10, 19))


@pytest.fixture
def state_machine(transactions: TransactionManager, issuer: CardIssuer) -> PaymentStateMachine:
    return PaymentStateMachine(transactions, issuer)


@pytest.fixture
def account_service(transactions: TransactionManager, issuer: CardIssuer) -> AccountService:
    return AccountService(transactions, issuer)


@dataclass
class Parties:
    """A merchant and a cardholder funded with ``deposit``."""

    merchant: Account
    cardholder: Account
    deposit: int

    def authorization(self, amount: int, order_id: str = "order-1", **overrides: str) -> AuthorizationRequest:
        fields = dict(
            merchant_id=self.merchant.id,
            card_number=self.cardholder.card_number,
            security_code=self.cardholder.card_security_code,
            expiry_month=self.cardholder.card_expiry_month,
            expiry_year=self.cardholder.card_expiry_year,
            amount=amount,
            order_id=order_id,
        )
        fields.update(overrides)
        return AuthorizationRequest(**fields)


@pytest_asyncio.fixture
async def parties(account_service: AccountService) -> Parties:
    """Merchant with zero balance and cardholder holding 1000."""
    merchant = await account_service.create_account()
    cardholder = await account_service.create_account()
    result = await account_service.deposit_funds(cardholder.id, 1000)
    assert result.status == "0"
    return Parties(merchant=merchant, cardholder=cardholder, deposit=1000)


@pytest_asyncio.fixture
async def client(
    state_machine: PaymentStateMachine,
    account_service: AccountService,
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client wired to the per-test database."""
    app.dependency_overrides[get_state_machine] = lambda: state_machine
    app.dependency_overrides[get_account_service] = lambda: account_service
    app.dependency_overrides[get_health_check] = lambda: HealthCheck(
        settings=test_settings, session_factory=session_factory
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
