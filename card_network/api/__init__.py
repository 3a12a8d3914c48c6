"""FastAPI application and routes."""
from .main import app
from .schemas import (
    AccountResponse,
    AuthorizationRequestBody,
    PaymentResponse,
    StatementResponse,
    SuccessiveRequestBody,
)

__all__ = [
    "app",
    "AccountResponse",
    "AuthorizationRequestBody",
    "PaymentResponse",
    "StatementResponse",
    "SuccessiveRequestBody",
]
