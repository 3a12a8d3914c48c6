"""Core payment processing logic."""
from .accounts import AccountService
from .codes import ResponseCode
from .ledger import AccountLedger, LedgerError, NegativeBalanceError
from .locking import LocalLockManager, LockAcquisitionError, RedisLockManager, create_lock_manager
from .operations import AuthorizationRequest, Operation, PaymentResult
from .state_machine import PaymentError, PaymentStateMachine, PaymentValidationError
from .transactions import TransactionManager

__all__ = [
    "AccountLedger",
    "AccountService",
    "AuthorizationRequest",
    "LedgerError",
    "LocalLockManager",
    "LockAcquisitionError",
    "NegativeBalanceError",
    "Operation",
    "PaymentError",
    "PaymentResult",
    "PaymentStateMachine",
    "PaymentValidationError",
    "RedisLockManager",
    "ResponseCode",
    "TransactionManager",
    "create_lock_manager",
]
