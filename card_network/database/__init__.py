"""Database package for the card network."""
from .connection import close_db, create_session_factory, get_engine, get_session_factory, init_db
from .gateway import EntityKind, PersistenceError, PersistenceGateway
from .models import Account, Base, Payment

__all__ = [
    "Account",
    "Base",
    "EntityKind",
    "Payment",
    "PersistenceError",
    "PersistenceGateway",
    "close_db",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "init_db",
]
