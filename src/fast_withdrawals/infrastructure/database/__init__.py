"""Database infrastructure — engine, ORM models, and repositories."""

from fast_withdrawals.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    close_db,
    create_tables,
    get_session_factory,
    init_db,
)
from fast_withdrawals.infrastructure.database.orm_models import (
    Base,
    LedgerEvent,
    TokenRegistration,
    WithdrawalEntry,
)
from fast_withdrawals.infrastructure.database.repositories import (
    EventRepository,
    LedgerRepository,
    RegistryRepository,
)

__all__ = [
    "Base",
    "LedgerEvent",
    "TokenRegistration",
    "WithdrawalEntry",
    "EventRepository",
    "LedgerRepository",
    "RegistryRepository",
    "build_engine",
    "build_session_factory",
    "create_tables",
    "get_session_factory",
    "init_db",
    "close_db",
]
