"""Database infrastructure: declarative base, engine, types and ledger guards."""

from jobclock_kernel.db.base import (
    Base,
    ExactDecimal,
    TrackedBase,
    UTCDateTime,
    UUIDString,
)
from jobclock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "ExactDecimal",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
