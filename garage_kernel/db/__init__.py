"""Database infrastructure: declarative base, column types, engine/session management."""

from garage_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from garage_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_config,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_config",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
