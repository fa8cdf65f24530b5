"""Database layer - engine, declarative base, column types and listeners."""

from clm_kernel.db.base import UUID, Base, TenantScopedBase, UTCDateTime, UUIDString
from clm_kernel.db.engine import (
    create_sqlite_engine,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_settings,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "TenantScopedBase",
    "UTCDateTime",
    "UUID",
    "UUIDString",
    "create_sqlite_engine",
    "create_tables",
    "get_engine",
    "get_session",
    "init_engine_from_settings",
    "init_engine_from_url",
    "session_scope",
]
