"""Database layer - engine, base classes, and column types."""

from cellar_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from cellar_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from cellar_kernel.db.types import Percentage, Volume, round_percentage, round_volume

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Volume",
    "Percentage",
    "round_volume",
    "round_percentage",
]
