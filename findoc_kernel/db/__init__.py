"""Database layer - engine, base classes, money helpers."""

from findoc_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from findoc_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    session_scope,
)
from findoc_kernel.db.types import (
    round_money,
    to_decimal,
    validate_currency,
)

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "round_money",
    "to_decimal",
    "validate_currency",
]
