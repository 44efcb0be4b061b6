"""Database layer - engine, base classes, types."""

from exit_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from exit_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from exit_kernel.db.types import Money, PayloadHash, Sequence, round_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Sequence",
    "PayloadHash",
    "round_money",
]
