"""Database layer - engine, base classes, and money helpers."""

from grants_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from grants_kernel.db.engine import create_tables, get_engine, get_session
from grants_kernel.db.types import ZERO, round_money, to_money

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "ZERO",
    "round_money",
    "to_money",
]
