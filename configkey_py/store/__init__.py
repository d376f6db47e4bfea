"""Engines and key-value operations for configkey-py."""

from .base import OpKind, WriteOp, Transaction, Cursor, KVEngine, iter_cursor
from .memory import MemoryEngine, MemoryCursor
from .sqlite import SqliteEngine, SqliteCursor
from .adapter import StoreAdapter, is_binary, render_value

__all__ = [
    # Base protocol
    "OpKind",
    "WriteOp",
    "Transaction",
    "Cursor",
    "KVEngine",
    "iter_cursor",
    # Engines
    "MemoryEngine",
    "MemoryCursor",
    "SqliteEngine",
    "SqliteCursor",
    # Operations
    "StoreAdapter",
    "is_binary",
    "render_value",
]
