"""SQLite-backed record store for receipts and loyalty cards."""

from .schema import COLLECTIONS, ensure_schema
from .store import RecordStore

__all__ = [
    "COLLECTIONS",
    "RecordStore",
    "ensure_schema",
]
