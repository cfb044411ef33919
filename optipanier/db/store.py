"""Keyed record collections on top of a single shared SQLite connection."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from pathlib import Path

from ..errors import DuplicateKeyError, StorageError
from .schema import COLLECTIONS, ensure_schema

logger = logging.getLogger(__name__)


class RecordStore:
    """Stores JSON records in independent collections keyed by ``id``.

    One instance is opened at startup and shared by every caller. All
    operations are coroutines; the SQLite work runs in a worker thread
    and statements are serialized on the one connection.
    """

    def __init__(self, db_path: str | Path = "~/.config/optipanier/optipanier.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def initialize(self) -> None:
        """Open the database and create any missing collection.

        Raises:
            StorageError: The database could not be opened or upgraded.
                Nothing can be read or written without it.
        """
        if self._conn is not None:
            return
        try:
            self._conn = await asyncio.to_thread(ensure_schema, self._db_path)
        except (sqlite3.Error, OSError) as e:
            logger.error("Impossible d'ouvrir la base de données : %s", e)
            raise StorageError(f"cannot open database {self._db_path}: {e}") from e

    def close(self) -> None:
        if self._conn is not None:
            with self._lock:
                self._conn.close()
            self._conn = None

    async def add(self, collection: str, record: dict) -> None:
        """Insert a new record.

        Raises:
            DuplicateKeyError: A record with the same id already exists.
        """
        table = _table(collection)
        record_id = str(record["id"])
        payload = json.dumps(record, ensure_ascii=False)

        def _insert(conn: sqlite3.Connection) -> None:
            try:
                conn.execute(
                    f"INSERT INTO {table} (id, record) VALUES (?, ?)",
                    (record_id, payload),
                )
            except sqlite3.IntegrityError:
                conn.rollback()
                raise DuplicateKeyError(collection, record_id) from None
            conn.commit()

        await self._run(collection, _insert)

    async def get_all(self, collection: str) -> list[dict]:
        """Return every record in the collection, in key order."""
        table = _table(collection)

        def _select(conn: sqlite3.Connection) -> list[dict]:
            rows = conn.execute(f"SELECT record FROM {table} ORDER BY id").fetchall()
            return [json.loads(r["record"]) for r in rows]

        return await self._run(collection, _select)

    async def delete(self, collection: str, record_id: str) -> None:
        """Delete a record by id. Deleting a missing id is not an error."""
        table = _table(collection)

        def _delete(conn: sqlite3.Connection) -> None:
            conn.execute(f"DELETE FROM {table} WHERE id = ?", (str(record_id),))
            conn.commit()

        await self._run(collection, _delete)

    async def _run(self, collection: str, op):
        conn = self._conn
        if conn is None:
            raise StorageError("database is not initialized")

        def _locked():
            with self._lock:
                return op(conn)

        try:
            return await asyncio.to_thread(_locked)
        except StorageError:
            raise
        except (sqlite3.Error, json.JSONDecodeError) as e:
            logger.error("Échec de l'opération sur %s : %s", collection, e)
            raise StorageError(f"{collection}: {e}") from e


def _table(collection: str) -> str:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise StorageError(f"unknown collection: {collection!r}") from None
