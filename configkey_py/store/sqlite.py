"""SQLite-backed persistent engine implementation."""

import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .base import OpKind, Transaction
from .memory import MemoryCursor
from ..errors import StoreUnavailableError


class SqliteCursor(MemoryCursor):
    """Ordered cursor over one namespace.

    Rows are read once when the cursor is created, so later commits on the
    same connection do not show through it.
    """

    def __init__(self, db: sqlite3.Connection, namespace: str) -> None:
        try:
            rows = db.execute(
                "SELECT key, value FROM kv WHERE namespace = ? ORDER BY key",
                (namespace,)
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"cursor read failed: {e}") from e
        super().__init__([(key, bytes(value)) for key, value in rows])


class SqliteEngine:
    """SQLite engine with ordered keys, atomic batches and a key-level audit log."""

    def __init__(self, db: Union[str, sqlite3.Connection]) -> None:
        """Initialize with a database path or an open connection.

        Args:
            db: Path to SQLite database file, ":memory:", or an open connection
        """
        if isinstance(db, sqlite3.Connection):
            self.db_path = None
            self.db = db
        else:
            self.db_path = db
            self.db = sqlite3.connect(db)
        self._version = 0
        self._init_tables()

    def _init_tables(self) -> None:
        """Initialize kv and kv_transitions tables."""
        create_kv_table = """
            CREATE TABLE IF NOT EXISTS kv (
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                value BLOB NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (namespace, key)
            )
        """

        # Values are never recorded here; secrets live in this store.
        create_transitions_table = """
            CREATE TABLE IF NOT EXISTS kv_transitions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                version INTEGER NOT NULL,
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                op TEXT NOT NULL,
                timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """

        create_transitions_index = """
            CREATE INDEX IF NOT EXISTS idx_kv_transitions_key
            ON kv_transitions(namespace, key)
        """

        self.db.execute(create_kv_table)
        self.db.execute(create_transitions_table)
        self.db.execute(create_transitions_index)
        self.db.commit()

        row = self.db.execute("SELECT MAX(version) FROM kv_transitions").fetchone()
        self._version = row[0] or 0

    def get(self, namespace: str, key: str) -> Optional[bytes]:
        try:
            row = self.db.execute(
                "SELECT value FROM kv WHERE namespace = ? AND key = ?",
                (namespace, key)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"get '{key}' failed: {e}") from e

        if row is None:
            return None
        return bytes(row[0])

    def exists(self, namespace: str, key: str) -> bool:
        try:
            row = self.db.execute(
                "SELECT 1 FROM kv WHERE namespace = ? AND key = ?",
                (namespace, key)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"exists '{key}' failed: {e}") from e
        return row is not None

    def cursor(self, namespace: str) -> SqliteCursor:
        return SqliteCursor(self.db, namespace)

    def apply(self, transaction: Transaction) -> None:
        """Apply all staged operations of a transaction atomically."""
        ops = transaction.mark_committed()
        if not ops:
            return

        version = self._version + 1
        now = datetime.now().isoformat()
        try:
            with self.db:
                for op in ops:
                    if op.kind is OpKind.ERASE:
                        self.db.execute(
                            "DELETE FROM kv WHERE namespace = ? AND key = ?",
                            (op.namespace, op.key)
                        )
                    else:
                        self.db.execute(
                            """INSERT OR REPLACE INTO kv (namespace, key, value, updated_at)
                               VALUES (?, ?, ?, ?)""",
                            (op.namespace, op.key, sqlite3.Binary(op.value), now)
                        )

                    self.db.execute(
                        """INSERT INTO kv_transitions (version, namespace, key, op, timestamp)
                           VALUES (?, ?, ?, ?, ?)""",
                        (version, op.namespace, op.key, op.kind.value, now)
                    )
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"transaction apply failed: {e}") from e

        self._version = version

    @property
    def version(self) -> int:
        """Number of non-empty transactions applied to this database."""
        return self._version

    def get_transitions(self, key: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Get audit log of key transitions, newest first."""
        if key is None:
            cursor = self.db.execute(
                """SELECT version, namespace, key, op, timestamp
                   FROM kv_transitions
                   ORDER BY id DESC LIMIT ?""",
                (limit,)
            )
        else:
            cursor = self.db.execute(
                """SELECT version, namespace, key, op, timestamp
                   FROM kv_transitions
                   WHERE key = ?
                   ORDER BY id DESC LIMIT ?""",
                (key, limit)
            )

        return [
            {"version": v, "namespace": ns, "key": k, "op": op, "timestamp": ts}
            for v, ns, k, op, ts in cursor
        ]

    def close(self) -> None:
        """Close the database connection."""
        if self.db:
            self.db.close()
            self.db = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
