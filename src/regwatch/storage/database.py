"""
SQLite access for the job queue and the document store.

The database runs in WAL mode with a busy timeout so that several
``regwatch drain`` processes can share one file. Each thread gets its own
autocommit connection; multi-statement writes go through transaction().
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

from regwatch.core.exceptions import DatabaseError
from regwatch.storage.schema import SchemaManager
from regwatch.utils.logging import get_logger

if TYPE_CHECKING:
    from regwatch.config.settings import Settings

logger = get_logger(__name__)


class Database:
    """
    Per-thread SQLite connections plus small row helpers.

    Rows come back as plain dicts. Table and column names passed to
    insert() and update() are trusted; values are always bound.

    Example:
        >>> db = Database.from_settings(settings)
        >>> db.fetch_one("SELECT COUNT(*) AS n FROM jobs WHERE status = ?", ("pending",))
        {'n': 4}
    """

    def __init__(
        self,
        database_path: Path | str,
        wal_mode: bool = True,
        cache_size_mb: int = 64,
        busy_timeout_seconds: float = 30.0,
    ) -> None:
        """
        Open (or create) the database file and bring the schema up to date.

        Raises:
            DatabaseError: If the file cannot be opened or the schema cannot be created
        """
        self.database_path = Path(database_path)
        self.wal_mode = wal_mode
        self.cache_size_mb = cache_size_mb
        self.busy_timeout_seconds = busy_timeout_seconds

        self._local = threading.local()
        self._open: list[sqlite3.Connection] = []
        self._open_lock = threading.Lock()

        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            SchemaManager(self._connection()).initialize()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Schema initialization failed: {e}",
                details={"path": str(self.database_path)},
            ) from e
        logger.debug(f"Opened {self.database_path}")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Database":
        cfg = settings.storage
        return cls(
            cfg.database_path,
            wal_mode=cfg.wal_mode,
            cache_size_mb=cfg.cache_size_mb,
            busy_timeout_seconds=cfg.busy_timeout_seconds,
        )

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._connect()
            self._local.conn = conn
            with self._open_lock:
                self._open.append(conn)
        return conn

    def _connect(self) -> sqlite3.Connection:
        pragmas = [
            f"PRAGMA journal_mode = {'WAL' if self.wal_mode else 'DELETE'}",
            "PRAGMA synchronous = NORMAL",
            "PRAGMA foreign_keys = ON",
            # Negative values are KiB
            f"PRAGMA cache_size = -{self.cache_size_mb * 1024}",
        ]
        try:
            conn = sqlite3.connect(
                self.database_path,
                timeout=self.busy_timeout_seconds,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            for pragma in pragmas:
                conn.execute(pragma)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Cannot open database: {e}", details={"path": str(self.database_path)}
            ) from e
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Group statements into one write transaction.

        BEGIN IMMEDIATE takes the write lock up front, so a concurrent
        writer waits on the busy timeout instead of failing mid-transaction.
        """
        conn = self._connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise DatabaseError(f"Could not begin transaction: {e}") from e
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._connection().execute(sql, params)
        except sqlite3.Error as e:
            raise DatabaseError(f"Query failed: {e}", query=sql) from e

    def fetch_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        row = self.execute(sql, params).fetchone()
        return None if row is None else dict(row)

    def fetch_all(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        return [dict(row) for row in self.execute(sql, params)]

    def insert(self, table: str, row: dict[str, Any]) -> None:
        names = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        self.execute(f"INSERT INTO {table} ({names}) VALUES ({marks})", tuple(row.values()))

    def update(self, table: str, values: dict[str, Any], where: str, params: tuple = ()) -> int:
        """UPDATE ``table`` and return how many rows changed."""
        assignments = ", ".join(f"{name} = ?" for name in values)
        cursor = self.execute(
            f"UPDATE {table} SET {assignments} WHERE {where}",
            tuple(values.values()) + tuple(params),
        )
        return cursor.rowcount

    def close(self) -> None:
        """Close every connection opened through this instance."""
        with self._open_lock:
            for conn in self._open:
                conn.close()
            self._open.clear()
        self._local = threading.local()

    def __repr__(self) -> str:
        return f"Database({str(self.database_path)!r})"
