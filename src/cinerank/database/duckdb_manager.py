"""DuckDB connection + Ibis backend shared by the stores."""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import TYPE_CHECKING

import duckdb
import ibis

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

logger = logging.getLogger(__name__)


class DuckDBStorageManager:
    """Owns one DuckDB database and the Ibis backend over it.

    Raw statements and Ibis reads share the same connection; writes are
    serialized with a re-entrant lock.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path
        if db_path is not None:
            db_path.parent.mkdir(parents=True, exist_ok=True)

        db_str = str(db_path) if db_path else ":memory:"
        self.ibis_conn = ibis.duckdb.connect(database=db_str, read_only=False)
        self._lock = threading.RLock()

        logger.info("DuckDBStorageManager initialized (db=%s)", "memory" if db_path is None else db_path)

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Raw DuckDB connection underneath the Ibis backend."""
        return self.ibis_conn.con

    def execute(self, sql: str, params: list | None = None) -> duckdb.DuckDBPyConnection:
        with self._lock:
            return self.conn.execute(sql, params or [])

    @contextlib.contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run statements atomically; rolls back if the block raises."""
        with self._lock:
            self.conn.execute("BEGIN TRANSACTION")
            try:
                yield self.conn
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            self.conn.execute("COMMIT")

    def list_tables(self) -> list[str]:
        return list(self.ibis_conn.list_tables())

    def close(self) -> None:
        with self._lock:
            self.ibis_conn.disconnect()
