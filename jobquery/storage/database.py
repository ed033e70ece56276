"""In-memory SQLite executor over the read-only job postings dataset."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from jobquery.errors import DatasetLoadError, QueryFailedError

logger = logging.getLogger(__name__)

SQLITE_HEADER = b"SQLite format 3\x00"


@dataclass(slots=True)
class QueryResult:
    """Column names and positional rows, as returned by the executor."""

    columns: list[str] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)

    def as_dicts(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]

    def scalar(self, default: Any = None) -> Any:
        """First column of the first row."""
        if not self.rows:
            return default
        return self.rows[0][0]

    def __len__(self) -> int:
        return len(self.rows)


class DatasetExecutor:
    """Single-connection, parameterized SQL executor.

    The dataset is never written after load; every statement is a SELECT
    with positional ``?`` parameters.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._columns_cache: dict[str, set[str]] = {}

    # -- Construction -----------------------------------------------------------

    @classmethod
    def from_bytes(cls, data: bytes) -> DatasetExecutor:
        """Deserialize a SQLite database image into an in-memory connection."""
        if not data.startswith(SQLITE_HEADER):
            raise DatasetLoadError(
                f"Dataset is not a SQLite database ({len(data)} bytes, missing header)"
            )
        conn = sqlite3.connect(":memory:")
        try:
            conn.deserialize(data)
        except sqlite3.Error as e:
            conn.close()
            raise DatasetLoadError(f"Failed to decode dataset: {e}") from e
        logger.info("Dataset loaded into memory: %.2f MB", len(data) / 1024 / 1024)
        return cls(conn)

    @classmethod
    def from_path(cls, db_path: str | Path) -> DatasetExecutor:
        """Open a dataset file read-only from disk."""
        path = Path(db_path)
        if not path.exists():
            raise DatasetLoadError(f"Dataset file not found: {path}")
        conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    # -- Execution --------------------------------------------------------------

    def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run one statement and return its columns and rows.

        Raises:
            QueryFailedError: The engine rejected or failed the statement; the
                error carries the SQL and parameters.
        """
        try:
            cursor = self._conn.execute(sql, tuple(params))
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            logger.error("Query failed: %s | params=%r | %s", " ".join(sql.split()), list(params), e)
            raise QueryFailedError(str(e), sql, params) from e
        columns = [column[0] for column in cursor.description or ()]
        return QueryResult(columns=columns, rows=[tuple(row) for row in rows])

    def query_objects(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run a statement and return rows as column-keyed dicts."""
        return self.execute(sql, params).as_dicts()

    # -- Introspection ----------------------------------------------------------

    def table_columns(self, table: str) -> set[str]:
        if table not in self._columns_cache:
            rows = self._conn.execute(
                "SELECT name FROM pragma_table_info(?)", (table,)
            ).fetchall()
            self._columns_cache[table] = {row[0] for row in rows}
        return self._columns_cache[table]

    def has_column(self, table: str, column: str) -> bool:
        return column in self.table_columns(table)
