"""Exception hierarchy for the job query engine."""

from __future__ import annotations

from typing import Any, Sequence


class JobQueryError(Exception):
    """Base job query engine error."""


class UnknownFieldError(JobQueryError, KeyError):
    """Raised when a field key is not present in the schema catalog."""

    def __init__(self, field_key: str, context: str = "schema catalog") -> None:
        self.field_key = field_key
        super().__init__(f"Unknown field {field_key!r}: not present in the {context}")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0])


class QueryFailedError(JobQueryError):
    """Raised when the relational executor rejects or fails a statement."""

    def __init__(self, message: str, sql: str, params: Sequence[Any]) -> None:
        self.sql = sql
        self.params = tuple(params)
        super().__init__(f"{message}\nSQL: {sql.strip()}\nParams: {list(self.params)!r}")


class DatasetLoadError(JobQueryError):
    """Raised when the dataset cannot be fetched or decoded."""


class DatasetNotLoadedError(JobQueryError):
    """Raised when a query is issued before the dataset has been loaded."""
