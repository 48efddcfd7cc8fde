"""Abstract DatabaseService interface."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator

from fxsync.types import Params, ParamsList, Row


class DatabaseService(ABC):
    """Database-agnostic interface for all DB operations used by the rate store.

    Design principles:
    - Stateless: no mutable state beyond the connection pool
    - Thread-safe: each transaction() acquires its own connection
    - DB-agnostic: callers program against this ABC, never a concrete backend

    ``placeholder`` is the backend's parameter marker, for callers that build
    their own statements.
    """

    placeholder: str = "?"

    @abstractmethod
    def connect(self) -> None:
        """Initialize the connection pool."""

    @abstractmethod
    def close(self) -> None:
        """Close all connections and release resources."""

    @abstractmethod
    def execute(self, sql: str, params: Params | None = None) -> list[Row]:
        """Execute a single SQL statement and return rows as dicts."""

    @abstractmethod
    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        """Execute a SQL statement for each parameter set."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Context manager: acquires a connection, commits on success, rolls back on error."""

    @abstractmethod
    def execute_ddl(self, sql: str) -> None:
        """Execute DDL statements (CREATE TABLE, CREATE INDEX, etc.)."""

    @abstractmethod
    def table_columns(self, table: str) -> list[str]:
        """Return the column names of ``table`` in declaration order ([] if missing)."""

    @abstractmethod
    def add_column(self, table: str, column: str, sql_type: str) -> bool:
        """Add a nullable column to ``table``.

        Returns False when the column already exists, True when it was added.
        ``column`` is quoted by the backend; callers must validate it first.
        """

    @abstractmethod
    def upsert(
        self,
        table: str,
        columns: list[str],
        rows: list[tuple],
        conflict_columns: list[str],
        update_columns: list[str] | None = None,
    ) -> None:
        """Insert rows, updating on conflict with the specified columns.

        ``update_columns`` defaults to every non-conflict column; an empty list
        turns the statement into an insert-or-ignore.
        """


def quote_identifier(name: str) -> str:
    """Quote a table or column name with ANSI double quotes (SQLite and PostgreSQL)."""
    return '"' + name.replace('"', '""') + '"'
