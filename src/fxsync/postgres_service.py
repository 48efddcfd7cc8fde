"""PostgreSQL implementation of DatabaseService."""

import logging
import threading
from contextlib import contextmanager
from queue import Empty, Queue
from typing import Iterator

import psycopg2
import psycopg2.errors
import psycopg2.extras

from fxsync.service import DatabaseService, quote_identifier
from fxsync.types import Params, ParamsList, Row

logger = logging.getLogger(__name__)


class PostgresDatabaseService(DatabaseService):
    """PostgreSQL backend using psycopg2.

    Thread-safe via a connection pool (Queue). Each transaction() call
    acquires a dedicated connection and returns it on exit.
    """

    placeholder = "%s"

    def __init__(self, dsn: str, pool_size: int = 4):
        self._dsn = dsn
        self._pool_size = pool_size
        self._pool: Queue = Queue(maxsize=pool_size)
        self._local = threading.local()

    def connect(self) -> None:
        for _ in range(self._pool_size):
            conn = psycopg2.connect(self._dsn)
            conn.autocommit = False
            self._pool.put(conn)
        logger.debug("Opened %d PostgreSQL connections", self._pool_size)

    def close(self) -> None:
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except Empty:
                break

    def _acquire(self):
        return self._pool.get(timeout=30)

    def _release(self, conn) -> None:
        self._pool.put(conn)

    def _get_conn(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        raise RuntimeError(
            "No active transaction. Wrap calls in a `with service.transaction():` block."
        )

    @contextmanager
    def _borrow(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            yield conn
            return
        conn = self._acquire()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self._acquire()
        self._local.conn = conn
        try:
            yield
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._local.conn = None
            self._release(conn)

    def execute(self, sql: str, params: Params | None = None) -> list[Row]:
        conn = self._get_conn()
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, params or ())
            if cur.description is None:
                return []
            return [dict(row) for row in cur.fetchall()]

    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        conn = self._get_conn()
        with conn.cursor() as cur:
            cur.executemany(sql, params_list)

    def execute_ddl(self, sql: str) -> None:
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                for statement in sql.split(";"):
                    statement = statement.strip()
                    if statement:
                        cur.execute(statement)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    def table_columns(self, table: str) -> list[str]:
        sql = (
            "SELECT column_name FROM information_schema.columns "
            "WHERE table_schema = current_schema() AND table_name = %s "
            "ORDER BY ordinal_position"
        )
        with self._borrow() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (table,))
                return [row[0] for row in cur.fetchall()]

    def add_column(self, table: str, column: str, sql_type: str) -> bool:
        # IF NOT EXISTS succeeds silently, so existence is decided up front
        before = set(self.table_columns(table))
        if column in before:
            return False
        sql = (
            f"ALTER TABLE {quote_identifier(table)} "
            f"ADD COLUMN IF NOT EXISTS {quote_identifier(column)} {sql_type}"
        )
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                cur.execute(sql)
            conn.commit()
        except psycopg2.errors.DuplicateColumn:
            conn.rollback()
            return False
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)
        return True

    def upsert(
        self,
        table: str,
        columns: list[str],
        rows: list[tuple],
        conflict_columns: list[str],
        update_columns: list[str] | None = None,
    ) -> None:
        if not rows:
            return
        table = quote_identifier(table)
        cols = ", ".join(quote_identifier(c) for c in columns)
        placeholders = ", ".join("%s" for _ in columns)
        conflict_cols = ", ".join(quote_identifier(c) for c in conflict_columns)
        if update_columns is None:
            update_columns = [c for c in columns if c not in conflict_columns]
        update_cols = [quote_identifier(c) for c in update_columns]
        update_clause = ", ".join(f"{c} = EXCLUDED.{c}" for c in update_cols)

        if update_cols:
            sql = (
                f"INSERT INTO {table} ({cols}) VALUES ({placeholders}) "
                f"ON CONFLICT ({conflict_cols}) DO UPDATE SET {update_clause}"
            )
        else:
            sql = (
                f"INSERT INTO {table} ({cols}) VALUES ({placeholders}) "
                f"ON CONFLICT ({conflict_cols}) DO NOTHING"
            )
        self.execute_many(sql, rows)
