"""Tests for DatabaseService (SQLite backend)."""

import sqlite3
import threading

import pytest

from fxsync import SQLiteDatabaseService, create_service, sqlite_path
from fxsync.errors import EmptyStoreError
from fxsync.rates.store import RateStore
from fxsync.service import quote_identifier


class TestCreateService:
    def test_sqlite_url(self, tmp_path):
        service = create_service(f"sqlite:///{tmp_path / 'x.db'}")
        assert isinstance(service, SQLiteDatabaseService)
        assert service.placeholder == "?"

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError, match="Unsupported database URL scheme"):
            create_service("mysql://localhost/db")

    def test_memory_url_shares_one_database(self):
        service = create_service("sqlite:///:memory:", pool_size=4)
        service.connect()
        try:
            store = RateStore(service)
            store.ensure_schema()
            with pytest.raises(EmptyStoreError):
                store.latest_date()
            store.add_currency_column("EUR")
            store.upsert_rate("EUR", "2020-01-01", 0.9)
            assert store.latest_date() == "2020-01-01"
            assert store.get_rate("EUR", "2020-01-01") == 0.9
        finally:
            service.close()

    @pytest.mark.parametrize(
        "url, path",
        [
            ("sqlite:///data/rates.db", "data/rates.db"),
            ("sqlite:////tmp/rates.db", "/tmp/rates.db"),
            ("sqlite:///:memory:", ":memory:"),
            ("sqlite://", ":memory:"),
        ],
    )
    def test_sqlite_path(self, url, path):
        assert sqlite_path(url) == path

    def test_connect_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "rates.db"
        service = create_service(f"sqlite:///{db_path}", pool_size=1)
        service.connect()
        try:
            assert db_path.parent.is_dir()
        finally:
            service.close()


class TestDatabaseService:
    def test_execute_ddl_and_insert(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)")
        with db_service.transaction():
            db_service.execute("INSERT INTO t (id, name) VALUES (?, ?)", (1, "alice"))
            rows = db_service.execute("SELECT * FROM t")
        assert rows == [{"id": 1, "name": "alice"}]

    def test_execute_many(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with db_service.transaction():
            db_service.execute_many(
                "INSERT INTO t (id, val) VALUES (?, ?)",
                [(1, "a"), (2, "b"), (3, "c")],
            )
            rows = db_service.execute("SELECT * FROM t ORDER BY id")
        assert len(rows) == 3
        assert rows[0]["val"] == "a"

    def test_upsert_insert_and_update(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with db_service.transaction():
            db_service.upsert("t", ["id", "val"], [(1, "old")], ["id"])
        with db_service.transaction():
            db_service.upsert("t", ["id", "val"], [(1, "new"), (2, "fresh")], ["id"])
            rows = db_service.execute("SELECT * FROM t ORDER BY id")
        assert rows == [{"id": 1, "val": "new"}, {"id": 2, "val": "fresh"}]

    def test_upsert_without_update_columns_ignores_conflicts(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with db_service.transaction():
            db_service.upsert("t", ["id", "val"], [(1, "first")], ["id"], update_columns=[])
            db_service.upsert("t", ["id", "val"], [(1, "second")], ["id"], update_columns=[])
            rows = db_service.execute("SELECT * FROM t")
        assert rows == [{"id": 1, "val": "first"}]

    def test_transaction_rollback_on_error(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with pytest.raises(ValueError):
            with db_service.transaction():
                db_service.execute("INSERT INTO t (id, val) VALUES (?, ?)", (1, "x"))
                raise ValueError("simulated failure")

        with db_service.transaction():
            rows = db_service.execute("SELECT * FROM t")
        assert rows == []

    def test_requires_transaction(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        with pytest.raises(RuntimeError, match="No active transaction"):
            db_service.execute("SELECT 1")

    def test_concurrent_transactions(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val INTEGER)")
        errors = []

        def worker(n):
            try:
                with db_service.transaction():
                    db_service.execute("INSERT INTO t (id, val) VALUES (?, ?)", (n, n * 10))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        with db_service.transaction():
            rows = db_service.execute("SELECT * FROM t ORDER BY id")
        assert len(rows) == 4

    def test_upsert_empty_rows(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with db_service.transaction():
            db_service.upsert("t", ["id", "val"], [], ["id"])
            rows = db_service.execute("SELECT * FROM t")
        assert rows == []


class TestSchemaIntrospection:
    def test_table_columns_in_declaration_order(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, b TEXT, a TEXT)")
        assert db_service.table_columns("t") == ["id", "b", "a"]

    def test_table_columns_missing_table(self, db_service):
        assert db_service.table_columns("nope") == []

    def test_table_columns_inside_transaction(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        with db_service.transaction():
            assert db_service.table_columns("t") == ["id"]

    def test_add_column_then_duplicate(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        assert db_service.add_column("t", "EUR", "DOUBLE PRECISION") is True
        assert db_service.add_column("t", "EUR", "DOUBLE PRECISION") is False
        assert db_service.table_columns("t") == ["id", "EUR"]

    def test_add_column_missing_table_raises(self, db_service):
        with pytest.raises(sqlite3.OperationalError):
            db_service.add_column("nope", "EUR", "DOUBLE PRECISION")

    def test_quote_identifier_escapes_quotes(self):
        assert quote_identifier("EUR") == '"EUR"'
        assert quote_identifier('a"b') == '"a""b"'
