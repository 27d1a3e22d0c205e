from __future__ import annotations

from datetime import time, timedelta
from pathlib import Path

import mysql.connector
import pytest

from src.presence.presence.core.exceptions import PersistenceError
from src.presence.presence.database.bootstrap import _strip_create_db_and_use, iter_sql_statements
from src.presence.presence.database.mysql_base import (
    db_cursor,
    dump_json,
    load_json,
    normalize_mysql_time,
    time_str,
    transaction,
)


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.closed = False

    def execute(self, sql, params=None):
        if self.conn.fail_on_execute:
            raise mysql.connector.Error("boom")
        self.conn.executed.append(sql)

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, *, fail_on_execute=False):
        self.fail_on_execute = fail_on_execute
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self, dictionary=True):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


class FakeFactory:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.connections = []

    def connect(self):
        conn = FakeConnection(**self.kwargs)
        self.connections.append(conn)
        return conn


def test_db_cursor_commits_and_closes():
    factory = FakeFactory()
    with db_cursor(factory) as (_, cur):
        cur.execute("SELECT 1")

    conn = factory.connections[0]
    assert conn.commits == 1
    assert conn.rollbacks == 0
    assert conn.closed


def test_db_cursor_translates_driver_errors():
    factory = FakeFactory(fail_on_execute=True)
    with pytest.raises(PersistenceError):
        with db_cursor(factory) as (_, cur):
            cur.execute("SELECT 1")

    conn = factory.connections[0]
    assert conn.rollbacks == 1
    assert conn.closed


def test_transaction_shares_one_connection_and_commits_once():
    factory = FakeFactory()
    with transaction(factory):
        with db_cursor(factory) as (_, cur):
            cur.execute("INSERT 1")
        with db_cursor(factory) as (_, cur):
            cur.execute("INSERT 2")

    assert len(factory.connections) == 1
    conn = factory.connections[0]
    assert conn.executed == ["INSERT 1", "INSERT 2"]
    assert conn.commits == 1


def test_transaction_rolls_back_on_domain_error():
    factory = FakeFactory()
    with pytest.raises(RuntimeError):
        with transaction(factory):
            with db_cursor(factory) as (_, cur):
                cur.execute("DELETE 1")
            raise RuntimeError("apply failed")

    conn = factory.connections[0]
    assert conn.commits == 0
    assert conn.rollbacks == 1
    assert conn.closed


def test_normalize_mysql_time_variants():
    assert normalize_mysql_time(timedelta(hours=9, minutes=5)) == time(9, 5)
    assert normalize_mysql_time("17:30") == time(17, 30)
    assert normalize_mysql_time(time(8, 0)) == time(8, 0)
    assert normalize_mysql_time(None) is None
    assert time_str(timedelta(hours=18, minutes=30)) == "18:30:00"


def test_json_helpers():
    assert load_json('{"a": 1}', {}) == {"a": 1}
    assert load_json(b"[1, 2]", []) == [1, 2]
    assert load_json(None, []) == []
    assert load_json("{broken", {"x": 0}) == {"x": 0}
    assert dump_json(None) is None
    assert load_json(dump_json({"when": "2024-05-01"}), {}) == {"when": "2024-05-01"}


def test_schema_splits_into_create_statements():
    schema = Path(__file__).resolve().parents[2] / "database" / "schema.sql"
    statements = list(iter_sql_statements(_strip_create_db_and_use(schema.read_text(encoding="utf-8"))))

    assert statements
    assert all(s.upper().startswith("CREATE TABLE IF NOT EXISTS") for s in statements)
    assert any("uq_daily_user_date" in s for s in statements)
