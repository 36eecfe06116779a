from datetime import datetime, timezone

import psycopg
import pytest

from trial_notifier.db import PostgresTenantStore
from trial_notifier.errors import ConfigError, StoreError

UTC = timezone.utc
START = datetime(2024, 5, 31, 15, 0, tzinfo=UTC)
END = datetime(2024, 6, 1, 15, 0, tzinfo=UTC)


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = conn.rowcount

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=()):
        if self.conn.error is not None:
            raise self.conn.error
        self.conn.executed.append((" ".join(sql.split()), params))

    def fetchall(self):
        return self.conn.rows


class FakeConnection:
    def __init__(self, rows=None, rowcount=1, error=None):
        self.rows = rows or []
        self.rowcount = rowcount
        self.error = error
        self.executed = []
        self.commits = 0
        self.connect_args = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1


@pytest.fixture
def fake_conn(monkeypatch):
    conn = FakeConnection()

    def connect(url, **kwargs):
        conn.connect_args = (url, kwargs)
        return conn

    monkeypatch.setattr("trial_notifier.db.psycopg.connect", connect)
    return conn


def test_list_query_filters_and_orders(fake_conn):
    fake_conn.rows = [
        {"id": 3, "name": "B", "email": "b@x.com", "plan": "TRIAL", "is_active": True,
         "trial_end": START, "trial_end_notified_at": None},
    ]
    store = PostgresTenantStore("postgresql://db/pitlink")

    tenants = store.list_trial_tenants_ending(START, END)

    assert [t.id for t in tenants] == [3]
    sql, params = fake_conn.executed[0]
    assert params == ("TRIAL", START, END)
    assert "FROM tenants" in sql
    assert "is_active IS TRUE" in sql
    assert "trial_end >= %s AND trial_end < %s" in sql
    assert "trial_end_notified_at IS NULL" in sql
    assert sql.endswith("ORDER BY id ASC;")
    assert fake_conn.connect_args[0] == "postgresql://db/pitlink"


def test_list_wraps_driver_errors(fake_conn):
    fake_conn.error = psycopg.OperationalError("server closed the connection")
    with pytest.raises(StoreError):
        PostgresTenantStore("postgresql://db/pitlink").list_trial_tenants_ending(START, END)


def test_mark_is_conditional_and_committed(fake_conn):
    store = PostgresTenantStore("postgresql://db/pitlink", table="pit_tenants")

    assert store.mark_trial_end_notified(42, END) is True

    sql, params = fake_conn.executed[0]
    assert sql.startswith("UPDATE pit_tenants SET trial_end_notified_at = %s")
    assert "AND trial_end_notified_at IS NULL" in sql
    assert params == (END, 42)
    assert fake_conn.commits == 1


def test_mark_reports_lost_race(fake_conn):
    fake_conn.rowcount = 0
    assert PostgresTenantStore("postgresql://db/x").mark_trial_end_notified(1, END) is False


def test_ensure_schema_adds_marker_column(fake_conn):
    PostgresTenantStore("postgresql://db/x").ensure_schema()
    statements = [sql for sql, _ in fake_conn.executed]
    assert statements[0].startswith("CREATE TABLE IF NOT EXISTS tenants")
    assert "ADD COLUMN IF NOT EXISTS trial_end_notified_at" in statements[1]
    assert fake_conn.commits == 1


def test_ping(fake_conn):
    store = PostgresTenantStore("postgresql://db/x")
    assert store.ping() is True
    fake_conn.error = psycopg.OperationalError("down")
    assert store.ping() is False


@pytest.mark.parametrize("table", ["tenants; DROP TABLE x", "1tenants", "ten-ants"])
def test_rejects_bad_table_names(table):
    with pytest.raises(ConfigError):
        PostgresTenantStore("postgresql://db/x", table=table)


def test_requires_url():
    with pytest.raises(ConfigError):
        PostgresTenantStore("")
