# trial_notifier/db.py
import logging
import re
from datetime import datetime
from typing import List, Optional, Protocol

import psycopg
from psycopg.rows import dict_row

from trial_notifier.errors import ConfigError, StoreError
from trial_notifier.models import PLAN_TRIAL, Tenant

log = logging.getLogger("trial_notifier.db")

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class TenantStore(Protocol):
    def list_trial_tenants_ending(self, start: datetime, end: datetime) -> List[Tenant]:
        ...

    def mark_trial_end_notified(self, tenant_id: int, at: datetime) -> bool:
        ...


class PostgresTenantStore:
    """
    Tenant store backed by PostgreSQL (psycopg 3).

    Only two statements matter to the job: the eligibility query and the
    notified-marker update. Everything else here is bootstrap and health.
    """

    def __init__(self, database_url: str, table: str = "tenants"):
        if not database_url:
            raise ConfigError("DATABASE_URL/DB_URL is not set")
        # table name ends up in SQL text; it comes from env (TBL_TENANTS)
        if not _IDENT.match(table):
            raise ConfigError(f"bad tenants table name: {table!r}")
        self.database_url = database_url
        self.table = table

    # ---------- Connection ----------
    def _connect(self):
        return psycopg.connect(self.database_url, row_factory=dict_row)

    def _fetchall(self, sql: str, params: Optional[tuple] = None):
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(sql, params or ())
            return cur.fetchall()

    def _exec(self, sql: str, params: Optional[tuple] = None) -> int:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(sql, params or ())
            conn.commit()
            return cur.rowcount

    # ---------- Schema (lazy) ----------
    def ensure_schema(self) -> None:
        """
        Create the tenants table if missing and add the notified-marker column
        to an existing one.
        """
        try:
            with self._connect() as conn, conn.cursor() as cur:
                cur.execute(f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                      id BIGSERIAL PRIMARY KEY,
                      name TEXT NOT NULL,
                      email TEXT,
                      plan TEXT NOT NULL DEFAULT 'TRIAL',
                      is_active BOOLEAN NOT NULL DEFAULT TRUE,
                      trial_end TIMESTAMPTZ,
                      trial_end_notified_at TIMESTAMPTZ,
                      created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    );
                """)
                cur.execute(f"""
                    ALTER TABLE {self.table}
                      ADD COLUMN IF NOT EXISTS trial_end_notified_at TIMESTAMPTZ;
                """)
                cur.execute(f"""
                    CREATE INDEX IF NOT EXISTS {self.table}_trial_end_idx
                      ON {self.table} (trial_end)
                      WHERE plan = '{PLAN_TRIAL}';
                """)
                conn.commit()
        except psycopg.Error as ex:
            raise StoreError(f"ensure_schema failed: {ex}") from ex

    # ---------- Health ----------
    def ping(self) -> bool:
        try:
            with self._connect() as conn, conn.cursor() as cur:
                cur.execute("SELECT 1;")
                return True
        except psycopg.Error as ex:
            log.warning("db ping failed: %s", ex)
            return False

    # ---------- Trial tenants ----------
    def list_trial_tenants_ending(self, start: datetime, end: datetime) -> List[Tenant]:
        """
        Active TRIAL tenants whose trial_end falls in [start, end) and that have
        not been notified yet, ordered by id.
        """
        sql = f"""
            SELECT id, name, email, plan, is_active, trial_end, trial_end_notified_at
              FROM {self.table}
             WHERE plan = %s
               AND is_active IS TRUE
               AND trial_end >= %s
               AND trial_end < %s
               AND trial_end_notified_at IS NULL
             ORDER BY id ASC;
        """
        try:
            rows = self._fetchall(sql, (PLAN_TRIAL, start, end))
        except psycopg.Error as ex:
            raise StoreError(f"listing trial tenants failed: {ex}") from ex
        return [Tenant.from_row(r) for r in rows]

    def mark_trial_end_notified(self, tenant_id: int, at: datetime) -> bool:
        """
        Set the notified-marker. Returns False when another run set it first.
        """
        sql = f"""
            UPDATE {self.table}
               SET trial_end_notified_at = %s
             WHERE id = %s
               AND trial_end_notified_at IS NULL;
        """
        try:
            return self._exec(sql, (at, tenant_id)) > 0
        except psycopg.Error as ex:
            raise StoreError(f"marking tenant {tenant_id} notified failed: {ex}") from ex


__all__ = ["TenantStore", "PostgresTenantStore"]
