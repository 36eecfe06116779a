# trial_notifier/check_db.py
"""Connectivity check: ping the tenant store and list who is due today."""
import os
import sys

from trial_notifier.config import load_settings
from trial_notifier.db import PostgresTenantStore
from trial_notifier.dispatcher import utc_now
from trial_notifier.errors import ConfigError, StoreError
from trial_notifier.selector import select_eligible_tenants
from trial_notifier.window import resolve_today_window


def check_connection(store: PostgresTenantStore, tz) -> int:
    if not store.ping():
        print("❌ DB connection failed")
        return 1
    print("✅ DB connected successfully")

    window = resolve_today_window(utc_now(), tz)
    try:
        tenants = select_eligible_tenants(store, window)
    except StoreError as e:
        print(f"❌ Query failed: {e}")
        return 1

    print(f"Window [{window.start.isoformat()}, {window.end.isoformat()}) {window.timezone}")
    print(f"{len(tenants)} trial tenant(s) due today")
    for t in tenants:
        print(f"  id={t.id} name={t.name} email={t.email or '-'} trial_end={t.trial_end.isoformat()}")
    return 0


def main() -> int:
    try:
        # mail settings are irrelevant to a DB check
        settings = load_settings({**os.environ, "DISABLE_EMAIL": "1"})
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        return 2
    store = PostgresTenantStore(settings.database_url, settings.tenants_table)
    return check_connection(store, settings.timezone)


if __name__ == "__main__":
    sys.exit(main())
