# trial_notifier/selector.py
import logging
from typing import List

from trial_notifier.db import TenantStore
from trial_notifier.models import Tenant
from trial_notifier.window import TimeWindow

log = logging.getLogger("trial_notifier.selector")


def select_eligible_tenants(store: TenantStore, window: TimeWindow) -> List[Tenant]:
    """
    Tenants due for today's trial-end notice, ordered by id.

    The store query already filters; the predicate is re-applied so a store
    that over-selects cannot cause a send. StoreError propagates untouched.
    """
    rows = store.list_trial_tenants_ending(window.start, window.end)
    eligible = [t for t in rows if t.is_due_for_trial_end_notice(window.start, window.end)]
    if len(eligible) != len(rows):
        log.warning(
            "store returned %d rows, %d match the trial-end predicate",
            len(rows), len(eligible),
        )
    return sorted(eligible, key=lambda t: t.id)


__all__ = ["select_eligible_tenants"]
