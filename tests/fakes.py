"""Test doubles for the tenant store, the mail gateway and the clock."""
from datetime import timezone

from trial_notifier.errors import StoreError
from trial_notifier.models import SendResult, Tenant

UTC = timezone.utc


class InMemoryTenantStore:
    """Store double: filters like the SQL query does and records marker writes."""

    def __init__(self, tenants=None, fail_on_list=False, fail_on_mark=False):
        self.tenants = {t.id: t for t in (tenants or [])}
        self.fail_on_list = fail_on_list
        self.fail_on_mark = fail_on_mark
        self.list_calls = []
        self.marked = []

    def list_trial_tenants_ending(self, start, end):
        self.list_calls.append((start, end))
        if self.fail_on_list:
            raise StoreError("connection refused")
        return [t for t in sorted(self.tenants.values(), key=lambda t: t.id)
                if t.is_due_for_trial_end_notice(start, end)]

    def mark_trial_end_notified(self, tenant_id, at):
        if self.fail_on_mark:
            raise StoreError("read-only transaction")
        t = self.tenants[tenant_id]
        if t.trial_end_notified_at is not None:
            return False
        self.tenants[tenant_id] = Tenant(
            id=t.id, name=t.name, plan=t.plan, is_active=t.is_active,
            email=t.email, trial_end=t.trial_end, trial_end_notified_at=at,
        )
        self.marked.append(tenant_id)
        return True

    def ping(self):
        return not self.fail_on_list

    def ensure_schema(self):
        pass


class RecordingGateway:
    """Gateway double. `outcomes` maps recipient -> SendResult or Exception."""

    def __init__(self, outcomes=None):
        self.outcomes = outcomes or {}
        self.requests = []

    def send(self, request):
        self.requests.append(request)
        outcome = self.outcomes.get(request.recipient, SendResult.success())
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def trial_tenant(id, trial_end, email="owner@example.com", **kw):
    kw.setdefault("name", f"Tenant {id}")
    kw.setdefault("plan", "TRIAL")
    kw.setdefault("is_active", True)
    return Tenant(id=id, email=email, trial_end=trial_end, **kw)


