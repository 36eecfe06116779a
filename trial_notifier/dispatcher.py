# trial_notifier/dispatcher.py
import logging
from datetime import datetime, timezone
from typing import Callable, List, Tuple
from zoneinfo import ZoneInfo

from trial_notifier.config import Settings
from trial_notifier.db import PostgresTenantStore, TenantStore
from trial_notifier.email_sender import MailGateway, SmtpMailGateway
from trial_notifier.errors import StoreError
from trial_notifier.models import NotificationRequest, RunSummary, SendResult, Tenant
from trial_notifier.selector import select_eligible_tenants
from trial_notifier.window import TimeWindow, resolve_today_window

log = logging.getLogger("trial_notifier.dispatcher")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TrialEndNotifier:
    """
    One notification pass: resolve today's window, select the tenants whose
    trial ends in it, and send each of them one notice.

    Sends are sequential. A failed send is logged and counted, never retried
    within the run, and never stops the remaining tenants. A store failure
    while selecting aborts the run before anything is sent.
    """

    def __init__(
        self,
        store: TenantStore,
        gateway: MailGateway,
        tz: ZoneInfo,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.gateway = gateway
        self.tz = tz
        self.clock = clock

    def preview(self) -> Tuple[TimeWindow, List[Tenant]]:
        window = resolve_today_window(self.clock(), self.tz)
        return window, select_eligible_tenants(self.store, window)

    def run(self) -> RunSummary:
        started_at = self.clock()
        window = resolve_today_window(started_at, self.tz)
        summary = RunSummary(
            window_start=window.start,
            window_end=window.end,
            timezone=window.timezone,
            started_at=started_at,
        )
        log.info(
            "Running trial-end notice job window=[%s, %s) tz=%s",
            window.start.isoformat(), window.end.isoformat(), window.timezone,
        )

        try:
            tenants = select_eligible_tenants(self.store, window)
        except StoreError as e:
            log.error(
                "Trial-end notice job aborted, nothing sent: window=[%s, %s) error=%s",
                window.start.isoformat(), window.end.isoformat(), e,
            )
            raise

        summary.found = len(tenants)
        if not tenants:
            log.info("No tenants to notify today")
            summary.finished_at = self.clock()
            return summary

        log.info("Found %d trial tenants to notify", len(tenants))
        for tenant in tenants:
            self._notify_one(tenant, summary)

        summary.finished_at = self.clock()
        log.info(
            "Trial-end notice job completed found=%d sent=%d skipped=%d failed=%d dry_run=%d",
            summary.found, summary.sent, summary.skipped, summary.failed, summary.dry_run,
        )
        return summary

    def _notify_one(self, tenant: Tenant, summary: RunSummary) -> None:
        if not tenant.email:
            log.warning("Skip tenant_id=%s name=%r: no email", tenant.id, tenant.name)
            summary.skipped += 1
            return
        if tenant.trial_end is None:
            log.warning("Skip tenant_id=%s name=%r: no trial end", tenant.id, tenant.name)
            summary.skipped += 1
            return

        request = NotificationRequest(
            recipient=tenant.email,
            tenant_name=tenant.name,
            trial_ends_at=tenant.trial_end,
        )
        try:
            result = self.gateway.send(request)
        except Exception as e:
            result = SendResult.failure(f"{type(e).__name__}: {e}")

        if not result.ok:
            log.error(
                "Trial-end notice failed tenant_id=%s name=%r to=%s reason=%s",
                tenant.id, tenant.name, tenant.email, result.reason,
            )
            summary.failed += 1
            summary.failed_tenant_ids.append(tenant.id)
            return

        if result.dry_run:
            log.info("Trial-end notice simulated tenant_id=%s to=%s (DISABLE_EMAIL)", tenant.id, tenant.email)
            summary.dry_run += 1
            return

        summary.sent += 1
        log.info("Trial-end notice sent tenant_id=%s to=%s", tenant.id, tenant.email)
        self._mark_notified(tenant)

    def _mark_notified(self, tenant: Tenant) -> None:
        try:
            if not self.store.mark_trial_end_notified(tenant.id, self.clock()):
                log.warning("tenant_id=%s was already marked notified by another run", tenant.id)
        except StoreError as e:
            # mail already went out; the next run may send it again
            log.error("Could not mark tenant_id=%s notified: %s", tenant.id, e)


def build_notifier(settings: Settings) -> TrialEndNotifier:
    """Wire the Postgres store and the SMTP gateway from settings."""
    store = PostgresTenantStore(settings.database_url, settings.tenants_table)
    return TrialEndNotifier(store, SmtpMailGateway(settings), settings.timezone)


__all__ = ["TrialEndNotifier", "build_notifier", "utc_now"]
