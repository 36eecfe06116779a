from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from apscheduler.triggers.cron import CronTrigger

from fakes import UTC, FixedClock, InMemoryTenantStore, RecordingGateway, trial_tenant
from trial_notifier import scheduler as scheduler_mod
from trial_notifier.config import Settings
from trial_notifier.dispatcher import TrialEndNotifier
from trial_notifier.errors import StoreError


def make_settings(**kw):
    base = dict(timezone=ZoneInfo("Asia/Tokyo"), database_url="postgresql://db/x", disable_email=True)
    base.update(kw)
    return Settings(**base)


def make_notifier(store=None):
    return TrialEndNotifier(
        store or InMemoryTenantStore(),
        RecordingGateway(),
        ZoneInfo("UTC"),
        clock=FixedClock(datetime(2024, 6, 1, 9, 0, tzinfo=UTC)),
    )


def test_job_is_daily_cron_without_overlap():
    settings = make_settings(cron_hour=9, cron_minute=30, job_id="trial_end_test")
    sched = scheduler_mod.build_scheduler(settings, make_notifier())

    job = sched.get_job("trial_end_test")
    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.misfire_grace_time == 3600
    assert isinstance(job.trigger, CronTrigger)
    assert str(job.trigger.timezone) == "Asia/Tokyo"
    fields = {f.name: str(f) for f in job.trigger.fields}
    assert fields["hour"] == "9"
    assert fields["minute"] == "30"


def test_run_job_returns_summary_dict():
    store = InMemoryTenantStore([trial_tenant(1, datetime(2024, 6, 1, 1, 0, tzinfo=UTC))])
    summary = scheduler_mod.run_trial_end_job(make_notifier(store))
    assert summary["found"] == 1
    assert summary["sent"] == 1


def test_run_job_reraises_store_errors():
    with pytest.raises(StoreError):
        scheduler_mod.run_trial_end_job(make_notifier(InMemoryTenantStore(fail_on_list=True)))


def test_main_once(monkeypatch):
    notifier = make_notifier(InMemoryTenantStore([trial_tenant(1, datetime(2024, 6, 1, 1, 0, tzinfo=UTC))]))
    monkeypatch.setattr(scheduler_mod, "load_settings", lambda: make_settings())
    monkeypatch.setattr(scheduler_mod, "build_notifier", lambda settings: notifier)

    assert scheduler_mod.main(["--once"]) == 0
    assert len(notifier.gateway.requests) == 1


def test_main_once_store_failure(monkeypatch):
    notifier = make_notifier(InMemoryTenantStore(fail_on_list=True))
    monkeypatch.setattr(scheduler_mod, "load_settings", lambda: make_settings())
    monkeypatch.setattr(scheduler_mod, "build_notifier", lambda settings: notifier)

    assert scheduler_mod.main(["--once"]) == 1


def test_main_config_error(monkeypatch):
    monkeypatch.setenv("APP_TZ", "Nowhere/Atlantis")
    monkeypatch.setenv("DATABASE_URL", "postgresql://db/x")
    monkeypatch.setenv("DISABLE_EMAIL", "1")
    assert scheduler_mod.main(["--once"]) == 2
