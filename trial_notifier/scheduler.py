# trial_notifier/scheduler.py

import sys
import argparse
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from trial_notifier.config import Settings, configure_logging, load_settings
from trial_notifier.dispatcher import TrialEndNotifier, build_notifier
from trial_notifier.errors import ConfigError, StoreError

log = logging.getLogger("trial_notifier.scheduler")


# ---------- job ----------
def run_trial_end_job(notifier: TrialEndNotifier) -> dict:
    """
    Run one trial-end notice pass.
    Store failures are re-raised so APScheduler records the job as failed.
    """
    try:
        summary = notifier.run()
    except StoreError:
        log.exception("Trial-end notice job failed on the tenant store")
        raise
    return summary.as_dict()


def add_job(scheduler: BlockingScheduler, settings: Settings, notifier: TrialEndNotifier):
    trigger = CronTrigger(hour=settings.cron_hour, minute=settings.cron_minute, timezone=settings.timezone)
    return scheduler.add_job(
        run_trial_end_job,
        trigger,
        args=[notifier],
        id=settings.job_id,
        replace_existing=True,
        max_instances=1,               # never overlap runs
        coalesce=True,                 # if multiple runs missed, run only once
        misfire_grace_time=settings.misfire_grace,
    )


def build_scheduler(settings: Settings, notifier: TrialEndNotifier) -> BlockingScheduler:
    scheduler = BlockingScheduler(timezone=settings.timezone)
    add_job(scheduler, settings, notifier)
    return scheduler


# ---------- entrypoint ----------
def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Daily trial-end notice worker")
    parser.add_argument("--once", action="store_true", help="run one pass now and exit")
    args = parser.parse_args(argv)

    configure_logging()
    try:
        settings = load_settings()
        notifier = build_notifier(settings)
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        return 2

    try:
        notifier.store.ensure_schema()
    except StoreError as e:
        log.warning("ensure_schema skipped: %s", e)

    if args.once:
        try:
            log.info("Run summary: %s", run_trial_end_job(notifier))
        except StoreError:
            return 1
        return 0

    # Optional one-off run on deploy for testing
    if settings.run_on_deploy:
        log.info("RUN_ON_DEPLOY=true, running once now before scheduling.")
        try:
            run_trial_end_job(notifier)
        except StoreError as e:
            log.error("Immediate run failed: %s", e)

    scheduler = build_scheduler(settings, notifier)

    now_local = datetime.now(settings.timezone).strftime("%Y-%m-%d %H:%M:%S %Z")
    log.info(
        "Scheduler started at %s. Job runs daily at %02d:%02d %s.",
        now_local, settings.cron_hour, settings.cron_minute, settings.timezone.key,
    )

    try:
        scheduler.start()  # keep the worker process alive
    except (KeyboardInterrupt, SystemExit):
        log.info("Scheduler stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
