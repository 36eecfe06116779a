# trial_notifier/api.py
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.routing import APIRoute
from starlette.concurrency import run_in_threadpool

from trial_notifier import __version__
from trial_notifier.auth import require_api_key
from trial_notifier.config import configure_logging, load_settings
from trial_notifier.dispatcher import TrialEndNotifier, build_notifier
from trial_notifier.errors import StoreError
from trial_notifier.schemas import PreviewOut, RunSummaryOut, TenantOut

log = logging.getLogger("trial_notifier.api")


def _notifier(request: Request) -> TrialEndNotifier:
    return request.app.state.notifier


def create_app(notifier: Optional[TrialEndNotifier] = None) -> FastAPI:
    """
    Build the HTTP surface. Without an explicit notifier the settings are read
    from the environment, so a bad configuration stops the worker at boot.
    """
    if notifier is None:
        configure_logging()
        notifier = build_notifier(load_settings())

    app = FastAPI(title="Trial-end notifier", version=__version__)
    app.state.notifier = notifier

    # ---------------------- Basics ----------------------
    @app.get("/")
    async def root():
        return {
            "name": "Trial-end notifier",
            "version": app.version,
            "docs": "/docs",
            "endpoints_hint": [
                "/health",
                "/healthz",
                "/routes",
                "/debug/db-ping",
                "/jobs/trial-end/preview",
                "/jobs/trial-end/run",
            ],
        }

    @app.head("/")
    def head_root():
        return None

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.get("/routes")
    async def routes():
        return [r.path for r in app.routes if isinstance(r, APIRoute)]

    @app.get("/debug/db-ping")
    async def debug_db_ping(n: TrialEndNotifier = Depends(_notifier)):
        ping = getattr(n.store, "ping", None)
        if ping is None:
            return {"ok": False, "error": "store has no ping"}
        return {"ok": await run_in_threadpool(ping)}

    # ---------------------- Trial-end job ----------------------
    @app.get("/jobs/trial-end/preview", response_model=PreviewOut, dependencies=[Depends(require_api_key)])
    async def preview_trial_end(n: TrialEndNotifier = Depends(_notifier)):
        try:
            window, tenants = await run_in_threadpool(n.preview)
        except StoreError as e:
            raise HTTPException(status_code=503, detail=f"tenant store unavailable: {e}")
        return PreviewOut(
            window_start=window.start,
            window_end=window.end,
            timezone=window.timezone,
            tenants=[TenantOut.model_validate(t) for t in tenants],
        )

    @app.post("/jobs/trial-end/run", response_model=RunSummaryOut, dependencies=[Depends(require_api_key)])
    async def run_trial_end(n: TrialEndNotifier = Depends(_notifier)):
        try:
            summary = await run_in_threadpool(n.run)
        except StoreError as e:
            raise HTTPException(status_code=503, detail=f"tenant store unavailable: {e}")
        log.info("Manual trial-end run: sent=%d failed=%d", summary.sent, summary.failed)
        return RunSummaryOut(**summary.as_dict())

    return app


__all__ = ["create_app"]
