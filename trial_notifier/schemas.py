# trial_notifier/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TenantOut(BaseModel):
    """Tenant as shown in the preview listing."""
    id: int
    name: str
    email: Optional[str] = None
    trial_end: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PreviewOut(BaseModel):
    window_start: datetime
    window_end: datetime
    timezone: str
    tenants: List[TenantOut] = Field(default_factory=list)


class RunSummaryOut(BaseModel):
    window_start: datetime
    window_end: datetime
    timezone: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    found: int = Field(..., description="Tenants selected for today's notice")
    sent: int
    skipped: int = Field(..., description="Tenants without an email or trial end")
    failed: int
    dry_run: int = Field(0, description="Tenants rendered but not sent because DISABLE_EMAIL is on")
    failed_tenant_ids: List[int] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"window_start": "2024-05-31T15:00:00+00:00",
                 "window_end": "2024-06-01T15:00:00+00:00",
                 "timezone": "Asia/Tokyo",
                 "started_at": "2024-06-01T00:00:02+00:00",
                 "finished_at": "2024-06-01T00:00:04+00:00",
                 "found": 2, "sent": 1, "skipped": 1, "failed": 0, "dry_run": 0,
                 "failed_tenant_ids": []}
            ]
        },
    )


__all__ = ["TenantOut", "PreviewOut", "RunSummaryOut"]
