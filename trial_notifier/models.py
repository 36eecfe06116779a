# trial_notifier/models.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional

PlanCode = Literal["TRIAL", "BASIC", "STANDARD", "PRO"]
PLAN_TRIAL: PlanCode = "TRIAL"


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # "timestamp without time zone" columns hold UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Tenant:
    id: int
    name: str
    plan: str
    is_active: bool
    email: Optional[str] = None
    trial_end: Optional[datetime] = None
    trial_end_notified_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Tenant":
        """Build from a dict_row returned by the store."""
        return cls(
            id=int(row["id"]),
            name=row.get("name") or "",
            plan=row.get("plan") or "",
            is_active=bool(row.get("is_active")),
            email=(row.get("email") or None),
            trial_end=_aware(row.get("trial_end")),
            trial_end_notified_at=_aware(row.get("trial_end_notified_at")),
        )

    def is_due_for_trial_end_notice(self, start: datetime, end: datetime) -> bool:
        """
        TRIAL plan, active, trial ending inside [start, end) and not notified yet.
        """
        return (
            self.plan == PLAN_TRIAL
            and self.is_active
            and self.trial_end is not None
            and start <= self.trial_end < end
            and self.trial_end_notified_at is None
        )


@dataclass(frozen=True)
class NotificationRequest:
    recipient: str
    tenant_name: str
    trial_ends_at: datetime


@dataclass(frozen=True)
class SendResult:
    ok: bool
    reason: Optional[str] = None
    # nothing left the process; the tenant must not be marked notified
    dry_run: bool = False

    @classmethod
    def success(cls) -> "SendResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "SendResult":
        return cls(ok=False, reason=reason)

    @classmethod
    def simulated(cls) -> "SendResult":
        return cls(ok=True, dry_run=True)


@dataclass
class RunSummary:
    window_start: datetime
    window_end: datetime
    timezone: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    found: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    dry_run: int = 0
    failed_tenant_ids: List[int] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "timezone": self.timezone,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "found": self.found,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
            "dry_run": self.dry_run,
            "failed_tenant_ids": list(self.failed_tenant_ids),
        }


__all__ = [
    "PlanCode",
    "PLAN_TRIAL",
    "Tenant",
    "NotificationRequest",
    "SendResult",
    "RunSummary",
]
