# trial_notifier/window.py
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class TimeWindow:
    """Half-open [start, end) range of UTC instants covering one civil day."""
    start: datetime
    end: datetime
    timezone: str

    def __contains__(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @property
    def length(self) -> timedelta:
        return self.end - self.start


def _local_midnight_utc(day, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def resolve_today_window(now: datetime, tz: ZoneInfo) -> TimeWindow:
    """
    Return the window for the calendar day that contains `now` in `tz`.

    Day boundaries are computed on the local calendar and only then converted
    to UTC, so the window is 23 or 25 hours long on DST transition days.
    """
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware")

    today = now.astimezone(tz).date()
    return TimeWindow(
        start=_local_midnight_utc(today, tz),
        end=_local_midnight_utc(today + timedelta(days=1), tz),
        timezone=str(tz),
    )


__all__ = ["TimeWindow", "resolve_today_window"]
