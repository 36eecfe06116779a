from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from fakes import UTC, FixedClock


@pytest.fixture
def utc_tz():
    return ZoneInfo("UTC")


@pytest.fixture
def tokyo():
    return ZoneInfo("Asia/Tokyo")


@pytest.fixture
def june_first_clock():
    return FixedClock(datetime(2024, 6, 1, 9, 0, tzinfo=UTC))


@pytest.fixture(autouse=True)
def _no_api_key(monkeypatch):
    monkeypatch.delenv("API_KEY", raising=False)
