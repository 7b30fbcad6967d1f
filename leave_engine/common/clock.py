"""Clock abstraction — the single source of "now" for the leave engine."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo

from leave_engine.config import settings


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Wall clock in the school's configured timezone."""

    def __init__(self, tz_name: str = settings.TIMEZONE) -> None:
        self._tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self._tz)

    def today(self) -> date:
        return self.now().date()


system_clock = SystemClock()
