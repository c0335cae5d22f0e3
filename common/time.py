from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Callable, Optional, Protocol

DAY_MS = 24 * 60 * 60 * 1000.0


def now_ms() -> float:
    return datetime.now(tz=timezone.utc).timestamp() * 1000.0


def to_iso_utc(ts_ms: float) -> str:
    return datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc).isoformat()


def from_iso(value: str) -> float:
    """Parse an ISO-8601 timestamp into epoch-ms (naive values are taken as UTC)."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000.0


def _local(ts_ms: float, tz: Optional[tzinfo]) -> datetime:
    # tz=None means the host's local timezone (naive datetime).
    return datetime.fromtimestamp(ts_ms / 1000.0, tz=tz)


def local_hour(ts_ms: float, tz: Optional[tzinfo] = None) -> int:
    return _local(ts_ms, tz).hour


def local_date(ts_ms: float, tz: Optional[tzinfo] = None) -> date:
    return _local(ts_ms, tz).date()


def ms_until_next_midnight(ts_ms: float, tz: Optional[tzinfo] = None) -> float:
    """Milliseconds from ``ts_ms`` to the next local midnight (always > 0)."""
    dt = _local(ts_ms, tz)
    tomorrow: date = dt.date() + timedelta(days=1)
    midnight = datetime.combine(tomorrow, time(0, 0), tzinfo=dt.tzinfo)
    return midnight.timestamp() * 1000.0 - ts_ms


class Clock(Protocol):
    def now_ms(self) -> float: ...
    def local_hour(self, ts_ms: float) -> int: ...
    def local_date(self, ts_ms: float) -> date: ...
    def ms_until_midnight(self, ts_ms: float) -> float: ...


class SystemClock:
    """Wall clock in epoch-ms with an optional fixed timezone for hour math."""

    def __init__(self, tz: Optional[tzinfo] = None) -> None:
        self.tz = tz

    def now_ms(self) -> float:
        return now_ms()

    def local_hour(self, ts_ms: float) -> int:
        return local_hour(ts_ms, self.tz)

    def local_date(self, ts_ms: float) -> date:
        return local_date(ts_ms, self.tz)

    def ms_until_midnight(self, ts_ms: float) -> float:
        return ms_until_next_midnight(ts_ms, self.tz)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """The subset of ``asyncio.AbstractEventLoop`` the detector relies on."""

    def time(self) -> float: ...
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...
