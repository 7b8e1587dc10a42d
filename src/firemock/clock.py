"""
firemock Clock Interface
Provides deterministic time and timer abstraction for deferred flushing
"""

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone, timedelta
from typing import Callable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

Delay = Union[int, float, timedelta]


def to_seconds(delay: Delay) -> float:
    """Normalize a delay given as seconds or timedelta"""
    if isinstance(delay, timedelta):
        return delay.total_seconds()
    return float(delay)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Union[datetime, str]) -> datetime:
    """Parse a datetime or ISO-8601 string into an aware UTC datetime"""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        return ensure_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))
    raise TypeError(f"Unsupported timestamp type: {type(value)}")


def format_timestamp(value: datetime) -> str:
    """Normalized textual form: UTC, millisecond precision, Z suffix"""
    return ensure_utc(value).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class TimerHandle:
    """Handle for a scheduled callback"""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.cancelled = False

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            self._cancel()


class Clock(ABC):
    """Clock interface for deterministic time handling"""

    @abstractmethod
    def now(self) -> datetime:
        """Get current time in UTC"""
        pass

    @abstractmethod
    def call_later(self, delay: Delay, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once `delay` has elapsed"""
        pass


class SystemClock(Clock):
    """
    System clock using actual time

    Delayed callbacks run on the event loop of the calling thread, so they
    never run alongside the code that scheduled them. Outside a running loop
    there is nothing to run them on; use a FixedClock there instead.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def call_later(self, delay: Delay, callback: Callable[[], None]) -> TimerHandle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError(
                "SystemClock.call_later needs a running event loop; "
                "use FixedClock to schedule delayed callbacks in synchronous code"
            ) from None

        handle = loop.call_later(to_seconds(delay), callback)
        return TimerHandle(handle.cancel)


class FixedClock(Clock):
    """
    Fixed clock for deterministic testing

    Time only moves through advance() or set_time(). Callbacks registered with
    call_later() fire while advancing, ordered by due time and then by
    registration order.
    """

    def __init__(self, start_time: Optional[datetime] = None):
        """Initialize with start time (defaults to 2023-01-01 12:00:00 UTC)"""
        if start_time is None:
            start_time = datetime(2023, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._current_time = ensure_utc(start_time)
        self._timers: List[Tuple[datetime, int, Callable[[], None], TimerHandle]] = []
        self._sequence = itertools.count()

    def now(self) -> datetime:
        return self._current_time

    def call_later(self, delay: Delay, callback: Callable[[], None]) -> TimerHandle:
        due = self._current_time + timedelta(seconds=to_seconds(delay))
        handle = TimerHandle(lambda: None)
        heapq.heappush(self._timers, (due, next(self._sequence), callback, handle))
        return handle

    @property
    def pending_timers(self) -> int:
        """Number of scheduled callbacks not yet fired or cancelled"""
        return sum(1 for _, _, _, handle in self._timers if not handle.cancelled)

    def advance(self, delta: Delay) -> None:
        """Advance the fixed clock time, firing due callbacks"""
        self._run_until(self._current_time + timedelta(seconds=to_seconds(delta)))

    def set_time(self, new_time: datetime) -> None:
        """Set the clock to a specific time, firing callbacks due before it"""
        new_time = ensure_utc(new_time)
        if new_time >= self._current_time:
            self._run_until(new_time)
        else:
            self._current_time = new_time

    def _run_until(self, target: datetime) -> None:
        while self._timers and self._timers[0][0] <= target:
            due, _, callback, handle = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            self._current_time = max(self._current_time, due)
            handle.cancelled = True
            logger.debug(f"FixedClock firing timer due at {format_timestamp(due)}")
            callback()
        self._current_time = target
