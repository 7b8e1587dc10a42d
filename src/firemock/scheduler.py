"""
Deferred Operation Scheduler
FIFO queue of pending operations, drained on explicit or automatic flush
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, List, Optional, Tuple, Union

from .clock import Clock, Delay, SystemClock

logger = logging.getLogger(__name__)

AutoFlush = Union[bool, Delay]


@dataclass
class Operation:
    """A deferred action plus the call that produced it"""
    action: Callable[[], None]
    source_method: str
    source_args: List[Any] = field(default_factory=list)


class Scheduler:
    """
    Deterministic deferred-execution queue

    Operations run only inside a drain pass, in enqueue order. A pass works on
    the operations queued when it started; anything enqueued while it runs is
    picked up by a follow-up pass once the current one finishes.
    """

    def __init__(self, clock: Optional[Clock] = None, auto_flush: AutoFlush = False):
        self.clock = clock or SystemClock()
        self._queue: Deque[Operation] = deque()
        self._flush_delay: AutoFlush = False
        self._draining = False
        self._drain_requested = False
        self.auto_flush(auto_flush)

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def pending(self) -> Tuple[Operation, ...]:
        """Operations waiting for the next drain"""
        return tuple(self._queue)

    @property
    def flush_delay(self) -> AutoFlush:
        """Current auto-flush mode: False, True or a delay"""
        return self._flush_delay

    def enqueue(self, operation: Operation) -> None:
        delayed = self._flush_delay is not True and self._flush_delay is not False
        if delayed:
            # A clock that refuses the timer must leave the queue untouched
            self.flush(self._flush_delay)

        self._queue.append(operation)
        logger.debug(f"Enqueued {operation.source_method} ({len(self._queue)} pending)")
        if self._flush_delay is True:
            self.flush()

    def flush(self, delay: Optional[Delay] = None) -> None:
        """
        Drain queued operations

        Args:
            delay: None or 0 drains now; otherwise seconds (or timedelta)
                to wait on the clock before draining
        """
        if not delay:
            self._drain()
            return

        self.clock.call_later(delay, self._drain)
        logger.debug(f"Scheduled drain after {delay}")

    def auto_flush(self, delay: AutoFlush = True) -> None:
        """
        Enable or disable flushing on every enqueue

        Args:
            delay: True for an immediate flush, a number for a delayed
                flush, False for manual flushing
        """
        if delay is None:
            delay = True
        if delay is not True and delay is not False and not delay:
            delay = True
        self._flush_delay = delay
        logger.debug(f"Auto flush set to {delay}")

    def _drain(self) -> None:
        if self._draining:
            self._drain_requested = True
            return

        self._draining = True
        try:
            while True:
                self._drain_requested = False
                batch = list(self._queue)
                for _ in batch:
                    self._queue.popleft()
                if batch:
                    logger.debug(f"Draining {len(batch)} operation(s)")
                for operation in batch:
                    self._run(operation)
                if not (self._drain_requested and self._queue):
                    break
        finally:
            self._draining = False

    def _run(self, operation: Operation) -> None:
        try:
            operation.action()
        except Exception:
            logger.exception(f"Deferred {operation.source_method} raised during flush")
