"""
Operation facade plumbing
Turns a mock method call into a queued operation and a pending future
"""

import asyncio
import logging
from collections import defaultdict
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional, Sequence

from .clock import Clock, Delay
from .config import MockSettings, get_settings
from .errors import require
from .injection import Failure, InjectionRegistry, Success
from .scheduler import AutoFlush, Operation, Scheduler

logger = logging.getLogger(__name__)

Listener = Callable[[List[Any]], None]


class PendingResult(Future):
    """
    Future returned by every deferred mock operation

    Settled exactly once by its operation during a flush. Usable
    synchronously (result(), exception(), then()) or with await inside a
    running event loop.
    """

    def cancel(self) -> bool:
        # Queued operations always run; cancellation is not supported
        return False

    def then(
        self,
        on_success: Optional[Callable[[Any], Any]] = None,
        on_failure: Optional[Callable[[BaseException], Any]] = None,
    ) -> 'PendingResult':
        """Chain continuations; returns a future for the continuation's outcome"""
        chained = PendingResult()

        def _forward(source: Future) -> None:
            error = source.exception()
            try:
                if error is not None:
                    if on_failure is None:
                        chained.set_exception(error)
                        return
                    value = on_failure(error)
                else:
                    value = source.result()
                    if on_success is not None:
                        value = on_success(value)
            except Exception as e:
                chained.set_exception(e)
                return

            if isinstance(value, Future):
                value.add_done_callback(
                    lambda inner: chained.set_exception(inner.exception())
                    if inner.exception() is not None
                    else chained.set_result(inner.result())
                )
            else:
                chained.set_result(value)

        self.add_done_callback(_forward)
        return chained

    def __await__(self):
        return asyncio.wrap_future(self).__await__()


class OperationDispatcher:
    """Scheduler, injection registry and listeners owned by one mock subsystem"""

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
        auto_flush: AutoFlush = False,
    ):
        self.scheduler = scheduler or Scheduler(clock=clock, auto_flush=auto_flush)
        self.registry = InjectionRegistry()
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    @property
    def clock(self) -> Clock:
        return self.scheduler.clock

    def dispatch(
        self,
        method: str,
        args: Sequence[Any],
        default_result: Callable[[], Any],
    ) -> PendingResult:
        """
        Queue one settlement of `method`

        Args:
            method: Operation name, also the injection and listener key
            args: Raw call arguments, handed to listeners on settlement
            default_result: Computes the value when nothing was injected;
                an exception it raises rejects the future

        Returns:
            Future settled when the scheduler runs the operation
        """
        override = self.registry.consume(method)
        future = PendingResult()
        call_args = list(args)

        def settle() -> None:
            try:
                if isinstance(override, Failure):
                    future.set_exception(override.error)
                elif isinstance(override, Success):
                    future.set_result(override.value)
                else:
                    try:
                        value = default_result()
                    except Exception as e:
                        logger.debug(f"{method} rejected: {e!r}")
                        future.set_exception(e)
                    else:
                        future.set_result(value)
            finally:
                self._notify(method, call_args)

        self.scheduler.enqueue(Operation(settle, method, call_args))
        return future

    def on(self, method: str, listener: Listener) -> None:
        require(callable(listener), 'listener must be callable')
        self._listeners[method].append(listener)

    def off(self, method: str, listener: Optional[Listener] = None) -> None:
        if listener is None:
            self._listeners.pop(method, None)
        elif listener in self._listeners.get(method, []):
            self._listeners[method].remove(listener)

    def _notify(self, method: str, args: List[Any]) -> None:
        for listener in list(self._listeners.get(method, [])):
            listener(args)


class DeferredService:
    """
    Mixin exposing flush control, injection and listeners on a mock subsystem

    Subclasses call _setup_dispatcher() from __init__ and route every
    asynchronous method through _defer().
    """

    dispatcher: OperationDispatcher

    def _setup_dispatcher(
        self,
        clock: Optional[Clock] = None,
        settings: Optional[MockSettings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.dispatcher = OperationDispatcher(clock=clock, auto_flush=self.settings.auto_flush)

    @property
    def scheduler(self) -> Scheduler:
        return self.dispatcher.scheduler

    @property
    def clock(self) -> Clock:
        return self.dispatcher.clock

    @property
    def flush_delay(self) -> AutoFlush:
        return self.dispatcher.scheduler.flush_delay

    def flush(self, delay: Optional[Delay] = None):
        self.dispatcher.scheduler.flush(delay)
        return self

    def auto_flush(self, delay: AutoFlush = True):
        self.dispatcher.scheduler.auto_flush(delay)
        return self

    def fail_next(self, method: str, error: BaseException):
        self.dispatcher.registry.fail_next(method, error)
        return self

    def next_result(self, method: str, result: Any):
        self.dispatcher.registry.next_result(method, result)
        return self

    respond_next = next_result

    def on(self, method: str, listener: Listener):
        self.dispatcher.on(method, listener)
        return self

    def off(self, method: str, listener: Optional[Listener] = None):
        self.dispatcher.off(method, listener)
        return self

    def _defer(self, method: str, args: Sequence[Any], default_result: Callable[[], Any]) -> PendingResult:
        return self.dispatcher.dispatch(method, args, default_result)
