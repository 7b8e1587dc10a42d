"""
One-shot result and error injection
Each name holds at most one pending override; reading it consumes it
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .errors import require

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    """Settle the next call with this value"""
    value: Any


@dataclass(frozen=True)
class Failure:
    """Reject the next call with this error, unwrapped"""
    error: BaseException


Outcome = Union[Success, Failure]


class InjectionRegistry:
    """Per-subsystem table of one-shot overrides keyed by operation name"""

    def __init__(self):
        self._overrides: Dict[str, Outcome] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._overrides

    def fail_next(self, name: str, error: BaseException) -> None:
        require(isinstance(error, BaseException), 'error must be an exception instance')
        self._set(name, Failure(error))

    def next_result(self, name: str, value: Any) -> None:
        require(value is not None, 'result must not be None')
        require(not isinstance(value, BaseException), 'result must not be an exception')
        self._set(name, Success(value))

    def consume(self, name: str) -> Optional[Outcome]:
        """Return and clear the override for name, or None if there is none"""
        return self._overrides.pop(name, None)

    def clear(self) -> None:
        self._overrides.clear()

    def _set(self, name: str, outcome: Outcome) -> None:
        if name in self._overrides:
            logger.debug(f"Replacing pending override for {name}")
        self._overrides[name] = outcome
