"""
firemock
Deterministic in-process test doubles for cloud backend client APIs
"""

from .clock import Clock, FixedClock, SystemClock
from .config import MockSettings, get_settings, load_settings, reset_settings
from .dispatch import DeferredService, OperationDispatcher, PendingResult
from .errors import (
    AlreadyExistsError,
    InvalidArgument,
    MockError,
    NotFoundError,
    TemporalInvariantViolation,
    TokenAuthedInFuture,
    TokenExpiresBeforeIssuance,
    TokenIssuedBeforeAuth,
    TokenIssuedInFuture,
)
from .injection import Failure, InjectionRegistry, Success
from .scheduler import Operation, Scheduler
from .messaging import MockMessaging
from .firestore import MockCollection, QuerySnapshot
from .auth import MockAuthentication, Session

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "MockSettings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "DeferredService",
    "OperationDispatcher",
    "PendingResult",
    "AlreadyExistsError",
    "InvalidArgument",
    "MockError",
    "NotFoundError",
    "TemporalInvariantViolation",
    "TokenAuthedInFuture",
    "TokenExpiresBeforeIssuance",
    "TokenIssuedBeforeAuth",
    "TokenIssuedInFuture",
    "Failure",
    "InjectionRegistry",
    "Success",
    "Operation",
    "Scheduler",
    "MockMessaging",
    "MockCollection",
    "QuerySnapshot",
    "MockAuthentication",
    "Session",
]
