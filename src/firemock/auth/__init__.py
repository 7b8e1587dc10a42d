"""
Auth module initialization
"""

from .session import (
    MSG_TOKEN_AUTHED_IN_THE_FUTURE,
    MSG_TOKEN_EXPIRES_BEFORE_ISSUANCE,
    MSG_TOKEN_ISSUED_BEFORE_AUTH,
    MSG_TOKEN_ISSUED_IN_THE_FUTURE,
    RecordLink,
    Session,
    SessionOwner,
    SessionState,
    TokenValidity,
)
from .authentication import MockAuthentication

__all__ = [
    "MSG_TOKEN_AUTHED_IN_THE_FUTURE",
    "MSG_TOKEN_EXPIRES_BEFORE_ISSUANCE",
    "MSG_TOKEN_ISSUED_BEFORE_AUTH",
    "MSG_TOKEN_ISSUED_IN_THE_FUTURE",
    "RecordLink",
    "Session",
    "SessionOwner",
    "SessionState",
    "TokenValidity",
    "MockAuthentication",
]
