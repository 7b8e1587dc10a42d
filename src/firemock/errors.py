"""
firemock error taxonomy
Every error carries a stable machine-readable code for test assertions
"""

from typing import Optional


class MockError(Exception):
    """Base class for errors raised or delivered by firemock"""

    code = "unknown"

    def __init__(self, message: str, code: Optional[str] = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class InvalidArgument(MockError, ValueError):
    """Raised synchronously for missing or malformed operation arguments"""

    code = "invalid-argument"


class NotFoundError(MockError):
    """Delivered through a rejected future when an upstream record is missing"""

    code = "not-found"


class AlreadyExistsError(MockError):
    """Delivered through a rejected future when a record would be duplicated"""

    code = "already-exists"


class TemporalInvariantViolation(MockError, ValueError):
    """Raised when a token validity triple breaks time ordering"""

    code = "auth/invalid-token-validity"


class TokenExpiresBeforeIssuance(TemporalInvariantViolation):
    code = "auth/token-expires-before-issuance"


class TokenIssuedBeforeAuth(TemporalInvariantViolation):
    code = "auth/token-issued-before-auth"


class TokenAuthedInFuture(TemporalInvariantViolation):
    code = "auth/token-authed-in-future"


class TokenIssuedInFuture(TemporalInvariantViolation):
    code = "auth/token-issued-in-future"


def require(condition: bool, message: str) -> None:
    """Raise InvalidArgument unless condition holds"""
    if not condition:
        raise InvalidArgument(message)
