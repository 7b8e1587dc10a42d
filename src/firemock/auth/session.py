"""
Mock user session with ID token lifecycle

A Session is a detached working copy of a user record. Its token validity
triple must always satisfy auth_time <= issued_at_time <= expiration_time,
with neither authentication nor issuance in the future. Refreshing issues a
new token and writes the session back to its owning store when the record
still exists there.
"""

import copy
import logging
import weakref
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Union

from ..clock import Clock, SystemClock, format_timestamp, parse_timestamp
from ..config import MockSettings, get_settings
from ..dispatch import OperationDispatcher, PendingResult
from ..errors import (
    InvalidArgument,
    NotFoundError,
    TokenAuthedInFuture,
    TokenExpiresBeforeIssuance,
    TokenIssuedBeforeAuth,
    TokenIssuedInFuture,
    require,
)
from ..ids import new_token
from ..models import IdTokenResult

logger = logging.getLogger(__name__)

MSG_TOKEN_EXPIRES_BEFORE_ISSUANCE = "Auth token expires before it is issued"
MSG_TOKEN_ISSUED_BEFORE_AUTH = "Auth token is issued before the user is authenticated"
MSG_TOKEN_AUTHED_IN_THE_FUTURE = "Auth token shows user authenticating in the future"
MSG_TOKEN_ISSUED_IN_THE_FUTURE = "Auth token is issued in the future"

USER_NOT_FOUND = "auth/user-not-found"

Timestamp = Union[datetime, str]

# Profile fields and their defaults; mutable defaults are copied per session
PROFILE_FIELDS: Dict[str, Any] = {
    'uid': None,
    'email': None,
    'email_verified': False,
    'display_name': None,
    'password': None,
    'photo_url': None,
    'phone_number': None,
    'is_anonymous': False,
    'provider_id': None,
    'provider_data': [],
    'refresh_token': None,
    'metadata': {},
    'custom_claims': {},
}

TOKEN_FIELDS = ('id_token', 'token_validity')

UPDATABLE_PROFILE_FIELDS = ('display_name', 'photo_url')


class RecordLink(Protocol):
    """Record access a session needs from the store that owns it"""

    def read_record(self, uid: str) -> Optional[Dict[str, Any]]:
        ...

    def write_record(self, uid: str, record: Dict[str, Any]) -> None:
        ...

    def remove_record(self, uid: str) -> bool:
        ...


class SessionOwner(RecordLink, Protocol):
    """Store that hands its dispatcher and settings to the sessions it owns"""

    dispatcher: OperationDispatcher
    settings: MockSettings


class SessionState(str, Enum):
    CONSTRUCTED = "constructed"
    VALID = "valid"
    REFRESHED = "refreshed"
    DELETED = "deleted"


@dataclass
class TokenValidity:
    """Authentication, issuance and expiration times of the current token"""
    auth_time: datetime
    issued_at_time: datetime
    expiration_time: datetime

    @classmethod
    def resolve(
        cls,
        raw: Optional[Union['TokenValidity', Dict[str, Timestamp]]],
        now: datetime,
        lifetime: timedelta,
    ) -> 'TokenValidity':
        """
        Fill in missing times and validate

        auth_time defaults to now, issued_at_time to auth_time and
        expiration_time to issued_at_time plus the token lifetime.
        """
        if isinstance(raw, TokenValidity):
            raw = {
                'auth_time': raw.auth_time,
                'issued_at_time': raw.issued_at_time,
                'expiration_time': raw.expiration_time,
            }
        raw = raw or {}
        unknown = set(raw) - {'auth_time', 'issued_at_time', 'expiration_time'}
        if unknown:
            raise InvalidArgument(f"Unknown token validity fields: {sorted(unknown)}")

        auth_time = _timestamp_or(raw.get('auth_time'), now)
        issued_at_time = _timestamp_or(raw.get('issued_at_time'), auth_time)
        expiration_time = _timestamp_or(raw.get('expiration_time'), issued_at_time + lifetime)

        validity = cls(auth_time, issued_at_time, expiration_time)
        validity.validate(now)
        return validity

    def validate(self, now: datetime) -> None:
        """Raise the matching TemporalInvariantViolation if ordering is broken"""
        if self.expiration_time < self.issued_at_time:
            raise TokenExpiresBeforeIssuance(MSG_TOKEN_EXPIRES_BEFORE_ISSUANCE)
        if self.issued_at_time < self.auth_time:
            raise TokenIssuedBeforeAuth(MSG_TOKEN_ISSUED_BEFORE_AUTH)
        if self.auth_time > now:
            raise TokenAuthedInFuture(MSG_TOKEN_AUTHED_IN_THE_FUTURE)
        if self.issued_at_time > now:
            raise TokenIssuedInFuture(MSG_TOKEN_ISSUED_IN_THE_FUTURE)


def _timestamp_or(value: Optional[Timestamp], default: datetime) -> datetime:
    if value is None:
        return default
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgument(f"Invalid timestamp {value!r}: {e}") from e


class Session:
    """
    User session: profile fields plus an ID token governed by TokenValidity

    Deferred methods settle through the owning store's scheduler. A session
    built without an owner gets its own auto-flushing dispatcher.
    """

    # Valid state transitions
    VALID_TRANSITIONS = {
        SessionState.CONSTRUCTED: [SessionState.VALID],
        SessionState.VALID: [SessionState.REFRESHED, SessionState.DELETED],
        SessionState.REFRESHED: [SessionState.VALID, SessionState.DELETED],
        SessionState.DELETED: [],
    }

    def __init__(
        self,
        owner: Optional[SessionOwner] = None,
        data: Optional[Dict[str, Any]] = None,
        clock: Optional[Clock] = None,
    ):
        self.state = SessionState.CONSTRUCTED
        data = dict(data or {})
        unknown = set(data) - set(PROFILE_FIELDS) - set(TOKEN_FIELDS)
        if unknown:
            raise InvalidArgument(f"Unknown session fields: {sorted(unknown)}")

        if owner is not None:
            self._owner_ref = weakref.ref(owner)
            self._dispatcher = owner.dispatcher
            self._settings = owner.settings
        else:
            self._owner_ref = None
            self._dispatcher = OperationDispatcher(clock=clock or SystemClock(), auto_flush=True)
            self._settings = get_settings()

        for name, default in PROFILE_FIELDS.items():
            setattr(self, name, copy.deepcopy(data.get(name, default)))

        self.token_validity = TokenValidity.resolve(
            data.get('token_validity'), self._now(), self._lifetime
        )
        self._id_token = data.get('id_token') or new_token()
        self._transition(SessionState.VALID)

    @property
    def id_token(self) -> str:
        return self._id_token

    @property
    def owner(self) -> Optional[SessionOwner]:
        """Owning store, or None if there is none or it no longer exists"""
        if self._owner_ref is None:
            return None
        return self._owner_ref()

    @property
    def clock(self) -> Clock:
        return self._dispatcher.clock

    @property
    def _lifetime(self) -> timedelta:
        return timedelta(seconds=self._settings.token_lifetime_seconds)

    def _now(self) -> datetime:
        return self._dispatcher.clock.now()

    def _transition(self, to_state: SessionState) -> None:
        if to_state not in self.VALID_TRANSITIONS[self.state]:
            raise InvalidArgument(f"Session cannot move from {self.state.value} to {to_state.value}")
        logger.debug(f"Session {self.uid}: {self.state.value} -> {to_state.value}")
        self.state = to_state

    def _check_live(self) -> None:
        if self.state == SessionState.DELETED:
            raise InvalidArgument(f"Session {self.uid} has been deleted")

    # Token lifecycle

    def get_id_token(self, force_refresh: bool = False) -> PendingResult:
        self._check_live()
        return self._dispatcher.dispatch(
            'get_id_token',
            [force_refresh],
            lambda: self.refresh().token if force_refresh else self._id_token,
        )

    def get_id_token_result(self, force_refresh: bool = False) -> PendingResult:
        self._check_live()
        return self._dispatcher.dispatch(
            'get_id_token_result',
            [force_refresh],
            lambda: self.refresh() if force_refresh else self.token_result(),
        )

    def token_result(self) -> IdTokenResult:
        """Token result derived from the current state"""
        return IdTokenResult(
            token=self._id_token,
            auth_time=format_timestamp(self.token_validity.auth_time),
            issued_at_time=format_timestamp(self.token_validity.issued_at_time),
            expiration_time=format_timestamp(self.token_validity.expiration_time),
            sign_in_provider=self.provider_id,
            claims=copy.deepcopy(self.custom_claims or {}),
        )

    def refresh(self) -> IdTokenResult:
        """
        Issue a new token now, keeping the prior authentication time

        Returns:
            Token result for the new token

        Raises:
            TemporalInvariantViolation: If the new validity triple is invalid
        """
        self._check_live()
        now = self._now()
        validity = TokenValidity(self.token_validity.auth_time, now, now + self._lifetime)
        validity.validate(now)

        self._transition(SessionState.REFRESHED)
        self._id_token = new_token()
        self.token_validity = validity
        self._persist()
        self._transition(SessionState.VALID)
        logger.debug(f"Session {self.uid} refreshed, expires {format_timestamp(validity.expiration_time)}")
        return self.token_result()

    def _persist(self) -> None:
        owner = self.owner
        if owner is None or self.uid is None:
            return
        if owner.read_record(self.uid) is None:
            logger.warning(f"Session {self.uid} has no upstream record, refreshed token not persisted")
            return
        owner.write_record(self.uid, self.to_record())

    # Profile operations

    def delete(self) -> PendingResult:
        self._check_live()

        def _delete() -> None:
            owner = self._require_owner()
            if not owner.remove_record(self.uid):
                raise NotFoundError(f"No user record for uid {self.uid}", code=USER_NOT_FOUND)
            self._transition(SessionState.DELETED)

        return self._dispatcher.dispatch('delete', [], _delete)

    def reload(self) -> PendingResult:
        self._check_live()

        def _reload() -> None:
            self._apply_record(self._require_record())

        return self._dispatcher.dispatch('reload', [], _reload)

    def update_email(self, email: str) -> PendingResult:
        self._check_live()
        require(isinstance(email, str) and bool(email), 'email must be a non-empty string')
        return self._dispatcher.dispatch('update_email', [email], lambda: self._update({'email': email}))

    def update_password(self, password: str) -> PendingResult:
        self._check_live()
        require(isinstance(password, str) and bool(password), 'password must be a non-empty string')
        return self._dispatcher.dispatch(
            'update_password', [password], lambda: self._update({'password': password})
        )

    def update_profile(self, **changes: Any) -> PendingResult:
        self._check_live()
        require(bool(changes), 'at least one profile field is required')
        unknown = set(changes) - set(UPDATABLE_PROFILE_FIELDS)
        require(not unknown, f"Unsupported profile fields: {sorted(unknown)}")
        return self._dispatcher.dispatch('update_profile', [changes], lambda: self._update(changes))

    def _update(self, changes: Dict[str, Any]) -> None:
        record = self._require_record()
        record.update(copy.deepcopy(changes))
        self._require_owner().write_record(self.uid, record)
        for name, value in changes.items():
            setattr(self, name, copy.deepcopy(value))

    def _require_owner(self) -> SessionOwner:
        owner = self.owner
        if owner is None:
            raise NotFoundError(f"Session {self.uid} has no owning store", code=USER_NOT_FOUND)
        return owner

    def _require_record(self) -> Dict[str, Any]:
        record = self._require_owner().read_record(self.uid)
        if record is None:
            raise NotFoundError(f"No user record for uid {self.uid}", code=USER_NOT_FOUND)
        return record

    def _apply_record(self, record: Dict[str, Any]) -> None:
        for name in PROFILE_FIELDS:
            if name in record:
                setattr(self, name, copy.deepcopy(record[name]))
        if record.get('token_validity') is not None:
            self.token_validity = TokenValidity.resolve(record['token_validity'], self._now(), self._lifetime)
        if record.get('id_token'):
            self._id_token = record['id_token']

    # Copies

    def to_record(self) -> Dict[str, Any]:
        """Plain data form stored by the owning store"""
        record = {name: copy.deepcopy(getattr(self, name)) for name in PROFILE_FIELDS}
        record['id_token'] = self._id_token
        record['token_validity'] = {
            'auth_time': self.token_validity.auth_time,
            'issued_at_time': self.token_validity.issued_at_time,
            'expiration_time': self.token_validity.expiration_time,
        }
        return record

    def clone(self) -> 'Session':
        """Detached deep copy sharing the owner link and dispatcher"""
        twin = copy.copy(self)
        for name in PROFILE_FIELDS:
            setattr(twin, name, copy.deepcopy(getattr(self, name)))
        twin.token_validity = copy.deepcopy(self.token_validity)
        return twin

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Session):
            return NotImplemented
        return self.to_record() == other.to_record()

    def __hash__(self) -> int:
        # Equal sessions always share a uid
        return hash(self.uid)

    def __repr__(self) -> str:
        return f"Session(uid={self.uid!r}, email={self.email!r}, state={self.state.value})"
