"""
Mock Authentication Store
Owns user records and hands out detached Session copies of them
"""

import copy
import logging
from typing import Any, Dict, Optional

from ..clock import Clock
from ..config import MockSettings
from ..dispatch import DeferredService, PendingResult
from ..errors import AlreadyExistsError, InvalidArgument, NotFoundError, require
from ..ids import new_id
from .session import PROFILE_FIELDS, USER_NOT_FOUND, Session

logger = logging.getLogger(__name__)

UID_ALREADY_EXISTS = "auth/uid-already-exists"
EMAIL_ALREADY_EXISTS = "auth/email-already-exists"


class MockAuthentication(DeferredService):
    """
    In-memory user store with deferred admin operations

    The store keeps the canonical user records. Sessions returned from it are
    working copies that write back through read_record/write_record.
    """

    def __init__(self, clock: Optional[Clock] = None, settings: Optional[MockSettings] = None):
        self._users: Dict[str, Dict[str, Any]] = {}
        self._current: Optional[Session] = None
        self._setup_dispatcher(clock, settings)
        logger.info("MockAuthentication initialized")

    # Record access used by sessions

    def read_record(self, uid: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._users.get(uid))

    def write_record(self, uid: str, record: Dict[str, Any]) -> None:
        self._users[uid] = copy.deepcopy(record)
        logger.debug(f"Stored user record {uid}")

    def remove_record(self, uid: str) -> bool:
        if uid not in self._users:
            return False
        del self._users[uid]
        if self._current is not None and self._current.uid == uid:
            self._current = None
        logger.debug(f"Removed user record {uid}")
        return True

    # Admin operations

    def create_user(self, properties: Dict[str, Any]) -> PendingResult:
        require(isinstance(properties, dict), 'properties must be a dict')
        self._check_profile_fields(properties)

        def _create() -> Session:
            uid = properties.get('uid') or new_id()
            if uid in self._users:
                raise AlreadyExistsError(f"User {uid} already exists", code=UID_ALREADY_EXISTS)
            self._check_email_free(properties.get('email'), uid)
            session = Session(self, {**properties, 'uid': uid})
            self.write_record(uid, session.to_record())
            logger.info(f"Created user {uid}")
            return session

        return self._defer('create_user', [properties], _create)

    def get_user(self, uid: str) -> PendingResult:
        require(isinstance(uid, str) and bool(uid), 'uid must be a non-empty string')
        return self._defer('get_user', [uid], lambda: Session(self, self._require_record(uid)))

    def get_user_by_email(self, email: str) -> PendingResult:
        require(isinstance(email, str) and bool(email), 'email must be a non-empty string')

        def _find() -> Session:
            for record in self._users.values():
                if record.get('email') == email:
                    return Session(self, copy.deepcopy(record))
            raise NotFoundError(f"No user record for email {email}", code=USER_NOT_FOUND)

        return self._defer('get_user_by_email', [email], _find)

    def update_user(self, uid: str, properties: Dict[str, Any]) -> PendingResult:
        require(isinstance(uid, str) and bool(uid), 'uid must be a non-empty string')
        require(isinstance(properties, dict), 'properties must be a dict')
        self._check_profile_fields(properties)
        require('uid' not in properties, 'uid cannot be changed')

        def _update() -> Session:
            record = self._require_record(uid)
            if 'email' in properties:
                self._check_email_free(properties['email'], uid)
            record.update(copy.deepcopy(properties))
            self.write_record(uid, record)
            return Session(self, record)

        return self._defer('update_user', [uid, properties], _update)

    def delete_user(self, uid: str) -> PendingResult:
        require(isinstance(uid, str) and bool(uid), 'uid must be a non-empty string')

        def _delete() -> None:
            if not self.remove_record(uid):
                raise NotFoundError(f"No user record for uid {uid}", code=USER_NOT_FOUND)

        return self._defer('delete_user', [uid], _delete)

    # Signed-in state

    def change_auth_state(self, session: Optional[Session]) -> PendingResult:
        """Sign a session in (or out with None) once the operation settles"""
        require(session is None or isinstance(session, Session), 'session must be a Session or None')

        def _change() -> Optional[Session]:
            self._current = session.clone() if session is not None else None
            return self._current

        return self._defer('change_auth_state', [session], _change)

    def get_auth(self) -> Optional[Session]:
        """Currently signed-in session, if any"""
        return self._current

    def _require_record(self, uid: str) -> Dict[str, Any]:
        record = self.read_record(uid)
        if record is None:
            raise NotFoundError(f"No user record for uid {uid}", code=USER_NOT_FOUND)
        return record

    def _check_email_free(self, email: Optional[str], uid: str) -> None:
        if email is None:
            return
        for other_uid, record in self._users.items():
            if other_uid != uid and record.get('email') == email:
                raise AlreadyExistsError(f"Email {email} is already in use", code=EMAIL_ALREADY_EXISTS)

    @staticmethod
    def _check_profile_fields(properties: Dict[str, Any]) -> None:
        unknown = set(properties) - set(PROFILE_FIELDS) - {'token_validity', 'id_token'}
        if unknown:
            raise InvalidArgument(f"Unknown user properties: {sorted(unknown)}")
