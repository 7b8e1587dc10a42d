"""
Mock Collection
In-memory keyed document store whose reads, writes and listeners settle on flush
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

from ..clock import Clock
from ..config import MockSettings
from ..dispatch import DeferredService, PendingResult
from ..errors import NotFoundError, require
from ..ids import new_id
from .document import DocumentReference
from .query_snapshot import QuerySnapshot

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[QuerySnapshot], Any]


def _set_path(target: Dict[str, Any], field_path: str, value: Any) -> None:
    parts = field_path.split('.')
    for part in parts[:-1]:
        nested = target.get(part)
        if not isinstance(nested, dict):
            nested = {}
            target[part] = nested
        target = nested
    target[parts[-1]] = value


class MockCollection(DeferredService):
    """
    Deferred collection mock

    Writes are applied when their operation settles. Snapshot listeners are
    told about every applied write, with changes computed against the data
    as it was just before that write. An injected result or failure replaces
    the write entirely, so the data stays untouched.
    """

    def __init__(
        self,
        path: str,
        data: Optional[Dict[str, Dict[str, Any]]] = None,
        clock: Optional[Clock] = None,
        settings: Optional[MockSettings] = None,
    ):
        require(bool(path), 'path must not be empty')
        self.path = path
        self._records: Dict[str, Dict[str, Any]] = copy.deepcopy(data) or {}
        self._snapshot_listeners: List[SnapshotListener] = []
        self._setup_dispatcher(clock, settings)
        logger.info(f"MockCollection {path} initialized with {len(self._records)} document(s)")

    def doc(self, doc_id: Optional[str] = None) -> DocumentReference:
        if doc_id is None:
            doc_id = new_id()
        require(isinstance(doc_id, str) and doc_id and '/' not in doc_id, 'doc_id must be a non-empty id')
        return DocumentReference(self, doc_id)

    def read_record(self, doc_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(doc_id)
        return copy.deepcopy(record)

    def get(self) -> PendingResult:
        return self._defer('get', [], lambda: QuerySnapshot(self, self._records))

    def add(self, data: Dict[str, Any]) -> PendingResult:
        require(isinstance(data, dict), 'data must be a dict')
        ref = self.doc()

        def _add() -> DocumentReference:
            self._apply_set(ref.id, data, merge=False)
            return ref

        return self._defer('add', [data], _add)

    def on_snapshot(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Subscribe to collection changes

        The listener first receives the whole collection as added documents
        (delivered on the next flush), then one snapshot per applied write.

        Returns:
            Callable that unsubscribes the listener
        """
        require(callable(listener), 'listener must be callable')
        self._snapshot_listeners.append(listener)

        def _initial() -> QuerySnapshot:
            snapshot = QuerySnapshot(self, self._records)
            if listener in self._snapshot_listeners:
                self._deliver(listener, snapshot)
            return snapshot

        self._defer('on_snapshot', [listener], _initial)

        def unsubscribe() -> None:
            if listener in self._snapshot_listeners:
                self._snapshot_listeners.remove(listener)

        return unsubscribe

    def _apply_set(self, doc_id: str, data: Dict[str, Any], merge: bool) -> None:
        prior = copy.deepcopy(self._records)
        if merge and doc_id in self._records:
            self._records[doc_id].update(copy.deepcopy(data))
        else:
            self._records[doc_id] = copy.deepcopy(data)
        self._publish(prior)

    def _apply_update(self, doc_id: str, data: Dict[str, Any]) -> None:
        if doc_id not in self._records:
            raise NotFoundError(f"No document to update: {self.path}/{doc_id}")
        prior = copy.deepcopy(self._records)
        for field_path, value in data.items():
            _set_path(self._records[doc_id], field_path, copy.deepcopy(value))
        self._publish(prior)

    def _apply_delete(self, doc_id: str) -> None:
        if doc_id not in self._records:
            return
        prior = copy.deepcopy(self._records)
        del self._records[doc_id]
        self._publish(prior)

    def _publish(self, prior: Dict[str, Dict[str, Any]]) -> None:
        if not self._snapshot_listeners:
            return
        snapshot = QuerySnapshot(self, self._records, prior)
        for listener in list(self._snapshot_listeners):
            self._deliver(listener, snapshot)

    def _deliver(self, listener: SnapshotListener, snapshot: QuerySnapshot) -> None:
        try:
            listener(snapshot)
        except Exception:
            logger.exception(f"Snapshot listener on {self.path} raised")
