"""
Query snapshots and change detection

A snapshot is built from the current keyed data and, optionally, the data of
the previous snapshot. Changes are listed as every added or modified document
in current order, followed by every removed document in prior order.
"""

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol

from .document import DocumentReference, DocumentSnapshot, deep_equal

logger = logging.getLogger(__name__)

RecordSet = Dict[str, Any]


class DocumentReferenceFactory(Protocol):
    """Anything that can hand out a reference for a document id"""

    def doc(self, doc_id: Optional[str] = None) -> DocumentReference:
        ...


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class DocumentChange:
    """One entry of QuerySnapshot.doc_changes()"""
    type: ChangeType
    doc: DocumentSnapshot
    old_index: int
    new_index: int


def detect_changes(
    current: RecordSet,
    prior: Optional[RecordSet],
    materialize: Callable[[str, Any], DocumentSnapshot],
) -> List[DocumentChange]:
    """
    Compute the ordered change list between two record sets

    Args:
        current: Current key -> value data
        prior: Previous key -> value data, None for an empty history
        materialize: Builds the document view for a key and value

    Returns:
        added/modified changes in current order, then removed changes in
        prior order; removed documents carry their prior value
    """
    prior = prior or {}
    prior_positions = {key: index for index, key in enumerate(prior)}
    changes: List[DocumentChange] = []

    for new_index, (key, value) in enumerate(current.items()):
        if key not in prior:
            changes.append(DocumentChange(ChangeType.ADDED, materialize(key, value), -1, new_index))
        elif not deep_equal(value, prior[key]):
            changes.append(
                DocumentChange(ChangeType.MODIFIED, materialize(key, value), prior_positions[key], new_index)
            )

    for key, value in prior.items():
        if key not in current:
            changes.append(
                DocumentChange(ChangeType.REMOVED, materialize(key, value), prior_positions[key], -1)
            )

    return changes


class QuerySnapshot:
    """Result set of a collection read or listener notification"""

    def __init__(
        self,
        ref: DocumentReferenceFactory,
        data: Optional[RecordSet],
        prior_data: Optional[RecordSet] = None,
    ):
        self.ref = ref
        self.data: RecordSet = copy.deepcopy(data) or {}
        self.size = len(self.data)
        self.empty = self.size == 0

        self.docs = [self._materialize(key, value) for key, value in self.data.items()]
        self._changes = detect_changes(self.data, copy.deepcopy(prior_data), self._materialize)
        logger.debug(f"QuerySnapshot built: size={self.size} changes={len(self._changes)}")

    def _materialize(self, key: str, value: Any) -> DocumentSnapshot:
        return DocumentSnapshot(key, self.ref.doc(key), value)

    def for_each(self, callback: Callable[[DocumentSnapshot], Any]) -> None:
        for doc in self.docs:
            callback(doc)

    def doc_changes(self) -> List[DocumentChange]:
        return list(self._changes)

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        return iter(self.docs)

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return f"QuerySnapshot(size={self.size}, changes={len(self._changes)})"
