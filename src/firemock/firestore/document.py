"""
Document references and snapshots
"""

import copy
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..dispatch import PendingResult
from ..errors import require

if TYPE_CHECKING:
    from .collection import MockCollection


def deep_equal(left: Any, right: Any) -> bool:
    """
    Structural equality that also compares types

    Mappings match on keys and values, sequences element by element. Leaves
    must share a type, so 1, 1.0 and True are all different values.
    """
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(deep_equal(value, right[key]) for key, value in left.items())
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if type(left) is not type(right) or len(left) != len(right):
            return False
        return all(deep_equal(a, b) for a, b in zip(left, right))
    if type(left) is not type(right):
        return False
    if isinstance(left, float) and left != left:
        # NaN matches NaN
        return right != right
    return left == right


class DocumentSnapshot:
    """Point-in-time view of one document"""

    def __init__(self, doc_id: str, ref: Optional['DocumentReference'], data: Optional[Dict[str, Any]]):
        self.id = doc_id
        self.ref = ref
        self._data = copy.deepcopy(data)

    @property
    def exists(self) -> bool:
        return self._data is not None

    def data(self) -> Optional[Dict[str, Any]]:
        """Deep copy of the document fields, or None if it does not exist"""
        return copy.deepcopy(self._data)

    def get(self, field_path: str) -> Any:
        """Read a field by dotted path; missing fields read as None"""
        value: Any = self._data
        for part in field_path.split('.'):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return copy.deepcopy(value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DocumentSnapshot):
            return NotImplemented
        return self.id == other.id and deep_equal(self._data, other._data)

    def __repr__(self) -> str:
        return f"DocumentSnapshot(id={self.id!r}, data={self._data!r})"


class DocumentReference:
    """Handle on one document of a MockCollection; operations defer on the collection"""

    def __init__(self, parent: 'MockCollection', doc_id: str):
        self.parent = parent
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self.parent.path}/{self.id}"

    def get(self) -> PendingResult:
        return self.parent._defer(
            'get_doc',
            [self.id],
            lambda: DocumentSnapshot(self.id, self, self.parent.read_record(self.id)),
        )

    def set(self, data: Dict[str, Any], merge: bool = False) -> PendingResult:
        require(isinstance(data, dict), 'data must be a dict')
        return self.parent._defer(
            'set_doc',
            [self.id, data, merge],
            lambda: self.parent._apply_set(self.id, data, merge),
        )

    def update(self, data: Dict[str, Any]) -> PendingResult:
        require(isinstance(data, dict) and data, 'data must be a non-empty dict')
        return self.parent._defer(
            'update_doc',
            [self.id, data],
            lambda: self.parent._apply_update(self.id, data),
        )

    def delete(self) -> PendingResult:
        return self.parent._defer(
            'delete_doc',
            [self.id],
            lambda: self.parent._apply_delete(self.id),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DocumentReference):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"DocumentReference(path={self.path!r})"
