"""
Firestore-style collection mock and change detection
"""

from .document import DocumentReference, DocumentSnapshot, deep_equal
from .query_snapshot import ChangeType, DocumentChange, QuerySnapshot, detect_changes
from .collection import MockCollection

__all__ = [
    "DocumentReference",
    "DocumentSnapshot",
    "ChangeType",
    "DocumentChange",
    "QuerySnapshot",
    "deep_equal",
    "detect_changes",
    "MockCollection",
]
