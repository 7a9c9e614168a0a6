"""
Change status values shared by tracked objects and tracked collections.
"""
from enum import Enum


class ChangeStatus(Enum):
    """Lifecycle status of a tracked object.

    UNCHANGED and CHANGED are derived from the original-value map and the
    children of an object. ADDED and DELETED are sticky: field writes never
    move an object out of them, only delete/undelete/accept/reject do.
    """
    UNCHANGED = "unchanged"
    ADDED = "added"
    CHANGED = "changed"
    DELETED = "deleted"


class ListChangeKind(Enum):
    """Kind of membership change reported by a TrackableCollection."""
    ITEM_ADDED = "item_added"
    ITEM_DELETED = "item_deleted"
    ITEM_CHANGED = "item_changed"
    RESET = "reset"
