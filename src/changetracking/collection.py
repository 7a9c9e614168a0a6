"""
TrackableCollection: ordered collection of tracked items with deletion buffering.

Membership rules:
- Items present at construction start UNCHANGED; items added later start ADDED.
- Removing an item never drops it silently. The item is deleted, and a deleted
  item that was ever committed moves into ``deleted_items`` so the removal can
  be undone. An ADDED item is simply discarded.
- ``accept_changes()`` makes the deletions final; ``reject_changes()`` drops the
  additions and brings the deleted items back.

An item is always either live or in the deleted buffer, never both.
"""
import logging
from collections.abc import MutableSequence
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple, Type

from changetracking.config import resolve_tracking_options
from changetracking.errors import InvalidStateError
from changetracking.events import Signal
from changetracking.notification import STATUS_PROPERTY_NAMES
from changetracking.schema import tracker_of
from changetracking.status import ChangeStatus, ListChangeKind
from changetracking.trackable import Trackable, TrackableFactory, get_base_type_for_trackable

logger = logging.getLogger(__name__)


class TrackableCollection(MutableSequence):
    """Mutable sequence of tracked objects.

    ``list_changed`` fires ``(collection, kind, index)`` for every membership or
    item change; index is -1 for RESET.
    """

    def __init__(
        self,
        items: Iterable[Any] = (),
        item_type: Optional[Type] = None,
        *,
        make_complex_properties_trackable: Optional[bool] = None,
        make_collection_properties_trackable: Optional[bool] = None,
    ):
        self._options = resolve_tracking_options(
            make_complex_properties_trackable, make_collection_properties_trackable
        )
        self._items: List[Any] = []
        self._deleted: List[Any] = []
        self.list_changed = Signal('list_changed')

        for item in items:
            tracked = self._adopt(item, ChangeStatus.UNCHANGED)
            self._items.append(tracked)
            self._wire(tracked)

        if item_type is None and self._items:
            first_type = type(self._items[0])
            item_type = get_base_type_for_trackable(first_type) or first_type
        self._item_type = item_type

    # ==================== SEQUENCE PROTOCOL ====================

    def __getitem__(self, index):
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            raise TypeError("TrackableCollection does not support slice assignment")
        current = self._items[index]
        if current is value:
            return
        # Validate and wrap before touching the slot so a bad value leaves it intact
        if not self._check_insertable(value):
            value = self._adopt(value, ChangeStatus.ADDED)
        position = self._index_of(current)
        self._delete_item(current)
        self.insert(position, value)

    def __delitem__(self, index) -> None:
        if isinstance(index, slice):
            for item in self._items[index]:
                self._delete_item(item)
            return
        self._delete_item(self._items[index])

    def insert(self, index: int, value: Any) -> None:
        """Insert an item. New items become ADDED; buffered deleted items are undeleted."""
        if self._check_insertable(value):
            self._restore_deleted(value, index)
            return

        item = self._adopt(value, ChangeStatus.ADDED)
        self._items.insert(index, item)
        self._wire(item)
        self.list_changed.emit(self, ListChangeKind.ITEM_ADDED, self._index_of(item))

    def clear(self) -> None:
        for item in list(self._items):
            self._delete_item(item)

    def index(self, value: Any, start: int = 0, stop: Optional[int] = None) -> int:
        """Position of value, matching by identity before equality."""
        stop = len(self._items) if stop is None else stop
        for i, item in enumerate(self._items[start:stop], start):
            if item is value:
                return i
        return super().index(value, start, stop)

    def reverse(self) -> None:
        self._items.reverse()
        self.list_changed.emit(self, ListChangeKind.RESET, -1)

    def sort(self, *, key: Optional[Callable[[Any], Any]] = None, reverse: bool = False) -> None:
        self._items.sort(key=key, reverse=reverse)
        self.list_changed.emit(self, ListChangeKind.RESET, -1)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TrackableCollection):
            return self._items == other._items
        if isinstance(other, list):
            return self._items == other
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._items!r})"

    # ==================== TRACKING API ====================

    @property
    def item_type(self) -> Optional[Type]:
        return self._item_type

    def add_new(self, **field_values: Any) -> Any:
        """Construct, wrap and append a fresh item of the item type. Returns it ADDED."""
        if self._item_type is None:
            raise TypeError("Item type unknown; pass item_type when creating the collection")
        item = self._adopt(self._item_type(**field_values), ChangeStatus.ADDED)
        self.insert(len(self._items), item)
        return item

    def cancel_new(self, index: int) -> bool:
        """Withdraw a never-committed item without buffering it."""
        item = self._items[index]
        if item.change_status is not ChangeStatus.ADDED:
            return False
        position = self._index_of(item)
        del self._items[position]
        self._release(item)
        logger.debug(f"Canceled new {type(item).__name__} at index {position}")
        self.list_changed.emit(self, ListChangeKind.ITEM_DELETED, position)
        return True

    def undelete(self, item: Any) -> bool:
        """Bring a buffered deleted item back to the end of the live sequence."""
        if self._deleted_index_of(item) < 0:
            return False
        return self._restore_deleted(item, len(self._items))

    def accept_changes(self) -> None:
        """Accept every live item and make buffered deletions final."""
        had_changes = self.is_changed
        for item in list(self._items):
            item.accept_changes()
        if self._deleted:
            logger.debug(f"Finalized {len(self._deleted)} deletion(s)")
        for item in self._deleted:
            self._release(item)
        self._deleted.clear()
        if had_changes:
            self.list_changed.emit(self, ListChangeKind.RESET, -1)

    def reject_changes(self) -> None:
        """Drop additions, reject live items and restore buffered deletions."""
        had_changes = self.is_changed
        for item in self.added_items:
            del self._items[self._index_of(item)]
            self._release(item)
        for item in list(self._items):
            item.reject_changes()
        deleted, self._deleted = self._deleted, []
        for item in deleted:
            # Live again before the reject so its status change reads as an item change
            self._items.append(item)
            self._wire(item)
            item.reject_changes()
        if had_changes:
            self.list_changed.emit(self, ListChangeKind.RESET, -1)

    @property
    def unchanged_items(self) -> List[Any]:
        return self._items_with_status(ChangeStatus.UNCHANGED)

    @property
    def added_items(self) -> List[Any]:
        return self._items_with_status(ChangeStatus.ADDED)

    @property
    def changed_items(self) -> List[Any]:
        return self._items_with_status(ChangeStatus.CHANGED)

    @property
    def deleted_items(self) -> Tuple[Any, ...]:
        return tuple(self._deleted)

    @property
    def is_changed(self) -> bool:
        return bool(self._deleted) or any(
            item.change_status in (ChangeStatus.CHANGED, ChangeStatus.ADDED) for item in self._items
        )

    def get_original(self) -> List[Any]:
        """Original snapshots: committed live items, then buffered deleted items."""
        originals = [item.get_original() for item in self._items if item.change_status is not ChangeStatus.ADDED]
        originals.extend(item.get_original() for item in self._deleted)
        return originals

    def get_current(self) -> List[Any]:
        return [item.get_current() for item in self._items]

    # ==================== INTERNALS ====================

    def _items_with_status(self, status: ChangeStatus) -> List[Any]:
        return [item for item in self._items if item.change_status is status]

    def _index_of(self, item: Any) -> int:
        for i, candidate in enumerate(self._items):
            if candidate is item:
                return i
        return -1

    def _deleted_index_of(self, item: Any) -> int:
        for i, candidate in enumerate(self._deleted):
            if candidate is item:
                return i
        return -1

    def _check_insertable(self, value: Any) -> bool:
        """Validate a value about to be inserted. True if it is a buffered item to restore.

        Raises:
            ValueError: value is already a live member
            InvalidStateError: value is a deleted object from elsewhere
        """
        if not isinstance(value, Trackable):
            return False
        if self._deleted_index_of(value) >= 0:
            return True
        if self._index_of(value) >= 0:
            raise ValueError("Item is already part of this collection")
        if value.change_status is ChangeStatus.DELETED:
            raise InvalidStateError("Can not add a deleted object to a collection")
        return False

    def _adopt(self, value: Any, status: ChangeStatus) -> Any:
        if isinstance(value, Trackable):
            tracker = tracker_of(value)
            tracker.item_canceled = self._on_item_canceled
            if status is ChangeStatus.ADDED:
                tracker.store.mark_added()
            return value
        return TrackableFactory.wrap(value, status, self._options, self._on_item_canceled)

    def _wire(self, item: Any) -> None:
        tracker = tracker_of(item)
        tracker.status_changed.connect(self._on_item_status_changed)
        tracker.property_changed.connect(self._on_item_property_changed)

    def _park(self, item: Any) -> None:
        # Buffered items keep their status subscription so a direct undelete brings them back
        tracker_of(item).property_changed.disconnect(self._on_item_property_changed)

    def _release(self, item: Any) -> None:
        tracker = tracker_of(item)
        tracker.status_changed.disconnect(self._on_item_status_changed)
        tracker.property_changed.disconnect(self._on_item_property_changed)
        tracker.item_canceled = None

    def _delete_item(self, item: Any) -> None:
        # The item's status_changed handler moves it out of the live sequence
        item.delete()

    def _restore_deleted(self, item: Any, index: int) -> bool:
        del self._deleted[self._deleted_index_of(item)]
        # Out of both sequences here, so the status handler ignores this undelete
        item.undelete()
        self._items.insert(index, item)
        self._wire(item)
        logger.debug(f"Undeleted {type(item).__name__} as {item.change_status.name}")
        self.list_changed.emit(self, ListChangeKind.ITEM_ADDED, self._index_of(item))
        return True

    def _on_item_status_changed(self, item: Any) -> None:
        index = self._index_of(item)
        if index < 0:
            # Buffered item undeleted or rejected directly
            if item.change_status is not ChangeStatus.DELETED and self._deleted_index_of(item) >= 0:
                self._restore_deleted(item, len(self._items))
            return
        if item.change_status is not ChangeStatus.DELETED:
            self.list_changed.emit(self, ListChangeKind.ITEM_CHANGED, index)
            return

        del self._items[index]
        if tracker_of(item).store.status_before_delete is ChangeStatus.ADDED:
            self._release(item)
            logger.debug(f"Discarded never-committed {type(item).__name__} at index {index}")
        else:
            self._deleted.append(item)
            self._park(item)
            logger.debug(f"Buffered deleted {type(item).__name__} from index {index}")
        self.list_changed.emit(self, ListChangeKind.ITEM_DELETED, index)

    def _on_item_property_changed(self, item: Any, name: str) -> None:
        if name in STATUS_PROPERTY_NAMES:
            return
        index = self._index_of(item)
        if index >= 0:
            self.list_changed.emit(self, ListChangeKind.ITEM_CHANGED, index)

    def _on_item_canceled(self, item: Any) -> None:
        index = self._index_of(item)
        if index >= 0:
            self.cancel_new(index)
