"""
StatusStore: per-object original values and change status.

Holds the values fields had at the last accepted checkpoint and derives the
object's ChangeStatus from them and from the object's trackable children.

Derivation rule:
    UNCHANGED  iff  no original values are stored AND no child reports is_changed
    CHANGED    otherwise
ADDED and DELETED are never left by a field write; only delete(), undelete(),
accept_changes() and reject_changes() move an object out of them.
"""
import copy
import logging
import weakref
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from changetracking.errors import InvalidStateError, UnknownFieldError
from changetracking.events import Signal
from changetracking.schema import ChildKind, TypeSchema, classify
from changetracking.status import ChangeStatus

logger = logging.getLogger(__name__)

_DERIVED_STATUSES = (ChangeStatus.UNCHANGED, ChangeStatus.CHANGED)


class StatusStore:
    """Original-value map and status state machine for one tracked object.

    The store reads and writes the owner's fields through the owner itself, so
    it only keeps a weak reference to it. Children are whatever tracked objects
    or collections currently sit in the owner's fields.
    """

    def __init__(self, owner: Any, schema: TypeSchema, status: ChangeStatus):
        self._owner_ref = weakref.ref(owner)
        self._schema = schema
        self._status = status
        self._original_values: Dict[str, Any] = {}
        self._status_before_delete: Optional[ChangeStatus] = None
        self._in_reject = False
        # Fired with the owner whenever the status moves
        self.status_changed = Signal('status_changed')

    # ==================== STATE ====================

    @property
    def owner(self) -> Any:
        return self._owner_ref()

    @property
    def status(self) -> ChangeStatus:
        return self._status

    @property
    def original_values(self) -> Mapping[str, Any]:
        """Read-only view of field -> original value for fields that differ."""
        return MappingProxyType(self._original_values)

    @property
    def status_before_delete(self) -> Optional[ChangeStatus]:
        """Status held when delete() last succeeded (None if never deleted)."""
        return self._status_before_delete

    def children(self) -> Iterator[Any]:
        """Yield tracked objects and collections currently held by the owner's fields."""
        owner = self.owner
        for name in self._schema.field_names:
            value = object.__getattribute__(owner, name)
            if classify(value) is not ChildKind.VALUE:
                yield value

    # ==================== WRITES ====================

    def ensure_writable(self) -> None:
        """Raise if the owner may not be mutated right now."""
        if self._status is ChangeStatus.DELETED and not self._in_reject:
            raise InvalidStateError(f"Can not modify deleted object of type {self._schema.base_type.__name__}")

    def record_write(self, field_name: str, old_value: Any, new_value: Any) -> None:
        """Account for a completed field write.

        Stores the original on the first real change of a field and drops it
        again once the field returns to that original.
        """
        if self._in_reject:
            return
        self.ensure_writable()

        if field_name not in self._original_values:
            if not values_equal(old_value, new_value):
                self._original_values[field_name] = old_value
                self.refresh_status()
        elif values_equal(self._original_values[field_name], new_value):
            del self._original_values[field_name]
            self.refresh_status()

    def refresh_status(self, force: bool = False) -> None:
        """Re-derive the status and fire status_changed if it moved.

        Args:
            force: Also re-derive when the status is ADDED or DELETED. Child
                   notifications and field writes never force.
        """
        if self._status not in _DERIVED_STATUSES and not force:
            return
        new_status = self._derive_status()
        if new_status is not self._status:
            self._set_status(new_status)

    def _derive_status(self) -> ChangeStatus:
        if self._original_values:
            return ChangeStatus.CHANGED
        if any(child.is_changed for child in self.children()):
            return ChangeStatus.CHANGED
        return ChangeStatus.UNCHANGED

    def _set_status(self, status: ChangeStatus) -> None:
        old_status = self._status
        self._status = status
        logger.debug(f"Status {old_status.name} -> {status.name} for {self._schema.base_type.__name__}")
        self.status_changed.emit(self.owner)

    # ==================== LIFECYCLE ====================

    def delete(self) -> bool:
        """Mark the owner deleted. Returns False if it already was."""
        if self._status is ChangeStatus.DELETED:
            return False
        self._status_before_delete = self._status
        self._set_status(ChangeStatus.DELETED)
        return True

    def mark_added(self) -> bool:
        """Mark the owner as newly added to a collection. Returns False if it already was."""
        if self._status is ChangeStatus.ADDED:
            return False
        self._set_status(ChangeStatus.ADDED)
        return True

    def undelete(self) -> bool:
        """Leave DELETED, re-deriving the status from originals and children."""
        if self._status is not ChangeStatus.DELETED:
            return False
        self.refresh_status(force=True)
        return True

    def accept_changes(self) -> None:
        """Make the current values the new originals, recursively."""
        if self._status is ChangeStatus.DELETED:
            raise InvalidStateError(
                f"Can not call accept_changes on deleted object of type {self._schema.base_type.__name__}"
            )
        for child in list(self.children()):
            child.accept_changes()
        self._original_values.clear()
        self.refresh_status(force=True)

    def reject_changes(self) -> None:
        """Restore original values, recursively. Children are rejected first."""
        for child in list(self.children()):
            child.reject_changes()

        if self._original_values:
            owner = self.owner
            self._in_reject = True
            try:
                # setattr goes through the tracked type so subscriptions follow
                for field_name, original in list(self._original_values.items()):
                    setattr(owner, field_name, original)
                self._original_values.clear()
            finally:
                self._in_reject = False

        self.refresh_status(force=True)

    # ==================== QUERIES ====================

    def changed_field_names(self) -> Tuple[str, ...]:
        if self._status is ChangeStatus.UNCHANGED:
            return ()
        if self._status in (ChangeStatus.ADDED, ChangeStatus.DELETED):
            return self._schema.field_names
        return tuple(self._original_values.keys())

    def get_original_value(self, field_name: str) -> Any:
        """Original value of a field, unwrapped to a plain snapshot for tracked children."""
        if not self._schema.has_field(field_name):
            raise UnknownFieldError(field_name, self._schema.base_type)
        if field_name in self._original_values:
            value = self._original_values[field_name]
        else:
            value = object.__getattribute__(self.owner, field_name)
        return _unwrap(value, original=True)

    def get_original(self) -> Any:
        """Detached plain instance holding the original value of every field."""
        owner = self.owner
        values = {}
        for name in self._schema.field_names:
            if name in self._original_values:
                value = self._original_values[name]
            else:
                value = object.__getattribute__(owner, name)
            values[name] = _unwrap(value, original=True)
        return self._build_plain(values)

    def get_current(self) -> Any:
        """Detached plain instance holding the current value of every field."""
        owner = self.owner
        values = {
            name: _unwrap(object.__getattribute__(owner, name), original=False)
            for name in self._schema.field_names
        }
        return self._build_plain(values)

    def _build_plain(self, values: Dict[str, Any]) -> Any:
        init_names = self._schema.init_field_names
        instance = self._schema.base_type(**{k: v for k, v in values.items() if k in init_names})
        for name, value in values.items():
            if name not in init_names:
                object.__setattr__(instance, name, value)
        return instance


def values_equal(left: Any, right: Any) -> bool:
    return left is right or left == right


def _unwrap(value: Any, original: bool) -> Any:
    """Snapshot a field value: tracked children become plain copies."""
    if classify(value) is ChildKind.VALUE:
        return copy.deepcopy(value)
    return value.get_original() if original else value.get_current()
