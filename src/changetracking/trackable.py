"""
Tracked object types and their construction.

A tracked object is an instance of a generated subclass of the user's dataclass
(``TrackablePerson`` for ``Person``). The generated class puts the Trackable
mixin first in the MRO, so its ``__setattr__`` and ``__getattribute__`` see
every field write and read and route them into the object's ObjectTracker:

    write:  guard (deleted?) -> adopt value -> store -> notify_field_write
    read:   load -> notify_field_read (lazy child wiring)

The ObjectTracker composes the three per-object components:
    StatusStore            original values + status
    ChangePropagationHub   child -> parent status wiring
    NotificationRelay      property_changed notifications

Usage:
    >>> person = as_trackable(Person(name="A"))
    >>> person.name = "B"
    >>> person.change_status
    <ChangeStatus.CHANGED: 'changed'>
    >>> person.original_values
    mappingproxy({'name': 'A'})
"""
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type

from changetracking.config import TrackingOptions, resolve_tracking_options
from changetracking.events import Signal
from changetracking.notification import NotificationRelay
from changetracking.propagation import ChangePropagationHub
from changetracking.schema import (
    TRACKER_ATTR,
    TRACKING_API_NAMES,
    TypeSchema,
    get_schema,
    is_plain_dataclass_instance,
    is_plain_dataclass_list,
    tracker_of,
)
from changetracking.status import ChangeStatus
from changetracking.status_store import StatusStore

logger = logging.getLogger(__name__)

TRACKABLE_CLASS_NAME_PREFIX = "Trackable"

# Generated tracked type <-> user dataclass type
_trackable_type_registry: Dict[Type, Type] = {}
_base_to_trackable_registry: Dict[Type, Type] = {}


class ObjectTracker:
    """Tracking state attached to one tracked object.

    Inbound calls come from the Trackable mixin: ``notify_field_write`` after a
    field has been written and ``notify_field_read`` after it has been read.
    """

    def __init__(
        self,
        owner: Any,
        schema: TypeSchema,
        status: ChangeStatus,
        options: TrackingOptions,
        item_canceled: Optional[Callable[[Any], None]] = None,
    ):
        self.schema = schema
        self.options = options
        # Set by the owning collection; withdraws a never-committed item from it
        self.item_canceled = item_canceled
        self.store = StatusStore(owner, schema, status)
        self.hub = ChangePropagationHub(self.store)
        self.relay = NotificationRelay(owner, self.store)

    @property
    def status_changed(self) -> Signal:
        return self.store.status_changed

    @property
    def property_changed(self) -> Signal:
        return self.relay.property_changed

    def wire_children(self) -> None:
        """Subscribe to every child currently held by the owner's fields."""
        owner = self.store.owner
        for name in self.schema.field_names:
            value = object.__getattribute__(owner, name)
            self.hub.subscribe(name, value)
            self.relay.subscribe(name, value)

    def guard_write(self) -> None:
        self.store.ensure_writable()

    def adopt_value(self, field_name: str, value: Any) -> Any:
        """Wrap a plain dataclass or list about to be stored in a field."""
        options = self.options
        if options.make_complex_properties_trackable and is_plain_dataclass_instance(value):
            return TrackableFactory.wrap(value, ChangeStatus.UNCHANGED, options)

        if options.make_collection_properties_trackable and type(value) is list:
            item_type = self.schema.collection_item_types.get(field_name)
            if item_type is not None or is_plain_dataclass_list(value):
                from changetracking.collection import TrackableCollection

                return TrackableCollection(
                    value,
                    item_type=item_type,
                    make_complex_properties_trackable=options.make_complex_properties_trackable,
                    make_collection_properties_trackable=options.make_collection_properties_trackable,
                )
        return value

    def notify_field_write(self, field_name: str, old_value: Any, new_value: Any) -> None:
        self.hub.on_field_write(field_name, old_value, new_value)
        self.store.record_write(field_name, old_value, new_value)
        self.relay.on_field_write(field_name, old_value, new_value)

    def notify_field_read(self, field_name: str, value: Any) -> None:
        self.hub.on_field_read(field_name, value)
        self.relay.on_field_read(field_name, value)

    def cancel_new(self) -> bool:
        """Ask the owning collection to drop this item if it was never committed."""
        if self.store.status is not ChangeStatus.ADDED or self.item_canceled is None:
            return False
        self.item_canceled(self.store.owner)
        return True


def _tracker(obj: Any) -> ObjectTracker:
    return object.__getattribute__(obj, '__dict__')[TRACKER_ATTR]


class Trackable:
    """Mixin base of every generated tracked type.

    Use ``isinstance(obj, Trackable)`` to recognise tracked objects.
    """
    __slots__ = ()

    def __setattr__(self, name: str, value: Any) -> None:
        tracker = tracker_of(self)
        if tracker is None or not tracker.schema.has_field(name):
            super().__setattr__(name, value)
            return
        tracker.guard_write()
        value = tracker.adopt_value(name, value)
        old_value = object.__getattribute__(self, name)
        super().__setattr__(name, value)
        tracker.notify_field_write(name, old_value, value)

    def __getattribute__(self, name: str) -> Any:
        value = super().__getattribute__(name)
        if name in TRACKING_API_NAMES or name.startswith('__'):
            return value
        tracker = tracker_of(self)
        if tracker is not None and tracker.schema.has_field(name):
            tracker.notify_field_read(name, value)
        return value

    # ==================== STATUS ====================

    @property
    def change_status(self) -> ChangeStatus:
        return _tracker(self).store.status

    @property
    def is_changed(self) -> bool:
        return _tracker(self).store.status is not ChangeStatus.UNCHANGED

    @property
    def changed_properties(self) -> Tuple[str, ...]:
        """Changed field names; every field while ADDED or DELETED."""
        return _tracker(self).store.changed_field_names()

    @property
    def original_values(self) -> Mapping[str, Any]:
        return _tracker(self).store.original_values

    # ==================== ORIGINAL / CURRENT ====================

    def get_original_value(self, field_name: str) -> Any:
        """Value the field held at the last accepted checkpoint.

        Raises:
            UnknownFieldError: field_name is not a field of this type
        """
        return _tracker(self).store.get_original_value(field_name)

    def get_original(self) -> Any:
        """Detached plain copy built from original values."""
        return _tracker(self).store.get_original()

    def get_current(self) -> Any:
        """Detached plain copy built from current values."""
        return _tracker(self).store.get_current()

    # ==================== LIFECYCLE ====================

    def accept_changes(self) -> None:
        _tracker(self).store.accept_changes()

    def reject_changes(self) -> None:
        _tracker(self).store.reject_changes()

    def delete(self) -> bool:
        return _tracker(self).store.delete()

    def undelete(self) -> bool:
        return _tracker(self).store.undelete()

    def cancel_new(self) -> bool:
        return _tracker(self).cancel_new()

    # ==================== SUBSCRIPTION ====================

    def on_status_changed(self, callback: Callable[[Any], None]) -> None:
        """Subscribe to status changes. Callback receives the tracked object."""
        _tracker(self).status_changed.connect(callback)

    def off_status_changed(self, callback: Callable[[Any], None]) -> None:
        _tracker(self).status_changed.disconnect(callback)

    def on_property_changed(self, callback: Callable[[Any, str], None]) -> None:
        """Subscribe to property changes. Callback receives (tracked object, property name)."""
        _tracker(self).property_changed.connect(callback)

    def off_property_changed(self, callback: Callable[[Any, str], None]) -> None:
        _tracker(self).property_changed.disconnect(callback)


def register_trackable_type_mapping(trackable_type: Type, base_type: Type) -> None:
    """Register mapping between a generated tracked type and its dataclass."""
    _trackable_type_registry[trackable_type] = base_type
    _base_to_trackable_registry[base_type] = trackable_type


def get_base_type_for_trackable(trackable_type: Type) -> Optional[Type]:
    """Get the user dataclass behind a generated tracked type."""
    return _trackable_type_registry.get(trackable_type)


def get_trackable_type_for_base(base_type: Type) -> Optional[Type]:
    """Get the generated tracked type for a dataclass, if one was made."""
    return _base_to_trackable_registry.get(base_type)


class TrackableFactory:
    """Creates tracked types and wraps plain instances into them."""

    @staticmethod
    def make_trackable_type(base_type: Type) -> Type:
        """Get or create the tracked subclass of a mutable dataclass.

        Raises:
            TypeError: base_type is not a mutable dataclass or uses reserved field names
        """
        trackable_type = _base_to_trackable_registry.get(base_type)
        if trackable_type is not None:
            return trackable_type

        get_schema(base_type)
        name = f"{TRACKABLE_CLASS_NAME_PREFIX}{base_type.__name__}"
        trackable_type = type(name, (Trackable, base_type), {
            '__module__': base_type.__module__,
            '__qualname__': f"{TRACKABLE_CLASS_NAME_PREFIX}{base_type.__qualname__}",
        })
        register_trackable_type_mapping(trackable_type, base_type)
        logger.debug(f"Created tracked type {name} for {base_type.__qualname__}")
        return trackable_type

    @staticmethod
    def wrap(
        obj: Any,
        status: ChangeStatus,
        options: TrackingOptions,
        item_canceled: Optional[Callable[[Any], None]] = None,
    ) -> Any:
        """Build a tracked copy of a plain dataclass instance."""
        base_type = type(obj)
        schema = get_schema(base_type)
        instance = object.__new__(TrackableFactory.make_trackable_type(base_type))

        instance_dict = object.__getattribute__(instance, '__dict__')
        instance_dict.update(getattr(obj, '__dict__', {}))
        tracker = ObjectTracker(instance, schema, status, options, item_canceled)
        instance_dict[TRACKER_ATTR] = tracker

        # Written below the mixin so nothing is recorded as a change
        for name in schema.field_names:
            object.__setattr__(instance, name, tracker.adopt_value(name, getattr(obj, name)))
        tracker.wire_children()
        return instance


def as_trackable(
    obj: Any,
    status: ChangeStatus = ChangeStatus.UNCHANGED,
    item_canceled: Optional[Callable[[Any], None]] = None,
    make_complex_properties_trackable: Optional[bool] = None,
    make_collection_properties_trackable: Optional[bool] = None,
) -> Any:
    """Wrap a dataclass instance (or a list of them) for change tracking.

    The plain object is left untouched; a tracked copy is returned. Values that
    are already tracked are returned as they are.

    Args:
        obj: Mutable dataclass instance, or a list/tuple of them
        status: Initial status, UNCHANGED for existing data, ADDED for new data
        item_canceled: Called with the tracked object when ``cancel_new()`` withdraws it
        make_complex_properties_trackable: Wrap dataclass-valued fields (None = config default)
        make_collection_properties_trackable: Wrap list-valued fields (None = config default)

    Returns:
        Tracked object, or a TrackableCollection for list/tuple input
    """
    from changetracking.collection import TrackableCollection

    if isinstance(obj, (Trackable, TrackableCollection)):
        return obj
    if isinstance(obj, (list, tuple)):
        return TrackableCollection(
            obj,
            make_complex_properties_trackable=make_complex_properties_trackable,
            make_collection_properties_trackable=make_collection_properties_trackable,
        )
    options = resolve_tracking_options(make_complex_properties_trackable, make_collection_properties_trackable)
    return TrackableFactory.wrap(obj, status, options, item_canceled)


def is_trackable(obj: Any) -> bool:
    return isinstance(obj, Trackable)


def get_tracker(obj: Any) -> Optional[ObjectTracker]:
    """ObjectTracker of a tracked object, None for anything else."""
    if not isinstance(obj, Trackable):
        return None
    return tracker_of(obj)
