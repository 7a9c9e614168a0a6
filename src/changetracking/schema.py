"""
Type-indexed field descriptor table.

Each tracked dataclass type is analysed once; the resulting TypeSchema lists its
writable fields and, for list-typed fields, the dataclass element type used
when a TrackableCollection has to construct new items. The table is only
written the first time a type is seen.
"""
import logging
from dataclasses import dataclass, fields as dataclass_fields, is_dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type, Union, get_args, get_origin, get_type_hints
import collections.abc

logger = logging.getLogger(__name__)

# Attribute names used by the tracking API on tracked instances.
# A dataclass field with one of these names would be shadowed, so it is rejected.
TRACKING_API_NAMES: FrozenSet[str] = frozenset({
    'change_status',
    'is_changed',
    'changed_properties',
    'original_values',
    'get_original_value',
    'get_original',
    'get_current',
    'accept_changes',
    'reject_changes',
    'delete',
    'undelete',
    'cancel_new',
    'on_status_changed',
    'off_status_changed',
    'on_property_changed',
    'off_property_changed',
})

_LIST_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence)


class ChildKind(Enum):
    """Classification of a field value for subscription purposes."""
    VALUE = "value"
    OBJECT = "object"
    COLLECTION = "collection"


@dataclass(frozen=True)
class TypeSchema:
    """Writable fields of a tracked dataclass type."""
    base_type: type
    field_names: Tuple[str, ...]
    field_set: FrozenSet[str]
    init_field_names: FrozenSet[str]
    collection_item_types: Dict[str, type]

    def has_field(self, name: str) -> bool:
        return name in self.field_set


_schemas: Dict[Type, TypeSchema] = {}


def get_schema(base_type: Type) -> TypeSchema:
    """Get (and on first use build) the schema for a dataclass type.

    Raises:
        TypeError: if the type is not a mutable dataclass or a field name
                   collides with the tracking API.
    """
    schema = _schemas.get(base_type)
    if schema is None:
        schema = _build_schema(base_type)
        _schemas[base_type] = schema
        logger.debug(f"Built schema for {base_type.__name__}: fields={schema.field_names}")
    return schema


def _build_schema(base_type: Type) -> TypeSchema:
    if not (isinstance(base_type, type) and is_dataclass(base_type)):
        raise TypeError(f"{base_type!r} must be a dataclass type to be tracked")
    if base_type.__dataclass_params__.frozen:
        raise TypeError(f"{base_type.__name__} is a frozen dataclass; its fields cannot be tracked")

    field_list = dataclass_fields(base_type)
    clashes = sorted(f.name for f in field_list if f.name in TRACKING_API_NAMES)
    if clashes:
        raise TypeError(f"{base_type.__name__} declares fields reserved for change tracking: {clashes}")

    try:
        hints = get_type_hints(base_type)
    except Exception as e:
        # Unresolvable forward references only cost us the element types
        logger.debug(f"Could not resolve type hints for {base_type.__name__}: {e}")
        hints = {}

    item_types: Dict[str, type] = {}
    for f in field_list:
        item_type = _list_item_type(hints.get(f.name, f.type))
        if item_type is not None:
            item_types[f.name] = item_type

    return TypeSchema(
        base_type=base_type,
        field_names=tuple(f.name for f in field_list),
        field_set=frozenset(f.name for f in field_list),
        init_field_names=frozenset(f.name for f in field_list if f.init),
        collection_item_types=item_types,
    )


def _list_item_type(annotation: Any) -> Optional[type]:
    """Return X for List[X] / list[X] / Optional[List[X]] when X is a dataclass."""
    origin = get_origin(annotation)
    if origin is Union:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return _list_item_type(args[0])
        return None
    if origin in _LIST_ORIGINS:
        args = get_args(annotation)
        if len(args) == 1 and isinstance(args[0], type) and is_dataclass(args[0]):
            return args[0]
    return None


def classify(value: Any) -> ChildKind:
    """Classify a field value as plain value, tracked object or tracked collection."""
    from changetracking.collection import TrackableCollection
    from changetracking.trackable import Trackable

    if isinstance(value, Trackable):
        return ChildKind.OBJECT
    if isinstance(value, TrackableCollection):
        return ChildKind.COLLECTION
    return ChildKind.VALUE


def is_plain_dataclass_instance(value: Any) -> bool:
    """True for instances of non-frozen dataclasses that are not tracked yet."""
    from changetracking.trackable import Trackable

    return (
        not isinstance(value, type)
        and is_dataclass(value)
        and not isinstance(value, Trackable)
        and not type(value).__dataclass_params__.frozen
    )


def is_plain_dataclass_list(value: Any) -> bool:
    """True for a list whose items are all plain or tracked mutable dataclass instances."""
    if not isinstance(value, list) or not value:
        return False
    from changetracking.trackable import Trackable

    return all(isinstance(item, Trackable) or is_plain_dataclass_instance(item) for item in value)


# Instance attribute holding the ObjectTracker of a tracked object
TRACKER_ATTR = '_change_tracker'


def tracker_of(obj: Any) -> Any:
    """ObjectTracker attached to obj, or None for untracked objects."""
    try:
        return object.__getattribute__(obj, '__dict__').get(TRACKER_ATTR)
    except AttributeError:
        return None
