"""
Transparent change tracking for dataclass object graphs.

Wrap a dataclass instance (or a list of them) and every field write is
observed: original values are remembered, a change status is derived, and
changes can be accepted or rejected, cascading through nested tracked objects
and collections.

Quick Start:
    >>> from dataclasses import dataclass
    >>> from changetracking import as_trackable, ChangeStatus
    >>>
    >>> @dataclass
    ... class Material:
    ...     name: str = ""
    >>>
    >>> material = as_trackable(Material(name="Steel"))
    >>> material.name = "Iron"
    >>> material.change_status is ChangeStatus.CHANGED
    True
    >>> material.reject_changes()
    >>> material.name
    'Steel'

Statuses:
    UNCHANGED  nothing differs from the last accepted checkpoint
    CHANGED    a field or a nested child differs
    ADDED      created inside a collection, not yet accepted
    DELETED    removed, pending accept (final) or reject (restored)

Modules:
    - status_store: original values and the status state machine
    - propagation: child -> parent status wiring
    - collection: TrackableCollection with deletion buffering
    - notification: property_changed / list_changed notifications
    - trackable: tracked types, interception of field reads/writes, as_trackable()
    - schema: per-type field tables
    - config: default wrapping switches
"""

from changetracking.status import ChangeStatus, ListChangeKind

from changetracking.errors import (
    ChangeTrackingError,
    InvalidStateError,
    UnknownFieldError,
)

from changetracking.config import (
    TrackingOptions,
    set_default_tracking_options,
    get_default_tracking_options,
)

from changetracking.events import Signal

from changetracking.trackable import (
    Trackable,
    TrackableFactory,
    ObjectTracker,
    as_trackable,
    is_trackable,
    get_tracker,
    get_base_type_for_trackable,
    get_trackable_type_for_base,
)

from changetracking.collection import TrackableCollection

from changetracking.notification import (
    STATUS_PROPERTY,
    CHANGED_PROPERTIES_PROPERTY,
)

__all__ = [
    # Status
    'ChangeStatus',
    'ListChangeKind',
    # Errors
    'ChangeTrackingError',
    'InvalidStateError',
    'UnknownFieldError',
    # Configuration
    'TrackingOptions',
    'set_default_tracking_options',
    'get_default_tracking_options',
    # Events
    'Signal',
    # Tracked objects
    'Trackable',
    'TrackableFactory',
    'ObjectTracker',
    'as_trackable',
    'is_trackable',
    'get_tracker',
    'get_base_type_for_trackable',
    'get_trackable_type_for_base',
    # Collections
    'TrackableCollection',
    # Notification property names
    'STATUS_PROPERTY',
    'CHANGED_PROPERTIES_PROPERTY',
]

__version__ = '1.0.0'
