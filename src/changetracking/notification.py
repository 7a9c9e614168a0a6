"""
NotificationRelay: conventional change notifications for tracked objects.

Re-emits internal signals as ``property_changed(obj, name)`` notifications:

- a status change of the owner surfaces as "change_status" and
  "changed_properties";
- a field write whose old and new values differ surfaces as the field name,
  followed by "changed_properties";
- a notification from a child object (its property_changed) or a child
  collection (its list_changed) surfaces as the name of the field holding the
  child, never as a deeper path.

Listener errors are logged and skipped so an observer cannot abort a mutation.
"""
import logging
import weakref
from typing import Any, Callable, Dict

from changetracking.events import Signal
from changetracking.propagation import Subscription
from changetracking.schema import ChildKind, classify, tracker_of
from changetracking.status_store import StatusStore, values_equal

logger = logging.getLogger(__name__)

STATUS_PROPERTY = 'change_status'
CHANGED_PROPERTIES_PROPERTY = 'changed_properties'
STATUS_PROPERTY_NAMES = frozenset({STATUS_PROPERTY, CHANGED_PROPERTIES_PROPERTY})


class NotificationRelay:
    """Per-object property_changed signal and its child subscriptions."""

    def __init__(self, owner: Any, store: StatusStore):
        self._owner_ref = weakref.ref(owner)
        self._subscriptions: Dict[str, Subscription] = {}
        self.property_changed = Signal('property_changed', isolate_errors=True)
        store.status_changed.connect(self._on_status_changed)

    def raise_property_changed(self, name: str) -> None:
        owner = self._owner_ref()
        if owner is not None:
            self.property_changed.emit(owner, name)

    def on_field_write(self, field_name: str, old_value: Any, new_value: Any) -> None:
        if not values_equal(old_value, new_value):
            self.raise_property_changed(field_name)
            self.raise_property_changed(CHANGED_PROPERTIES_PROPERTY)
        if old_value is not new_value:
            self.unsubscribe(field_name)
            self.subscribe(field_name, new_value)

    def on_field_read(self, field_name: str, value: Any) -> None:
        self.subscribe(field_name, value)

    def subscribe(self, field_name: str, value: Any) -> None:
        if field_name in self._subscriptions:
            return
        kind = classify(value)
        if kind is ChildKind.VALUE:
            return
        if kind is ChildKind.OBJECT:
            signal = tracker_of(value).property_changed
        else:
            signal = value.list_changed
        subscription = Subscription(kind, signal, self._make_handler(field_name))
        signal.connect(subscription.handler)
        self._subscriptions[field_name] = subscription

    def unsubscribe(self, field_name: str) -> None:
        subscription = self._subscriptions.pop(field_name, None)
        if subscription is not None:
            subscription.cancel()

    def _on_status_changed(self, _owner: Any) -> None:
        self.raise_property_changed(STATUS_PROPERTY)
        self.raise_property_changed(CHANGED_PROPERTIES_PROPERTY)

    def _make_handler(self, field_name: str) -> Callable[..., None]:
        relay_ref = weakref.ref(self)

        def on_child_notification(*_args: Any) -> None:
            relay = relay_ref()
            if relay is not None:
                relay.raise_property_changed(field_name)

        return on_child_notification
