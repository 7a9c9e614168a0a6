"""
ChangePropagationHub: keeps a parent's status in step with its children.

For every field holding a tracked object or a TrackableCollection the hub keeps
exactly one subscription: to the child's status_changed signal, or to the
collection's list_changed signal. A child notification re-derives the owner's
status without forcing, so a child never pulls an ADDED or DELETED parent back
to CHANGED/UNCHANGED.
"""
import logging
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Dict

from changetracking.events import Signal
from changetracking.schema import ChildKind, classify, tracker_of
from changetracking.status_store import StatusStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subscription:
    """Live subscription of one field to its child's change signal."""
    kind: ChildKind
    signal: Signal
    handler: Callable[..., None]

    def cancel(self) -> None:
        self.signal.disconnect(self.handler)


def child_signal(kind: ChildKind, child: Any) -> Signal:
    """Signal a parent listens to for a classified child."""
    if kind is ChildKind.OBJECT:
        return tracker_of(child).status_changed
    return child.list_changed


class ChangePropagationHub:
    """Per-field subscriptions from one tracked object to its children."""

    def __init__(self, store: StatusStore):
        # Children hold our handlers; the weak reference keeps them from
        # keeping a discarded parent alive.
        self._store_ref = weakref.ref(store)
        self._subscriptions: Dict[str, Subscription] = {}

    @property
    def subscribed_fields(self):
        return frozenset(self._subscriptions)

    def on_field_write(self, field_name: str, old_value: Any, new_value: Any) -> None:
        """Move the field's subscription from the old child to the new one."""
        if old_value is new_value:
            return
        self.unsubscribe(field_name)
        self.subscribe(field_name, new_value)

    def on_field_read(self, field_name: str, value: Any) -> None:
        """Wire a child first seen through a read."""
        self.subscribe(field_name, value)

    def subscribe(self, field_name: str, value: Any) -> None:
        if field_name in self._subscriptions:
            return
        kind = classify(value)
        if kind is ChildKind.VALUE:
            return
        subscription = Subscription(kind, child_signal(kind, value), self._make_handler())
        subscription.signal.connect(subscription.handler)
        self._subscriptions[field_name] = subscription
        logger.debug(f"Subscribed field '{field_name}' to {kind.value} child {type(value).__name__}")

    def unsubscribe(self, field_name: str) -> None:
        subscription = self._subscriptions.pop(field_name, None)
        if subscription is not None:
            subscription.cancel()
            logger.debug(f"Unsubscribed field '{field_name}' from {subscription.kind.value} child")

    def _make_handler(self) -> Callable[..., None]:
        store_ref = self._store_ref

        def on_child_changed(*_args: Any) -> None:
            store = store_ref()
            if store is not None:
                store.refresh_status(force=False)

        return on_child_changed
