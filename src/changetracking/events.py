"""
Minimal synchronous signal used for status, property and list notifications.

Callbacks run in subscription order within the call stack of the mutation that
fired them. A signal created with ``isolate_errors=True`` logs and skips failing
callbacks so external observers cannot interrupt a mutation; otherwise
exceptions propagate to the mutating caller.
"""
import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Signal:
    """Ordered list of callbacks fired with the same positional arguments."""

    def __init__(self, name: str, isolate_errors: bool = False):
        self.name = name
        self._isolate_errors = isolate_errors
        self._callbacks: List[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]) -> None:
        """Subscribe a callback. Connecting the same callback twice is a no-op."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def disconnect(self, callback: Callable[..., Any]) -> None:
        """Unsubscribe a callback if it is connected."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(self, *args: Any) -> None:
        # Copy so callbacks may (dis)connect while we iterate
        for callback in list(self._callbacks):
            if not self._isolate_errors:
                callback(*args)
                continue
            try:
                callback(*args)
            except Exception as e:
                logger.warning(f"Error in {self.name} callback: {e}")

    def __len__(self) -> int:
        return len(self._callbacks)

    def __contains__(self, callback: object) -> bool:
        return callback in self._callbacks

    def __repr__(self) -> str:
        return f"<Signal {self.name} callbacks={len(self._callbacks)}>"
