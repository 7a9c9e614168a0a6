"""Exception taxonomy for change tracking."""


class ChangeTrackingError(Exception):
    """Base class for all change tracking errors."""


class InvalidStateError(ChangeTrackingError, RuntimeError):
    """Operation is not allowed in the object's current status.

    Raised when writing a field of, or accepting changes on, a deleted object.
    """


class UnknownFieldError(ChangeTrackingError, ValueError):
    """Requested field does not exist on the tracked type."""

    def __init__(self, field_name: str, tracked_type: type):
        self.field_name = field_name
        self.tracked_type = tracked_type
        type_name = getattr(tracked_type, '__name__', str(tracked_type))
        super().__init__(f"'{field_name}' is not a valid field name of type '{type_name}'")
