"""
Exception types raised by reactiveclass.

Identity and policy violations are raised synchronously by the record layer.
Store failures (StoreError and subclasses) originate in the collection and are
forwarded to the caller's callback untouched, or re-raised when no callback was
given.
"""


class ReactiveClassError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(ReactiveClassError):
    """Invalid setup: missing collection, conflicting options, bad expansion."""


class MissingHostTypeError(ConfigurationError):
    """extend() was called without a host type."""


class ProtectedFieldError(ReactiveClassError):
    """Attempt to remove a protected default field from a field policy."""

    def __init__(self, fields, protected):
        self.fields = sorted(fields)
        self.protected = sorted(protected)
        super().__init__(
            f"{', '.join(self.protected)} are protected fields and cannot be removed "
            f"(attempted: {', '.join(self.fields)})"
        )


class NotPersistedError(ReactiveClassError):
    """Operation requires an _id but the record was never inserted."""


class AlreadyPersistedError(ReactiveClassError):
    """put() called on a record that already has an _id."""


class ImmutableIdError(ReactiveClassError):
    """Attempt to change or delete the _id of a record that already has one."""


class RecordGoneError(ReactiveClassError):
    """The backing document no longer exists in the collection."""

    def __init__(self, record_id, message=None):
        self.record_id = record_id
        super().__init__(message or f"No document with _id {record_id!r} was found in the collection.")


class StoreError(ReactiveClassError):
    """Failure reported by the backing document store."""


class DuplicateKeyError(StoreError):
    """Insert of a document whose _id is already present."""
