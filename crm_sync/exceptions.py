"""Exception hierarchy for the synchronization engine."""


class SyncError(Exception):
    """Base class for all synchronization errors."""


class StoreError(SyncError):
    """Raised when a record store cannot serve a request.

    Store errors are treated as transient: the affected mapping is skipped for
    the current cycle and picked up again on the next scheduled one.
    """

    def __init__(self, message: str, record_type: str | None = None):
        super().__init__(message)
        self.record_type = record_type


class StoreQueryError(StoreError):
    """Raised when querying or reading from a record store fails."""


class StoreWriteError(StoreError):
    """Raised when creating or updating a record fails."""


class UnmappedAttributeError(SyncError):
    """Raised by strict mappings when an attribute has no correspondence."""

    def __init__(self, attribute: str, mapping_id: str):
        super().__init__(f"Attribute {attribute!r} is not mapped by {mapping_id}")
        self.attribute = attribute
        self.mapping_id = mapping_id


class TrackerPersistenceError(SyncError):
    """Raised when checkpoints cannot be read from or written to durable storage."""


class ConfigurationError(SyncError):
    """Raised when configuration is invalid or missing."""
