"""Error types raised by the record store and its repositories."""


class StoreError(Exception):
    """Base class for record store failures."""


class NotFoundError(StoreError):
    """A mutation referenced a record that does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class RecordValidationError(StoreError):
    """Caller-supplied data is missing a required field or has a bad value."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(message)


class ConsistencyError(StoreError):
    """The requested mutation would break a cross-record invariant.

    Raised after the enclosing transaction has been rolled back, so no
    partial change is visible.
    """
