from typing import Optional


class DatastoreError(Exception):
    """Base class for errors raised by datastore implementations."""


class NotFoundError(DatastoreError, KeyError):
    """Raised by get/get_size when no value is stored under the key."""

    def __init__(self, key=None):
        self.key = key
        super().__init__(f"datastore: key not found: {key}" if key is not None else "datastore: key not found")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class UnsupportedOperationError(DatastoreError, NotImplementedError):
    """Raised when a backend cannot provide an operation of the contract."""


class BatchCommitError(DatastoreError):
    """Raised when a queued batch operation fails during commit."""

    def __init__(self, index: int, op: str, key, cause: Optional[BaseException] = None):
        self.index = index
        self.op = op
        self.key = key
        self.cause = cause
        super().__init__(f"batch {op} #{index} for key {key} failed: {cause}")
