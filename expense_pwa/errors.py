# expense_pwa/errors.py
"""Typed errors raised by the storage layer and the services built on it."""


class StorageError(Exception):
    """Base exception for local database operations."""
    pass


class StorageUnavailableError(StorageError):
    """The database file could not be opened or migrated."""
    pass


class NotFoundError(StorageError):
    """Record not found in its collection."""
    pass


class IntegrityError(StorageError):
    """A write would break a relationship between records."""
    pass


class ValidationError(Exception):
    """User input rejected; ``errors`` maps field name to message."""

    def __init__(self, errors):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))
