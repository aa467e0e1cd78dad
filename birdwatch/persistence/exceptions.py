"""Persistence layer exceptions."""


class PersistenceError(Exception):
    """Base exception for all database errors raised by this package."""


class DatabaseConnectionError(PersistenceError):
    """The database could not be initialised or is not initialised yet."""


class DataIntegrityError(PersistenceError):
    """A constraint was violated (e.g. duplicate primary key)."""
