"""Persistence layer: the subscription store.

Public API:
    - init_database(database_url) / close_database()
    - get_session() -> ContextManager[Session]
    - get_engine() -> Engine
    - SubscriptionRepository: select_all, get, upsert_append_email, delete_row,
      remove_email_from_row, remove_email_from_all_rows

Example:
    >>> init_database("sqlite:///./data/birdwatch.db")
    >>> with get_session() as session:
    ...     SubscriptionRepository(session).upsert_append_email(41234, "u@rpi.edu")
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import DatabaseConnectionError, DataIntegrityError, PersistenceError
from .repositories import SubscriptionRepository

__all__ = [
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    "SubscriptionRepository",
    "PersistenceError",
    "DatabaseConnectionError",
    "DataIntegrityError",
]
