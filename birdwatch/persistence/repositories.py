"""Subscription store: data access for the ``watchers`` table.

Repositories operate inside the caller's session and never commit; the
``get_session()`` context manager owns the transaction.

Appends and removals are single SQL statements that merge the JSON array
inside SQLite, so concurrent writers to the same CRN serialize on the
database write lock instead of overwriting each other.
"""

from typing import List, Optional

from sqlalchemy import delete, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from birdwatch.domain.models import Subscription
from birdwatch.logging import get_logger
from birdwatch.utils.timestamps import format_timestamp, utc_now

from .exceptions import DataIntegrityError, PersistenceError
from .schema import SubscriptionModel

logger = get_logger(__name__, component="database")

# UNION deduplicates; the array stays sorted.
UPSERT_APPEND_EMAIL = text(
    """
    INSERT INTO watchers (crn, emails, created_at, updated_at)
    VALUES (:crn, json_array(:email), :now, :now)
    ON CONFLICT (crn) DO UPDATE SET
        emails = (
            SELECT json_group_array(value) FROM (
                SELECT value FROM json_each(watchers.emails)
                UNION
                SELECT :email AS value
                ORDER BY value
            )
        ),
        updated_at = excluded.updated_at
    """
)

REMOVE_EMAIL = """
    UPDATE watchers SET
        emails = (
            SELECT json_group_array(value) FROM (
                SELECT value FROM json_each(watchers.emails)
                WHERE value != :email
                ORDER BY value
            )
        ),
        updated_at = :now
    WHERE EXISTS (SELECT 1 FROM json_each(watchers.emails) WHERE value = :email)
"""

REMOVE_EMAIL_FROM_ROW = text(REMOVE_EMAIL + " AND crn = :crn")
REMOVE_EMAIL_FROM_ALL_ROWS = text(REMOVE_EMAIL)


class SubscriptionRepository:
    """CRUD operations on subscriptions, keyed by CRN."""

    def __init__(self, session: Session):
        self.session = session

    def select_all(self) -> List[Subscription]:
        """Return every subscription row, ordered by CRN.

        Raises:
            PersistenceError: If the query fails
        """
        try:
            rows = self.session.execute(
                select(SubscriptionModel).order_by(SubscriptionModel.crn)
            ).scalars().all()
            return [row.to_domain() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error reading subscriptions: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read subscriptions: {e}") from e

    def get(self, crn: int) -> Optional[Subscription]:
        """Return the stored subscription for ``crn`` or None.

        Always reloads from the database so rows changed by the SQL-level
        writes in this session are not served stale from the identity map.
        """
        try:
            row = self.session.get(SubscriptionModel, crn, populate_existing=True)
            return row.to_domain() if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error reading subscription {crn}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read subscription: {e}") from e

    def upsert_append_email(self, crn: int, email: str) -> Subscription:
        """Add ``email`` to the row for ``crn``, creating the row if needed.

        Appending an address that is already present leaves the set unchanged.

        Returns:
            The subscription as stored after the append

        Raises:
            DataIntegrityError: If the row violates a table constraint
            PersistenceError: On any other database error
        """
        now = format_timestamp(utc_now())
        try:
            self.session.execute(UPSERT_APPEND_EMAIL, {"crn": crn, "email": email, "now": now})
        except IntegrityError as e:
            logger.error(f"Integrity error adding {email} to {crn}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to add subscription: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding {email} to {crn}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add subscription: {e}") from e

        return self.get(crn)

    def delete_row(self, crn: int) -> bool:
        """Delete the row for ``crn``. Returns False if there was none."""
        try:
            result = self.session.execute(
                delete(SubscriptionModel).where(SubscriptionModel.crn == crn)
            )
            self.session.flush()
            return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting subscription {crn}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete subscription: {e}") from e

    def remove_email_from_row(self, crn: int, email: str) -> int:
        """Remove ``email`` from one row. The row is kept even if it ends up empty.

        Returns:
            1 if the row contained the address, 0 otherwise
        """
        try:
            result = self.session.execute(
                REMOVE_EMAIL_FROM_ROW,
                {"crn": crn, "email": email, "now": format_timestamp(utc_now())},
            )
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error removing {email} from {crn}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to remove email: {e}") from e

    def remove_email_from_all_rows(self, email: str) -> int:
        """Remove ``email`` from every row in one statement.

        Returns:
            Number of rows that contained the address
        """
        try:
            result = self.session.execute(
                REMOVE_EMAIL_FROM_ALL_ROWS,
                {"email": email, "now": format_timestamp(utc_now())},
            )
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error removing {email} from all subscriptions: {e}", exc_info=True)
            raise PersistenceError(f"Failed to remove email: {e}") from e
