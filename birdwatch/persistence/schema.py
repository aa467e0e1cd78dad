"""ORM models and schema creation."""

from sqlalchemy import JSON, Column, Integer, String, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from birdwatch.domain.models import Subscription
from birdwatch.logging import get_logger
from birdwatch.utils.timestamps import parse_timestamp

logger = get_logger(__name__, component="database")

Base = declarative_base()


class SubscriptionModel(Base):
    """ORM model for the ``watchers`` table: one row per watched CRN."""

    __tablename__ = "watchers"

    crn = Column(Integer, primary_key=True, autoincrement=False, nullable=False)
    # Sorted, deduplicated JSON array of addresses, maintained by the repository's SQL
    emails = Column(JSON, nullable=False, default=list)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    def to_domain(self) -> Subscription:
        return Subscription(
            crn=self.crn,
            emails=self.emails or [],
            created_at=parse_timestamp(self.created_at),
            updated_at=parse_timestamp(self.updated_at),
        )


def create_schema(engine: Engine) -> None:
    """Create missing tables. Safe to call repeatedly."""
    Base.metadata.create_all(engine, checkfirst=True)

    logger.info(
        "Database schema ready",
        extra={
            "event": "database.schema.ready",
            "tables": inspect(engine).get_table_names(),
        },
    )
