"""Domain model for a persisted subscription."""

from datetime import datetime
from typing import FrozenSet, Optional

from pydantic import BaseModel, Field, field_validator


class Subscription(BaseModel):
    """Email addresses waiting for a seat in one course section.

    One subscription exists per CRN. ``emails`` has set semantics; it may be
    empty after a scoped purge, in which case the row lingers until the next
    scan that sees the section open.
    """

    crn: int = Field(..., description="Course registration number of the watched section")
    emails: FrozenSet[str] = Field(default_factory=frozenset, description="Subscriber addresses")
    created_at: Optional[datetime] = Field(None, description="When the row was created (UTC)")
    updated_at: Optional[datetime] = Field(None, description="When the row last changed (UTC)")

    model_config = {"frozen": True}

    @field_validator("emails", mode="before")
    @classmethod
    def drop_blank_emails(cls, v):
        if v is None:
            return frozenset()
        return frozenset(email.strip() for email in v if email and email.strip())
