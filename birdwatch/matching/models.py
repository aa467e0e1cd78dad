"""Match result passed from the matcher to the notifier."""

from dataclasses import dataclass
from typing import FrozenSet


@dataclass(frozen=True)
class SeatMatch:
    """A watched section that currently has at least one open seat.

    Attributes:
        crn: Course registration number of the section
        emails: Every address subscribed to the section
        course_title: Title of the parent course
        section_label: Section label, e.g. "01"
        remaining: Open seats
        capacity: Total seats
    """

    crn: int
    emails: FrozenSet[str]
    course_title: str
    section_label: str
    remaining: int
    capacity: int
