"""Matching of catalog snapshots against subscriptions."""

from typing import Dict, FrozenSet, Iterable, Iterator, Mapping

from birdwatch.catalog.models import Snapshot
from birdwatch.domain.models import Subscription
from birdwatch.logging import get_logger

from .models import SeatMatch

logger = get_logger(__name__, component="matching")

ListenerIndex = Mapping[int, FrozenSet[str]]


def build_listener_index(subscriptions: Iterable[Subscription]) -> Dict[int, FrozenSet[str]]:
    """Map each subscribed CRN to its subscriber addresses.

    Rows with an empty address set are kept so that a scan still retires them.
    """
    return {subscription.crn: frozenset(subscription.emails) for subscription in subscriptions}


def match_sections(snapshot: Snapshot, listeners: ListenerIndex) -> Iterator[SeatMatch]:
    """Yield a SeatMatch for every subscribed section with ``remaining > 0``.

    Matches come out in snapshot order (department, course, section). The
    generator is lazy and can be consumed once. A CRN listed more than once
    in the catalog is matched only at its first open occurrence.
    """
    if not listeners:
        return

    matched = set()
    for _, course, section in snapshot.iter_sections():
        if section.crn not in listeners or section.remaining <= 0 or section.crn in matched:
            continue

        matched.add(section.crn)

        logger.debug(
            f"Seat available in {course.title} section {section.label}",
            extra={
                "event": "matching.section.matched",
                "crn": section.crn,
                "remaining": section.remaining,
                "capacity": section.capacity,
            },
        )
        yield SeatMatch(
            crn=section.crn,
            emails=listeners[section.crn],
            course_title=course.title,
            section_label=section.label,
            remaining=section.remaining,
            capacity=section.capacity,
        )
