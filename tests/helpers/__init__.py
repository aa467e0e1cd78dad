"""Test helper utilities for Birdwatch tests."""

from .catalog_factory import (
    ScriptedFetcher,
    build_snapshot,
    course_data,
    department_data,
    find_subscription_emails,
    listing_response,
    section_data,
    snapshot_with,
)

__all__ = [
    "ScriptedFetcher",
    "build_snapshot",
    "course_data",
    "department_data",
    "find_subscription_emails",
    "listing_response",
    "section_data",
    "snapshot_with",
]
