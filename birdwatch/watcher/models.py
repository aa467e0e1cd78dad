"""Scan bookkeeping."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class ScanResult:
    """
    Summary of one fetch, match, notify and retire cycle.

    Attributes:
        started_at: UTC timestamp when the scan began
        finished_at: UTC timestamp when the scan ended
        release: Catalog release that was scanned
        sections_scanned: Sections in the fetched snapshot
        listener_count: Subscribed CRNs at the start of the scan
        matched: Subscribed sections with an open seat
        notified: Matches whose email was sent
        notify_failures: Matches whose email failed (still retired)
        retired: Subscription rows deleted
        skipped: True when another scan was already running
    """

    started_at: datetime
    finished_at: Optional[datetime] = None
    release: Optional[str] = None
    sections_scanned: int = 0
    listener_count: int = 0
    matched: int = 0
    notified: int = 0
    notify_failures: int = 0
    retired: int = 0
    skipped: bool = False

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()
