"""The watcher: scans the catalog and alerts subscribers when seats open.

Owns the most recent catalog snapshot. The snapshot is immutable and is
replaced by a single reference assignment, so ``register`` always sees
either the previous catalog or the new one in full.
"""

import threading
from typing import Callable, ContextManager, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from birdwatch.catalog.exceptions import FetchError
from birdwatch.catalog.fetcher import CatalogFetcher
from birdwatch.catalog.models import Snapshot
from birdwatch.domain.models import Subscription
from birdwatch.logging import get_logger
from birdwatch.logging.context import log_context
from birdwatch.matching.engine import build_listener_index, match_sections
from birdwatch.matching.models import SeatMatch
from birdwatch.notifications.models import NotificationResult
from birdwatch.notifications.service import NotificationService
from birdwatch.persistence.database import get_session
from birdwatch.persistence.repositories import SubscriptionRepository
from birdwatch.scheduler import SchedulerService
from birdwatch.utils.timestamps import utc_now

from .exceptions import NotFoundError
from .models import ScanResult

logger = get_logger(__name__, component="watcher")

DEFAULT_SCAN_INTERVAL_SECONDS = 30 * 60


class Watcher:
    """
    Fetch, match, notify and retire, on a timer and on demand.

    Scans are serialized: a scan requested while another is running is
    skipped, so no subscription can be notified twice by overlapping scans.
    """

    def __init__(
        self,
        fetcher: CatalogFetcher,
        notification_service: NotificationService,
        scan_interval_seconds: int = DEFAULT_SCAN_INTERVAL_SECONDS,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
    ):
        """
        Args:
            fetcher: Source of catalog snapshots
            notification_service: Sends seat alerts
            scan_interval_seconds: Seconds between scheduled scans
            session_factory: Context manager yielding a committed-on-exit session
        """
        self.fetcher = fetcher
        self.notification_service = notification_service
        self.scan_interval_seconds = scan_interval_seconds
        self._session_factory = session_factory

        self._snapshot: Optional[Snapshot] = None
        self._scan_lock = threading.Lock()
        self._init_lock = threading.Lock()
        self._initialized = False
        self.scheduler: Optional[SchedulerService] = None

    @property
    def snapshot(self) -> Optional[Snapshot]:
        """The most recently fetched catalog, or None before the first successful scan."""
        return self._snapshot

    def init(self) -> None:
        """Run one scan now, then scan every interval. Later calls do nothing.

        A failing first scan is logged; the scheduler still starts and the
        next tick tries again.
        """
        with self._init_lock:
            if self._initialized:
                return
            self._initialized = True

            logger.info(
                "Starting watcher",
                extra={"event": "watcher.starting", "interval_seconds": self.scan_interval_seconds},
            )

            self._scheduled_scan()

            self.scheduler = SchedulerService(
                job_callable=self._scheduled_scan,
                interval_seconds=self.scan_interval_seconds,
            )
            self.scheduler.start()

    def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler. A scan already in progress is not interrupted."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=wait)

    def scan(self) -> ScanResult:
        """Run one full scan unless another one is in progress.

        Raises:
            FetchError: If the catalog could not be fetched; the cached
                snapshot and the subscriptions are left untouched
        """
        if not self._scan_lock.acquire(blocking=False):
            logger.warning(
                "Scan skipped: previous scan still in progress",
                extra={"event": "watcher.scan.skipped", "reason": "lock_held"},
            )
            now = utc_now()
            return ScanResult(started_at=now, finished_at=now, skipped=True)

        try:
            return self._run_scan()
        finally:
            self._scan_lock.release()

    def register(self, crn: int, email: str) -> Subscription:
        """Subscribe ``email`` to seat alerts for section ``crn``.

        Triggers a scan first if no catalog has been fetched yet.

        Raises:
            ValueError: If ``email`` is empty
            NotFoundError: If ``crn`` is not in the current catalog
            FetchError: If a catalog was needed and could not be fetched
        """
        crn = int(crn)
        email = _normalize_email(email)
        if not email:
            raise ValueError("email must be a non-empty string")

        snapshot = self._ensure_snapshot()

        if snapshot.find_section(crn) is None:
            logger.info(
                f"Rejected registration for unknown section {crn}",
                extra={"event": "watcher.register.not_found", "crn": crn, "release": snapshot.release},
            )
            raise NotFoundError(crn)

        with self._session_factory() as session:
            subscription = SubscriptionRepository(session).upsert_append_email(crn, email)

        logger.info(
            f"added {email} to {crn}",
            extra={
                "event": "watcher.register.succeeded",
                "crn": crn,
                "subscriber_count": len(subscription.emails),
            },
        )
        return subscription

    def purge(self, email: str, crn: Optional[int] = None) -> int:
        """Unsubscribe ``email`` from one section, or from every section when ``crn`` is None.

        Rows are never deleted here, even when their last address goes.

        Returns:
            Number of subscriptions the address was removed from
        """
        email = _normalize_email(email)
        with self._session_factory() as session:
            repository = SubscriptionRepository(session)
            if crn is None:
                removed = repository.remove_email_from_all_rows(email)
            else:
                removed = repository.remove_email_from_row(int(crn), email)

        target = f"{removed} CRNs" if crn is None else str(crn)
        logger.info(
            f"removed {email} from {target}",
            extra={"event": "watcher.purge.succeeded", "crn": crn, "rows_affected": removed},
        )
        return removed

    def _ensure_snapshot(self) -> Snapshot:
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot

        # Wait for an in-flight scan rather than skipping, then re-check
        with self._scan_lock:
            if self._snapshot is None:
                self._run_scan()
            return self._snapshot

    def _scheduled_scan(self) -> None:
        """Timer entry point: a failed scan must not stop the timer."""
        try:
            self.scan()
        except FetchError:
            logger.warning(
                "Scan aborted, will retry on the next tick",
                extra={"event": "watcher.scan.retry_next_tick"},
            )
        except Exception as e:
            logger.error(
                f"Unexpected error during scan: {e}",
                extra={"event": "watcher.scan.crashed", "error_type": type(e).__name__},
                exc_info=True,
            )

    def _run_scan(self) -> ScanResult:
        """Body of a scan. Caller must hold ``_scan_lock``."""
        result = ScanResult(started_at=utc_now())

        with log_context(scan_id=uuid4().hex[:12]):
            logger.info("Beginning scan...", extra={"event": "watcher.scan.started"})

            try:
                snapshot = self.fetcher.fetch()
            except FetchError as e:
                logger.error(
                    f"Catalog fetch failed: {e}",
                    extra={"event": "watcher.scan.fetch_failed", "error_type": type(e).__name__},
                )
                raise

            self._snapshot = snapshot
            result.release = snapshot.release
            result.sections_scanned = snapshot.section_count

            with self._session_factory() as session:
                listeners = build_listener_index(SubscriptionRepository(session).select_all())
            result.listener_count = len(listeners)

            for match in match_sections(snapshot, listeners):
                result.matched += 1

                notification = self._notify(match)
                if notification.sent:
                    result.notified += 1
                elif notification.failed:
                    result.notify_failures += 1

                if self._retire(match.crn):
                    result.retired += 1

            result.finished_at = utc_now()
            logger.info(
                "Scan completed",
                extra={
                    "event": "watcher.scan.completed",
                    "release": result.release,
                    "sections_scanned": result.sections_scanned,
                    "listener_count": result.listener_count,
                    "matched": result.matched,
                    "notified": result.notified,
                    "notify_failures": result.notify_failures,
                    "retired": result.retired,
                    "duration_ms": int(result.duration_seconds * 1000),
                },
            )

        return result

    def _notify(self, match: SeatMatch) -> NotificationResult:
        try:
            return self.notification_service.notify_seat_available(match)
        except Exception as e:
            logger.error(
                f"Notifier raised for CRN {match.crn}: {e}",
                extra={"event": "watcher.notify.crashed", "crn": match.crn},
                exc_info=True,
            )
            return NotificationResult(recipients=sorted(match.emails), status="failed", error=str(e))

    def _retire(self, crn: int) -> bool:
        with self._session_factory() as session:
            deleted = SubscriptionRepository(session).delete_row(crn)

        logger.info(
            f"Deleted {crn}",
            extra={"event": "watcher.subscription.retired", "crn": crn, "row_existed": deleted},
        )
        return deleted


def _normalize_email(email) -> str:
    """Addresses are stored and matched without surrounding whitespace."""
    return email.strip() if isinstance(email, str) else ""
