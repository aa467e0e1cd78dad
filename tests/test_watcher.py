"""
Tests for the Watcher.

Tests cover:
- Registration against the cached catalog (unknown CRNs, lazy first scan)
- Scan: notify and retire open sections, leave closed ones alone
- One-shot alerts: a retired subscription is never notified twice
- Notification failures still retire the subscription
- Fetch failures keep the previous snapshot and all subscriptions
- Purge, scoped and global
- Overlapping scans are skipped
- Registration racing a scan sees a complete catalog
- init() idempotence and shutdown
"""

import threading
from unittest.mock import MagicMock, patch

import pytest

from birdwatch.catalog.exceptions import CatalogHTTPError, CatalogTimeoutError
from birdwatch.notifications.models import NotificationResult
from birdwatch.persistence import SubscriptionRepository, close_database, get_session, init_database
from birdwatch.watcher import NotFoundError, ScanResult, Watcher
from tests.helpers import ScriptedFetcher, find_subscription_emails, section_data, snapshot_with


@pytest.fixture
def db():
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def notifier():
    service = MagicMock()
    service.notify_seat_available.side_effect = lambda match: NotificationResult(
        recipients=sorted(match.emails), status="sent" if match.emails else "skipped"
    )
    return service


def all_subscriptions():
    with get_session() as session:
        return SubscriptionRepository(session).select_all()


def seed(crn, *emails):
    with get_session() as session:
        repository = SubscriptionRepository(session)
        for email in emails:
            repository.upsert_append_email(crn, email)


class TestRegister:
    def test_register_known_crn_creates_subscription(self, db, notifier):
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)

        subscription = watcher.register(41234, "alice@rpi.edu")

        assert subscription.crn == 41234
        assert subscription.emails == frozenset({"alice@rpi.edu"})
        assert find_subscription_emails(all_subscriptions(), 41234) == frozenset({"alice@rpi.edu"})

    def test_register_triggers_first_scan(self, db, notifier):
        fetcher = ScriptedFetcher(snapshot_with(section_data(41234)))
        watcher = Watcher(fetcher, notifier)
        assert watcher.snapshot is None

        watcher.register(41234, "alice@rpi.edu")

        assert fetcher.calls == 1
        assert watcher.snapshot is not None

    def test_register_reuses_cached_snapshot(self, db, notifier):
        fetcher = ScriptedFetcher(snapshot_with(section_data(41234), section_data(41235, sec="02")))
        watcher = Watcher(fetcher, notifier)

        watcher.register(41234, "alice@rpi.edu")
        watcher.register(41235, "bob@rpi.edu")

        assert fetcher.calls == 1

    def test_register_unknown_crn_raises_and_stores_nothing(self, db, notifier):
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)

        with pytest.raises(NotFoundError) as exc_info:
            watcher.register(99999, "alice@rpi.edu")

        assert exc_info.value.crn == 99999
        assert "99999" in str(exc_info.value)
        assert all_subscriptions() == []

    def test_register_same_email_twice_is_idempotent(self, db, notifier):
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)

        watcher.register(41234, "alice@rpi.edu")
        subscription = watcher.register(41234, "alice@rpi.edu")

        assert subscription.emails == frozenset({"alice@rpi.edu"})

    def test_register_appends_second_email(self, db, notifier):
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)

        watcher.register(41234, "alice@rpi.edu")
        subscription = watcher.register(41234, "bob@rpi.edu")

        assert subscription.emails == frozenset({"alice@rpi.edu", "bob@rpi.edu"})
        assert len(all_subscriptions()) == 1

    def test_register_accepts_string_crn(self, db, notifier):
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)

        subscription = watcher.register("41234", "alice@rpi.edu")

        assert subscription.crn == 41234

    @pytest.mark.parametrize("email", ["", "   ", None])
    def test_register_rejects_empty_email(self, db, notifier, email):
        fetcher = ScriptedFetcher(snapshot_with(section_data(41234)))
        watcher = Watcher(fetcher, notifier)

        with pytest.raises(ValueError):
            watcher.register(41234, email)

        assert fetcher.calls == 0

    def test_register_propagates_fetch_failure(self, db, notifier):
        watcher = Watcher(ScriptedFetcher(CatalogTimeoutError("timed out", url="x")), notifier)

        with pytest.raises(CatalogTimeoutError):
            watcher.register(41234, "alice@rpi.edu")

        assert watcher.snapshot is None
        assert all_subscriptions() == []


class TestScan:
    def test_open_section_notifies_and_retires(self, db, notifier):
        seed(41234, "alice@rpi.edu", "bob@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234, rem=2, cap=30))), notifier)

        result = watcher.scan()

        assert isinstance(result, ScanResult)
        assert (result.matched, result.notified, result.retired) == (1, 1, 1)
        assert not result.skipped

        match = notifier.notify_seat_available.call_args.args[0]
        assert match.crn == 41234
        assert match.emails == frozenset({"alice@rpi.edu", "bob@rpi.edu"})
        assert match.course_title == "Data Structures"
        assert match.section_label == "01"
        assert (match.remaining, match.capacity) == (2, 30)

        assert all_subscriptions() == []

    def test_closed_section_keeps_subscription(self, db, notifier):
        seed(41234, "alice@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234, rem=0))), notifier)

        result = watcher.scan()

        assert result.matched == 0
        notifier.notify_seat_available.assert_not_called()
        assert find_subscription_emails(all_subscriptions(), 41234) == frozenset({"alice@rpi.edu"})

    def test_negative_remaining_is_not_open(self, db, notifier):
        seed(41234, "alice@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234, rem=-3))), notifier)

        assert watcher.scan().matched == 0
        assert len(all_subscriptions()) == 1

    def test_unwatched_open_sections_are_ignored(self, db, notifier):
        seed(41234, "alice@rpi.edu")
        snapshot = snapshot_with(section_data(41234, rem=0), section_data(50000, rem=10, sec="02"))
        watcher = Watcher(ScriptedFetcher(snapshot), notifier)

        result = watcher.scan()

        assert result.matched == 0
        assert result.sections_scanned == 2
        assert result.listener_count == 1

    def test_subscription_is_notified_only_once(self, db, notifier):
        seed(41234, "alice@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234, rem=1))), notifier)

        watcher.scan()
        second = watcher.scan()

        assert notifier.notify_seat_available.call_count == 1
        assert second.matched == 0

    def test_resubscribing_after_alert_arms_again(self, db, notifier):
        seed(41234, "alice@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234, rem=1))), notifier)

        watcher.scan()
        watcher.register(41234, "alice@rpi.edu")
        watcher.scan()

        assert notifier.notify_seat_available.call_count == 2

    def test_failed_notification_still_retires(self, db, notifier):
        notifier.notify_seat_available.side_effect = None
        notifier.notify_seat_available.return_value = NotificationResult(
            recipients=["alice@rpi.edu"], status="failed", error="connection refused"
        )
        seed(41234, "alice@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234, rem=1))), notifier)

        result = watcher.scan()

        assert result.notify_failures == 1
        assert result.notified == 0
        assert result.retired == 1
        assert all_subscriptions() == []

    def test_notifier_exception_still_retires(self, db, notifier):
        notifier.notify_seat_available.side_effect = RuntimeError("boom")
        seed(41234, "alice@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234, rem=1))), notifier)

        result = watcher.scan()

        assert result.notify_failures == 1
        assert result.retired == 1
        assert all_subscriptions() == []

    def test_one_failure_does_not_stop_other_matches(self, db, notifier):
        def flaky(match):
            if match.crn == 41234:
                raise RuntimeError("boom")
            return NotificationResult(recipients=sorted(match.emails), status="sent")

        notifier.notify_seat_available.side_effect = flaky
        seed(41234, "alice@rpi.edu")
        seed(41235, "bob@rpi.edu")
        snapshot = snapshot_with(section_data(41234, rem=1), section_data(41235, rem=1, sec="02"))
        watcher = Watcher(ScriptedFetcher(snapshot), notifier)

        result = watcher.scan()

        assert (result.matched, result.notified, result.notify_failures, result.retired) == (2, 1, 1, 2)
        assert all_subscriptions() == []

    def test_empty_subscription_is_retired_without_email(self, db, notifier):
        seed(41234, "alice@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234, rem=1))), notifier)
        watcher.purge("alice@rpi.edu", 41234)

        result = watcher.scan()

        match = notifier.notify_seat_available.call_args.args[0]
        assert match.emails == frozenset()
        assert result.notified == 0
        assert result.retired == 1
        assert all_subscriptions() == []

    def test_fetch_failure_keeps_previous_snapshot_and_subscriptions(self, db, notifier):
        first = snapshot_with(section_data(41234, rem=0), release="semester_data/202409")
        fetcher = ScriptedFetcher(first)
        watcher = Watcher(fetcher, notifier)
        watcher.scan()
        seed(41234, "alice@rpi.edu")

        fetcher.queue(CatalogHTTPError("HTTP 503", status_code=503, url="x"))
        with pytest.raises(CatalogHTTPError):
            watcher.scan()

        assert watcher.snapshot is first
        assert len(all_subscriptions()) == 1
        notifier.notify_seat_available.assert_not_called()

    def test_scan_replaces_snapshot(self, db, notifier):
        first = snapshot_with(section_data(41234), release="semester_data/202409")
        second = snapshot_with(section_data(41234), release="semester_data/202501")
        watcher = Watcher(ScriptedFetcher(first, second), notifier)

        watcher.scan()
        assert watcher.snapshot is first
        result = watcher.scan()

        assert watcher.snapshot is second
        assert result.release == "semester_data/202501"

    def test_overlapping_scan_is_skipped(self, db, notifier):
        fetcher = ScriptedFetcher(snapshot_with(section_data(41234)))
        watcher = Watcher(fetcher, notifier)

        with watcher._scan_lock:
            result = watcher.scan()

        assert result.skipped
        assert fetcher.calls == 0

    def test_scheduled_scan_swallows_errors(self, db, notifier):
        watcher = Watcher(ScriptedFetcher(CatalogTimeoutError("timed out", url="x")), notifier)
        watcher._scheduled_scan()

        watcher.fetcher = ScriptedFetcher(RuntimeError("unexpected"))
        watcher._scheduled_scan()

        assert watcher.snapshot is None


class TestPurge:
    def test_purge_scoped_removes_only_that_crn(self, db, notifier):
        seed(41234, "alice@rpi.edu", "bob@rpi.edu")
        seed(41235, "alice@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)

        removed = watcher.purge("alice@rpi.edu", 41234)

        subscriptions = all_subscriptions()
        assert removed == 1
        assert find_subscription_emails(subscriptions, 41234) == frozenset({"bob@rpi.edu"})
        assert find_subscription_emails(subscriptions, 41235) == frozenset({"alice@rpi.edu"})

    def test_purge_scoped_keeps_empty_row(self, db, notifier):
        seed(41234, "alice@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)

        watcher.purge("alice@rpi.edu", 41234)

        assert find_subscription_emails(all_subscriptions(), 41234) == frozenset()

    def test_purge_everywhere(self, db, notifier):
        seed(41234, "alice@rpi.edu", "bob@rpi.edu")
        seed(41235, "alice@rpi.edu")
        seed(41236, "bob@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)

        removed = watcher.purge("alice@rpi.edu")

        subscriptions = all_subscriptions()
        assert removed == 2
        assert len(subscriptions) == 3
        assert all("alice@rpi.edu" not in subscription.emails for subscription in subscriptions)

    def test_purge_unknown_email_is_noop(self, db, notifier):
        seed(41234, "bob@rpi.edu")
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)

        assert watcher.purge("alice@rpi.edu") == 0
        assert watcher.purge("alice@rpi.edu", 41234) == 0
        assert watcher.purge("alice@rpi.edu", 77777) == 0

    def test_purge_strips_whitespace_like_register(self, db, notifier):
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234), section_data(41235))), notifier)
        watcher.register(41234, " alice@rpi.edu ")
        watcher.register(41235, "alice@rpi.edu")

        assert watcher.purge("  alice@rpi.edu\n", 41234) == 1
        assert watcher.purge(" alice@rpi.edu") == 1

        assert all(subscription.emails == frozenset() for subscription in all_subscriptions())

    def test_purge_does_not_fetch(self, db, notifier):
        fetcher = ScriptedFetcher(snapshot_with(section_data(41234)))
        watcher = Watcher(fetcher, notifier)

        watcher.purge("alice@rpi.edu")

        assert fetcher.calls == 0


class GatedFetcher:
    """Returns ``initial`` immediately, then blocks later fetches until released."""

    def __init__(self, initial, later):
        self.initial = initial
        self.later = later
        self.calls = 0
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch(self):
        self.calls += 1
        if self.calls == 1:
            return self.initial
        self.entered.set()
        assert self.release.wait(timeout=5)
        return self.later


class TestConcurrency:
    def test_register_during_scan_sees_a_complete_snapshot(self, tmp_path, notifier):
        init_database(f"sqlite:///{tmp_path / 'birdwatch.db'}")
        try:
            old = snapshot_with(section_data(41234, rem=0), release="semester_data/202409")
            new = snapshot_with(section_data(50000, rem=0), release="semester_data/202501")
            fetcher = GatedFetcher(old, new)
            watcher = Watcher(fetcher, notifier)
            watcher.scan()

            scan_thread = threading.Thread(target=watcher.scan)
            scan_thread.start()
            assert fetcher.entered.wait(timeout=5)

            # Scan in flight: the old catalog is still the one in effect
            watcher.register(41234, "alice@rpi.edu")
            with pytest.raises(NotFoundError):
                watcher.register(50000, "alice@rpi.edu")

            fetcher.release.set()
            scan_thread.join(timeout=5)
            assert not scan_thread.is_alive()

            watcher.register(50000, "alice@rpi.edu")
            with pytest.raises(NotFoundError):
                watcher.register(41234, "bob@rpi.edu")
        finally:
            close_database()

    def test_first_register_waits_for_in_flight_scan(self, tmp_path, notifier):
        init_database(f"sqlite:///{tmp_path / 'birdwatch.db'}")
        try:
            snapshot = snapshot_with(section_data(41234))
            fetcher = MagicMock()
            entered, release = threading.Event(), threading.Event()

            def slow_fetch():
                entered.set()
                assert release.wait(timeout=5)
                return snapshot

            fetcher.fetch.side_effect = slow_fetch
            watcher = Watcher(fetcher, notifier)

            scan_thread = threading.Thread(target=watcher.scan)
            scan_thread.start()
            assert entered.wait(timeout=5)

            register_thread = threading.Thread(target=watcher.register, args=(41234, "alice@rpi.edu"))
            register_thread.start()
            release.set()
            scan_thread.join(timeout=5)
            register_thread.join(timeout=5)

            assert fetcher.fetch.call_count == 1
            assert find_subscription_emails(all_subscriptions(), 41234) == frozenset({"alice@rpi.edu"})
        finally:
            close_database()


class TestLifecycle:
    @patch("birdwatch.watcher.service.SchedulerService")
    def test_init_scans_then_starts_scheduler(self, mock_scheduler_cls, db, notifier):
        fetcher = ScriptedFetcher(snapshot_with(section_data(41234)))
        watcher = Watcher(fetcher, notifier, scan_interval_seconds=600)

        watcher.init()

        assert fetcher.calls == 1
        mock_scheduler_cls.assert_called_once_with(
            job_callable=watcher._scheduled_scan, interval_seconds=600
        )
        mock_scheduler_cls.return_value.start.assert_called_once()

    @patch("birdwatch.watcher.service.SchedulerService")
    def test_init_is_idempotent(self, mock_scheduler_cls, db, notifier):
        fetcher = ScriptedFetcher(snapshot_with(section_data(41234)))
        watcher = Watcher(fetcher, notifier)

        watcher.init()
        watcher.init()

        assert fetcher.calls == 1
        assert mock_scheduler_cls.call_count == 1

    @patch("birdwatch.watcher.service.SchedulerService")
    def test_init_survives_failed_first_scan(self, mock_scheduler_cls, db, notifier):
        watcher = Watcher(ScriptedFetcher(CatalogTimeoutError("timed out", url="x")), notifier)

        watcher.init()

        assert watcher.snapshot is None
        mock_scheduler_cls.return_value.start.assert_called_once()

    @patch("birdwatch.watcher.service.SchedulerService")
    def test_shutdown_stops_scheduler(self, mock_scheduler_cls, db, notifier):
        watcher = Watcher(ScriptedFetcher(snapshot_with(section_data(41234))), notifier)
        watcher.init()

        watcher.shutdown()

        mock_scheduler_cls.return_value.shutdown.assert_called_once_with(wait=False)

    def test_shutdown_before_init_is_noop(self, notifier):
        watcher = Watcher(MagicMock(), notifier)
        watcher.shutdown()
        assert watcher.scheduler is None
