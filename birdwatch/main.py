"""Process entry point for the Birdwatch service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

from birdwatch.catalog import CatalogFetcher
from birdwatch.config import AppConfig, ConfigurationError, EnvironmentConfig, load_config
from birdwatch.logging import get_logger
from birdwatch.logging.config import configure_logging
from birdwatch.notifications import NotificationService
from birdwatch.persistence import close_database, init_database
from birdwatch.watcher import Watcher

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Log level priority: command line, then LOG_LEVEL, then the config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


def build_watcher(app_config: AppConfig, env_config: EnvironmentConfig) -> Watcher:
    """Wire the fetcher and notifier into a Watcher."""
    return Watcher(
        fetcher=CatalogFetcher(app_config.catalog),
        notification_service=NotificationService(env_config, app_config.email),
        scan_interval_seconds=app_config.scan_interval_seconds,
    )


def main(argv=None) -> int:
    """
    Start the watcher and block until SIGINT/SIGTERM.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="Birdwatch - email alerts when a seat opens in a watched course section"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml if present)",
    )
    parser.add_argument(
        "--manual-run",
        action="store_true",
        help="Run a single scan immediately and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    args = parser.parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1

    configure_logging(
        level=env_config.log_level,
        format_type=app_config.logging.format,
        environment=env_config.environment,
    )
    logger.info(
        "Birdwatch starting",
        extra={
            "event": "service.starting",
            "config_path": str(args.config) if args.config else None,
            "scan_interval_seconds": app_config.scan_interval_seconds,
            "manual_run": args.manual_run,
        },
    )

    watcher = None
    try:
        init_database(env_config.database_url)
        watcher = build_watcher(app_config, env_config)

        if args.manual_run:
            result = watcher.scan()
            logger.info(
                f"Manual scan completed: {result.matched} matched, "
                f"{result.notified} notified, {result.retired} retired",
                extra={"event": "service.manual_scan.completed"},
            )
            return 1 if result.notify_failures else 0

        shutdown_event = threading.Event()

        def handle_signal(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "service.signal_received", "signal": signum},
            )
            shutdown_event.set()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        watcher.init()
        logger.info("Watcher running. Press Ctrl+C to stop", extra={"event": "service.started"})

        shutdown_event.wait()
        watcher.shutdown(wait=False)
        return 0

    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down", extra={"event": "service.keyboard_interrupt"})
        if watcher is not None:
            watcher.shutdown(wait=False)
        return 0

    except Exception as e:
        logger.critical(
            f"Fatal error: {e}",
            extra={"event": "service.failed", "error_type": type(e).__name__},
            exc_info=True,
        )
        return 1

    finally:
        close_database()
        logger.info(
            "Birdwatch stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
        )


if __name__ == "__main__":
    sys.exit(main())
