"""Retrieval of the latest course catalog release."""

import logging
from typing import Any, List, Optional

import requests
from pydantic import ValidationError

from birdwatch.config.models import CatalogConfig
from birdwatch.logging import get_logger
from birdwatch.utils.timestamps import utc_now

from .exceptions import (
    CatalogHTTPError,
    CatalogResponseError,
    CatalogTimeoutError,
)
from .models import Department, Snapshot

logger = get_logger(__name__, component="catalog")


class CatalogFetcher:
    """Fetches the current catalog snapshot.

    Two requests per fetch:
    1. The release listing. Entries are taken in the order the source returns
       them and the last one is the current release.
    2. That release's course data file, parsed into a ``Snapshot``.

    No retries are attempted; a failure raises ``FetchError`` and the caller
    decides what to do (the watcher simply waits for the next tick).
    """

    def __init__(self, config: Optional[CatalogConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or CatalogConfig()
        self.timeout = self.config.http_request_timeout

        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": self.config.user_agent})

    def fetch(self) -> Snapshot:
        """Fetch and parse the latest release.

        Raises:
            CatalogHTTPError: Listing or data request failed
            CatalogTimeoutError: A request timed out
            CatalogResponseError: Listing empty or malformed, or data file invalid
        """
        release = self.latest_release()
        data_url = self.config.data_url_template.format(path=release)

        payload = self._get_json(data_url)
        snapshot = self._parse_snapshot(release, payload, data_url)

        logger.info(
            f"Fetched catalog release {release}",
            extra={
                "event": "catalog.fetch.succeeded",
                "release": release,
                "department_count": len(snapshot.departments),
                "section_count": snapshot.section_count,
            },
        )
        return snapshot

    def latest_release(self) -> str:
        """Return the path of the last entry in the release listing."""
        listing = self._get_json(self.config.listing_url)

        if not isinstance(listing, list):
            raise CatalogResponseError(
                f"Expected release listing to be an array, got {type(listing).__name__}"
            )
        if not listing:
            raise CatalogResponseError("Release listing is empty")

        return self._release_path(listing[-1])

    @staticmethod
    def _release_path(entry: Any) -> str:
        if isinstance(entry, str) and entry.strip():
            return entry.strip()
        if isinstance(entry, dict) and isinstance(entry.get("path"), str) and entry["path"].strip():
            return entry["path"].strip()
        raise CatalogResponseError(f"Release listing entry has no path: {entry!r}")

    @staticmethod
    def _parse_snapshot(release: str, payload: Any, url: str) -> Snapshot:
        if isinstance(payload, dict):
            payload = payload.get("departments")

        if not isinstance(payload, list):
            raise CatalogResponseError(f"Expected a list of departments from {url}")

        try:
            departments: List[Department] = [Department.model_validate(item) for item in payload]
        except ValidationError as e:
            logger.error(
                f"Catalog data from {url} failed validation",
                extra={
                    "event": "catalog.fetch.error",
                    "error_type": "ValidationError",
                    "error_count": e.error_count(),
                    "url": url,
                },
            )
            raise CatalogResponseError(f"Invalid catalog data from {url}: {e}") from e

        return Snapshot(release=release, fetched_at=utc_now(), departments=departments)

    def _get_json(self, url: str) -> Any:
        """GET ``url`` and decode the JSON body, translating failures to FetchError."""
        logger.debug(
            f"HTTP GET {url}",
            extra={"event": "catalog.fetch.request", "url": url, "timeout": self.timeout},
        )

        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={"event": "catalog.fetch.error", "error_type": "Timeout", "url": url},
            )
            raise CatalogTimeoutError(
                f"Request to {url} timed out after {self.timeout} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {url} failed: {e}",
                extra={"event": "catalog.fetch.error", "error_type": type(e).__name__, "url": url},
            )
            raise CatalogHTTPError(f"Request to {url} failed: {e}", status_code=0, url=url) from e

        if response.status_code >= 400:
            level = logging.WARNING if response.status_code >= 500 else logging.ERROR
            logger.log(
                level,
                f"HTTP {response.status_code} error from {url}",
                extra={
                    "event": "catalog.fetch.error",
                    "status_code": response.status_code,
                    "url": url,
                },
            )
            raise CatalogHTTPError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(
                f"Failed to parse JSON response from {url}",
                extra={"event": "catalog.fetch.error", "error_type": "JSONDecodeError", "url": url},
            )
            raise CatalogResponseError(f"Failed to parse JSON response from {url}: {e}") from e

