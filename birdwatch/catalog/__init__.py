"""Course catalog: snapshot models and the fetcher that produces them.

Usage:
    from birdwatch.catalog import CatalogFetcher
    snapshot = CatalogFetcher(app_config.catalog).fetch()
    found = snapshot.find_section(41234)
"""

from .exceptions import CatalogHTTPError, CatalogResponseError, CatalogTimeoutError, FetchError
from .fetcher import CatalogFetcher
from .models import Course, Department, Section, Snapshot

__all__ = [
    "CatalogFetcher",
    "Snapshot",
    "Department",
    "Course",
    "Section",
    "FetchError",
    "CatalogHTTPError",
    "CatalogTimeoutError",
    "CatalogResponseError",
]
