"""Seat watcher: the scan loop plus subscription registration and removal."""

from .exceptions import NotFoundError
from .models import ScanResult
from .service import Watcher

__all__ = ["Watcher", "ScanResult", "NotFoundError"]
