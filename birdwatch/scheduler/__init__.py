"""Periodic execution of catalog scans."""

from .service import SchedulerService

__all__ = ["SchedulerService"]
