"""Small shared utilities."""

from .timestamps import format_timestamp, parse_timestamp, utc_now

__all__ = ["utc_now", "format_timestamp", "parse_timestamp"]
