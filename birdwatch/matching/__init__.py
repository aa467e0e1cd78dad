"""Matching of open sections against subscriptions."""

from .engine import build_listener_index, match_sections
from .models import SeatMatch

__all__ = ["SeatMatch", "build_listener_index", "match_sections"]
