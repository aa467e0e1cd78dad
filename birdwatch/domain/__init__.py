"""Domain models for Birdwatch."""

from .models import Subscription

__all__ = ["Subscription"]
