"""Birdwatch: email alerts when a seat opens up in a watched course section."""

__version__ = "0.1.0"
