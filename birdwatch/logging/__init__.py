"""Structured logging helpers shared by every Birdwatch component."""

import logging
from typing import Optional


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that stamps a component name onto every record.

    Extra fields passed at the call site are merged over the adapter's own
    fields instead of replacing them.
    """

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None):
    """Return a module logger, wrapped to carry ``component`` when given.

    Example:
        >>> logger = get_logger(__name__, component="watcher")
        >>> logger.info("Scan started", extra={"event": "watcher.scan.started"})
    """
    logger = logging.getLogger(name)

    if component:
        return ComponentLoggerAdapter(logger, {"component": component})

    return logger
