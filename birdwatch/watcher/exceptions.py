"""Errors raised by the watcher's public operations."""


class NotFoundError(LookupError):
    """Registration was attempted for a CRN absent from the current catalog."""

    def __init__(self, crn: int) -> None:
        super().__init__(f"Section {crn} not found in the current catalog")
        self.crn = crn
