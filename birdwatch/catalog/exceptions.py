"""Errors raised while retrieving the course catalog."""


class FetchError(Exception):
    """Base exception for catalog retrieval failures.

    Any FetchError aborts the current scan; the previous snapshot stays in
    place and the next scheduled tick starts over.
    """


class CatalogHTTPError(FetchError):
    """An HTTP request failed, either with a 4xx/5xx status or at the transport level.

    ``status_code`` is 0 when no response was received.
    """

    def __init__(self, message: str, status_code: int, url: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class CatalogTimeoutError(FetchError):
    """An HTTP request did not complete within the configured timeout."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message)
        self.url = url


class CatalogResponseError(FetchError):
    """A response arrived but could not be parsed into a listing or a snapshot."""
