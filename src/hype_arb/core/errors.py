from typing import Optional


class MarketDataError(Exception):
    """Base class for failures raised by the market-data adapters."""


class UpstreamError(MarketDataError):
    """The upstream service answered with a non-success status or a body we
    could not make sense of, or could not be reached at all."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(MarketDataError):
    """The response was well formed but did not contain the requested symbol."""
