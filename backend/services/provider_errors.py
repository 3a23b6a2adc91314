"""Errors raised by the mapping provider client."""
from typing import Optional


class LocationProviderError(Exception):
    """Base error for mapping provider calls."""

    def __init__(self, message: str, status: Optional[str] = None):
        self.message = message
        self.status = status
        super().__init__(self.message)


class ProviderUnavailableError(LocationProviderError):
    """Provider is not configured (e.g. missing API key)."""
    pass


class ProviderRequestError(LocationProviderError):
    """Network, HTTP or payload decoding failure."""
    pass


class ProviderStatusError(LocationProviderError):
    """Provider answered with a non-OK status such as OVER_QUERY_LIMIT."""
    pass
