"""Exception types raised across the retrieval engine."""

from __future__ import annotations


class ManualSearchError(Exception):
    """Base class for errors raised by manual_search."""


class InvalidQueryError(ManualSearchError, ValueError):
    """The caller passed an empty or whitespace-only query."""


class ProviderError(ManualSearchError):
    """An external provider (embedding API or document store) returned an error."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class ProviderTimeout(ProviderError):
    """An external provider call exceeded its timeout."""
