"""Error types shared by the core and the marketplace adapters."""

from __future__ import annotations

from typing import Optional


class MonitorError(Exception):
    """Base class for monitor errors."""


class MarketplaceError(MonitorError):
    """Transport failure or non-2xx response from the marketplace."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class MarketplaceApiError(MarketplaceError):
    """2xx response whose body reports a failure (retval != 0)."""

    def __init__(self, retval: object, retdesc: Optional[str]) -> None:
        super().__init__(f"API error {retval}: {retdesc}")
        self.retval = retval
        self.retdesc = retdesc


class TokenError(MonitorError):
    """The seller token could not be obtained."""
