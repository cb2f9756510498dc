"""Exception hierarchy for the SGO client."""

from __future__ import annotations

from typing import Optional


class SgoError(Exception):
    """Base class for every error raised by the client."""


class ValidationError(SgoError, ValueError):
    """Caller input was rejected before any request was made."""


class IntervalTooShortError(ValidationError):
    """A date range spans less than one day."""


class AuthenticationError(SgoError):
    """The login sequence did not produce a usable session."""


class BootstrapError(SgoError):
    """Account context could not be loaded after login."""


class ParseError(SgoError):
    """A response did not have the expected shape."""


class FetchError(SgoError):
    """The portal answered with a non-success HTTP status."""

    def __init__(self, status: int, url: str, detail: Optional[str] = None) -> None:
        self.status = status
        self.url = url
        self.detail = detail
        message = f"HTTP {status} for {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ReportFailedError(SgoError):
    """The server reported that a report job failed."""

    def __init__(self, handle: str, reason: Optional[str] = None) -> None:
        self.handle = handle
        self.reason = reason
        super().__init__(f"Report job {handle} failed" + (f": {reason}" if reason else ""))


class ReportTimeoutError(SgoError, TimeoutError):
    """A report job did not become ready within the polling budget."""

    def __init__(self, handle: str, waited: float) -> None:
        self.handle = handle
        self.waited = waited
        super().__init__(f"Report job {handle} not ready after {waited:.1f}s")


__all__ = [
    "SgoError",
    "ValidationError",
    "IntervalTooShortError",
    "AuthenticationError",
    "BootstrapError",
    "ParseError",
    "FetchError",
    "ReportFailedError",
    "ReportTimeoutError",
]
