"""Asynchronous client for the SGO school portal."""

from sgoclient.client import PortalClient, ProtectedClient
from sgoclient.core.errors import (
    AuthenticationError,
    BootstrapError,
    FetchError,
    IntervalTooShortError,
    ParseError,
    ReportFailedError,
    ReportTimeoutError,
    SgoError,
    ValidationError,
)
from sgoclient.core.settings import ClientSettings, ReportSettings

__all__ = [
    "__version__",
    "PortalClient",
    "ProtectedClient",
    "ClientSettings",
    "ReportSettings",
    "SgoError",
    "ValidationError",
    "IntervalTooShortError",
    "AuthenticationError",
    "BootstrapError",
    "FetchError",
    "ParseError",
    "ReportFailedError",
    "ReportTimeoutError",
]

__version__ = "0.1.0"
