"""Core primitives: session state, coalescing, settings, models and errors."""

from .coalesce import Coalescer, fingerprint
from .session import Credentials, Session, SessionState
from .settings import ClientSettings, ReportSettings

__all__ = [
    "Coalescer",
    "fingerprint",
    "Credentials",
    "Session",
    "SessionState",
    "ClientSettings",
    "ReportSettings",
]
