"""Portal clients: the plain session client and its coalescing proxy."""

from .base import PortalClient
from .protected import ProtectedClient

__all__ = ["PortalClient", "ProtectedClient"]
