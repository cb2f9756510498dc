"""Coalescing proxy over :class:`PortalClient`."""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, Dict, Hashable, Optional

from sgoclient.client.base import PortalClient
from sgoclient.core.coalesce import Coalescer, fingerprint
from sgoclient.core.settings import ClientSettings


_NONCE_KEY = "__nonce__"
_UNPROTECTED = frozenset({"aclose"})


class ProtectedClient:
    """Deduplicates concurrent identical calls to the wrapped client.

    Every public coroutine method of the wrapped client is exposed with the
    same signature plus an optional ``nonce`` keyword. Calls whose operation
    and arguments are equal while one of them is running share that single
    execution and its outcome. Passing a distinct ``nonce`` (for example
    :meth:`Coalescer.fresh`) forces a new execution; the nonce is not
    forwarded to the operation.

        async with ProtectedClient(PortalClient(host, login, password)) as client:
            week, journal = await asyncio.gather(client.diary(start, end), client.journal(start, end))
    """

    def __init__(self, client: PortalClient, *, coalescer: Optional[Coalescer] = None) -> None:
        self._client = client
        self._coalescer = coalescer or Coalescer()
        self._wrapped: Dict[str, Callable[..., Any]] = {}

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs: Any) -> "ProtectedClient":
        return cls(PortalClient.from_settings(settings, **kwargs))

    @property
    def client(self) -> PortalClient:
        return self._client

    @property
    def in_flight(self) -> int:
        return len(self._coalescer)

    def __getattr__(self, name: str) -> Any:
        attribute = getattr(self._client, name)
        if name.startswith("_") or name in _UNPROTECTED or not inspect.iscoroutinefunction(attribute):
            return attribute
        wrapped = self._wrapped.get(name)
        if wrapped is None:
            wrapped = self._wrapped[name] = self._protect(name, attribute)
        return wrapped

    def _protect(self, name: str, operation: Callable[..., Any]) -> Callable[..., Any]:
        coalescer = self._coalescer
        signature = inspect.signature(operation)

        @functools.wraps(operation)
        async def protected(*args: Any, nonce: Optional[Hashable] = None, **kwargs: Any) -> Any:
            # positional, keyword and defaulted spellings of one call share a key
            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()
            keyed = dict(bound.arguments)
            if nonce is not None:
                keyed[_NONCE_KEY] = nonce
            key = fingerprint(name, (), keyed)
            return await coalescer.run(key, lambda: operation(*args, **kwargs))

        return protected

    def __repr__(self) -> str:
        return f"<ProtectedClient {self._client!r} in_flight={self.in_flight}>"

    async def __aenter__(self) -> "ProtectedClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._client.aclose()
