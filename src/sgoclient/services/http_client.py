"""HTTP transport shared by every portal request."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping, Optional

import httpx

from sgoclient.core.errors import FetchError
from sgoclient.utils.logging import get_logger


_DETAIL_LIMIT = 200


class HttpClient:
    """Thin wrapper over a lazily created ``httpx.AsyncClient``.

    Performs one exchange per call and turns non-2xx answers into
    :class:`FetchError`. Cookies are handled by the caller.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._lock = asyncio.Lock()
        self.logger = get_logger("http")

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._lock:
            if self._client is None:
                headers = {"user-agent": self.user_agent} if self.user_agent else None
                self._client = httpx.AsyncClient(
                    timeout=self.timeout,
                    follow_redirects=True,
                    headers=headers,
                    transport=self._transport,
                )
            return self._client

    async def perform(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        content: Optional[str] = None,
        json: Any = None,
    ) -> httpx.Response:
        client = await self._ensure_client()
        self.logger.debug("%s %s", method, url)
        response = await client.request(
            method,
            url,
            headers=dict(headers or {}),
            params=_clean_params(params),
            content=content,
            json=json,
        )
        if not response.is_success:
            raise FetchError(response.status_code, str(response.url), _detail(response))
        return response

    async def aclose(self) -> None:
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def _clean_params(params: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if params is None:
        return None
    return {key: value for key, value in params.items() if value is not None}


def _detail(response: httpx.Response) -> Optional[str]:
    try:
        text = response.text
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return None
    text = text.strip()
    return text[:_DETAIL_LIMIT] or None
