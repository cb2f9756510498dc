"""Cookie accumulation for the portal session."""

from __future__ import annotations

import re
from typing import Dict, Mapping, Optional, Union

import httpx


_EXPIRES_RE = re.compile(r"expires=.+?;", re.IGNORECASE)
_PAIR_RE = re.compile(r"^([^=;]+)=([^;]*)")


HeaderSource = Union[httpx.Headers, Mapping[str, str], str, None]


def _set_cookie_value(headers: HeaderSource) -> Optional[str]:
    if headers is None or isinstance(headers, str):
        return headers
    if isinstance(headers, httpx.Headers):
        values = headers.get_list("set-cookie")
        return ", ".join(values) if values else None
    for key, value in headers.items():
        if key.lower() == "set-cookie":
            return value
    return None


class CookieJar:
    """Name/value store fed from ``Set-Cookie`` headers.

    Entries are never removed: an empty incoming value leaves the stored one in
    place, anything else overwrites it. Rendering keeps first-seen order.
    """

    def __init__(self) -> None:
        self._cookies: Dict[str, str] = {}

    def absorb(self, headers: HeaderSource) -> None:
        raw = _set_cookie_value(headers)
        if not raw:
            return
        for candidate in _EXPIRES_RE.sub("", raw).split(", "):
            match = _PAIR_RE.match(candidate)
            if not match:
                continue
            name, value = match.group(1).strip(), match.group(2).strip()
            if not name or not value:
                continue
            self._cookies[name] = value

    def render(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self._cookies.items() if value)

    def get(self, name: str) -> Optional[str]:
        return self._cookies.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._cookies

    def __len__(self) -> int:
        return len(self._cookies)
