"""Password digests used by the login form."""

from __future__ import annotations

from dataclasses import dataclass
from hashlib import md5


def md5_hex(value: str) -> str:
    return md5(value.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class LoginDigest:
    full: str
    truncated: str


def login_digest(password: str, salt: str) -> LoginDigest:
    """Return ``md5(salt + md5(password))`` and its prefix of ``len(password)`` chars."""
    full = md5_hex(salt + md5_hex(password))
    return LoginDigest(full=full, truncated=full[: len(password)])
