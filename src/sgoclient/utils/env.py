"""Environment helper utilities."""

from __future__ import annotations

import os
from typing import Optional


_FALSE_VALUES = {"0", "false", "no", "off"}


def get_str_env(name: str, *, default: Optional[str] = None) -> Optional[str]:
    """Return the stripped value of a variable, or ``default`` when unset/blank."""
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip()
    return value or default


def get_bool_env(name: str, *, default: bool = False) -> bool:
    """Return True/False for an environment flag."""
    value = get_str_env(name)
    if value is None:
        return default
    return value.lower() not in _FALSE_VALUES


def get_float_env(name: str, *, default: Optional[float] = None) -> Optional[float]:
    value = get_str_env(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
