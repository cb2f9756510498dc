"""In-flight deduplication of identical asynchronous operations."""

from __future__ import annotations

import asyncio
import datetime as dt
import enum
import uuid
from typing import Any, Awaitable, Callable, Dict, Hashable, Mapping, Sequence, Tuple, TypeVar

from sgoclient.utils.dates import as_datetime
from sgoclient.utils.logging import get_logger


T = TypeVar("T")

Key = Tuple[Hashable, ...]


def canonicalize(value: Any) -> Hashable:
    """Reduce ``value`` to a hashable form with value equality.

    Dates and datetimes compare by timestamp (a date equals the datetime at
    its midnight), containers compare element-wise, anything else must be
    hashable already.
    """
    if isinstance(value, (dt.date, dt.datetime)):
        return ("__date__", as_datetime(value).timestamp())
    if isinstance(value, enum.Enum):
        return value
    if isinstance(value, bool):
        return ("__bool__", value)
    if isinstance(value, (int, float, str, bytes)) or value is None:
        return value
    if isinstance(value, Mapping):
        return ("__map__", tuple(sorted((str(k), canonicalize(v)) for k, v in value.items())))
    if isinstance(value, (list, tuple)):
        return ("__seq__", tuple(canonicalize(item) for item in value))
    if isinstance(value, (set, frozenset)):
        return ("__set__", frozenset(canonicalize(item) for item in value))
    hash(value)
    return value


def fingerprint(operation: str, args: Sequence[Any], kwargs: Mapping[str, Any]) -> Key:
    """Key identifying one (operation, arguments) pair."""
    return (
        operation,
        tuple(canonicalize(arg) for arg in args),
        tuple(sorted((name, canonicalize(value)) for name, value in kwargs.items())),
    )


class Coalescer:
    """Registry of running operations keyed by fingerprint.

    ``run`` returns the result of the execution already registered under the
    key, or starts ``factory()`` and registers it. The entry is removed as soon
    as the execution settles, before any waiter resumes.
    """

    def __init__(self) -> None:
        self._in_flight: Dict[Key, "asyncio.Task[Any]"] = {}
        self.logger = get_logger("coalesce")

    @staticmethod
    def fresh() -> str:
        """Unique nonce forcing a new execution when passed as an extra argument."""
        return uuid.uuid4().hex

    def __len__(self) -> int:
        return len(self._in_flight)

    def __contains__(self, key: object) -> bool:
        return key in self._in_flight

    async def run(self, key: Key, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._settle(key, done))
        else:
            self.logger.debug("Joining in-flight %s", key[0])
        # a waiter giving up must not cancel the execution shared with others
        return await asyncio.shield(task)

    def _settle(self, key: Key, task: "asyncio.Task[Any]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled() and task.exception() is not None:
            self.logger.debug("%s failed: %r", key[0], task.exception())
