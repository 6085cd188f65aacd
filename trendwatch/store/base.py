"""Time-keyed store contract and the key naming scheme.

The engine only talks to the store through these protocols. Key patterns and
TTLs are shared with the web clients that write samples, so they must not change.
"""

from typing import Protocol

CURRENT_PREFIX = "perf:data:"
HISTORY_PREFIX = "perf:history:"
TREND_PREFIX = "performance:trend:"
ALERT_PREFIX = "performance:alert:"

CURRENT_TTL_SECONDS = 3600
HISTORY_TTL_SECONDS = 86400
TREND_TTL_SECONDS = 3600
ALERT_TTL_SECONDS = 86400

# (error, value) per queued command, in submission order
PipelineResult = tuple[Exception | None, object]


def current_key(route: str) -> str:
    return f"{CURRENT_PREFIX}{route}"


def history_key(route: str, unix_millis: int) -> str:
    return f"{HISTORY_PREFIX}{route}:{unix_millis}"


def history_pattern(route: str) -> str:
    return f"{HISTORY_PREFIX}{route}:*"


def trend_key(route: str, period: str) -> str:
    return f"{TREND_PREFIX}{route}:{period}"


def alert_key(alert_id: str) -> str:
    return f"{ALERT_PREFIX}{alert_id}"


def route_from_current_key(key: str) -> str:
    return key.removeprefix(CURRENT_PREFIX)


def route_from_history_key(key: str) -> str:
    """Strip the namespace and the trailing ``:{unixMillis}`` segment.

    Routes may contain colons themselves, so only the last segment is dropped.
    """
    rest = key.removeprefix(HISTORY_PREFIX)
    route, sep, _ = rest.rpartition(":")
    return route if sep else rest


class StorePipeline(Protocol):
    """A batch of queued commands executed in one round trip."""

    def get(self, key: str) -> None: ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def execute(self) -> list[PipelineResult]: ...


class TimeKeyedStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def keys(self, pattern: str) -> list[str]: ...

    async def delete(self, *keys: str) -> int: ...

    def pipeline(self) -> StorePipeline: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...
