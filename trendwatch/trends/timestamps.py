"""ISO-8601 helpers shared by the fetcher, alert store and service."""

import time
from datetime import UTC, datetime


def parse_timestamp(value: object) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Accepts the trailing ``Z`` that browsers emit. Naive values are taken as UTC.

    Raises:
        ValueError: If ``value`` is not a parseable ISO-8601 string.
    """
    if not isinstance(value, str):
        msg = f"timestamp must be a string, got {type(value).__name__}"
        raise ValueError(msg)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def unix_millis() -> int:
    return int(time.time() * 1000)
