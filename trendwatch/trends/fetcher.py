"""Batch sample fetcher — pipelined reads of snapshots and history.

Reading per route would cost one round trip per key. Instead all current
snapshots are read in a single pipeline, and history is read with one KEYS
call per route (issued concurrently) followed by one pipeline over every
history key found. Malformed entries are skipped with a warning.
"""

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import cast

from trendwatch.observability.metrics import MALFORMED_ENTRIES_TOTAL
from trendwatch.store.base import TimeKeyedStore, current_key, history_pattern, route_from_history_key
from trendwatch.trends.models import PerformanceSample
from trendwatch.trends.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

_METRIC_FIELDS = ("lcp", "fid", "cls", "ttfb")


def parse_sample(raw: object, key: str, namespace: str) -> PerformanceSample | None:
    """Decode one stored sample, returning None (and logging) if it is unusable."""
    if raw is None:
        return None
    try:
        data = json.loads(cast(str, raw))
        if not isinstance(data, dict):
            msg = "not a JSON object"
            raise ValueError(msg)
        score = data["score"]
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            msg = "score is not numeric"
            raise ValueError(msg)
        metrics = data["metrics"]
        if not isinstance(metrics, dict):
            msg = "metrics is not an object"
            raise ValueError(msg)
        parse_timestamp(data["timestamp"])
    except (TypeError, ValueError, KeyError) as exc:
        logger.warning("Skipping malformed %s entry %s: %s", namespace, key, exc)
        MALFORMED_ENTRIES_TOTAL.labels(namespace=namespace).inc()
        return None

    # Older clients omit some vitals; fill them so calculations never KeyError.
    data["metrics"] = {name: metrics.get(name, 0) for name in _METRIC_FIELDS}
    return cast(PerformanceSample, data)


def sort_by_timestamp(samples: list[PerformanceSample]) -> list[PerformanceSample]:
    """Ascending by sample timestamp; ties keep insertion order."""
    return sorted(samples, key=lambda s: parse_timestamp(s["timestamp"]))


async def fetch_latest_samples(
    store: TimeKeyedStore,
    routes: Sequence[str],
) -> dict[str, PerformanceSample]:
    """Read the current snapshot of every route in one pipeline."""
    if not routes:
        return {}

    pipe = store.pipeline()
    for route in routes:
        pipe.get(current_key(route))
    results = await pipe.execute()

    latest: dict[str, PerformanceSample] = {}
    for route, (error, value) in zip(routes, results, strict=True):
        if error is not None:
            logger.warning("Failed to read current snapshot for %s: %s", route, error)
            continue
        sample = parse_sample(value, current_key(route), "current")
        if sample is not None:
            latest[route] = sample
    return latest


async def fetch_history(
    store: TimeKeyedStore,
    routes: Sequence[str],
) -> dict[str, list[PerformanceSample]]:
    """Read every history sample of every route, sorted oldest first."""
    history: dict[str, list[PerformanceSample]] = {route: [] for route in routes}
    if not routes:
        return history

    key_lists = await asyncio.gather(*(store.keys(history_pattern(route)) for route in routes))

    # A route containing colons can glob-match a longer route's keys; drop those.
    owners: list[tuple[str, str]] = [
        (route, key)
        for route, keys in zip(routes, key_lists, strict=True)
        for key in keys
        if route_from_history_key(key) == route
    ]
    if not owners:
        return history

    pipe = store.pipeline()
    for _, key in owners:
        pipe.get(key)
    results = await pipe.execute()

    for (route, key), (error, value) in zip(owners, results, strict=True):
        if error is not None:
            logger.warning("Failed to read history entry %s: %s", key, error)
            continue
        sample = parse_sample(value, key, "history")
        if sample is not None:
            history[route].append(sample)

    return {route: sort_by_timestamp(samples) for route, samples in history.items()}


async def fetch_samples(
    store: TimeKeyedStore,
    routes: Sequence[str],
) -> tuple[dict[str, PerformanceSample], dict[str, list[PerformanceSample]]]:
    """Fetch current snapshots and history concurrently."""
    latest, history = await asyncio.gather(
        fetch_latest_samples(store, routes),
        fetch_history(store, routes),
    )
    return latest, history
