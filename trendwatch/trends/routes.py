"""Route discovery from the store's key namespaces."""

import logging

from trendwatch.store.base import (
    CURRENT_PREFIX,
    HISTORY_PREFIX,
    TimeKeyedStore,
    route_from_current_key,
    route_from_history_key,
)

logger = logging.getLogger(__name__)


async def list_active_routes(store: TimeKeyedStore) -> list[str]:
    """Return routes that have recent performance data.

    Current snapshots expire after an hour while history lives for a day, so
    when no snapshot keys remain the routes are recovered from history keys.
    Store errors propagate to the caller.
    """
    current_keys = await store.keys(f"{CURRENT_PREFIX}*")
    if current_keys:
        return list(dict.fromkeys(route_from_current_key(k) for k in current_keys))

    history_keys = await store.keys(f"{HISTORY_PREFIX}*")
    routes = list(dict.fromkeys(route_from_history_key(k) for k in history_keys))
    if routes:
        logger.debug("No current snapshots, recovered %d route(s) from history", len(routes))
    return routes
