"""Alert generation from trends and the alert lifecycle in the store."""

import json
import logging
from typing import cast
from uuid import uuid4

from trendwatch.observability.metrics import MALFORMED_ENTRIES_TOTAL
from trendwatch.store.base import ALERT_PREFIX, ALERT_TTL_SECONDS, TimeKeyedStore, alert_key
from trendwatch.trends.calculator import DEFAULT_THRESHOLDS
from trendwatch.trends.models import (
    AlertSeverity,
    AlertType,
    PerformanceTrend,
    TrendAlert,
    TrendThresholds,
)
from trendwatch.trends.timestamps import parse_timestamp, unix_millis, utc_now_iso

logger = logging.getLogger(__name__)

_MESSAGES: dict[AlertType, str] = {
    "critical_issue": "Critical performance drop: {route} lost {points} points",
    "performance_degradation": "Performance degradation: {route} lost {points} points",
    "performance_improvement": "Performance improvement: {route} gained {points} points",
}


def new_alert_id() -> str:
    return f"alert_{unix_millis()}_{uuid4().hex[:9]}"


def classify_alert(
    change: float,
    thresholds: TrendThresholds = DEFAULT_THRESHOLDS,
) -> tuple[AlertType, AlertSeverity] | None:
    """Return ``(type, severity)`` for a score delta, or None if it is not notable.

    Checked in order: critical drop, drop, improvement. Boundaries are inclusive.
    """
    if change <= thresholds.critical:
        return "critical_issue", "critical"
    if change <= thresholds.degradation:
        return "performance_degradation", "high"
    if change >= thresholds.improvement:
        return "performance_improvement", "low"
    return None


def build_alert(
    trend: PerformanceTrend,
    thresholds: TrendThresholds = DEFAULT_THRESHOLDS,
    *,
    now: str | None = None,
) -> TrendAlert | None:
    """Build an unresolved alert for a trend that crosses a threshold."""
    classified = classify_alert(trend["change"], thresholds)
    if classified is None:
        return None
    alert_type, severity = classified

    message = _MESSAGES[alert_type].format(route=trend["route"], points=f"{abs(trend['change']):g}")
    return TrendAlert(
        id=new_alert_id(),
        type=alert_type,
        severity=severity,
        route=trend["route"],
        message=message,
        score=trend["score"],
        previousScore=trend["score"] - trend["change"],
        change=trend["change"],
        timestamp=now or utc_now_iso(),
        resolved=False,
    )


def parse_alert(raw: object, key: str) -> TrendAlert | None:
    """Decode one stored alert, returning None (and logging) if it is unusable."""
    if raw is None:
        return None
    try:
        data = json.loads(cast(str, raw))
        if not isinstance(data, dict):
            msg = "not a JSON object"
            raise ValueError(msg)
        data.setdefault("resolved", False)
        if not isinstance(data["resolved"], bool):
            msg = f"resolved is not a boolean: {data['resolved']!r}"
            raise ValueError(msg)
        parse_timestamp(data["timestamp"])
        _ = data["id"], data["severity"]
    except (TypeError, ValueError, KeyError) as exc:
        logger.warning("Skipping malformed alert %s: %s", key, exc)
        MALFORMED_ENTRIES_TOTAL.labels(namespace="alert").inc()
        return None
    return cast(TrendAlert, data)


class AlertStore:
    """Persistence and lifecycle of trend alerts. Holds no state of its own."""

    def __init__(self, store: TimeKeyedStore) -> None:
        self._store = store

    async def save(self, alert: TrendAlert) -> None:
        await self._store.set(alert_key(alert["id"]), json.dumps(alert), ALERT_TTL_SECONDS)

    async def save_many(self, alerts: list[TrendAlert]) -> None:
        """Persist a batch of alerts in one pipeline."""
        if not alerts:
            return
        pipe = self._store.pipeline()
        for alert in alerts:
            pipe.set(alert_key(alert["id"]), json.dumps(alert), ALERT_TTL_SECONDS)
        for alert, (error, _) in zip(alerts, await pipe.execute(), strict=True):
            if error is not None:
                logger.warning("Failed to persist alert %s: %s", alert["id"], error)

    async def get(self, alert_id: str) -> TrendAlert | None:
        key = alert_key(alert_id)
        return parse_alert(await self._store.get(key), key)

    async def list_all(self) -> list[TrendAlert]:
        keys = await self._store.keys(f"{ALERT_PREFIX}*")
        if not keys:
            return []
        pipe = self._store.pipeline()
        for key in keys:
            pipe.get(key)
        alerts: list[TrendAlert] = []
        for key, (error, value) in zip(keys, await pipe.execute(), strict=True):
            if error is not None:
                logger.warning("Failed to read alert %s: %s", key, error)
                continue
            alert = parse_alert(value, key)
            if alert is not None:
                alerts.append(alert)
        return alerts

    async def list_active(self) -> list[TrendAlert]:
        """Unresolved alerts, newest first."""
        active = [a for a in await self.list_all() if not a["resolved"]]
        return sorted(active, key=lambda a: parse_timestamp(a["timestamp"]), reverse=True)

    async def resolve(self, alert_id: str) -> bool:
        """Mark an alert resolved and refresh its TTL.

        Returns False without error if the alert does not exist or has expired.
        """
        alert = await self.get(alert_id)
        if alert is None:
            return False
        alert["resolved"] = True
        await self.save(alert)
        return True
