"""Performance trend service — the public surface of the trend engine.

The service is stateless: every piece of state lives in the injected
time-keyed store, so one instance can be shared by concurrent callers.
Store failures are logged and re-raised as TrendwatchError subclasses
with the original exception chained; there are no internal retries.
"""

import asyncio
import json
import logging
import math
import time
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from trendwatch.config import get_settings
from trendwatch.errors import (
    AlertGenerationError,
    AlertQueryError,
    MaintenanceError,
    SampleIngestionError,
    SummaryError,
    TrendAnalysisError,
)
from trendwatch.observability.metrics import (
    ALERTS_GENERATED_TOTAL,
    ALERTS_RESOLVED_TOTAL,
    ANALYSIS_DURATION,
    OPERATION_ERRORS_TOTAL,
    SAMPLES_RECORDED_TOTAL,
    TRENDS_COMPUTED_TOTAL,
)
from trendwatch.store.base import (
    ALERT_PREFIX,
    CURRENT_PREFIX,
    CURRENT_TTL_SECONDS,
    HISTORY_PREFIX,
    HISTORY_TTL_SECONDS,
    TREND_PREFIX,
    TREND_TTL_SECONDS,
    TimeKeyedStore,
    current_key,
    history_key,
    trend_key,
)
from trendwatch.store.redis_store import RedisStore
from trendwatch.trends.alerts import AlertStore, build_alert
from trendwatch.trends.calculator import DEFAULT_THRESHOLDS, compute_trend
from trendwatch.trends.fetcher import fetch_history, fetch_samples
from trendwatch.trends.models import (
    PERIOD_SECONDS,
    PerformanceSample,
    PerformanceSummary,
    PerformanceTrend,
    Period,
    TrendAlert,
    TrendThresholds,
)
from trendwatch.trends.routes import list_active_routes
from trendwatch.trends.timestamps import parse_timestamp, unix_millis, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_PERIOD: Period = "24h"


async def cache_trends(store: TimeKeyedStore, trends: Sequence[PerformanceTrend], period: str) -> None:
    """Write every trend under ``(route, period)`` in one pipeline, overwriting."""
    if not trends:
        return
    pipe = store.pipeline()
    for trend in trends:
        pipe.set(trend_key(trend["route"], period), json.dumps(trend), TREND_TTL_SECONDS)
    for trend, (error, _) in zip(trends, await pipe.execute(), strict=True):
        if error is not None:
            logger.warning("Failed to cache trend for %s: %s", trend["route"], error)


class PerformanceTrendService:
    """Analyze route trends, raise alerts and summarize them."""

    def __init__(
        self,
        store: TimeKeyedStore,
        thresholds: TrendThresholds = DEFAULT_THRESHOLDS,
        default_period: Period = DEFAULT_PERIOD,
    ) -> None:
        self.store = store
        self.thresholds = thresholds
        self.default_period = default_period
        self.alerts = AlertStore(store)

    # ------------------------------------------------------------------
    # Trends
    # ------------------------------------------------------------------

    async def _analyze(self, route: str | None, period: Period) -> list[PerformanceTrend]:
        start = time.monotonic()
        routes = [route] if route is not None else await list_active_routes(self.store)
        if not routes:
            return []

        latest, history = await fetch_samples(self.store, routes)
        now = utc_now_iso()

        trends: list[PerformanceTrend] = []
        for current_route in routes:
            trend = compute_trend(
                current_route,
                latest.get(current_route),
                history.get(current_route, []),
                period,
                self.thresholds,
                now=now,
            )
            if trend is not None:
                trends.append(trend)
                TRENDS_COMPUTED_TOTAL.labels(trend=trend["trend"]).inc()

        await cache_trends(self.store, trends, period)
        ANALYSIS_DURATION.observe(time.monotonic() - start)
        logger.info("Analyzed %d route(s), %d trend(s) for period %s", len(routes), len(trends), period)
        return trends

    async def analyze_trends(
        self, route: str | None = None, period: Period | None = None
    ) -> list[PerformanceTrend]:
        """Compute (and cache) trends for one route or every active route.

        ``period`` defaults to the service's ``default_period``.

        Raises:
            TrendAnalysisError: If the store fails.
        """
        try:
            return await self._analyze(route, period or self.default_period)
        except Exception as exc:
            OPERATION_ERRORS_TOTAL.labels(operation="analyze_trends").inc()
            logger.exception("Trend analysis failed")
            raise TrendAnalysisError from exc

    async def get_route_trend(self, route: str, period: Period | None = None) -> PerformanceTrend | None:
        """Trend for a single route, or None when it has no data."""
        trends = await self.analyze_trends(route, period)
        return next((t for t in trends if t["route"] == route), None)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def generate_alerts(self) -> list[TrendAlert]:
        """Analyze all routes and persist an alert for every notable trend.

        Alerts are not deduplicated: a route whose trend still qualifies gets a
        new alert on every call.

        Raises:
            AlertGenerationError: If analysis or persistence fails.
        """
        try:
            trends = await self._analyze(None, self.default_period)
            alerts: list[TrendAlert] = []
            for trend in trends:
                alert = build_alert(trend, self.thresholds)
                if alert is not None:
                    alerts.append(alert)
            await self.alerts.save_many(alerts)
        except Exception as exc:
            OPERATION_ERRORS_TOTAL.labels(operation="generate_alerts").inc()
            logger.exception("Alert generation failed")
            raise AlertGenerationError from exc

        for alert in alerts:
            ALERTS_GENERATED_TOTAL.labels(type=alert["type"], severity=alert["severity"]).inc()
        if alerts:
            logger.info("Generated %d alert(s)", len(alerts))
        return alerts

    async def get_active_alerts(self) -> list[TrendAlert]:
        """Unresolved alerts, newest first.

        Raises:
            AlertQueryError: If the store fails.
        """
        try:
            return await self.alerts.list_active()
        except Exception as exc:
            OPERATION_ERRORS_TOTAL.labels(operation="get_active_alerts").inc()
            logger.exception("Listing active alerts failed")
            raise AlertQueryError from exc

    async def resolve_alert(self, alert_id: str) -> None:
        """Mark an alert resolved. Unknown or expired ids are a silent no-op.

        Raises:
            AlertQueryError: If the store fails.
        """
        try:
            resolved = await self.alerts.resolve(alert_id)
        except Exception as exc:
            OPERATION_ERRORS_TOTAL.labels(operation="resolve_alert").inc()
            logger.exception("Resolving alert %s failed", alert_id)
            raise AlertQueryError("Could not resolve alert") from exc

        if resolved:
            ALERTS_RESOLVED_TOTAL.inc()
            logger.info("Resolved alert %s", alert_id)
        else:
            logger.debug("Alert %s not found, nothing to resolve", alert_id)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    async def get_performance_summary(self) -> PerformanceSummary:
        """Aggregate current trends and active alerts for a dashboard.

        Raises:
            SummaryError: If the store fails.
        """
        try:
            trends, alerts = await asyncio.gather(
                self._analyze(None, self.default_period),
                self.alerts.list_active(),
            )
        except Exception as exc:
            OPERATION_ERRORS_TOTAL.labels(operation="get_performance_summary").inc()
            logger.exception("Performance summary failed")
            raise SummaryError from exc

        total = len(trends)
        average = sum(t["score"] for t in trends) / total if total else 0
        return PerformanceSummary(
            totalRoutes=total,
            averageScore=math.floor(average + 0.5),  # halves round up
            improvingTrends=sum(1 for t in trends if t["trend"] == "improving"),
            degradingTrends=sum(1 for t in trends if t["trend"] == "degrading"),
            criticalIssues=sum(1 for a in alerts if a["severity"] == "critical"),
            activeAlerts=len(alerts),
        )

    # ------------------------------------------------------------------
    # Ingestion & history
    # ------------------------------------------------------------------

    async def record_sample(self, sample: PerformanceSample) -> PerformanceSample:
        """Store a sample as the route's current snapshot and as a history entry.

        The two keys have different TTLs; route discovery relies on history
        outliving the snapshot.

        Raises:
            SampleIngestionError: If the store fails.
        """
        record = PerformanceSample(**sample)
        if not record.get("timestamp"):
            record["timestamp"] = utc_now_iso()
        payload = json.dumps(record)
        route = record["route"]

        try:
            await self.store.set(current_key(route), payload, CURRENT_TTL_SECONDS)
            await self.store.set(history_key(route, unix_millis()), payload, HISTORY_TTL_SECONDS)
        except Exception as exc:
            OPERATION_ERRORS_TOTAL.labels(operation="record_sample").inc()
            logger.exception("Saving performance sample for %s failed", route)
            raise SampleIngestionError from exc

        SAMPLES_RECORDED_TOTAL.inc()
        logger.debug("Performance sample saved for %s, score %s", route, record["score"])
        return record

    async def get_route_history(
        self,
        route: str,
        period: Period | None = None,
        *,
        now: datetime | None = None,
    ) -> list[PerformanceSample]:
        """History samples of one route within the period window, oldest first.

        Raises:
            TrendAnalysisError: If the store fails.
        """
        try:
            history = await fetch_history(self.store, [route])
        except Exception as exc:
            OPERATION_ERRORS_TOTAL.labels(operation="get_route_history").inc()
            logger.exception("Loading history for %s failed", route)
            raise TrendAnalysisError("Could not load route history") from exc

        cutoff = (now or datetime.now(UTC)) - timedelta(seconds=PERIOD_SECONDS[period or self.default_period])
        return [s for s in history[route] if parse_timestamp(s["timestamp"]) >= cutoff]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def list_performance_keys(self) -> dict[str, list[str]]:
        """Keys of each namespace, for debugging."""
        try:
            data, history, trends, alerts = await asyncio.gather(
                self.store.keys(f"{CURRENT_PREFIX}*"),
                self.store.keys(f"{HISTORY_PREFIX}*"),
                self.store.keys(f"{TREND_PREFIX}*"),
                self.store.keys(f"{ALERT_PREFIX}*"),
            )
        except Exception as exc:
            OPERATION_ERRORS_TOTAL.labels(operation="list_performance_keys").inc()
            logger.exception("Listing performance keys failed")
            raise MaintenanceError from exc
        return {"dataKeys": data, "historyKeys": history, "trendKeys": trends, "alertKeys": alerts}

    async def clear_performance_data(self) -> int:
        """Delete every sample, trend and alert key. Returns the number deleted."""
        namespaces = await self.list_performance_keys()
        all_keys = [key for keys in namespaces.values() for key in keys]
        if not all_keys:
            return 0
        try:
            deleted = await self.store.delete(*all_keys)
        except Exception as exc:
            OPERATION_ERRORS_TOTAL.labels(operation="clear_performance_data").inc()
            logger.exception("Clearing performance data failed")
            raise MaintenanceError from exc
        logger.info("Cleared %d performance data keys", deleted)
        return deleted


def build_service(store: TimeKeyedStore | None = None) -> PerformanceTrendService:
    """Create a service with thresholds from settings and a Redis store by default."""
    settings = get_settings()
    thresholds = TrendThresholds(
        improvement=settings.trend_improvement_threshold,
        degradation=settings.trend_degradation_threshold,
        critical=settings.trend_critical_threshold,
    )
    return PerformanceTrendService(
        store if store is not None else RedisStore.from_settings(),
        thresholds,
        settings.default_period,
    )
