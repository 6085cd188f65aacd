"""Trend calculation — a two-point delta over a route's score history.

The delta is deliberately simple: latest score minus the second-to-last
history score. Alert thresholds are calibrated against this delta, so a
smoothing or regression step would require re-tuning them.
"""

from collections.abc import Sequence

from trendwatch.trends.models import (
    PerformanceMetrics,
    PerformanceSample,
    PerformanceTrend,
    Period,
    TrendDirection,
    TrendThresholds,
)
from trendwatch.trends.timestamps import utc_now_iso

DEFAULT_THRESHOLDS = TrendThresholds()


def classify_change(change: float, thresholds: TrendThresholds = DEFAULT_THRESHOLDS) -> TrendDirection:
    """Map a score delta to a trend direction (both bounds exclusive)."""
    if change > thresholds.improvement:
        return "improving"
    if change < thresholds.degradation:
        return "degrading"
    return "stable"


def _metrics_of(sample: PerformanceSample) -> PerformanceMetrics:
    metrics = sample["metrics"]
    return PerformanceMetrics(
        lcp=metrics["lcp"],
        fid=metrics["fid"],
        cls=metrics["cls"],
        ttfb=metrics["ttfb"],
    )


def compute_trend(
    route: str,
    latest: PerformanceSample | None,
    history: Sequence[PerformanceSample],
    period: Period,
    thresholds: TrendThresholds = DEFAULT_THRESHOLDS,
    *,
    now: str | None = None,
) -> PerformanceTrend | None:
    """Compute the trend for one route.

    Args:
        route: Route identifier the samples belong to.
        latest: Current snapshot, or None if it has expired.
        history: History samples sorted oldest first.
        period: Period label attached to the result.
        thresholds: Classification thresholds.
        now: Timestamp to stamp on the result (defaults to current UTC time).

    Returns:
        The trend, or None when there is neither a snapshot nor any history.
    """
    if latest is None and not history:
        return None

    if latest is not None:
        current_score = latest["score"]
        current_metrics = _metrics_of(latest)
    else:
        last = history[-1]
        current_score = last["score"]
        current_metrics = _metrics_of(last)
        # History entries don't carry FID.
        current_metrics["fid"] = 0

    if len(history) >= 2:
        change = current_score - history[-2]["score"]
        trend = classify_change(change, thresholds)
    else:
        change = 0
        trend = "stable"

    return PerformanceTrend(
        route=route,
        score=current_score,
        trend=trend,
        change=change,
        period=period,
        timestamp=now or utc_now_iso(),
        metrics=current_metrics,
    )
