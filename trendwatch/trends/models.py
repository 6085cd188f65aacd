"""TypedDict models for records kept in the time-keyed store.

Field names match the JSON written by the web clients and the admin backend,
so camelCase keys (previousScore, userAgent) are kept as-is.
"""

from dataclasses import dataclass
from typing import Literal, NotRequired, TypedDict

Period = Literal["1h", "24h", "7d", "30d"]
TrendDirection = Literal["improving", "degrading", "stable"]
AlertType = Literal["performance_degradation", "performance_improvement", "critical_issue"]
AlertSeverity = Literal["low", "medium", "high", "critical"]

PERIODS: tuple[Period, ...] = ("1h", "24h", "7d", "30d")

PERIOD_SECONDS: dict[str, int] = {
    "1h": 60 * 60,
    "24h": 24 * 60 * 60,
    "7d": 7 * 24 * 60 * 60,
    "30d": 30 * 24 * 60 * 60,
}


class PerformanceMetrics(TypedDict):
    lcp: float  # ms
    fid: float  # ms
    cls: float  # unitless layout-shift score
    ttfb: float  # ms


class Viewport(TypedDict):
    width: int
    height: int


class PerformanceSample(TypedDict):
    route: str
    timestamp: str  # ISO 8601
    metrics: PerformanceMetrics
    score: float  # 0-100 composite
    userAgent: NotRequired[str | None]
    viewport: NotRequired[Viewport | None]


class PerformanceTrend(TypedDict):
    route: str
    score: float
    trend: TrendDirection
    change: float
    period: Period
    timestamp: str  # ISO 8601
    metrics: PerformanceMetrics


class TrendAlert(TypedDict):
    id: str
    type: AlertType
    severity: AlertSeverity
    route: str
    message: str
    score: float
    previousScore: float
    change: float
    timestamp: str  # ISO 8601
    resolved: bool


class PerformanceSummary(TypedDict):
    totalRoutes: int
    averageScore: int
    improvingTrends: int
    degradingTrends: int
    criticalIssues: int
    activeAlerts: int


@dataclass(frozen=True)
class TrendThresholds:
    """Score deltas that classify a trend and drive alert severity."""

    improvement: float = 5.0
    degradation: float = -5.0
    critical: float = -10.0
