"""Prometheus metric definitions for trendwatch self-instrumentation.

All metrics are module-level singletons registered with the default
prometheus_client registry.  Import them wherever instrumentation is needed.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# ---------------------------------------------------------------------------
# Histogram bucket definitions
# ---------------------------------------------------------------------------

REQUEST_DURATION_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0)
ANALYSIS_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)

# ---------------------------------------------------------------------------
# Request-level metrics
# ---------------------------------------------------------------------------

REQUEST_DURATION = Histogram(
    "trendwatch_request_duration_seconds",
    "End-to-end request duration in seconds",
    labelnames=["endpoint"],
    buckets=REQUEST_DURATION_BUCKETS,
)

REQUESTS_TOTAL = Counter(
    "trendwatch_requests_total",
    "Total number of requests",
    labelnames=["endpoint", "status"],
)

REQUESTS_IN_PROGRESS = Gauge(
    "trendwatch_requests_in_progress",
    "Number of requests currently being processed",
    labelnames=["endpoint"],
)

# ---------------------------------------------------------------------------
# Engine metrics
# ---------------------------------------------------------------------------

ANALYSIS_DURATION = Histogram(
    "trendwatch_analysis_duration_seconds",
    "Duration of a full trend analysis pass in seconds",
    buckets=ANALYSIS_DURATION_BUCKETS,
)

TRENDS_COMPUTED_TOTAL = Counter(
    "trendwatch_trends_computed_total",
    "Total number of route trends computed",
    labelnames=["trend"],
)

ALERTS_GENERATED_TOTAL = Counter(
    "trendwatch_alerts_generated_total",
    "Total number of trend alerts created",
    labelnames=["type", "severity"],
)

ALERTS_RESOLVED_TOTAL = Counter(
    "trendwatch_alerts_resolved_total",
    "Total number of trend alerts marked resolved",
)

SAMPLES_RECORDED_TOTAL = Counter(
    "trendwatch_samples_recorded_total",
    "Total number of performance samples ingested",
)

MALFORMED_ENTRIES_TOTAL = Counter(
    "trendwatch_malformed_entries_total",
    "Stored values skipped because they could not be parsed",
    labelnames=["namespace"],
)

OPERATION_ERRORS_TOTAL = Counter(
    "trendwatch_operation_errors_total",
    "Engine operations that failed because of a store error",
    labelnames=["operation"],
)

# ---------------------------------------------------------------------------
# Health / info metrics
# ---------------------------------------------------------------------------

COMPONENT_HEALTHY = Gauge(
    "trendwatch_component_healthy",
    "Whether a dependency component is healthy (1=healthy, 0=unhealthy)",
    labelnames=["component"],
)

APP_INFO = Info(
    "trendwatch",
    "trendwatch build information",
)

# ---------------------------------------------------------------------------
# Scheduled alert generation
# ---------------------------------------------------------------------------

SCHEDULED_RUNS_TOTAL = Counter(
    "trendwatch_scheduled_alert_runs_total",
    "Scheduled alert generation runs",
    labelnames=["status"],
)
