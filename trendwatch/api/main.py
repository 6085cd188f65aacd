"""FastAPI backend for the performance trend engine.

Thin HTTP adapter over PerformanceTrendService. The service and its Redis
store are built once at startup and shared across requests; authentication
and rate limiting are handled by the gateway in front of this app.
"""

import logging
import time
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TypeVar

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from trendwatch.api.scheduler import start_scheduler, stop_scheduler
from trendwatch.config import get_settings
from trendwatch.errors import TrendwatchError
from trendwatch.observability.metrics import (
    APP_INFO,
    COMPONENT_HEALTHY,
    REQUEST_DURATION,
    REQUESTS_IN_PROGRESS,
    REQUESTS_TOTAL,
)
from trendwatch.trends.models import PerformanceSample, Period
from trendwatch.trends.service import PerformanceTrendService, build_service

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class MetricsPayload(BaseModel):
    """Web-vitals reported by a client. Missing vitals default to 0."""

    lcp: float = 0
    fid: float = 0
    cls: float = 0
    ttfb: float = 0


class ViewportPayload(BaseModel):
    width: int
    height: int


class PerformanceDataRequest(BaseModel):
    """Request body for POST /performance-data."""

    route: str = Field(min_length=1)
    metrics: MetricsPayload
    score: float = Field(ge=0, le=100)
    timestamp: str | None = None
    userAgent: str | None = None
    viewport: ViewportPayload | None = None


class ComponentHealth(BaseModel):
    """Health status of a single dependency."""

    name: str
    status: str
    detail: str | None = None


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the trend service once at startup, close the store on shutdown."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    APP_INFO.info({"version": "0.1.0"})

    logger.info("Building performance trend service...")
    service = build_service()
    app.state.service = service

    start_scheduler(service)
    yield
    stop_scheduler()
    await service.store.close()
    logger.info("Shutting down trendwatch")


app = FastAPI(title="Performance Trend Analysis", lifespan=lifespan)
router = APIRouter(prefix="/api/v1/trends")


def _service(request: Request) -> PerformanceTrendService:
    return request.app.state.service


async def _tracked(endpoint: str, call: Awaitable[T]) -> T:
    """Await an engine call, recording request metrics and mapping failures to 500."""
    REQUESTS_IN_PROGRESS.labels(endpoint=endpoint).inc()
    start = time.monotonic()
    try:
        result = await call
    except TrendwatchError as exc:
        REQUESTS_TOTAL.labels(endpoint=endpoint, status="error").inc()
        REQUEST_DURATION.labels(endpoint=endpoint).observe(time.monotonic() - start)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        REQUESTS_IN_PROGRESS.labels(endpoint=endpoint).dec()

    REQUEST_DURATION.labels(endpoint=endpoint).observe(time.monotonic() - start)
    REQUESTS_TOTAL.labels(endpoint=endpoint, status="success").inc()
    return result


def _now() -> str:
    return datetime.now(UTC).isoformat()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/analysis")
async def analysis(request: Request, route: str | None = None, period: Period | None = None) -> dict[str, object]:
    """Analyze trends for one route or all active routes."""
    service = _service(request)
    period = period or service.default_period
    trends = await _tracked("/analysis", service.analyze_trends(route, period))
    return {"trends": trends, "totalTrends": len(trends), "period": period, "analyzedAt": _now()}


@router.get("/alerts")
async def alerts(request: Request) -> dict[str, object]:
    """List unresolved alerts with per-severity counts."""
    active = await _tracked("/alerts", _service(request).get_active_alerts())
    counts = {
        f"{sev}Alerts": sum(1 for a in active if a["severity"] == sev) for sev in ("critical", "high", "medium", "low")
    }
    return {"alerts": active, "totalAlerts": len(active), **counts}


@router.post("/alerts/generate")
async def generate_alerts(request: Request) -> dict[str, object]:
    """Create alerts for every route whose trend crosses a threshold."""
    created = await _tracked("/alerts/generate", _service(request).generate_alerts())
    return {"alerts": created, "generatedAlerts": len(created), "message": f"{len(created)} new alert(s) created"}


@router.put("/alerts/{alert_id}/resolve")
async def resolve_alert(request: Request, alert_id: str) -> dict[str, object]:
    """Mark an alert resolved. Unknown ids succeed silently."""
    await _tracked("/alerts/resolve", _service(request).resolve_alert(alert_id))
    return {"message": "Alert resolved", "alertId": alert_id}


@router.get("/summary")
async def summary(request: Request) -> dict[str, object]:
    """Dashboard summary of trends and active alerts."""
    result = await _tracked("/summary", _service(request).get_performance_summary())
    return {"summary": result, "generatedAt": _now()}


@router.get("/route/{route:path}")
async def route_trend(request: Request, route: str, period: Period | None = None) -> dict[str, object]:
    """Detailed trend for a single route."""
    service = _service(request)
    period = period or service.default_period
    trend = await _tracked("/route", service.get_route_trend(route, period))
    if trend is None:
        raise HTTPException(status_code=404, detail="No trend data for route")
    return {"route": route, "trend": trend, "period": period, "analyzedAt": _now()}


@router.get("/history/{route:path}")
async def route_history(request: Request, route: str, period: Period | None = None) -> dict[str, object]:
    """History samples of one route within the period window."""
    service = _service(request)
    period = period or service.default_period
    history = await _tracked("/history", service.get_route_history(route, period))
    return {"route": route, "period": period, "history": history, "totalRecords": len(history)}


@router.post("/performance-data")
async def record_performance_data(request: Request, body: PerformanceDataRequest) -> dict[str, object]:
    """Ingest one web-vitals sample from a client."""
    sample = PerformanceSample(**body.model_dump(exclude_none=True))
    saved = await _tracked("/performance-data", _service(request).record_sample(sample))
    return {
        "message": "Performance data saved",
        "route": saved["route"],
        "score": saved["score"],
        "timestamp": saved["timestamp"],
    }


@router.delete("/performance-data")
async def clear_performance_data(request: Request) -> dict[str, object]:
    """Delete all samples, cached trends and alerts."""
    cleared = await _tracked("/performance-data/clear", _service(request).clear_performance_data())
    return {"message": "All performance data cleared", "clearedKeys": cleared}


@router.get("/debug/keys")
async def debug_keys(request: Request) -> dict[str, object]:
    """List the store keys of every performance namespace."""
    keys = await _tracked("/debug/keys", _service(request).list_performance_keys())
    return {**keys, "totalKeys": sum(len(v) for v in keys.values())}


@router.get("/health", response_model=None)
async def health(request: Request) -> dict[str, object] | JSONResponse:
    """Check the store and that a summary can be computed."""
    service = _service(request)
    components: list[ComponentHealth] = []

    if await service.store.ping():
        components.append(ComponentHealth(name="redis", status="healthy"))
    else:
        components.append(ComponentHealth(name="redis", status="unhealthy", detail="PING failed"))

    result = None
    try:
        result = await service.get_performance_summary()
        components.append(ComponentHealth(name="trend_engine", status="healthy"))
    except TrendwatchError as exc:
        components.append(ComponentHealth(name="trend_engine", status="unhealthy", detail=str(exc)))

    for comp in components:
        COMPONENT_HEALTHY.labels(component=comp.name).set(1.0 if comp.status == "healthy" else 0.0)

    body: dict[str, object] = {
        "status": "healthy" if all(c.status == "healthy" for c in components) else "unhealthy",
        "summary": result,
        "components": [c.model_dump() for c in components],
        "timestamp": _now(),
    }
    if body["status"] != "healthy":
        return JSONResponse(status_code=503, content=body)
    return body


app.include_router(router)
