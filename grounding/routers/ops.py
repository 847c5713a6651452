from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Response
from fastapi.responses import JSONResponse

from grounding.observability.metrics import format_prometheus_metrics
from grounding.observability.readiness import get_readiness_checker
from grounding.settings import settings

router = APIRouter()

_STARTED_AT = datetime.now(timezone.utc)


@router.get("/health")
def read_health():
    """Liveness, build details and process uptime."""
    return {
        "status": "ok",
        "app": settings.app_name,
        "version": settings.app_version,
        "uptime_seconds": round((datetime.now(timezone.utc) - _STARTED_AT).total_seconds(), 3),
        "search_provider": settings.search_provider or "none",
    }


@router.get("/metrics", response_class=Response, include_in_schema=False)
def metrics_endpoint() -> Response:
    if not settings.metrics_enabled:
        raise HTTPException(status_code=404, detail="Metrics disabled")
    return Response(content=format_prometheus_metrics(), media_type="text/plain; version=0.0.4")


@router.get("/readiness")
def readiness_endpoint() -> JSONResponse:
    if not settings.readiness_enabled:
        raise HTTPException(status_code=404, detail="Readiness disabled")

    status = get_readiness_checker().evaluate()
    checks = {name: {"ok": ok, "detail": detail} for name, (ok, detail) in status.checks.items()}
    return JSONResponse(
        status_code=200 if status.ready else 503,
        content={"status": "ready" if status.ready else "unready", "checks": checks},
    )
