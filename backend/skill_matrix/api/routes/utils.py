import time
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel
from sqlmodel import text

from skill_matrix.api.deps import ChangeFeedDep, SessionDep
from skill_matrix.core.config import settings
from skill_matrix.core.observability import get_logger, render_metrics

logger = get_logger(__name__)


class ServiceHealth(BaseModel):
    """Health of one dependency."""

    name: str
    status: str
    response_time_ms: float | None = None
    error: str | None = None


class HealthCheckResponse(BaseModel):
    status: str
    services: list[ServiceHealth]
    environment: str
    timestamp: str
    uptime_seconds: float


router = APIRouter(prefix="/utils", tags=["utils"])

# Application start time for uptime calculation
app_start_time = time.time()


def check_database_health(session: SessionDep) -> ServiceHealth:
    start_time = time.time()
    try:
        session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return ServiceHealth(name="database", status="unhealthy", error=str(e))
    return ServiceHealth(
        name="database",
        status="healthy",
        response_time_ms=(time.time() - start_time) * 1000,
    )


@router.get("/health-check/", response_model=HealthCheckResponse)
def health_check(session: SessionDep, feed: ChangeFeedDep) -> HealthCheckResponse:
    """
    Verify the database and report which change feed backend is active.
    """
    database = check_database_health(session)
    services = [
        database,
        ServiceHealth(name=f"change_feed:{type(feed).__name__}", status="healthy"),
    ]
    response = HealthCheckResponse(
        status=database.status,
        services=services,
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.time() - app_start_time,
    )
    if database.status != "healthy":
        raise HTTPException(status_code=503, detail=response.model_dump())
    return response


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    """
    Prometheus exposition of request and domain counters.
    """
    if not settings.ENABLE_METRICS:
        raise HTTPException(status_code=404, detail="Metrics are disabled")
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)
