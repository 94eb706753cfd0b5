import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware

from skill_matrix.api.errors import ERROR_STATUS
from skill_matrix.api.main import api_router
from skill_matrix.api.routes import support
from skill_matrix.core.config import settings
from skill_matrix.core.observability import (
    REQUEST_COUNT,
    REQUEST_DURATION,
    get_logger,
    initialize_observability,
    set_correlation_id,
    set_user_id,
)
from skill_matrix.domain.shared.exceptions import DomainError
from skill_matrix.infrastructure.events.registry import get_change_feed

# Initialize structured logger
logger = get_logger(__name__)

class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Middleware for request observability and metrics collection."""

    async def dispatch(self, request: Request, call_next):
        # Generate correlation ID for request tracing
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        set_correlation_id(correlation_id)
        set_user_id("")

        start_time = time.time()
        method = request.method
        path = request.url.path

        logger.info(
            "Request started",
            method=method,
            path=path,
            client_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("User-Agent", ""),
        )

        try:
            response = await call_next(request)

            duration = time.time() - start_time
            status_code = response.status_code

            REQUEST_COUNT.labels(
                method=method, endpoint=path, status=str(status_code)
            ).inc()
            REQUEST_DURATION.labels(method=method, endpoint=path).observe(duration)

            # Add correlation ID to response headers
            response.headers["X-Correlation-ID"] = correlation_id

            logger.info(
                "Request completed",
                method=method,
                path=path,
                status_code=status_code,
                duration_seconds=duration,
            )

            return response

        except Exception as e:
            duration = time.time() - start_time

            REQUEST_COUNT.labels(method=method, endpoint=path, status="500").inc()
            REQUEST_DURATION.labels(method=method, endpoint=path).observe(duration)

            logger.error(
                "Request failed",
                method=method,
                path=path,
                duration_seconds=duration,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

            raise


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}" if route.tags else route.name


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.error_type, status.HTTP_400_BAD_REQUEST)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Domain error",
        path=request.url.path,
        error_type=exc.error_type.value,
        error=exc.message,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": exc.to_dict()},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and select the change feed before serving requests."""
    initialize_observability()
    feed = get_change_feed()
    logger.info(
        "Application started",
        project_name=settings.PROJECT_NAME,
        environment=settings.ENVIRONMENT,
        api_version=settings.API_V1_STR,
        metrics_enabled=settings.ENABLE_METRICS,
        change_feed=type(feed).__name__,
        supabase_auth=settings.USE_SUPABASE_AUTH,
    )
    try:
        yield
    finally:
        logger.info("Shutting down application")


# Initialize Sentry for error tracking
if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(
        dsn=str(settings.SENTRY_DSN),
        enable_tracing=True,
        traces_sample_rate=1.0 if settings.ENVIRONMENT == "staging" else 0.1,
        environment=settings.ENVIRONMENT,
    )

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Skill Matrix API

    Team-scoped employee skill ratings for manufacturing organizations.

    ## Features

    * **Skill matrix**: rate employees per station, with live updates over WebSocket
    * **Dashboard**: team statistics, station rating averages and gap reports
    * **Company structure**: departments, production lines, teams and stations
    * **Access control**: per-team read and write grants managed by admins
    """,
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)

app.add_exception_handler(DomainError, domain_error_handler)  # type: ignore[arg-type]

# Add observability middleware
app.add_middleware(ObservabilityMiddleware)

# Set all CORS enabled origins
if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)
# Public contact and quote forms keep their original paths
app.include_router(support.router, prefix="/api")
