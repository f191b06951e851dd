"""Main FastAPI application entry point."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import sentry_sdk
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator, metrics
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from budget_engine.config import settings
from budget_engine.database import AsyncSessionLocal, close_db, init_db
from budget_engine.logging_config import (
    bind_contextvars,
    clear_contextvars,
    configure_logging,
    get_logger,
)
from budget_engine.routes import budgets, cron, templates

# Configure logging
configure_logging()
logger = get_logger(__name__)

# =============================================================================
# Sentry Integration (Error Tracking)
# =============================================================================
if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=None, event_level=None),
        ],
        traces_sample_rate=settings.sentry_traces_sample_rate,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
        send_default_pii=False,
        attach_stacktrace=True,
    )
    logger.info("Sentry initialized", dsn_configured=True, environment=settings.environment)
else:
    logger.debug("Sentry not configured - no DSN provided")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info("Starting application", app_name=settings.app_name, version=settings.app_version)

    try:
        await init_db()
        logger.info("Application started successfully")

        yield

    finally:
        logger.info("Shutting down application")
        await close_db()
        logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Budget periods, template generation, rollover and transfers for family budgets",
    debug=settings.debug,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Add rate limiter
app.state.limiter = budgets.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add GZip compression for responses > 1KB
app.add_middleware(GZipMiddleware, minimum_size=1000)

# =============================================================================
# Prometheus Metrics Instrumentation
# =============================================================================
if settings.enable_metrics:
    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/health/live", "/health/ready", "/metrics"],
    )
    instrumentator.add(
        metrics.default(
            metric_namespace="budget_engine",
            metric_subsystem="http",
            latency_lowr_buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )
    )
    instrumentator.instrument(app).expose(app, include_in_schema=False, should_gzip=True)
    logger.info("Prometheus /metrics endpoint enabled")

# Configure CORS (outermost so all responses get CORS headers)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def add_request_metadata(request: Request, call_next) -> Response:
    """Add request ID and timing to all requests."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    start_time = time.perf_counter()

    request.state.request_id = request_id

    # Bind request context for all logs in this request
    clear_contextvars()
    bind_contextvars(request_id=request_id, path=request.url.path, method=request.method)
    family_id = request.headers.get("X-Family-ID")
    if family_id:
        bind_contextvars(family_id=family_id)

    response = await call_next(request)

    process_time = time.perf_counter() - start_time
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = f"{process_time:.4f}"

    logger.info(
        "Request completed",
        status_code=response.status_code,
        process_time_ms=round(process_time * 1000, 2),
    )

    return response


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/health/ready")
async def readiness_check() -> dict:
    """Readiness check - verifies the database is reachable.

    Returns:
        Detailed health status of all components
    """
    checks = {"status": "healthy", "checks": {}}

    try:
        start = time.perf_counter()
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        latency = (time.perf_counter() - start) * 1000
        checks["checks"]["database"] = {"status": "healthy", "latency_ms": round(latency, 2)}
    except Exception as e:
        checks["checks"]["database"] = {"status": "unhealthy", "error": str(e)}
        checks["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=checks)

    return checks


@app.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness check - basic check that the service is running."""
    return {"status": "alive"}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON error response
    """
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


@app.exception_handler(DBAPIError)
async def storage_exception_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """Database errors outside the engine's own translation are retryable 503s."""
    logger.warning(
        "Database error surfaced to client",
        path=request.url.path,
        method=request.method,
        error=str(exc.orig),
    )

    return JSONResponse(
        status_code=503,
        content={"detail": "Storage temporarily unavailable, retry later"},
        headers={"Retry-After": "1"},
    )


# Templates first: "/api/budgets/templates" must not be captured by "/api/budgets/{budget_id}"
app.include_router(templates.router, prefix="/api/budgets/templates", tags=["budget-templates"])
app.include_router(budgets.router, prefix="/api/budgets", tags=["budgets"])
app.include_router(cron.router, prefix="/api/cron", tags=["cron"])
