"""Main FastAPI application for the phone account service."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI

from phone_accounts.config import settings
from phone_accounts.api.accounts import router as accounts_router
from phone_accounts.api.login import router as login_router
from phone_accounts.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    get_metrics
)
from phone_accounts.models.api_models import HealthResponse
from phone_accounts.observability import configure_logging, setup_observability, instrument_fastapi_app
from phone_accounts.services.account_service import get_account_service

SERVICE_NAME = "phone-account-service"
SERVICE_VERSION = "1.0.0"


configure_logging(settings.log_level)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting phone account service", port=settings.port, host=settings.host)

    setup_observability(
        service_name=SERVICE_NAME,
        service_version=SERVICE_VERSION,
        otlp_endpoint=settings.otlp_endpoint,
        enable_console_export=settings.enable_console_export
    )
    instrument_fastapi_app(app)

    # The record store must be reachable before serving requests
    if not await get_account_service().db.health_check():
        logger.error("Account store is unreachable, aborting startup", supabase_url=settings.supabase_url)
        raise RuntimeError("Account store is unreachable")

    logger.info("Account store connection verified")

    yield

    logger.info("Shutting down phone account service")


def create_app(rate_limit_per_minute: Optional[int] = None) -> FastAPI:
    """Build the FastAPI application with middleware and routers."""
    app = FastAPI(
        title="Phone Account Service",
        description="Phone-number accounts with SMS code verification and a rolling session window",
        version=SERVICE_VERSION,
        lifespan=lifespan
    )

    # Add middleware (order matters - last added is executed first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=rate_limit_per_minute or settings.login_rate_limit_per_minute,
        window_seconds=60
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(accounts_router)
    app.include_router(login_router)

    @app.get("/healthz", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc),
            version=SERVICE_VERSION
        )

    @app.get("/metrics")
    async def metrics_endpoint():
        """Application metrics endpoint."""
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "metrics": get_metrics()
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "phone_accounts.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False
    )
