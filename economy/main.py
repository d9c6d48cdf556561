"""
Gift economy FastAPI application
Main entry point for the API process
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from economy.api.errors import register_error_handlers
from economy.api.health import router as health_router
from economy.api.v1.admin import router as admin_router
from economy.api.v1.gifts import router as gifts_router
from economy.api.v1.grants import router as grants_router
from economy.api.v1.wallet import router as wallet_router
from economy.core.config import settings
from economy.core.logging import configure_logging

logger = logging.getLogger(__name__)

# Prometheus metrics
REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the services once per process and own the sweep timers."""
    if getattr(app.state, "services", None) is None:
        from economy.core.redis_client import redis_client
        from economy.db.session import AsyncSessionLocal
        from economy.services.container import build_services

        configure_logging()
        app.state.services = build_services(AsyncSessionLocal, redis_client)

    scheduler = app.state.services.scheduler
    if settings.scheduler_enabled:
        scheduler.start_all()
        logger.info("Sweep scheduler started")
    try:
        yield
    finally:
        await scheduler.shutdown()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Gift Economy API",
        description="Wallets, gift transfers, paid grants and expiry sweeps",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = None

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()
        REQUEST_DURATION.labels(
            method=request.method,
            endpoint=request.url.path
        ).observe(time.time() - start_time)
        return response

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(gifts_router, prefix=f"{settings.api_v1_prefix}/gifts", tags=["gifts"])
    app.include_router(grants_router, prefix=f"{settings.api_v1_prefix}/grants", tags=["grants"])
    app.include_router(wallet_router, prefix=f"{settings.api_v1_prefix}/wallet", tags=["wallet"])
    app.include_router(admin_router, prefix=f"{settings.api_v1_prefix}/admin", tags=["admin"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "economy.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
