"""FastAPI application factory for the reconciliation admin API"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from billing_reconciler.api.middleware import RequestIDMiddleware, MetricsMiddleware
from billing_reconciler.api.v1 import identifiers, invoices, reports, sync
from billing_reconciler.infrastructure.observability.logging import setup_logging
from billing_reconciler.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Billing Reconciler",
        description="Invoice payment reconciliation and document numbering",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(sync.router, prefix="/v1", tags=["sync"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])
    app.include_router(invoices.router, prefix="/v1", tags=["invoices"])
    app.include_router(identifiers.router, prefix="/v1", tags=["identifiers"])

    return app


app = create_app()
