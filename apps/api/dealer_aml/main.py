"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from dealer_aml.core.config import settings
from dealer_aml.core.structured_logging import configure_logging
from dealer_aml.db.session import engine

configure_logging(settings.LOG_LEVEL)

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Dealer AML API",
    description="SAT vehicle-dealer alert tracking and monthly notice filing",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Organization-ID"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
)

# ============================================================================
# Routers
# ============================================================================

from dealer_aml.routers import alert_rules, alerts, notices  # noqa: E402

app.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
app.include_router(alert_rules.router, prefix="/alert-rules", tags=["alert-rules"])
app.include_router(notices.router, prefix="/notices", tags=["notices"])


@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
