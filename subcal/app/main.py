"""
FastAPI application entry point.

Run with:
    uvicorn subcal.app.main:app --reload --port 3000

Or from the project root (HOST, PORT and RELOAD come from settings):
    python -m subcal.app.main
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from subcal.app.core.config import settings
from subcal.app.core.logging_config import setup_logging, get_logger
from subcal.app.core.errors import register_error_handlers
from subcal.app.core.middleware import RequestLoggingMiddleware
from subcal.app.core.health import HealthStatus, run_health_check

# ── API routers ──
from subcal.app.api.v1.billing import router as billing_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown events."""
    logger.info(
        "Starting %s v%s [%s] dispatch_mode=%s",
        settings.APP_NAME, settings.APP_VERSION,
        settings.ENVIRONMENT, settings.DISPATCH_MODE,
    )
    logger.info("Email sender: %s", settings.EMAIL_USER or "(not configured)")
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Billing reminders for tracked subscriptions. Finds subscriptions "
        "billing exactly N days from today and notifies the user by email "
        "and Telegram, reporting the outcome of every channel."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware stack (order matters — outermost first) ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_middleware(RequestLoggingMiddleware)

# ── Error handlers ──
register_error_handlers(app)

# ── Register routers ──
app.include_router(billing_router)


# ── Root & health endpoints ──

@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "modules": ["due-date-matching", "billing-notifications"],
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Channel configuration health."""
    report = await run_health_check()
    return report.to_dict()


@app.get("/health/live", tags=["health"])
async def liveness():
    """Kubernetes liveness probe — is the process alive?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["health"])
async def readiness():
    """Kubernetes readiness probe — can we serve traffic?"""
    report = await run_health_check()
    if report.status == HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "subcal.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload_enabled,
        log_config=None,
    )
