"""
FastAPI application main module.
Owns the reminder scheduler for the lifetime of the process and exposes the
manual trigger, test notification and health endpoints.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
import time
import uuid
import os
from contextlib import asynccontextmanager
from quifin.api.v1 import api_router
from quifin.utils import setup_logging, get_logger
from quifin.config import ENVIRONMENT, REMINDER_TIMEZONE
from quifin import database
from quifin.jobs.reminder_scheduler import ReminderScheduler
from quifin.services.notification_gateway import NtfyGatewayClient
from quifin.services.reminder_store import SqlReminderStore

# Setup logging before creating the app
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE", "logs/quifin.log"),
    enable_console=True
)

logger = get_logger(__name__)

SERVICE_NAME = "quifin-reminders"
VERSION = "1.0.0"


def build_scheduler() -> ReminderScheduler:
    """Scheduler wired to the configured database and ntfy gateway."""
    return ReminderScheduler(
        SqlReminderStore(database.SessionLocal),
        NtfyGatewayClient(),
        time_zone=REMINDER_TIMEZONE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Creates tables, then starts the reminder scheduler once per process.
    """
    logger.info("Application startup initiated", environment=ENVIRONMENT)

    logger.info("Creating database tables")
    database.init_db()

    # a scheduler placed on app.state before startup is used as-is
    scheduler = getattr(app.state, "reminder_scheduler", None)
    if scheduler is None:
        scheduler = build_scheduler()
        app.state.reminder_scheduler = scheduler
    scheduler.ensure_started()
    logger.info("Application startup completed successfully")
    try:
        yield
    finally:
        logger.info("Application shutdown initiated")
        await scheduler.shutdown()
        logger.info("Application shutdown completed")

app = FastAPI(
    title="QuiFin Reminders",
    description="""
    Charge-date reminders for tracked subscriptions.

    ## Features
    * **Daily sweep** - one run per day at 05:30 in the configured time zone, plus a catch-up run at startup
    * **At-most-once delivery** - a send ledger keyed by subscription, charge date and lead time
    * **ntfy delivery** - plain-text push notifications with optional bearer token
    """,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request ID and access logging
@app.middleware("http")
async def add_request_context_and_logging(request: Request, call_next):
    """Tag each request with an ID (client-supplied or generated) and log its outcome."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    started = time.perf_counter()

    response = await call_next(request)

    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(elapsed_ms)

    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        process_time_ms=elapsed_ms,
        request_id=request_id
    )
    return response

# Error envelopes: every failure leaves the API as {"success": false, "message", "request_id"}
def _error_response(request: Request, status_code: int, message, **extra) -> JSONResponse:
    content = {
        "success": False,
        "message": message,
        **extra,
        "request_id": getattr(request.state, "request_id", "unknown"),
    }
    return JSONResponse(status_code=status_code, content=content)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "Request validation failed",
        errors=exc.errors(),
        request_id=getattr(request.state, "request_id", None),
        path=request.url.path
    )
    return _error_response(request, 422, "Request validation failed", details=jsonable_encoder(exc.errors()))

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # 4xx from the trigger endpoints are expected (misconfigured gateway, production guard)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=getattr(request.state, "request_id", None),
        path=request.url.path
    )
    return _error_response(request, exc.status_code, exc.detail)

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=getattr(request.state, "request_id", None),
        path=request.url.path,
        exc_info=True
    )
    return _error_response(request, 500, "Internal server error")

# Health check endpoints
@app.get("/health", tags=["health"], summary="Basic health check")
async def health_check():
    """Basic health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": time.time(),
    }

@app.get("/health/detailed", tags=["health"], summary="Detailed health check")
async def detailed_health_check(request: Request):
    """Detailed health check with database and scheduler status."""
    health_status = {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": time.time(),
        "checks": {}
    }

    # Database check
    try:
        with database.SessionLocal() as db:
            db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except Exception as e:
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"
        health_status["status"] = "degraded"

    scheduler = getattr(request.app.state, "reminder_scheduler", None)
    if scheduler is None:
        health_status["checks"]["scheduler"] = "not started"
        health_status["status"] = "degraded"
    else:
        snap = scheduler.snapshot()
        health_status["checks"]["scheduler"] = snap.model_dump(mode="json", exclude={"last_result"})
        if not snap.timer_armed:
            health_status["status"] = "degraded"

    return health_status

@app.get("/", tags=["root"])
async def root():
    """API root endpoint with basic information."""
    return {
        "message": "QuiFin Reminders API",
        "version": VERSION,
        "documentation": "/docs",
        "health_check": "/health",
        "api_base": "/api/v1"
    }

app.include_router(api_router, prefix="/api/v1")

# Development server configuration
if __name__ == "__main__":
    import uvicorn

    logger.info("Starting development server")

    uvicorn.run(
        "quifin.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["quifin"],
        log_level="info",
        access_log=True
    )
