"""
Main FastAPI Application

Entry point for the multi-tenant task board.
Configures middleware, routes, error handlers, and startup/shutdown events.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import time
import uuid
from contextlib import asynccontextmanager

from taskboard import __version__
from taskboard.config import get_settings
from taskboard.database import engine, init_db, SessionLocal
from taskboard.middleware.rate_limit import RateLimitMiddleware
from taskboard.utils.logging import request_id_var, setup_logging, get_logger
from taskboard.core.exceptions import ServiceError

# Import routers
from taskboard.api.endpoints import audit_logs, auth, projects, tasks, tenants, users

settings = get_settings()

# Setup logging
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=(settings.ENVIRONMENT == "production")
)
logger = get_logger(__name__)


def _bootstrap_super_admin() -> None:
    from taskboard.services.auth import ensure_super_admin

    db = SessionLocal()
    try:
        user = ensure_super_admin(db, settings.SUPERADMIN_EMAIL, settings.SUPERADMIN_PASSWORD)
        logger.info(f"Super admin available: {user.email}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    # Dev only; other environments run migrations
    if settings.ENVIRONMENT == "development":
        logger.warning("Initializing database tables (dev mode)")
        init_db()

    if settings.SUPERADMIN_EMAIL and settings.SUPERADMIN_PASSWORD:
        _bootstrap_super_admin()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Multi-Tenant Task Board",
    description="Multi-tenant project and task management with tenant isolation, RBAC, quotas and audit trail",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

allowed_origins = [settings.FRONTEND_URL]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins if settings.ENVIRONMENT != "development" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """
    Tag the request with an id (the caller's X-Request-ID, or a fresh one)
    for log correlation, and report the id and duration in response headers.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    token = request_id_var.set(request_id)
    start_time = time.time()
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(time.time() - start_time)
    return response


if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """
    Render expected errors (auth, policy, quota, not found, conflict...).

    Their messages are written to be shown to the caller as-is.
    """
    if exc.status_code >= 500:
        logger.error(f"Service error: {exc.detail}", extra={"path": request.url.path})
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.detail, "type": exc.error_type},
        headers=exc.headers or {}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies or parameters."""
    errors = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "detail": "Validation failed",
            "type": "validation_error",
            "errors": errors,
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler.

    Full details go to the log; the caller only ever sees a generic error.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None)
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "detail": "Internal server error",
            "type": "internal_error"
        }
    )


# ============================================================================
# ROUTES
# ============================================================================

@app.get("/health", tags=["health"])
def health_check():
    """Health check for load balancers. Reports 503 when the database is unreachable."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "disconnected"}
        )

    return {
        "status": "healthy",
        "database": "connected",
        "environment": settings.ENVIRONMENT,
        "version": __version__
    }


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Multi-Tenant Task Board API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# All routes live under /api
app.include_router(auth.router, prefix="/api")
app.include_router(tenants.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(projects.router, prefix="/api")
app.include_router(tasks.router, prefix="/api")
app.include_router(audit_logs.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    uvicorn.run(
        "taskboard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
