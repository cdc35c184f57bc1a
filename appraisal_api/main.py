"""
Appraisal Platform API.

Docs live at the root (/docs, /openapi.json); every business router is
mounted under the API prefix through routers/api_router.py.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import appraisal_api.models  # noqa: F401  Force model registration with SQLAlchemy
from appraisal_api import database
from appraisal_api.core.config import settings
from appraisal_api.core.exceptions import AppException
from appraisal_api.core.logging import request_id_var, setup_logging
from appraisal_api.core.limiter import limiter
from appraisal_api.core.middleware import CorrelationIdMiddleware, LoggingMiddleware
from appraisal_api.routers.api_router import api_router

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} v{settings.version} ({settings.environment})")
    try:
        database.init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise
    if not settings.enable_analytics:
        logger.info("Performance analytics disabled; committee scores only")
    if not settings.push.enabled:
        logger.info("OneSignal not configured; notifications are in-app only")

    yield

    logger.info("Gracefully shutting down...")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Employee performance appraisals with committee review, training and attendance",
    docs_url="/docs",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# ============================================================================
# RATE LIMITER
# ============================================================================
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ============================================================================
# MIDDLEWARE STACK
# Last added runs first: CORS -> Correlation ID -> Logging
# ============================================================================
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[settings.request_id_header, "X-Process-Time"],
)


# ============================================================================
# EXCEPTION HANDLERS
# Every error body is {"success": false, "errors": [...], "request_id": ...}
# ============================================================================
def error_response(status_code: int, errors: List[Dict], headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    content = {"success": False, "errors": errors}
    request_id = request_id_var.get()
    if request_id:
        content["request_id"] = request_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        # loc is usually ('body', 'field_name')
        {"field": str(error["loc"][-1]) if error["loc"] else "unknown", "msg": error["msg"]}
        for error in exc.errors()
    ]
    logger.warning(f"Validation failed on {request.url.path}: {errors}")
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, errors)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Domain errors: workflow transitions, locks, permissions, validation."""
    logger.warning(f"{exc.error_code}: {exc.message}", extra={"code": exc.error_code, "path": request.url.path})
    error = {"msg": exc.message, "code": exc.error_code}
    if exc.details:
        error["details"] = exc.details
    return error_response(exc.status_code, [error])


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """A unique constraint lost a race with a concurrent request."""
    logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
    return error_response(status.HTTP_409_CONFLICT, [{"msg": "Conflicting record already exists", "code": "CONFLICT"}])


@app.exception_handler(StarletteHTTPException)
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, [{"msg": msg}], headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled server error", extra={"path": request.url.path})
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, [{"msg": "An unexpected server error occurred."}])


app.include_router(api_router, prefix=settings.api_prefix)


# ============================================================================
# OPERATIONAL ENDPOINTS (at root level)
# ============================================================================
@app.get("/", tags=["Health"])
def root():
    return {
        "message": "Appraisal Platform API",
        "version": settings.version,
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness check for load balancers and orchestrators."""
    return {
        "status": "up",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
        "environment": settings.environment,
    }


@app.get("/readiness", tags=["Health"])
def readiness_check():
    """Ready once the database answers; push and analytics are optional."""
    try:
        database.ping()
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not ready")
    return {
        "status": "ready",
        "components": {
            "database": "connected",
            "push": "configured" if settings.push.enabled else "disabled",
            "analytics": "enabled" if settings.enable_analytics else "disabled",
        },
    }


@app.get("/liveness", tags=["Health"])
def liveness_check():
    return health_check()
