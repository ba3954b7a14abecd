"""
FastAPI application entry point.
Main application instance with middleware, error handlers and route configuration.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import asyncio
import logging
import time

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from gallery.config import settings
from gallery.database import close_db, get_db, init_db
from gallery.errors import GalleryError
from gallery.routes import albums, categories, photos, stats
from gallery.services.storage_service import CloudinaryStorage, get_storage
from gallery.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
)

app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and duration. Request bodies are never read here."""
    method = request.method
    path = request.url.path
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"Error processing {method} {path}: {str(e)}\n"
            f"  Error type: {type(e).__name__}",
            exc_info=True
        )
        raise

    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{method} {path} -> {response.status_code} ({duration_ms:.1f}ms)")
    return response


app.include_router(categories.router, prefix=settings.API_PREFIX)
app.include_router(albums.router, prefix=settings.API_PREFIX)
app.include_router(photos.router, prefix=settings.API_PREFIX)
app.include_router(stats.router, prefix=settings.API_PREFIX)


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Build the JSON error envelope shared by every handler."""
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "error": error,
            "message": message,
            "details": details or {},
            "path": request.url.path,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


def validation_fields(errors: List[Dict[str, Any]]) -> List[str]:
    """Field names from pydantic error locations, without the body/query/path prefix."""
    fields = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "cookie", "form"):
            loc = loc[1:]
        name = ".".join(loc) or "body"
        if name not in fields:
            fields.append(name)
    return fields


# Exception Handlers
@app.exception_handler(GalleryError)
async def gallery_exception_handler(request: Request, exc: GalleryError):
    """Domain errors carry their own status and code."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}"
    )
    return error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = exc.errors()
    fields = validation_fields(errors)
    logger.warning(f"Validation error on {request.method} {request.url.path}: {fields}")
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "ValidationError",
        f"Invalid request: {', '.join(fields)}",
        {"fields": fields, "errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions (404 routes, 405, etc.)."""
    logger.warning(f"HTTPException on {request.method} {request.url.path}: {exc.status_code} {exc.detail}")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    details = exc.detail if isinstance(exc.detail, dict) else None
    return error_response(request, exc.status_code, "HTTPException", message, details)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded on {request.method} {request.url.path}: {exc.detail}")
    return error_response(
        request,
        status.HTTP_429_TOO_MANY_REQUESTS,
        "RateLimitExceeded",
        f"Rate limit exceeded: {exc.detail}",
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}:\n"
        f"  Error: {str(exc)}\n"
        f"  Error type: {type(exc).__name__}",
        exc_info=True
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An unexpected error occurred",
    )


# Root Endpoints
@app.get("/")
async def root():
    """API information."""
    return {
        "message": settings.API_TITLE,
        "status": "healthy",
        "version": settings.API_VERSION,
        "docs": "/docs",
    }


@app.get("/api/version")
async def api_version():
    """API version and the versioned endpoint list."""
    prefix = settings.API_PREFIX
    return {
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
        "endpoints": {
            "categories": f"{prefix}/categories",
            "albums": f"{prefix}/albums",
            "photos": f"{prefix}/photos",
            "upload": f"{prefix}/photos/upload",
            "stats": f"{prefix}/stats",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """
    Database health check endpoint.
    Tests database connection and returns status.
    """
    try:
        result = await db.execute(text("SELECT 1"))
        return {
            "database": "connected",
            "status": "healthy",
            "result": result.scalar()
        }
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}", exc_info=True)
        return {
            "database": "error",
            "status": "unhealthy",
            "error": "Database connection failed"
        }


@app.get("/health/storage")
async def health_check_storage(storage: CloudinaryStorage = Depends(get_storage)):
    """
    Storage health check endpoint.
    Validates the Cloudinary configuration.
    """
    if storage.validate_config():
        return {
            "storage": "configured",
            "status": "healthy",
            "cloud_name": storage.cloud_name
        }
    return {
        "storage": "not_configured",
        "status": "warning",
        "message": "Cloudinary credentials not set in environment variables"
    }


@app.on_event("startup")
async def startup_event():
    """
    Initialize database connection on application startup.
    Non-blocking: app will start even if database connection fails.
    """
    logger.info(f"CORS allowed origins: {settings.CORS_ORIGINS}")

    try:
        await init_db()
        logger.info("Database connection established successfully")
    except Exception as e:
        logger.error(
            f"Failed to initialize database on startup: {str(e)}\n"
            f"The application will continue to run, but database-dependent endpoints will fail.\n"
            f"Please check your DATABASE_URL configuration and network connectivity."
        )


@app.on_event("shutdown")
async def shutdown_event():
    """Close storage and database connections on application shutdown."""
    try:
        await get_storage().close()
        await close_db()
    except Exception as e:
        # Cancellation during shutdown is expected
        if not isinstance(e, (KeyboardInterrupt, asyncio.CancelledError)):
            logger.warning(f"Error during shutdown: {str(e)}")
