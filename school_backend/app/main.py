"""
FastAPI Application Entry Point.

This is the main application file for the School Registration Backend.
"""

import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from school_backend.app.api.router import router as api_router
from school_backend.app.core.audit_middleware import AuditMiddleware
from school_backend.app.core.config import settings
from school_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    storage_exception_handler,
    generic_exception_handler
)
from school_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from school_backend.app.core.rate_limit import (
    MemoryRateLimitStorage, RateLimiter, RateLimitMiddleware, RedisRateLimitStorage
)
from school_backend.app.core.redis_client import create_redis_client, ping_redis
from school_backend.app.core.security_headers import SecurityHeadersMiddleware
from school_backend.app.db.bootstrap import create_tables, seed_default_admin
from school_backend.app.db.session import AsyncSessionLocal, engine
from school_backend.app.services.audit import AuditTrail

configure_logging()
logger = logging.getLogger("school_registry")

redis_client = create_redis_client() if settings.rate_limit_storage == "redis" else None

if redis_client is not None:
    rate_limit_storage = RedisRateLimitStorage(redis_client)
else:
    rate_limit_storage = MemoryRateLimitStorage()

audit_trail = AuditTrail(AsyncSessionLocal)
rate_limiter = RateLimiter(rate_limit_storage, enabled=settings.rate_limit_enabled)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates the upload directory, database tables and the default admin.
    2. Waits for queued audit writes on shutdown.
    """
    os.makedirs(settings.upload_dir, exist_ok=True)
    await create_tables(engine)
    async with AsyncSessionLocal() as db:
        await seed_default_admin(db)
    logger.info("%s started", settings.app_name)
    yield
    await app.state.audit_trail.drain()
    if redis_client is not None:
        await redis_client.aclose()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    description="Student registration backend with audit trail and rate limiting",
    lifespan=lifespan,
)
app.state.audit_trail = audit_trail
app.state.rate_limiter = rate_limiter

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Last added runs first: security headers, observability, CORS, rate limit, audit
app.add_middleware(AuditMiddleware, audit_trail=audit_trail)
app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


async def _health() -> dict:
    health = {
        "status": "healthy",
        "app_name": settings.app_name,
    }
    if redis_client is not None:
        health["redis"] = "up" if await ping_redis(redis_client) else "down"
    return health


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return await _health()


@app.get(f"{settings.api_prefix}/health", tags=["Health"])
async def api_health_check():
    return await _health()


# Include API router
app.include_router(api_router, prefix=settings.api_prefix)

# Uploaded photos and birth certificates
app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")
