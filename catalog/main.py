"""Content Catalog API - FastAPI Application."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog.api.v1.router import api_router
from catalog.config import get_settings
from catalog.core.cache import get_cache
from catalog.db.database import get_db, init_db
from catalog.db.models import Product, RawHtmlData
from catalog.ingestion.scheduler import scheduler, start_scheduler, stop_scheduler
from catalog.logging import configure_logging
from catalog.middleware import CorrelationIDMiddleware

configure_logging()

logger = logging.getLogger(__name__)
settings = get_settings()

# 100 requests per minute per IP; mutation endpoints apply stricter limits via decorators
limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    await init_db()

    if settings.enable_scheduler:
        start_scheduler()
    else:
        logger.info("In-process scheduler disabled, batch jobs run via /api/cron")

    yield

    stop_scheduler()
    await get_cache().close()


app = FastAPI(
    title=settings.app_name,
    description="Faceted product catalog with performer, tag and sale filters",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Parameter validation failures use the 400 error envelope."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
        message = f"Invalid {field}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


# CORS middleware - restricted methods and headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Cron-Secret", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID"],  # Allow frontend to read correlation ID
)

# Correlation ID middleware for request tracing
app.add_middleware(CorrelationIDMiddleware)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/health/db")
async def db_status(db: AsyncSession = Depends(get_db)):
    """Check database status and ingestion backlog."""
    try:
        result = await db.execute(select(func.count()).select_from(Product))
        product_count = result.scalar_one_or_none() or 0

        result = await db.execute(
            select(func.count()).select_from(RawHtmlData).where(RawHtmlData.processed_at.is_(None))
        )
        unprocessed_pages = result.scalar_one_or_none() or 0

        job = scheduler.get_job("process_raw_data")
        next_raw_data_run = job.next_run_time.isoformat() if job and job.next_run_time else None

        return {
            "status": "healthy",
            "has_data": product_count > 0,
            "product_count": product_count,
            "unprocessed_pages": unprocessed_pages,
            "next_raw_data_run": next_raw_data_run,
        }
    except Exception as e:
        logger.error(f"Health check DB error: {e}")
        return {
            "status": "error",
            "has_data": False,
            "product_count": 0,
            "error": "Database health check failed",
        }


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }
