"""Book Tracker Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from booktracker.api.v1.router import api_v1_router
from booktracker.config import settings
from booktracker.core.exceptions import InvalidQueryError
from booktracker.core.logging import configure_logging
from booktracker.db.session import engine, init_models
from booktracker.schemas import ErrorDetail, ErrorResponse
from booktracker.scrapers.register_adapters import register_all_adapters
from booktracker.services.scheduler import MaintenanceScheduler

configure_logging(debug=settings.DEBUG)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    logger.info(
        "api_starting",
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
        quota_backend=settings.QUOTA_BACKEND,
    )

    # Quota counter table; the app still serves searches if this fails
    try:
        await init_models()
        logger.info("database_tables_ready")
    except Exception as e:
        logger.error("database_init_failed", error=str(e), exc_info=True)

    register_all_adapters()

    # Background maintenance (not in test environments)
    scheduler = None
    if settings.SCHEDULER_ENABLED and settings.ENVIRONMENT != "test":
        scheduler = MaintenanceScheduler()
        scheduler.add_quota_purge_job()
        scheduler.start()
    else:
        logger.info("scheduler_disabled", environment=settings.ENVIRONMENT)

    yield

    logger.info("api_shutting_down")
    if scheduler:
        scheduler.stop()
    await engine.dispose()


app = FastAPI(
    title="Book Tracker API",
    description="Aggregates used book listings from marketplaces, classifieds and search",
    version=settings.VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(code="invalid_query", message=exc.message, field="book_title"),
    )
    return JSONResponse(status_code=400, content=body.model_dump())


# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Book Tracker API",
        "version": settings.VERSION,
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
