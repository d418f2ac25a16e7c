"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from api.routes import health, etl, data, stats
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.database import async_session_maker, dispose_engine
from core.exceptions import (
    ETLException,
    AlreadyRunningError,
    OrchestrationFatalError,
    DatabaseConnectionError,
)
from core.logging import setup_logging
from ingestion.connectors.registry import build_connectors
from ingestion.loaders.postgres_store import PostgresStore
from ingestion.runner import ETLOrchestrator
from ingestion.scheduler import ETLScheduler
from schemas.api import ErrorResponse
import logging

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="COVID-19 KMS ETL Backend API",
    description="ETL backend collecting COVID-19 discourse from video, news and social sources",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(etl.router)
app.include_router(data.router)
app.include_router(stats.router)


# ============================================================================
# Exception Handlers
# ============================================================================

def _error_response(status_code: int, exc: ETLException) -> JSONResponse:
    body = ErrorResponse(
        error=exc.__class__.__name__,
        detail=exc.message,
        context=exc.context
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@app.exception_handler(AlreadyRunningError)
async def already_running_handler(request: Request, exc: AlreadyRunningError):
    return _error_response(409, exc)


@app.exception_handler(OrchestrationFatalError)
async def orchestration_fatal_handler(request: Request, exc: OrchestrationFatalError):
    logger.error(f"Run failed: {exc}")
    return _error_response(503, exc)


@app.exception_handler(DatabaseConnectionError)
async def database_unavailable_handler(request: Request, exc: DatabaseConnectionError):
    logger.error(f"Database unavailable: {exc}")
    return _error_response(503, exc)


@app.exception_handler(ETLException)
async def etl_exception_handler(request: Request, exc: ETLException):
    logger.error(f"Unhandled ETL error: {exc}")
    return _error_response(500, exc)


# ============================================================================
# Lifecycle
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    setup_logging()
    logger.info("Starting COVID-19 KMS ETL Backend API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    store = PostgresStore(async_session_maker, timeout_seconds=settings.ETL_PERSISTENCE_TIMEOUT_SECONDS)
    orchestrator = ETLOrchestrator(store, build_connectors(settings.ETL_SOURCES, settings), settings)
    app.state.store = store
    app.state.orchestrator = orchestrator
    logger.info(f"Sources: {', '.join(orchestrator.sources)}")

    app.state.scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = ETLScheduler(orchestrator, interval_minutes=settings.SCHEDULER_INTERVAL_MINUTES)
        scheduler.start()
        app.state.scheduler = scheduler


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down COVID-19 KMS ETL Backend API")
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.stop()
    await dispose_engine()


@app.get("/")
@app.get("/api")
async def root():
    """Root endpoint"""
    return {
        "message": "COVID-19 KMS ETL Backend API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "run": "/api/etl/run",
            "extract": "/api/etl/extract",
            "transform": "/api/etl/transform",
            "cancel": "/api/etl/cancel",
            "status": "/api/etl/status",
            "data": "/api/etl/data",
            "raw_data": "/api/etl/data/raw",
            "summary": "/api/etl/data/summary",
            "sentiment": "/api/etl/data/sentiment",
            "word_frequency": "/api/etl/data/word-frequency",
            "cleanup_sentiment": "/api/etl/cleanup/sentiment",
            "stats": "/stats"
        }
    }
