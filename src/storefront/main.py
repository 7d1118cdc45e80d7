"""
Checkout Service - Main FastAPI Application
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from sqlalchemy.exc import InterfaceError, OperationalError

from storefront import __version__
from storefront.api import orders, payments
from storefront.config import settings
from storefront.db.database import StorageHealth, init_database, create_tables
from storefront.errors import Internal, StorefrontError, Unavailable
from storefront.logging_setup import setup_logging
from storefront.models.schemas import HealthResponse
from storefront.tracing import instrument_app, instrument_engine, setup_tracing, shutdown_tracing

# Setup logging
setup_logging(
    service_name=settings.service_name,
    log_level=settings.log_level,
    log_format=settings.log_format,
    environment=settings.environment
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info(f"Starting {settings.service_name} {__version__}")
    logger.info(f"Environment: {settings.environment}")

    provider = None
    if settings.otel_enabled:
        provider = setup_tracing(
            service_name=settings.tracing_service_name,
            version=__version__,
            environment=settings.environment,
            otlp_endpoint=settings.otel_endpoint
        )

    try:
        engine = init_database(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow
        )
        create_tables()
        logger.info("Database initialized successfully")

        if settings.otel_enabled:
            instrument_engine(engine)

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        shutdown_tracing(provider)
        raise

    logger.info(f"{settings.service_name} started successfully")

    yield

    logger.info(f"Shutting down {settings.service_name}")
    shutdown_tracing(provider)
    engine.dispose()


app = FastAPI(
    title="Checkout Service",
    description="Order placement, checkout and payment status tracking",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.otel_enabled:
    instrument_app(app)

app.include_router(orders.router)
app.include_router(payments.router)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint (liveness probe)"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": __version__,
        "timestamp": datetime.now(timezone.utc)
    }


@app.get("/ready")
def readiness_check():
    """Readiness check endpoint (readiness probe)"""
    timestamp = datetime.now(timezone.utc).isoformat()
    if StorageHealth().check():
        return {
            "status": "ready",
            "service": settings.service_name,
            "database": "connected",
            "timestamp": timestamp
        }

    logger.error("Readiness check failed: database unreachable")
    return JSONResponse(
        status_code=503,
        content={
            "status": "not_ready",
            "service": settings.service_name,
            "database": "disconnected",
            "timestamp": timestamp
        }
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.service_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready"
    }


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    """Domain errors carry their own status code and machine-readable kind"""
    if exc.status_code >= 500:
        logger.error(f"{exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def storage_error_handler(request: Request, exc: Exception):
    """Storage backend unreachable outside a service transaction"""
    logger.error(f"Storage error: {exc}")
    error = Unavailable("Database not connected. Please try again later.")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    error = Internal("Internal server error", {"type": exc.__class__.__name__})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
