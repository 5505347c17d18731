"""
Bus Reservation API - Main Application Entry Point

A seat reservation engine for bus trips demonstrating:
- No double-booked seats under concurrent requests (per bus/date locking or
  optimistic version checks)
- Time-boxed edit and refund policy enforced server-side
- Structured logging with request correlation
- Prometheus metrics for reservation outcomes and lock contention
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from busreserve.core.config import get_settings
from busreserve.core.logging import setup_logging, get_logger
from busreserve.core.metrics import metrics_endpoint
from busreserve.api.router import api_router
from busreserve.api.middleware import RequestLoggingMiddleware
from busreserve.api.exception_handlers import register_exception_handlers
from busreserve.db.session import dispose_engine
from busreserve.infrastructure.redis_client import RedisClient, redis_status
from busreserve.services.strategy_factory import get_reservation_strategy

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    strategy = get_reservation_strategy()
    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        reservation_strategy=strategy.name,
    )

    yield

    await RedisClient.close()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Bus seat reservation API with double-booking protection",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "reservation_strategy": settings.RESERVATION_STRATEGY,
        "redis": await redis_status(),
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
