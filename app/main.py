"""
Employee Attendance Service - Main Application Entry Point.

This service exposes a GraphQL API for:
- Employee records (create, update, filtered and paginated listings)
- Daily attendance marking with automatic attendance percentage upkeep
- Aggregate employee and attendance statistics
- Kafka event publishing for downstream consumers
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api.schema import create_graphql_router
from app.core.config import settings
from app.core.database import MongoStore
from app.core.kafka import KafkaProducer
from app.core.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Employee Attendance Service...")

    store = MongoStore(
        settings.MONGODB_URI,
        settings.MONGODB_DATABASE,
        timeout_ms=settings.MONGODB_TIMEOUT_MS,
    )
    await store.connect()
    app.state.store = store

    logger.info("Initializing Kafka producer...")
    await KafkaProducer.start()

    logger.info("Employee Attendance Service startup complete")

    yield

    # Shutdown
    logger.info("Employee Attendance Service shutting down...")

    logger.info("Stopping Kafka producer...")
    await KafkaProducer.stop()

    await store.close()

    logger.info("Employee Attendance Service shutdown complete")


# Initialize FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Employee and attendance management GraphQL API",
    lifespan=lifespan,
)


# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


# Include routers
app.include_router(create_graphql_router(), prefix="/graphql")


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint for container orchestration and monitoring.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@app.get("/ready", tags=["health"])
async def readiness_check(request: Request):
    """
    Readiness check endpoint.
    Verifies that the database is reachable and, when enabled, Kafka is connected.
    """
    store = getattr(request.app.state, "store", None)
    database_ready = store is not None and await store.ping()
    kafka_ready = KafkaProducer._started or not settings.KAFKA_ENABLED

    all_ready = database_ready and kafka_ready

    return {
        "status": "ready" if all_ready else "not_ready",
        "checks": {
            "database": "ok" if database_ready else "error",
            "kafka_producer": "ok" if kafka_ready else "error",
        },
    }


@app.get("/", tags=["root"])
async def root():
    """
    Root endpoint with service information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "graphql": "/graphql",
    }
