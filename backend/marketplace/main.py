"""
Extension Marketplace API
FastAPI application for publishing, versioning and distributing extensions
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import text

from .config import get_settings
from .database import SessionLocal, init_database
from .middleware.error_handling import register_exception_handlers
from .middleware.metrics import PrometheusMiddleware
from .routes import extensions, publish, publishers, reviews, storage
from .services.metrics import get_metrics_instance

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management."""
    logger.info(f"Starting {settings.app_name} {settings.app_version}...")

    if settings.debug or settings.database_url.startswith("sqlite"):
        # Production schemas are managed by Alembic
        init_database()

    logger.info(f"Bundle storage backend: {settings.storage_backend}")
    yield

    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    description="Publish, version and distribute hash-verified extension bundles",
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "X-Platform", "X-App-Version"],
)

app.add_middleware(PrometheusMiddleware, service_name="marketplace")


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint for container orchestration."""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.app_version,
        "database": "healthy",
    }

    db = None
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["status"] = "degraded"
        health_status["database"] = "unhealthy"
    finally:
        if db is not None:
            db.close()

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=health_status)


@app.get("/metrics")
async def metrics() -> PlainTextResponse:
    """Prometheus metrics endpoint."""
    metrics_data = get_metrics_instance().get_metrics()
    return PlainTextResponse(content=metrics_data, media_type="text/plain; version=0.0.4; charset=utf-8")


app.include_router(publishers.router, prefix="/api/publishers", tags=["Publishers"])
app.include_router(publish.router, prefix="/api/publish", tags=["Publishing"])
app.include_router(extensions.router, prefix="/api/extensions", tags=["Extensions"])
app.include_router(reviews.router, prefix="/api/extensions", tags=["Reviews"])
app.include_router(storage.router, prefix="/api/storage", tags=["Bundle Storage"])


if __name__ == "__main__":
    uvicorn.run(
        "marketplace.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
