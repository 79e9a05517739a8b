"""
FastAPI application with database pool lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from kinship.config import settings
from kinship.db.pool import db_pool
from kinship.db.schema import ensure_schema
from kinship.features.relationship_intel import relationships_router
from kinship.infrastructure.observability.logging import get_logger, setup_logging
from kinship.routes import health

setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the pool and apply the schema on startup; close the pool on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    await db_pool.initialize()
    try:
        await ensure_schema()
    except Exception as e:
        logger.error("Failed to apply schema", error=str(e))
        await db_pool.close()
        raise

    logger.info("All services initialized successfully", services=["database_pool"])

    yield

    logger.info("Application shutting down")
    await db_pool.close()


app = FastAPI(
    title="Kinship",
    description="Relationship intelligence over sent communication history",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(relationships_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
