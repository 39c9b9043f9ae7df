"""
Association Cache - Main FastAPI Application
Cache-aside entity and association lookups over MariaDB
"""

import os
import logging
from datetime import datetime
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from models.schemas import HealthResponse, ErrorResponse
from api.routes import router as api_router
from errors import AssociationCacheError
from services.activation import init_caching, shutdown_caching
from services.association_cache import AssociationCache
from services.association_config import AssociationConfig
from services.entity_types import TypeRegistry

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_association_cache(store=None, config_path: Optional[str] = None) -> AssociationCache:
    """
    Build the AssociationCache for this process.

    Args:
        store: EntityStore to use (defaults to MySQLEntityStore)
        config_path: YAML declarations (defaults to ASSOCIATIONS_CONFIG)
    """
    types = TypeRegistry()
    if store is None:
        from db.store import MySQLEntityStore
        store = MySQLEntityStore(types)

    association_cache = AssociationCache(store, types)

    config_path = config_path or os.getenv('ASSOCIATIONS_CONFIG')
    if config_path:
        AssociationConfig.from_yaml(config_path).apply(association_cache)
    else:
        logger.warning("ASSOCIATIONS_CONFIG not set; no entity types registered")
    return association_cache


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle manager for FastAPI app.
    Runs on startup and shutdown.
    """
    logger.info("=" * 80)
    logger.info("Association Cache Starting")
    logger.info("=" * 80)

    from db.database import check_connection
    if check_connection():
        logger.info("✓ Database connection successful")
    else:
        logger.error("✗ Database connection failed")

    init_caching()
    if getattr(app.state, 'association_cache', None) is None:
        app.state.association_cache = build_association_cache()

    logger.info(f"API running on http://{os.getenv('API_HOST', '0.0.0.0')}:{os.getenv('API_PORT', 8000)}")
    logger.info("=" * 80)

    yield

    logger.info("Association Cache shutting down...")
    shutdown_caching()
    app.state.association_cache.cache.clear()


app = FastAPI(
    title=os.getenv('API_TITLE', 'Association Cache'),
    version=os.getenv('API_VERSION', '0.1.0'),
    description="Cache-aside entity and association lookups",
    lifespan=lifespan
)

app.include_router(api_router)


# =============================================================================
# Centralized Error Handling
# =============================================================================

@app.exception_handler(AssociationCacheError)
async def domain_error_handler(request: Request, exc: AssociationCacheError):
    """
    Centralized handler for all domain errors.

    Translates domain errors to HTTP responses with consistent format.
    """
    logger.error(f"Domain error: {exc.error_code} - {exc.message}")
    if exc.details:
        logger.error(f"  Details: {exc.details}")

    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details if exc.details else None
        ).model_dump(mode='json')
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unexpected exceptions.

    Logs the full error but returns generic message to client.
    """
    logger.exception(f"Unexpected error on {request.method} {request.url.path}")

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred"
        ).model_dump(mode='json')
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with path and status code
    """
    logger.info(f"→ {request.method} {request.url.path}")

    response = await call_next(request)

    status_emoji = "✓" if response.status_code < 400 else "✗"
    logger.info(f"{status_emoji} {request.method} {request.url.path} → {response.status_code}")

    return response


@app.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["System"]
)
async def health_check():
    """
    Health check endpoint.
    Returns OK if the API is running.
    """
    return HealthResponse(
        status="ok",
        timestamp=datetime.utcnow()
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv('API_HOST', '0.0.0.0'),
        port=int(os.getenv('API_PORT', 8000)),
        reload=True,
        log_level="info"
    )
