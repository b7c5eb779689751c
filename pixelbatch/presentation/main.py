import os
import logging
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, APIRouter
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn
from contextlib import asynccontextmanager

from pixelbatch.core.config import settings
from pixelbatch.core.exceptions import (
    ImageProcessingError,
    general_exception_handler,
    http_exception_handler,
    image_processing_exception_handler,
    validation_exception_handler,
)
from pixelbatch.core.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
)
from pixelbatch.presentation.api.v1.routers import batches
from pixelbatch.presentation.api.v1.routers import health
from pixelbatch.presentation.api.v1.routers import presets


# Configure logging: console always, rotating file when LOG_FILE is set
log_handlers = [logging.StreamHandler()]
if settings.log_file:
    os.makedirs(os.path.dirname(settings.log_file) or ".", exist_ok=True)
    log_handlers.append(
        RotatingFileHandler(
            settings.log_file, maxBytes=5 * 1024 * 1024, backupCount=2, encoding="utf-8"
        )
    )
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format=settings.log_format,
    datefmt=settings.log_date_format,
    handlers=log_handlers,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info(
        "Starting Pixelbatch API (segmentation backend: %s)...",
        settings.segmentation_backend,
    )
    yield
    logger.info("Shutting down Pixelbatch API...")


def create_application() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        calls=settings.max_requests_per_minute,
        period=60,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(ImageProcessingError, image_processing_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include API routers under versioned prefix
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(batches.router, tags=["batches"])
    api_v1.include_router(presets.router)
    api_v1.include_router(health.router)
    app.include_router(api_v1)

    return app


# Create application instance
app = create_application()

if __name__ == "__main__":
    dev_mode = os.getenv("DEV_MODE", "true").lower() == "true"
    uvicorn.run(
        "pixelbatch.presentation.main:app",
        host=settings.host,
        port=settings.port,
        reload=dev_mode,
    )
