# commentflow/app/main.py
"""
FastAPI Main Application
Comment analysis pipeline API
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from commentflow import __version__
from commentflow.api.routers import analysis_router
from commentflow.app.config import get_config, setup_logging, validate_config
from commentflow.app.database import db_manager
from commentflow.infrastructure.cache import get_typed_cache

logger = logging.getLogger(__name__)


# ============================================================================
# Application Lifecycle Management
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown events
    """
    # ========== STARTUP ==========
    logger.info("🚀 Starting comment analysis API...")

    config = get_config()
    setup_logging(config)

    validation_result = validate_config(config)
    if not validation_result["valid"]:
        logger.error("❌ Configuration validation failed!")
        for error in validation_result["errors"]:
            logger.error(f"  - {error}")
        raise RuntimeError("Invalid configuration")

    for warning in validation_result["warnings"]:
        logger.warning(f"  ⚠️  {warning}")

    cache = get_typed_cache()
    logger.info(f"✅ Cache ready (namespace={cache.environment})")

    try:
        await db_manager.create_tables()
        logger.info("✅ Database initialized successfully")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        raise

    logger.info("✅ Application startup complete!")

    yield

    # ========== SHUTDOWN ==========
    logger.info("🛑 Shutting down application...")
    await db_manager.dispose()
    logger.info("✅ Application shutdown complete")


# ============================================================================
# FastAPI Application Instance
# ============================================================================


def create_app() -> FastAPI:
    """
    FastAPI application factory
    Creates and configures the FastAPI application
    """
    config = get_config()

    app = FastAPI(
        title="Comment Analysis Pipeline",
        description=config.get(
            "app.description",
            "Comment import, translation and keyword classification pipeline",
        ),
        version=__version__,
        lifespan=lifespan,
        debug=config.api.debug,
    )

    _register_exception_handlers(app)

    @app.get("/health", tags=["System"])
    async def health_check():
        return {"status": "healthy", "version": __version__, "env": config.environment}

    app.include_router(analysis_router, prefix=config.api.prefix)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTP error: {exc.status_code} - {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.detail,
                "status_code": exc.status_code,
                "path": str(request.url),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={"error": "Validation Error", "details": jsonable_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": str(exc),
                "path": str(request.url),
            },
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


app = create_app()


# ============================================================================
# Development Server Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    config = get_config()

    uvicorn.run(
        "commentflow.app.main:app",
        host=config.api.host,
        port=config.api.port,
        reload=config.api.debug,
        log_level=config.logging.level.lower(),
    )
