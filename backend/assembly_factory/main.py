"""
Assembly Factory Backend Main Application
Flow: main.py -> config -> middleware -> routers -> services -> database
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from assembly_factory.config.settings import get_settings
from assembly_factory.core import database
from assembly_factory.core.delete_confirmation import DeleteConfirmation
from assembly_factory.core.exceptions import AssemblyFactoryException
from assembly_factory.core.logging import get_logger, setup_logging
from assembly_factory.core.staging import StagingStore
from assembly_factory.middleware.logging import LoggingMiddleware

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager."""
    logger.info("Starting Assembly Factory Backend", version=settings.APP_VERSION)

    # Startup
    try:
        # Test database connection
        async with database.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established")

        if settings.CREATE_TABLES_ON_START:
            await database.create_tables()
            logger.info("Factory tables ensured")

        from assembly_factory.seeds.catalog import seed_catalog
        from assembly_factory.services.catalog_service import catalog_service

        async with database.AsyncSessionLocal() as db:
            if settings.SEED_CATALOG_ON_START:
                await seed_catalog(db)
            await catalog_service.refresh_catalog(db)
        logger.info("Parts catalog loaded")
    except Exception as e:
        logger.error("Failed to initialize application", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down Assembly Factory Backend")
    app.state.delete_confirmation.disarm()
    await database.engine.dispose()


async def factory_exception_handler(request: Request, exc: AssemblyFactoryException) -> JSONResponse:
    """Turn factory errors into their JSON error body."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
    )

    # In-process state for the single admin actor
    app.state.staging_store = StagingStore()
    app.state.delete_confirmation = DeleteConfirmation(settings.DELETE_CONFIRM_WINDOW_SECONDS)

    # Add middlewares
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    app.add_exception_handler(AssemblyFactoryException, factory_exception_handler)

    # Include routers
    from assembly_factory.api import assemblies, health, parts, staging

    app.include_router(health.router, prefix="/api/health", tags=["health"])
    app.include_router(parts.router)
    app.include_router(assemblies.router)
    app.include_router(staging.router)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "assembly_factory.main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        reload=settings.DEBUG,
        log_config=None,  # Use structlog instead
    )
