"""FastAPI entrypoint for the Checklist Fusion service."""

from fastapi import FastAPI

from app.api.routes_checklists import router as checklists_router
from app.api.routes_export import router as export_router
from app.api.routes_fusions import router as fusions_router
from app.api.routes_health import router as health_router
from app.config import get_settings
from app.utils.logging import get_logger


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    logger = get_logger(__name__, level=settings.log_level)

    application = FastAPI(
        title="Audit Checklist Fusion",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    application.include_router(health_router)
    application.include_router(checklists_router)
    application.include_router(fusions_router)
    application.include_router(export_router)

    # Store settings on state for future use.
    application.state.settings = settings
    logger.info("Application configured (store: %s)", settings.store_dir)
    return application


app = create_app()
