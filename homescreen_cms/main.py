"""Homescreen CMS — layout composition and rendering backend for the mobile app.

FastAPI entry point with lifespan management, static uploads, and CORS.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .api.router import api_router
from .database import close_engine, create_tables, get_session_factory
from .dependencies import get_app_config, get_upload_store
from .engine.content_store import ContentStore
from .middleware.error_handler import register_error_handlers
from .middleware.request_id import RequestIDMiddleware
from .utils.logging import get_logger, setup_logging

config = get_app_config()
setup_logging(
    debug=config.debug,
    log_dir=config.log_dir,
    log_max_bytes=config.log_max_bytes,
    log_backup_count=config.log_backup_count,
)
logger = get_logger("homescreen_cms.main")


async def _provision_default_screens(factory) -> None:
    """Create the dashboard, home and offers screens (idempotent)."""
    async with factory() as session:
        screens = await ContentStore(session).ensure_default_screens()
        await session.commit()
    logger.info("default_screens_ready", slugs=[s.slug for s in screens])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("homescreen_cms_starting", host=config.host, port=config.port)

    await create_tables(config)
    await _provision_default_screens(get_session_factory(config))
    get_upload_store().ensure_dir()

    logger.info("homescreen_cms_started", app=config.app_name)
    yield

    logger.info("homescreen_cms_shutting_down")
    await close_engine()
    logger.info("homescreen_cms_stopped")


app = FastAPI(
    title="Homescreen CMS",
    description="Layout composition and rendering engine for the mobile home screen",
    version=__version__,
    lifespan=lifespan,
)

# Register standard error handlers
register_error_handlers(app)

# CORS origins come from config
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in config.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

# Request ID middleware is added LAST so it runs FIRST
app.add_middleware(RequestIDMiddleware)

# Mount API routes
app.include_router(api_router)

# Stored uploads are served as plain files
app.mount(
    config.upload_url_prefix.rstrip("/"),
    StaticFiles(directory=str(config.upload_path), check_dir=False),
    name="uploads",
)


@app.get("/health")
async def health():
    """Database connectivity check."""
    try:
        async with get_session_factory(config)() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("health_check_failed", error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "unreachable", "version": __version__},
        )
    return {"status": "healthy", "database": "ok", "version": __version__}


def main():
    """Run the Homescreen CMS server."""
    uvicorn.run(
        "homescreen_cms.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
