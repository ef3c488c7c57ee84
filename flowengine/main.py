"""ASGI application for the flow engine.

``create_app`` assembles the FastAPI application: the v1 routes, CORS and
a lifespan that prepares the execution log backend and releases shared
clients on shutdown. ``run`` serves it with uvicorn and backs the
``flowengine`` console script.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowengine import __version__
from flowengine.api import router as api_router
from flowengine.core.config import settings
from flowengine.core.logging import get_logger, setup_logging
from flowengine.db.session import close_db, init_db
from flowengine.services.workflow.nodes.http_request import close_http_client

setup_logging(
    log_level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    service_name=settings.PROJECT_NAME,
    enable_json=settings.LOG_JSON_FORMAT,
    enable_sensitive_filter=settings.LOG_SENSITIVE_FILTER,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:  # noqa: ARG001 - Required by FastAPI lifespan interface
    """Create the execution log table for the database backend, then
    close the shared HTTP client and database engine on shutdown."""
    backend = settings.EXECUTION_LOG_BACKEND
    logger.info(
        f"Starting flow engine {__version__}",
        extra={"context": {"action": "startup", "log_backend": backend, "debug": settings.DEBUG}},
    )
    if backend == "database":
        await init_db()

    try:
        yield
    finally:
        await close_http_client()
        await close_db()
        logger.info("Flow engine stopped", extra={"context": {"action": "shutdown"}})


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Workflow DAG execution engine",
        version=__version__,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @application.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "healthy",
            "version": __version__,
            "log_backend": settings.EXECUTION_LOG_BACKEND,
        }

    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
