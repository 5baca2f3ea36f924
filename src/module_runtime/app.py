"""Main FastAPI application module.

The status API exposes a ``ModuleRegistry`` to dashboards and monitoring.
The registry is passed in explicitly and kept on ``app.state``; routes reach
it through the ``get_module_registry`` dependency.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from module_runtime import __version__
from module_runtime.api.api_router import router as modules_router
from module_runtime.api.health_check import router as health_router
from module_runtime.api.ping import router as ping_router
from module_runtime.catalog import build_catalog
from module_runtime.exception_handlers import register_exception_handlers
from module_runtime.registry import ModuleRegistry
from module_runtime.settings import Settings, get_settings


def _log_server_endpoints_summary(settings: Settings) -> None:
    """Log the server URL and the endpoints it serves."""
    server_url = f"http://{settings.host}:{settings.port}"
    logger.info(f"Server running at: {server_url}")

    endpoints = [
        ("Health Check", "/health-check"),
        ("Ping", "/ping"),
        ("Modules", "/modules"),
        ("Module Summary", "/modules/summary"),
        ("Diagnosis", "/modules/diagnose"),
        ("API Docs", "/docs"),
    ]

    logger.info("Available endpoints:")
    for name, path in endpoints:
        logger.info(f"   {name}: {server_url}{path}")


def create_app(registry: ModuleRegistry | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the status API around ``registry``.

    Without a registry, one is created over the built-in module catalog and
    cleared (running cleanup hooks) on shutdown.
    """
    settings = settings or get_settings()
    owns_registry = registry is None
    if registry is None:
        registry = ModuleRegistry(settings=settings, factories=build_catalog())

    @asynccontextmanager
    async def app_lifespan(_app: FastAPI):
        """Handle startup and shutdown events for the application."""
        logger.info("Module runtime status server starting")
        _log_server_endpoints_summary(settings)

        yield

        logger.info("Module runtime status server shutting down")
        if owns_registry:
            registry.clear()

    app = FastAPI(
        lifespan=app_lifespan,
        title="Module runtime",
        description="Status and control API for the dashboard module runtime",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings  # type: ignore[attr-defined]
    app.state.module_registry = registry  # type: ignore[attr-defined]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_router, prefix="")
    app.include_router(ping_router, prefix="")
    app.include_router(modules_router, prefix="")

    return app
