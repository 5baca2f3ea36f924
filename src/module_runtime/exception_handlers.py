"""Global exception handlers for the FastAPI application.

This module contains custom exception handlers that convert
runtime exceptions into proper HTTP responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from module_runtime.exceptions import ModuleRegistryError, ResourceNotFoundError


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers with the FastAPI app.

    - ``ResourceNotFoundError`` -> 404
    - ``ModuleRegistryError`` (cycles, duplicates, dependents, missing dependencies) -> 409
    """

    @app.exception_handler(ResourceNotFoundError)
    async def resource_not_found_handler(_request: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(ModuleRegistryError)
    async def module_registry_error_handler(_request: Request, exc: ModuleRegistryError) -> JSONResponse:
        logger.warning(f"Registry rejected request: {exc}")
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    logger.debug("Registered exception handlers")
