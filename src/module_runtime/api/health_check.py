"""Health check API endpoint."""

from typing import Literal

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel

from module_runtime import __version__
from module_runtime.api.dependencies import get_module_registry
from module_runtime.models import RegistrySummary
from module_runtime.registry import ModuleRegistry

router = APIRouter(tags=["System"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["ok", "degraded"]
    version: str
    modules: RegistrySummary

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "status": "ok",
                "version": "0.1.0",
                "modules": {"total": 3, "initialized": 2, "loaded": 3, "active": 2, "failed": 0},
            }
        }


registry_dependency = Depends(get_module_registry)


@router.get("/health-check", response_model=HealthResponse)
async def health_check(registry: ModuleRegistry = registry_dependency) -> HealthResponse:
    """
    Health check endpoint.

    Returns:
        HealthResponse: ``ok`` when no module failed to load, ``degraded`` otherwise.
    """
    logger.debug("Health check requested")

    summary = registry.get_summary()
    return HealthResponse(
        status="ok" if summary.failed == 0 else "degraded",
        version=__version__,
        modules=summary,
    )
