"""
Modules API - status and lifecycle control of registered modules.

This module provides REST endpoints over the module registry:
- Read operations: status of all modules, aggregate summary, statistics,
  diagnosis report, single module detail
- Lifecycle: load (construct through the catalog), unload (deactivate) and
  unregister (delete)

Unknown modules answer 404; graph violations answer 409 (see exception handlers).
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from module_runtime.api.dependencies import get_module_registry
from module_runtime.exceptions import ModuleError, ResourceNotFoundError
from module_runtime.models import ModuleInstance, RegistryStatistics, RegistryStatus, RegistrySummary
from module_runtime.registry import ModuleRegistry

router = APIRouter()


class ModuleDetail(BaseModel):
    """Detailed view of one module."""

    id: str = Field(..., description="Module id")  # fmt: skip
    name: str = Field(..., description="Display name")  # fmt: skip
    version: str = Field(..., description="Module version")  # fmt: skip
    description: str | None = Field(default=None, description="Module description")  # fmt: skip
    initialized: bool = Field(..., description="Init hook has run")  # fmt: skip
    loaded: bool = Field(..., description="Module is constructed")  # fmt: skip
    active: bool = Field(..., description="Module is active")  # fmt: skip
    dependencies: list[str] = Field(default_factory=list, description="Modules this one depends on")  # fmt: skip
    dependents: list[str] = Field(default_factory=list, description="Modules depending on this one")  # fmt: skip
    error: dict | None = Field(default=None, description="Stored load failure, if any")  # fmt: skip
    loaded_at: datetime | None = Field(default=None, description="When the instance was created")  # fmt: skip
    last_activity: datetime | None = Field(default=None, description="Last time the module was loaded")  # fmt: skip


class DiagnosisResponse(BaseModel):
    """Human-readable registry diagnosis."""

    report: str


def _error_payload(error: Exception | None) -> dict | None:
    if error is None:
        return None
    if isinstance(error, ModuleError):
        return error.to_dict()
    return {"message": str(error), "type": type(error).__name__}


def _to_detail(registry: ModuleRegistry, instance: ModuleInstance) -> ModuleDetail:
    return ModuleDetail(
        id=instance.module_id,
        name=instance.config.name,
        version=instance.config.version,
        description=instance.config.description,
        initialized=registry.is_initialized(instance.module_id),
        loaded=instance.is_loaded,
        active=instance.is_active,
        dependencies=list(instance.dependencies),
        dependents=registry.get_dependents(instance.module_id),
        error=_error_payload(instance.error),
        loaded_at=instance.loaded_at,
        last_activity=instance.last_activity,
    )


@router.get("", response_model=RegistryStatus)
def get_status(registry: ModuleRegistry = Depends(get_module_registry)) -> RegistryStatus:
    """Get the status of every registered module."""
    return registry.get_status()


@router.get("/summary", response_model=RegistrySummary)
def get_summary(registry: ModuleRegistry = Depends(get_module_registry)) -> RegistrySummary:
    """Get aggregate counts: total, initialized, loaded, active, failed."""
    return registry.get_summary()


@router.get("/statistics", response_model=RegistryStatistics)
def get_statistics(registry: ModuleRegistry = Depends(get_module_registry)) -> RegistryStatistics:
    """Get the version distribution and the dependency graph."""
    return registry.get_statistics()


@router.get("/diagnose", response_model=DiagnosisResponse)
def diagnose(registry: ModuleRegistry = Depends(get_module_registry)) -> DiagnosisResponse:
    """Get a human-readable diagnosis report (also written to the log)."""
    return DiagnosisResponse(report=registry.diagnose())


@router.get("/{module_id}", response_model=ModuleDetail)
def get_module(module_id: str, registry: ModuleRegistry = Depends(get_module_registry)) -> ModuleDetail:
    """Get one module.

    Raises:
        ResourceNotFoundError: If the module is not registered (404)
    """
    instance = registry.get(module_id)
    if instance is None:
        raise ResourceNotFoundError("Module", module_id)
    return _to_detail(registry, instance)


@router.post("/{module_id}/load", response_model=ModuleDetail)
async def load_module(module_id: str, registry: ModuleRegistry = Depends(get_module_registry)) -> ModuleDetail:
    """Load (or reactivate) a module.

    A failed construction is reported in ``error``; the module is still listed.

    Raises:
        ResourceNotFoundError: If the module is neither registered nor in the catalog (404)
    """
    if not registry.has(module_id) and not registry.has_factory(module_id):
        raise ResourceNotFoundError("Module", module_id)
    instance = await registry.load(module_id)
    return _to_detail(registry, instance)


@router.post("/{module_id}/unload", response_model=ModuleDetail)
def unload_module(module_id: str, registry: ModuleRegistry = Depends(get_module_registry)) -> ModuleDetail:
    """Deactivate a module without removing it.

    Raises:
        ResourceNotFoundError: If the module is not registered (404)
    """
    if not registry.unload(module_id):
        raise ResourceNotFoundError("Module", module_id)
    instance = registry.get(module_id)
    assert instance is not None
    return _to_detail(registry, instance)


@router.delete("/{module_id}", status_code=204)
def unregister_module(module_id: str, registry: ModuleRegistry = Depends(get_module_registry)) -> None:
    """Unregister a module nobody depends on, running its cleanup hook.

    Raises:
        ResourceNotFoundError: If the module is not registered (404)
        DependentModulesExistError: If registered modules depend on it (409)
    """
    if not registry.unregister(module_id):
        raise ResourceNotFoundError("Module", module_id)
