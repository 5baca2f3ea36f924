"""Common exceptions for the module runtime.

Two families live here:

- **Registry errors** signal a broken module graph or configuration. They are
  raised immediately and never retried.
- **Module errors** are structured failures (module id, code, message,
  timestamp, details) that get stored or surfaced to consumers: a failed
  dynamic load, an exhausted network request, a render failure.
"""

from typing import Any
from uuid import UUID

import arrow

from module_runtime.constants import (
    CODE_CONSTRUCTION_FAILED,
    CODE_INITIALIZATION_FAILED,
    CODE_MODULE_ERROR,
    CODE_REQUEST_FAILED,
)


class ResourceNotFoundError(Exception):
    """Raised when a resource doesn't exist.

    Generic exception for any resource that cannot be found by its identifier.
    """

    def __init__(self, resource_type: str, identifier: str | UUID | int):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} not found: {identifier}")


class ModuleRegistryError(Exception):
    """Base class for module graph and configuration errors."""


class DuplicateModuleError(ModuleRegistryError):
    """Raised when registering a module id that is already present."""

    def __init__(self, module_id: str):
        self.module_id = module_id
        super().__init__(f"Module '{module_id}' is already registered")


class CircularDependencyError(ModuleRegistryError):
    """Raised when the dependency walk reaches a module it is still visiting."""

    def __init__(self, module_id: str):
        self.module_id = module_id
        super().__init__(f"Circular dependency detected: {module_id}")


class DependentModulesExistError(ModuleRegistryError):
    """Raised when unregistering a module that other modules depend on."""

    def __init__(self, module_id: str, dependents: list[str]):
        self.module_id = module_id
        self.dependents = dependents
        super().__init__(f"Cannot unregister '{module_id}': modules {', '.join(dependents)} depend on it")


class MissingDependencyError(ModuleRegistryError):
    """Raised when initialization needs a dependency that was never registered."""

    def __init__(self, module_id: str, dependency: str):
        self.module_id = module_id
        self.dependency = dependency
        super().__init__(f"Module '{module_id}' depends on unregistered module '{dependency}'")


class ModuleError(Exception):
    """Structured failure attributed to a single module.

    Carries enough context to be logged or displayed without re-deriving it.
    """

    code: str = CODE_MODULE_ERROR

    def __init__(
        self,
        module_id: str,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        timestamp: arrow.Arrow | None = None,
    ):
        self.module_id = module_id
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        self.timestamp = timestamp or arrow.utcnow()
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation of the error."""
        return {
            "module_id": self.module_id,
            "code": self.code,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }


class ModuleConstructionError(ModuleError):
    """A dynamic load failed to produce a module definition."""

    code = CODE_CONSTRUCTION_FAILED


class ModuleRequestError(ModuleError):
    """Every endpoint and every attempt of a module request failed."""

    code = CODE_REQUEST_FAILED


class RenderFailure(ModuleError):
    """A module raised while rendering; captured by an error boundary."""

    code = CODE_MODULE_ERROR


class ModuleInitializationError(ModuleError):
    """A module in a batch could not be initialized."""

    code = CODE_INITIALIZATION_FAILED
