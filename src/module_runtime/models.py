"""Data models for the module runtime.

This module contains the Pydantic models shared by the registry, the loader,
the API client and the status API, kept apart to avoid circular imports.
"""

from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from enum import StrEnum
from typing import Any

import arrow
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from rich.console import RenderableType

ModuleComponent = Callable[..., RenderableType]
CleanupHook = Callable[[], None]


def utcnow() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return arrow.utcnow().datetime


class ModuleEventType(StrEnum):
    """Lifecycle events announced by the registry."""

    LOAD = "load"
    UNLOAD = "unload"
    ERROR = "error"
    UPDATE = "update"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"


class ModuleEndpoints(BaseModel):
    """Primary endpoint plus ordered fallbacks tried after it."""

    model_config = ConfigDict(frozen=True)

    primary: str = ""
    fallback: tuple[str, ...] = ()

    def all(self) -> list[str]:
        """Return the endpoints in the order they should be tried."""
        return [self.primary, *self.fallback]


class ModuleFeatures(BaseModel):
    """Feature flags of a module."""

    model_config = ConfigDict(frozen=True)

    realtime: bool = False
    cache: bool = False
    offline: bool = False
    auto_refresh: int | None = Field(default=None, description="Auto refresh interval in milliseconds")


class ModulePermissions(BaseModel):
    """Capabilities a module needs (required) or can use (optional)."""

    model_config = ConfigDict(frozen=True)

    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()


class ModuleConfig(BaseModel):
    """Identity and policy of one module.

    The runtime only interprets ``id``, ``version``, ``endpoints``,
    ``features`` and ``dependencies``. ``permissions``, ``ui`` and
    ``custom_config`` are passed through untouched.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    version: str = "0.0.0"
    description: str | None = None
    endpoints: ModuleEndpoints = Field(default_factory=ModuleEndpoints)
    features: ModuleFeatures = Field(default_factory=ModuleFeatures)
    permissions: ModulePermissions = Field(default_factory=ModulePermissions)
    dependencies: tuple[str, ...] = ()
    ui: dict[str, Any] = Field(default_factory=dict)
    custom_config: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Module ids must be non-empty."""
        v = v.strip()
        if not v:
            raise ValueError("Module id must not be empty")
        return v

    @model_validator(mode="before")
    @classmethod
    def default_name(cls, data: Any) -> Any:
        """Use the id as display name when none is given."""
        if isinstance(data, dict) and not data.get("name") and data.get("id"):
            data = {**data, "name": data["id"]}
        return data

    @model_validator(mode="after")
    def check_dependencies(self) -> "ModuleConfig":
        if self.id in self.dependencies:
            raise ValueError(f"Module '{self.id}' cannot depend on itself")
        return self


def merge_config(config: ModuleConfig, overrides: Mapping[str, Any] | ModuleConfig | None) -> ModuleConfig:
    """Return ``config`` with top-level keys replaced by ``overrides``.

    This is a shallow merge: an override for ``endpoints`` replaces the whole
    endpoints block.
    """
    if not overrides:
        return config
    if isinstance(overrides, ModuleConfig):
        overrides = overrides.model_dump(exclude_unset=True)
    data = config.model_dump()
    data.update(overrides)
    return ModuleConfig.model_validate(data)


class ModuleContext(BaseModel):
    """Context handed to module init hooks. Opaque to the runtime."""

    environment: str = "production"
    user: dict[str, Any] | None = None
    permissions: list[str] = Field(default_factory=list)
    extras: dict[str, Any] = Field(default_factory=dict)


InitHook = Callable[[ModuleContext], Awaitable[None] | None]


class ModuleDefinition(BaseModel):
    """A module as supplied by application code or a catalog factory."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    config: ModuleConfig
    component: ModuleComponent
    init: InitHook | None = None
    cleanup: CleanupHook | None = None


ModuleFactory = Callable[[], ModuleDefinition | Awaitable[ModuleDefinition]]


class ModuleInstance(BaseModel):
    """Runtime record of a module, owned by the registry.

    Consumers only ever see copies returned by ``snapshot``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    config: ModuleConfig
    component: ModuleComponent
    init: InitHook | None = None
    cleanup: CleanupHook | None = None
    is_loaded: bool = True
    is_active: bool = False
    error: Exception | None = None
    loaded_at: datetime = Field(default_factory=utcnow)
    last_activity: datetime | None = None

    @property
    def module_id(self) -> str:
        return self.config.id

    @property
    def dependencies(self) -> tuple[str, ...]:
        return self.config.dependencies

    @property
    def failed(self) -> bool:
        return self.error is not None

    def snapshot(self) -> "ModuleInstance":
        """Return a copy that can be handed out without exposing registry state.

        The config is copied deeply so ``ui`` and ``custom_config`` dicts are
        not shared with the registry's record.
        """
        return self.model_copy(update={"config": self.config.model_copy(deep=True)})


class ModuleEvent(BaseModel):
    """Immutable lifecycle event."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    type: ModuleEventType
    module_id: str
    timestamp: datetime = Field(default_factory=utcnow)
    data: Any = None


class ApiResponse(BaseModel):
    """Result of a successful module request."""

    success: bool = True
    data: Any = None
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)


class CacheEntry(BaseModel):
    """Cached response body with its storage time and lifetime (seconds)."""

    data: Any = None
    timestamp: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


class ModuleStatusRow(BaseModel):
    """Status of one module as reported by the registry."""

    name: str
    version: str
    initialized: bool
    loaded: bool
    active: bool
    dependencies: list[str] = Field(default_factory=list)
    dependents: list[str] = Field(default_factory=list)
    error: str | None = None


class RegistryStatus(BaseModel):
    """Registry overview with one row per module."""

    total_modules: int
    initialized_modules: int
    modules: list[ModuleStatusRow] = Field(default_factory=list)


class RegistrySummary(BaseModel):
    """Aggregate module counts."""

    total: int = 0
    initialized: int = 0
    loaded: int = 0
    active: int = 0
    failed: int = 0


class DependencyNode(BaseModel):
    """One node of the dependency graph."""

    name: str
    dependencies: list[str] = Field(default_factory=list)
    dependents: list[str] = Field(default_factory=list)


class RegistryStatistics(BaseModel):
    """Version distribution and dependency graph of the registered modules."""

    total: int
    initialized: int
    by_version: dict[str, int] = Field(default_factory=dict)
    dependency_graph: list[DependencyNode] = Field(default_factory=list)
