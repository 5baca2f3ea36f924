"""Module registry: lifecycle and dependency graph of feature modules.

The registry is the single source of truth for which modules exist, how they
depend on each other and whether they are initialized, loaded and active.

Modules enter the registry two ways:

- ``register`` for modules the application supplies up front;
- ``load`` for modules constructed on demand through the id -> factory map.

Concurrent ``load`` calls for the same id share one construction. A failed
construction leaves an error instance behind so later lookups surface the
stored failure instead of raising again.

Example:
    ```python
    registry = ModuleRegistry(factories=build_catalog())
    instance = await registry.load("dashboard")
    await registry.initialize("dashboard")
    print(registry.diagnose())
    ```
"""

import asyncio
import inspect
from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from module_runtime.event_bus import EventListener, ModuleEventBus
from module_runtime.exceptions import (
    CircularDependencyError,
    DependentModulesExistError,
    DuplicateModuleError,
    MissingDependencyError,
    ModuleConstructionError,
    ResourceNotFoundError,
)
from module_runtime.models import (
    CleanupHook,
    DependencyNode,
    InitHook,
    ModuleComponent,
    ModuleConfig,
    ModuleContext,
    ModuleDefinition,
    ModuleEventType,
    ModuleFactory,
    ModuleInstance,
    ModuleStatusRow,
    RegistryStatistics,
    RegistryStatus,
    RegistrySummary,
    merge_config,
    utcnow,
)
from module_runtime.settings import Settings, get_settings
from module_runtime.views import load_failed_view


def _error_component(module_id: str, error: Exception) -> ModuleComponent:
    """Build a component that renders a stored load failure."""

    def render(**_props: Any):
        return load_failed_view(module_id, str(error), footer=type(error).__name__)

    return render


class ModuleRegistry:
    """Registry of module instances, their dependencies and lifecycle state.

    Construct one registry at application start and pass it to every
    consumer. Each registry owns exactly one ``ModuleEventBus``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        event_bus: ModuleEventBus | None = None,
        factories: Mapping[str, ModuleFactory] | None = None,
    ):
        """Initialize an empty registry.

        Args:
            settings: Runtime settings, defaults to the cached settings
            event_bus: Bus used for lifecycle events, a new one is created if omitted
            factories: Mapping of module id to factory used by ``load``
        """
        self.settings = settings or get_settings()
        self._event_bus = event_bus or ModuleEventBus(self.settings.event_history_size)
        self._modules: dict[str, ModuleInstance] = {}
        self._initialized: set[str] = set()
        self._factories: dict[str, ModuleFactory] = dict(factories or {})
        self._loading: dict[str, asyncio.Task[ModuleInstance]] = {}
        logger.debug("ModuleRegistry initialized")

    @property
    def event_bus(self) -> ModuleEventBus:
        """The bus lifecycle events are published on."""
        return self._event_bus

    # Registration

    def register(
        self,
        config: ModuleConfig,
        component: ModuleComponent,
        *,
        init: InitHook | None = None,
        cleanup: CleanupHook | None = None,
    ) -> None:
        """Register a module in loaded, inactive state.

        Dependencies that are not registered yet only produce a warning, since
        they may be registered later.

        Raises:
            DuplicateModuleError: If a module with the same id is registered
        """
        if config.id in self._modules:
            raise DuplicateModuleError(config.id)

        logger.info(f"Registering module: {config.id} v{config.version}")
        self._modules[config.id] = ModuleInstance(
            config=config,
            component=component,
            init=init,
            cleanup=cleanup,
            is_loaded=True,
            is_active=False,
        )
        self._validate_dependencies(config)
        self._event_bus.emit(ModuleEventType.LOAD, config.id)

    def register_definition(self, definition: ModuleDefinition) -> None:
        """Register a module described by a ``ModuleDefinition``."""
        self.register(definition.config, definition.component, init=definition.init, cleanup=definition.cleanup)

    def register_many(self, definitions: Iterable[ModuleDefinition]) -> None:
        """Register several modules in order."""
        for definition in definitions:
            self.register_definition(definition)

    def register_factory(self, module_id: str, factory: ModuleFactory) -> None:
        """Register the factory ``load`` uses to construct ``module_id``."""
        self._factories[module_id] = factory
        logger.debug(f"Registered factory for module: {module_id}")

    def has_factory(self, module_id: str) -> bool:
        return module_id in self._factories

    def get_factory_ids(self) -> list[str]:
        """Ids that ``load`` can construct."""
        return list(self._factories)

    def unregister(self, module_id: str) -> bool:
        """Remove a module nobody depends on, running its cleanup hook first.

        Returns:
            True if the module was removed, False if it was unknown

        Raises:
            DependentModulesExistError: If registered modules depend on it
        """
        instance = self._modules.get(module_id)
        if instance is None:
            logger.warning(f"Cannot unregister unknown module: {module_id}")
            return False

        dependents = self.get_dependents(module_id)
        if dependents:
            raise DependentModulesExistError(module_id, dependents)

        if instance.cleanup is not None:
            instance.cleanup()

        del self._modules[module_id]
        self._initialized.discard(module_id)
        logger.info(f"Module unregistered: {module_id}")
        self._event_bus.emit(ModuleEventType.UNLOAD, module_id)
        return True

    # Initialization

    async def initialize(self, module_id: str, context: ModuleContext | None = None) -> None:
        """Initialize a module after all of its dependencies.

        The whole not-yet-initialized dependency closure is resolved before
        any init hook runs, so a cycle or a missing dependency fails without
        side effects. Calling this for an initialized module is a no-op.

        Raises:
            ResourceNotFoundError: If the module is not registered
            CircularDependencyError: If a cycle is reachable from the module
            MissingDependencyError: If a reachable dependency is not registered
        """
        if module_id not in self._modules:
            raise ResourceNotFoundError("Module", module_id)

        if module_id in self._initialized:
            logger.debug(f"Module '{module_id}' already initialized")
            return

        order = self._resolve_init_order(module_id)
        context = context or ModuleContext(environment=self.settings.environment)

        for name in order:
            if name not in self._initialized:
                await self._run_init(name, context)

    async def initialize_all(self, context: ModuleContext | None = None) -> None:
        """Initialize every registered module in registration order."""
        for module_id in list(self._modules):
            if module_id in self._modules and module_id not in self._initialized:
                await self.initialize(module_id, context)

    def is_initialized(self, module_id: str) -> bool:
        return module_id in self._initialized

    def _resolve_init_order(self, module_id: str) -> list[str]:
        """Return the uninitialized closure of ``module_id``, dependencies first."""
        order: list[str] = []
        visiting: set[str] = set()
        visited: set[str] = set()

        def visit(name: str, parent: str) -> None:
            if name in visiting:
                raise CircularDependencyError(name)
            if name in visited or name in self._initialized:
                return

            instance = self._modules.get(name)
            if instance is None:
                raise MissingDependencyError(parent, name)

            visiting.add(name)
            for dependency in instance.dependencies:
                visit(dependency, name)
            visiting.discard(name)
            visited.add(name)
            order.append(name)

        visit(module_id, module_id)
        return order

    async def _run_init(self, module_id: str, context: ModuleContext) -> None:
        instance = self._modules[module_id]
        if instance.init is not None:
            try:
                result = instance.init(context)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Failed to initialize module '{module_id}': {e}")
                self._event_bus.emit(ModuleEventType.ERROR, module_id, {"phase": "initialize", "error": str(e)})
                raise

        self._initialized.add(module_id)
        logger.info(f"Module initialized: {module_id}")

    # Dynamic loading

    async def load(self, module_id: str) -> ModuleInstance:
        """Return an active instance of ``module_id``, constructing it if needed.

        - A loaded instance is (re)activated and returned.
        - A construction already in flight is shared with this caller.
        - Otherwise the module is built through its factory. On failure an
          error instance carrying a ``ModuleConstructionError`` is stored and
          returned, and an ``error`` event is emitted.

        An existing error instance is not considered loaded; loading it again
        retries the construction.
        """
        instance = self._modules.get(module_id)
        if instance is not None and instance.is_loaded:
            return self._activate(module_id, instance)

        task = self._loading.get(module_id)
        if task is None:
            logger.debug(f"Starting construction of module: {module_id}")
            task = asyncio.ensure_future(self._construct(module_id))
            self._loading[module_id] = task
        else:
            logger.debug(f"Joining in-flight construction of module: {module_id}")

        # Shielded so a cancelled caller does not cancel the shared construction
        return await asyncio.shield(task)

    def is_loading(self, module_id: str) -> bool:
        return module_id in self._loading

    def _activate(self, module_id: str, instance: ModuleInstance) -> ModuleInstance:
        instance.last_activity = utcnow()
        if not instance.is_active:
            instance.is_active = True
            self._event_bus.emit(ModuleEventType.ACTIVATE, module_id)
        return instance.snapshot()

    async def _construct(self, module_id: str) -> ModuleInstance:
        try:
            failure: Exception | None = None
            try:
                definition = await self._resolve_definition(module_id)
            except Exception as e:  # noqa: BLE001
                failure = e

            # A register() that landed while the factory was awaited wins
            registered = self._modules.get(module_id)
            if registered is not None and registered.is_loaded:
                logger.warning(f"Module '{module_id}' was registered during construction, keeping the registered one")
                return self._activate(module_id, registered)

            if failure is not None:
                return self._store_error_instance(module_id, failure)

            instance = ModuleInstance(
                config=definition.config,
                component=definition.component,
                init=definition.init,
                cleanup=definition.cleanup,
                is_loaded=True,
                is_active=True,
                last_activity=utcnow(),
            )
            self._modules[module_id] = instance
            self._validate_dependencies(definition.config)
            logger.info(f"Module loaded: {module_id} v{definition.config.version}")
            self._event_bus.emit(ModuleEventType.ACTIVATE, module_id)
            return instance.snapshot()
        finally:
            self._loading.pop(module_id, None)

    async def _resolve_definition(self, module_id: str) -> ModuleDefinition:
        factory = self._factories.get(module_id)
        if factory is None:
            raise ModuleConstructionError(module_id, f"No factory registered for module '{module_id}'")

        result = factory()
        if inspect.isawaitable(result):
            result = await result

        if not isinstance(result, ModuleDefinition):
            raise ModuleConstructionError(
                module_id,
                f"Factory for '{module_id}' returned {type(result).__name__}, expected ModuleDefinition",
            )
        if result.config.id != module_id:
            raise ModuleConstructionError(module_id, f"Factory for '{module_id}' produced module '{result.config.id}'")
        return result

    def _store_error_instance(self, module_id: str, cause: Exception) -> ModuleInstance:
        if isinstance(cause, ModuleConstructionError):
            error = cause
        else:
            error = ModuleConstructionError(
                module_id,
                f"Failed to load module '{module_id}': {cause}",
                details={"type": type(cause).__name__},
            )
            error.__cause__ = cause

        logger.error(f"Module loading failed: {module_id}: {error}")
        instance = ModuleInstance(
            config=ModuleConfig(id=module_id),
            component=_error_component(module_id, error),
            is_loaded=False,
            is_active=False,
            error=error,
        )
        self._modules[module_id] = instance
        self._event_bus.emit(ModuleEventType.ERROR, module_id, {"error": error.to_dict()})
        return instance.snapshot()

    def unload(self, module_id: str) -> bool:
        """Deactivate a module without removing it. State survives."""
        instance = self._modules.get(module_id)
        if instance is None:
            logger.warning(f"Cannot unload unknown module: {module_id}")
            return False

        instance.is_active = False
        self._event_bus.emit(ModuleEventType.DEACTIVATE, module_id)
        logger.info(f"Module deactivated: {module_id}")
        return True

    def remove(self, module_id: str) -> bool:
        """Deactivate and delete a module entirely."""
        if module_id not in self._modules:
            return False

        self.unload(module_id)
        del self._modules[module_id]
        self._initialized.discard(module_id)
        self._event_bus.emit(ModuleEventType.UNLOAD, module_id)
        logger.info(f"Module removed: {module_id}")
        return True

    def update_config(self, module_id: str, partial: Mapping[str, Any]) -> ModuleInstance:
        """Merge ``partial`` into a module's config and emit ``update``.

        Raises:
            ResourceNotFoundError: If the module is not registered
        """
        instance = self._modules.get(module_id)
        if instance is None:
            raise ResourceNotFoundError("Module", module_id)

        merged = merge_config(instance.config, partial)
        if merged.id != module_id:
            raise ValueError(f"Module id cannot be changed from '{module_id}' to '{merged.id}'")

        instance.config = merged
        self._event_bus.emit(ModuleEventType.UPDATE, module_id, {"changes": sorted(partial)})
        logger.info(f"Config updated for module: {module_id}")
        return instance.snapshot()

    def clear(self) -> None:
        """Run every cleanup hook and empty the registry."""
        for module_id, instance in self._modules.items():
            if instance.cleanup is None:
                continue
            try:
                instance.cleanup()
            except Exception as e:  # noqa: BLE001
                logger.error(f"Error cleaning up module '{module_id}': {e}")

        self._modules.clear()
        self._initialized.clear()
        logger.info("Module registry cleared")

    # Event subscription

    def on(self, event_type: ModuleEventType | str, listener: EventListener):
        """Subscribe to lifecycle events. Returns an unsubscribe handle."""
        return self._event_bus.on(event_type, listener)

    def off(self, event_type: ModuleEventType | str, listener: EventListener) -> bool:
        return self._event_bus.off(event_type, listener)

    # Read operations

    def get(self, module_id: str) -> ModuleInstance | None:
        instance = self._modules.get(module_id)
        return instance.snapshot() if instance is not None else None

    def get_all(self) -> list[ModuleInstance]:
        return [instance.snapshot() for instance in self._modules.values()]

    def get_active_modules(self) -> list[ModuleInstance]:
        return [instance.snapshot() for instance in self._modules.values() if instance.is_active]

    def has(self, module_id: str) -> bool:
        return module_id in self._modules

    def is_registered(self, module_id: str) -> bool:
        return module_id in self._modules

    def get_dependencies(self, module_id: str) -> list[str]:
        instance = self._modules.get(module_id)
        return list(instance.dependencies) if instance is not None else []

    def get_dependents(self, module_id: str) -> list[str]:
        """Ids of all registered modules that list ``module_id`` as a dependency."""
        return [name for name, instance in self._modules.items() if module_id in instance.dependencies]

    def get_status(self) -> RegistryStatus:
        """Registry overview with one row per module."""
        return RegistryStatus(
            total_modules=len(self._modules),
            initialized_modules=len(self._initialized),
            modules=[
                ModuleStatusRow(
                    name=name,
                    version=instance.config.version,
                    initialized=name in self._initialized,
                    loaded=instance.is_loaded,
                    active=instance.is_active,
                    dependencies=list(instance.dependencies),
                    dependents=self.get_dependents(name),
                    error=str(instance.error) if instance.error is not None else None,
                )
                for name, instance in self._modules.items()
            ],
        )

    def get_statistics(self) -> RegistryStatistics:
        """Version distribution and dependency graph."""
        return RegistryStatistics(
            total=len(self._modules),
            initialized=len(self._initialized),
            by_version=dict(Counter(instance.config.version for instance in self._modules.values())),
            dependency_graph=[
                DependencyNode(name=name, dependencies=list(instance.dependencies), dependents=self.get_dependents(name))
                for name, instance in self._modules.items()
            ],
        )

    def get_summary(self) -> RegistrySummary:
        """Aggregate counts: total, initialized, loaded, active, failed."""
        instances = self._modules.values()
        return RegistrySummary(
            total=len(self._modules),
            initialized=len(self._initialized),
            loaded=sum(1 for instance in instances if instance.is_loaded),
            active=sum(1 for instance in instances if instance.is_active),
            failed=sum(1 for instance in instances if instance.failed),
        )

    def diagnose(self) -> str:
        """Return (and log) a human-readable report of the registry state."""
        summary = self.get_summary()
        lines = [
            "Module registry diagnosis:",
            f"   total modules: {summary.total}",
            f"   initialized: {summary.initialized}",
            f"   loaded: {summary.loaded}",
            f"   active: {summary.active}",
            f"   failed: {summary.failed}",
        ]
        failed = [instance for instance in self._modules.values() if instance.failed]
        if failed:
            lines.append("Failed modules:")
            lines.extend(f"   - {instance.module_id}: {instance.error}" for instance in failed)

        report = "\n".join(lines)
        for line in lines:
            logger.info(line)
        return report

    def sort_modules_by_dependencies(self, module_ids: Iterable[str]) -> list[str]:
        """Order ``module_ids`` so every module follows its dependencies.

        Only dependencies that are part of ``module_ids`` are considered.

        Raises:
            CircularDependencyError: If the induced subgraph has a cycle
        """
        wanted = list(dict.fromkeys(module_ids))
        members = set(wanted)
        ordered: list[str] = []
        visiting: set[str] = set()
        visited: set[str] = set()

        def visit(name: str) -> None:
            if name in visiting:
                raise CircularDependencyError(name)
            if name in visited:
                return

            visiting.add(name)
            for dependency in self.get_dependencies(name):
                if dependency in members:
                    visit(dependency)
            visiting.discard(name)
            visited.add(name)
            ordered.append(name)

        for name in wanted:
            visit(name)
        return ordered

    def _validate_dependencies(self, config: ModuleConfig) -> None:
        missing = [dependency for dependency in config.dependencies if dependency not in self._modules]
        if missing:
            logger.warning(f"Module '{config.id}' has missing dependencies: {', '.join(missing)}")

    list = get_all
