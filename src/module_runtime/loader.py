"""Per-mount module loader.

A ``ModuleLoader`` sits between one rendering consumer and the registry. It
asks the registry for a module, tracks a visible loading/error/success state,
retries failed loads with exponential backoff when asked to, and renders the
right view for its current state.

State machine::

    idle -> loading -> success
            loading -> error -> (retrying -> loading)* -> success | exhausted

Scheduled retries belong to the mount: ``release`` cancels them and no
callback fires after it.

Example:
    ```python
    async with ModuleLoader(registry, "team-chat", retry_on_error=True) as loader:
        console.print(loader.render())
    ```
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping
from enum import StrEnum
from typing import Any

from loguru import logger
from rich.console import RenderableType

from module_runtime.boundary import ErrorBoundary
from module_runtime.exceptions import ModuleInitializationError
from module_runtime.models import ModuleComponent, ModuleContext, ModuleInstance, merge_config
from module_runtime.registry import ModuleRegistry
from module_runtime.views import load_failed_view, loading_view, not_loaded_view


class LoaderState(StrEnum):
    """Visible state of a module loader."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"


class ModuleLoader:
    """Drives loading, retry and rendering of one module for one consumer.

    Args:
        registry: Registry the module is loaded from
        module_id: Id of the module to load
        fallback: Renderable (or zero-argument callable) shown while loading
        auto_load: Load on ``mount``; otherwise wait for ``load``
        retry_on_error: Retry failed loads automatically
        max_retries: Maximum automatic retries, defaults to ``settings.loader_max_retries``
        base_delay: Backoff base in seconds, defaults to ``settings.loader_base_delay``
        config: Consumer overrides merged over the module's own config on render
        on_load: Called once per successful load
        on_error: Called with the exception of each failed load
        on_unload: Called once when the loader is released
        sleep: Coroutine used to wait before a retry
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        module_id: str,
        *,
        fallback: RenderableType | Callable[[], RenderableType] | None = None,
        auto_load: bool = True,
        retry_on_error: bool = False,
        max_retries: int | None = None,
        base_delay: float | None = None,
        config: Mapping[str, Any] | None = None,
        on_load: Callable[[], Any] | None = None,
        on_error: Callable[[Exception], Any] | None = None,
        on_unload: Callable[[], Any] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        settings = registry.settings
        self.registry = registry
        self.module_id = module_id
        self.fallback = fallback
        self.auto_load = auto_load
        self.retry_on_error = retry_on_error
        self.max_retries = max_retries if max_retries is not None else settings.loader_max_retries
        self.base_delay = base_delay if base_delay is not None else settings.loader_base_delay
        self.config = dict(config or {})
        self.on_load = on_load
        self.on_error = on_error
        self.on_unload = on_unload
        self._sleep = sleep

        self._state = LoaderState.IDLE
        self._attempt = 0
        self._error: Exception | None = None
        self._instance: ModuleInstance | None = None
        self._boundary: ErrorBoundary | None = None
        self._retry_task: asyncio.Task[None] | None = None
        self._released = False

    async def __aenter__(self) -> "ModuleLoader":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.release()

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def attempt(self) -> int:
        """Automatic retries scheduled since the last success or reload."""
        return self._attempt

    @property
    def error(self) -> Exception | None:
        return self._error

    @property
    def instance(self) -> ModuleInstance | None:
        return self._instance

    @property
    def boundary(self) -> ErrorBoundary | None:
        return self._boundary

    @property
    def released(self) -> bool:
        return self._released

    @property
    def can_retry(self) -> bool:
        """True when a manual retry is offered instead of an automatic one."""
        return not self._released and self._state in (LoaderState.ERROR, LoaderState.EXHAUSTED)

    async def mount(self) -> None:
        """Start loading if ``auto_load`` is set."""
        if self._released:
            raise RuntimeError(f"Loader for '{self.module_id}' has been released")
        if self.auto_load:
            await self._run_attempt()

    async def load(self) -> LoaderState:
        """Trigger a load explicitly (used when ``auto_load`` is off).

        A pending automatic retry is cancelled first.
        """
        self._cancel_retry()
        await self._run_attempt()
        return self._state

    async def reload(self) -> LoaderState:
        """Manual retry: drop pending retries and error state, then load again."""
        self._cancel_retry()
        self._attempt = 0
        self._error = None
        await self._run_attempt()
        return self._state

    def release(self) -> None:
        """Tie-off for the mount: cancel scheduled retries and stop callbacks."""
        if self._released:
            return
        self._released = True
        self._cancel_retry()
        logger.debug(f"Loader for '{self.module_id}' released")
        if self.on_unload is not None:
            self.on_unload()

    unmount = release

    async def wait_idle(self) -> None:
        """Wait until no automatic retry is pending."""
        while self._retry_task is not None and not self._retry_task.done():
            await asyncio.wait({self._retry_task})

    async def _run_attempt(self) -> None:
        if self._released:
            return

        self._state = LoaderState.LOADING
        self._error = None
        logger.debug(f"Loading module: {self.module_id}")

        try:
            instance = await self.registry.load(self.module_id)
            if instance.error is not None:
                raise instance.error
        except Exception as e:  # noqa: BLE001
            if not self._released:
                self._handle_failure(e)
            return

        if self._released:
            return

        self._instance = instance
        self._boundary = ErrorBoundary(
            instance.component,
            module_name=self.module_id,
            max_retries=self.registry.settings.boundary_max_retries,
        )
        self._attempt = 0
        self._state = LoaderState.SUCCESS
        logger.info(f"Module ready: {self.module_id}")

        if self.on_load is not None:
            self.on_load()

    def _handle_failure(self, error: Exception) -> None:
        self._error = error
        self._state = LoaderState.ERROR
        logger.error(f"Module loading failed: {self.module_id}: {error}")

        if self.on_error is not None:
            self.on_error(error)

        if not self.retry_on_error:
            return

        if self._attempt < self.max_retries:
            delay = (2**self._attempt) * self.base_delay
            self._attempt += 1
            self._state = LoaderState.RETRYING
            logger.info(f"Retrying module '{self.module_id}' in {delay:.1f}s ({self._attempt}/{self.max_retries})")
            self._cancel_retry()
            self._retry_task = asyncio.create_task(self._retry_after(delay))
        else:
            self._state = LoaderState.EXHAUSTED
            logger.warning(f"Giving up on module '{self.module_id}' after {self.max_retries} retries")

    async def _retry_after(self, delay: float) -> None:
        await self._sleep(delay)
        if not self._released:
            await self._run_attempt()

    def _cancel_retry(self) -> None:
        task = self._retry_task
        self._retry_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def render(self, **props: Any) -> RenderableType:
        """Return the view for the current state."""
        if self._state == LoaderState.IDLE:
            return not_loaded_view(self.module_id)

        if self._state == LoaderState.LOADING:
            if self.fallback is None:
                return loading_view(self.module_id)
            return self.fallback() if callable(self.fallback) else self.fallback

        if self._state in (LoaderState.ERROR, LoaderState.RETRYING, LoaderState.EXHAUSTED):
            if self._state == LoaderState.RETRYING:
                footer = f"Retrying... ({self._attempt}/{self.max_retries})"
            else:
                footer = "Use reload to try again."
            return load_failed_view(self.module_id, str(self._error), footer)

        assert self._instance is not None and self._boundary is not None
        config = merge_config(self._instance.config, self.config)
        return self._boundary.render(config=config, **props)


def describe_status(instance: ModuleInstance | None) -> str:
    """Short status label for a module: not loaded, error, active or loaded."""
    if instance is None:
        return "not loaded"
    if instance.error is not None:
        return "error"
    if instance.is_active:
        return "active"
    return "loaded"


async def preload(registry: ModuleRegistry, module_ids: Iterable[str]) -> set[str]:
    """Load modules one after another and return the ids that loaded cleanly."""
    loaded: set[str] = set()
    for module_id in module_ids:
        instance = await registry.load(module_id)
        if instance.error is not None:
            logger.error(f"Preload failed: {module_id}: {instance.error}")
            continue
        loaded.add(module_id)
        logger.info(f"Preloaded module: {module_id}")
    return loaded


async def initialize_many(
    registry: ModuleRegistry,
    module_ids: Iterable[str],
    context: ModuleContext | None = None,
) -> tuple[dict[str, ModuleComponent], list[ModuleInitializationError]]:
    """Initialize registered modules in order and collect their components.

    Ids that are not registered are skipped. A module whose stored load
    failed, or whose initialization raises, is reported in the error list
    and the batch carries on with the next id.

    Returns:
        Components keyed by module id, and one error per failed module
    """
    components: dict[str, ModuleComponent] = {}
    errors: list[ModuleInitializationError] = []

    for module_id in module_ids:
        instance = registry.get(module_id)
        if instance is None:
            logger.debug(f"Skipping unregistered module: {module_id}")
            continue
        try:
            if instance.error is not None:
                raise instance.error
            if not registry.is_initialized(module_id):
                await registry.initialize(module_id, context)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Module initialization failed: {module_id}: {e}")
            error = ModuleInitializationError(module_id, str(e), details={"type": type(e).__name__})
            error.__cause__ = e
            errors.append(error)
            continue
        components[module_id] = instance.component

    return components, errors
