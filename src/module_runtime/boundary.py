"""Render-time fault barrier for modules.

An ``ErrorBoundary`` wraps one module's render callable. When the render
raises, the failure is captured as a ``RenderFailure`` and a fallback is
returned in place of the module output, so siblings on the same page keep
rendering. The boundary offers a bounded number of manual retries.

Example:
    ```python
    boundary = ErrorBoundary(render_weekly_report, module_name="weekly-report")
    output = boundary.render(config=config)
    if boundary.has_error and boundary.retry():
        output = boundary.render(config=config)
    ```
"""

import traceback
from collections.abc import Callable
from typing import Any

from loguru import logger
from rich.console import RenderableType

from module_runtime.exceptions import RenderFailure
from module_runtime.models import ModuleComponent
from module_runtime.settings import get_settings
from module_runtime.views import render_failed_view

RETRY_HINT = "Use retry to render the module again."
EXHAUSTED_HINT = "Retry limit reached. Reload the page or contact support if the problem persists."
NOT_RETRYABLE_HINT = "This module cannot be retried. Reload the page or contact support."


class ErrorBoundary:
    """Stateful wrapper that renders either its child or a fallback.

    Attributes:
        module_name: Name reported in captured failures
        max_retries: Number of manual retries offered after a failure
        retry_count: Retries performed since the last reset
    """

    def __init__(
        self,
        render: ModuleComponent,
        *,
        module_name: str = "unknown",
        fallback: RenderableType | Callable[[RenderFailure], RenderableType] | None = None,
        on_error: Callable[[RenderFailure], Any] | None = None,
        on_reset: Callable[[], Any] | None = None,
        max_retries: int | None = None,
        retryable: bool = True,
        show_details: bool = False,
    ):
        self._render = render
        self.module_name = module_name
        self._fallback = fallback
        self._on_error = on_error
        self._on_reset = on_reset
        self.max_retries = max_retries if max_retries is not None else get_settings().boundary_max_retries
        self.retryable = retryable
        self.show_details = show_details
        self.retry_count = 0
        self._error: RenderFailure | None = None

    @property
    def has_error(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> RenderFailure | None:
        return self._error

    @property
    def can_retry(self) -> bool:
        """True while a manual retry is still allowed."""
        return self.retryable and self.retry_count < self.max_retries

    def render(self, *args: Any, **props: Any) -> RenderableType:
        """Render the wrapped content, or the fallback once it has failed."""
        if self._error is not None:
            return self._render_fallback()

        try:
            return self._render(*args, **props)
        except Exception as e:  # noqa: BLE001
            self._capture(e)
            return self._render_fallback()

    def retry(self) -> bool:
        """Clear the captured failure so the next render tries again.

        Returns:
            False when retries are exhausted or not allowed
        """
        if not self.can_retry:
            logger.debug(f"Retry refused for module '{self.module_name}' ({self.retry_count}/{self.max_retries})")
            return False

        self._error = None
        self.retry_count += 1
        logger.info(f"Retrying render of module '{self.module_name}' ({self.retry_count}/{self.max_retries})")
        return True

    def reset(self) -> None:
        """Clear the failure and the retry counter."""
        self._error = None
        self.retry_count = 0
        if self._on_reset is not None:
            self._on_reset()

    def _capture(self, exc: Exception) -> None:
        failure = RenderFailure(
            self.module_name,
            str(exc) or type(exc).__name__,
            details={
                "type": type(exc).__name__,
                "traceback": "".join(traceback.format_exception(exc)),
                "retry_count": self.retry_count,
                "recoverable": self.retryable,
            },
        )
        failure.__cause__ = exc
        self._error = failure
        logger.opt(exception=exc).error(f"Module '{self.module_name}' failed to render: {failure.message}")

        if self._on_error is not None:
            self._on_error(failure)

    def _render_fallback(self) -> RenderableType:
        failure = self._error
        if self._fallback is not None:
            if callable(self._fallback) and failure is not None:
                return self._fallback(failure)
            return self._fallback

        if not self.retryable:
            hint = NOT_RETRYABLE_HINT
        elif self.can_retry:
            hint = RETRY_HINT
        else:
            hint = EXHAUSTED_HINT

        details = None
        if self.show_details and failure is not None:
            details = f"[{failure.code}] {failure.message}"

        return render_failed_view(
            self.module_name,
            failure.timestamp.format("YYYY-MM-DD HH:mm:ss ZZ") if failure is not None else "",
            self.retry_count,
            self.max_retries,
            hint,
            details,
        )


def with_error_boundary(
    component: ModuleComponent,
    *,
    module_name: str = "unknown",
    fallback: RenderableType | None = None,
    on_error: Callable[[RenderFailure], Any] | None = None,
) -> ModuleComponent:
    """Wrap ``component`` so every call goes through its own ``ErrorBoundary``."""
    boundary = ErrorBoundary(component, module_name=module_name, fallback=fallback, on_error=on_error)

    def wrapped(*args: Any, **props: Any) -> RenderableType:
        return boundary.render(*args, **props)

    wrapped.boundary = boundary  # type: ignore[attr-defined]
    return wrapped
