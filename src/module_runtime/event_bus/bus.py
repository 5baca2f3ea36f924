"""Event Bus Implementation.

This module provides the ``ModuleEventBus`` that carries module lifecycle
events from the registry to any interested consumer (status views, loggers,
metrics exporters).

## Key Features

- **Synchronous Ordered Delivery**: Listeners run inside ``emit`` in subscription order
- **Error Isolation**: A failing listener is logged and the next one still runs
- **Unsubscribe Handles**: ``on`` returns a callable that removes the listener
- **Bounded History**: The most recent events are kept in memory for diagnostics

## Usage

```python
from module_runtime.event_bus import ModuleEventBus
from module_runtime.models import ModuleEventType

bus = ModuleEventBus()

def log_activation(event):
    print(f"{event.module_id} activated at {event.timestamp}")

unsubscribe = bus.on(ModuleEventType.ACTIVATE, log_activation)
bus.emit(ModuleEventType.ACTIVATE, "dashboard")
unsubscribe()
```

"""

from collections import deque
from collections.abc import Callable
from typing import Any

from loguru import logger

from module_runtime.models import ModuleEvent, ModuleEventType

from .core import EventEmissionError, EventListener, HandlerRegistrationError, coerce_event_type

DEFAULT_HISTORY_SIZE = 100


class ModuleEventBus:
    """Publish/subscribe channel for module lifecycle events.

    Each registry owns exactly one bus. Delivery is synchronous: when ``emit``
    returns, every listener subscribed to that event type has been called.

    Example:
        ```python
        bus = ModuleEventBus()
        bus.on("error", lambda event: print(event.data))
        bus.emit("error", "team-chat", {"error": "timeout"})
        ```
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        """Initialize a new ModuleEventBus instance.

        Args:
            history_size: Number of recent events kept in memory. 0 disables history.
        """
        self._listeners: dict[ModuleEventType, list[EventListener]] = {}
        self._history: deque[ModuleEvent] = deque(maxlen=history_size)
        logger.debug(f"ModuleEventBus initialized (history_size={history_size})")

    def on(self, event_type: ModuleEventType | str, listener: EventListener) -> Callable[[], bool]:
        """Register a listener for an event type.

        Args:
            event_type: The lifecycle event type (enum member or its value)
            listener: Callable receiving the ``ModuleEvent``

        Returns:
            A handle that unsubscribes the listener when called

        Raises:
            HandlerRegistrationError: If event_type is unknown or listener is not callable
        """
        try:
            kind = coerce_event_type(event_type)
        except ValueError:
            raise HandlerRegistrationError(f"Unknown module event type: {event_type!r}") from None

        if not callable(listener):
            raise HandlerRegistrationError(f"Listener must be callable: {listener!r}")

        self._listeners.setdefault(kind, []).append(listener)
        logger.trace(f"Registered listener for {kind.value}: {listener}")

        def unsubscribe() -> bool:
            return self.off(kind, listener)

        return unsubscribe

    def off(self, event_type: ModuleEventType | str, listener: EventListener) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        try:
            kind = coerce_event_type(event_type)
        except ValueError:
            return False

        listeners = self._listeners.get(kind)
        if not listeners:
            return False
        try:
            listeners.remove(listener)
        except ValueError:
            return False
        logger.trace(f"Removed listener for {kind.value}: {listener}")
        return True

    def emit(self, event_type: ModuleEventType | str, module_id: str, data: Any = None) -> ModuleEvent:
        """Build, record and deliver a lifecycle event.

        Args:
            event_type: The lifecycle event type
            module_id: Module the event refers to
            data: Optional payload

        Returns:
            The emitted event

        Raises:
            EventEmissionError: If event_type is unknown
        """
        try:
            kind = coerce_event_type(event_type)
        except ValueError:
            raise EventEmissionError(f"Unknown module event type: {event_type!r}") from None

        event = ModuleEvent(type=kind, module_id=module_id, data=data)
        self._history.append(event)

        # Snapshot so listeners may unsubscribe while being notified
        listeners = list(self._listeners.get(kind, []))
        logger.trace(f"Emitting {kind.value} for '{module_id}' to {len(listeners)} listeners")

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:  # noqa: BLE001
                logger.opt(exception=e).error(f"Listener {listener} failed on {kind.value} event for '{module_id}': {e}")

        return event

    def clear_handlers(self, event_type: ModuleEventType | str | None = None) -> None:
        """Clear listeners for a specific event type or all event types."""
        if event_type is None:
            self._listeners.clear()
            logger.debug("Cleared all listeners")
            return
        kind = coerce_event_type(event_type)
        if kind in self._listeners:
            del self._listeners[kind]
            logger.debug(f"Cleared listeners for {kind.value}")

    def get_handler_count(self, event_type: ModuleEventType | str) -> int:
        """Get the number of listeners registered for an event type."""
        return len(self._listeners.get(coerce_event_type(event_type), []))

    def get_registered_events(self) -> list[ModuleEventType]:
        """Get all event types that currently have listeners."""
        return [kind for kind, listeners in self._listeners.items() if listeners]

    @property
    def history(self) -> tuple[ModuleEvent, ...]:
        """Most recent events, oldest first."""
        return tuple(self._history)
