"""Core Event Bus Components.

This module contains the fundamental abstractions for the lifecycle event bus.

## Key Components

- **EventListener**: Protocol for objects that receive module events
- **EventBusError**: Base exception for all event bus related errors
- **HandlerRegistrationError**: Raised when listener registration fails
- **EventEmissionError**: Raised when event emission fails

## Usage Example

```python
from module_runtime.event_bus import ModuleEventBus
from module_runtime.models import ModuleEvent, ModuleEventType

class ActivationCounter:
    def __init__(self) -> None:
        self.count = 0

    def __call__(self, event: ModuleEvent) -> None:
        self.count += 1

bus = ModuleEventBus()
counter = ActivationCounter()
bus.on(ModuleEventType.ACTIVATE, counter)
```

"""

from typing import Any, Protocol

from module_runtime.models import ModuleEvent, ModuleEventType


class EventListener(Protocol):
    """Callable receiving one lifecycle event.

    Listeners run synchronously inside ``emit``; their return value is ignored.
    """

    def __call__(self, event: ModuleEvent) -> Any: ...


def coerce_event_type(value: ModuleEventType | str) -> ModuleEventType:
    """Return ``value`` as a ``ModuleEventType``.

    Raises:
        ValueError: If ``value`` does not name a known event type
    """
    if isinstance(value, ModuleEventType):
        return value
    return ModuleEventType(value)


class EventBusError(Exception):
    """Base exception for all event bus related errors.

    Use this for catching any event bus related error:
        ```python
        try:
            bus.on("loaded", listener)
        except EventBusError as e:
            logger.error(f"Event bus error: {e}")
        ```
    """


class HandlerRegistrationError(EventBusError):
    """Raised when listener registration fails.

    This occurs when:
    - The event type is not a known module event type
    - The listener is not callable
    """


class EventEmissionError(EventBusError):
    """Raised when event emission fails.

    This occurs when the event type is not a known module event type.
    """
