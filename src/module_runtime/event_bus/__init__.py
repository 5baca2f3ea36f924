"""Event Bus for Module Lifecycle Notifications.

This module provides the event bus the registry uses to announce module
lifecycle transitions. It supports:

- **Typed Event Kinds**: load, unload, error, update, activate, deactivate
- **Synchronous Ordered Delivery**: Listeners run in subscription order
- **Error Isolation**: Listener failures don't affect other listeners
- **Explicit Ownership**: Each registry owns one bus; there is no global instance

## Quick Start

```python
from module_runtime.event_bus import ModuleEventBus
from module_runtime.models import ModuleEventType

bus = ModuleEventBus()
bus.on(ModuleEventType.LOAD, lambda event: print(f"loaded {event.module_id}"))
bus.emit(ModuleEventType.LOAD, "dashboard")
```

For the listener protocol and exceptions, see `core.py`.
For the implementation, see `bus.py`.

"""

from .bus import ModuleEventBus
from .core import EventBusError, EventEmissionError, EventListener, HandlerRegistrationError

__all__ = [
    "EventBusError",
    "EventEmissionError",
    "EventListener",
    "HandlerRegistrationError",
    "ModuleEventBus",
]
