"""Event Bus for component communication.

Everything observable the controller does is announced here:
- Traceable (all events are logged)
- Decoupled (the hardware layer reports errors without knowing the coordinator)
- Testable (handlers can be attached in tests)

Evaluation runs in synchronous callbacks on the event loop, so emit() and the
handlers are synchronous too.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from homeassistant.helpers.dispatcher import async_dispatcher_send

from ..const import SIGNAL_UPDATE
from ..grid_logging import get_logger

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


class GridEvent(str, Enum):
    """Event types for the Smart Grid Controller integration."""

    # Lifecycle
    CONTROLLER_STARTED = "smart_grid.controller_started"

    # Decisions
    GRID_ENABLED = "smart_grid.grid_enabled"
    GRID_DISABLED = "smart_grid.grid_disabled"
    COMMAND_REASSERTED = "smart_grid.command_reasserted"

    # Protections
    PROTECTION_ACTIVATED = "smart_grid.protection_activated"
    PROTECTION_CLEARED = "smart_grid.protection_cleared"

    # Problems
    CONFIG_ERROR = "smart_grid.config_error"
    INVALID_SAMPLE = "smart_grid.invalid_sample"
    ACTUATOR_ERROR = "smart_grid.actuator_error"

    # UI update trigger
    UI_UPDATE = "smart_grid.ui_update"


# Events that change what the entities show
_UI_EVENTS = frozenset(
    {
        GridEvent.UI_UPDATE,
        GridEvent.GRID_ENABLED,
        GridEvent.GRID_DISABLED,
        GridEvent.PROTECTION_ACTIVATED,
        GridEvent.PROTECTION_CLEARED,
        GridEvent.CONFIG_ERROR,
        GridEvent.ACTUATOR_ERROR,
    }
)


@dataclass
class EventData:
    """Container for event data."""

    event: GridEvent
    timestamp: datetime
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "event": self.event.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


# Type alias for event handlers
EventHandler = Callable[[EventData], None]


class GridEventBus:
    """Central event bus for the integration.

    Events are logged automatically. Handler errors are logged and never
    reach the emitter.
    """

    def __init__(self, hass: HomeAssistant) -> None:
        """Initialize the event bus.

        Args:
            hass: Home Assistant instance
        """
        self.hass = hass
        self._logger = get_logger()
        self._handlers: dict[GridEvent, list[EventHandler]] = {}

        self._logger.debug("EVENT_BUS_INITIALIZED")

    def emit(self, event: GridEvent, **data: Any) -> None:
        """Emit an event.

        Args:
            event: Event type to emit
            **data: Event data
        """
        event_data = EventData(
            event=event,
            timestamp=datetime.now(),
            data=data,
        )

        self._logger.debug(f"EVENT_{event.name}", **data)

        for handler in list(self._handlers.get(event, [])):
            try:
                handler(event_data)
            except Exception as ex:
                self._logger.error(
                    "EVENT_HANDLER_ERROR",
                    event=event.name,
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(ex),
                )

        if event in _UI_EVENTS:
            async_dispatcher_send(self.hass, SIGNAL_UPDATE)

    def on(self, event: GridEvent, handler: EventHandler) -> Callable[[], None]:
        """Register an event handler.

        Args:
            event: Event type to listen for
            handler: Handler function

        Returns:
            Unsubscribe function
        """
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            self.off(event, handler)

        return unsubscribe

    def off(self, event: GridEvent, handler: EventHandler) -> None:
        """Unregister an event handler.

        Args:
            event: Event type
            handler: Handler to remove
        """
        if event in self._handlers and handler in self._handlers[event]:
            self._handlers[event].remove(handler)

    def emit_state_update(self) -> None:
        """Convenience method to emit UI update event."""
        self.emit(GridEvent.UI_UPDATE)
