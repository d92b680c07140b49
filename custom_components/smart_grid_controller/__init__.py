"""The Smart Grid Controller integration.

Decides from live battery voltage, AC load and charge power whether the grid
input of an inverter/charger should be connected:
- Pure decision engine (domain/*.py)
- Single state container (core/state.py)
- Event bus and hardware abstraction (core/events.py, core/hardware.py)
- Factory-based entities (entities/*.py)
- Unified logging (grid_logging/*.py)
"""

from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant

from .const import DOMAIN
from .coordinator import GridCoordinator
from .grid_logging import get_logger

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [
    Platform.SENSOR,
    Platform.BINARY_SENSOR,
    Platform.SWITCH,
]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Smart Grid Controller from a config entry."""
    hass.data.setdefault(DOMAIN, {})

    # Create coordinator
    coordinator = GridCoordinator(hass, entry)
    hass.data[DOMAIN][entry.entry_id] = coordinator

    # Forward to platforms, then start control
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    await coordinator.async_init()

    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    _LOGGER.info("Smart Grid Controller initialized")
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    if unload_ok := await hass.config_entries.async_unload_platforms(entry, PLATFORMS):
        coordinator: GridCoordinator = hass.data[DOMAIN].pop(entry.entry_id)
        coordinator.async_unload()

        # The decision journal is shared by every entry
        if not hass.data[DOMAIN]:
            get_logger().shutdown()

    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload after the options changed."""
    await hass.config_entries.async_reload(entry.entry_id)
