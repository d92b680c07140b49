"""Binary sensor entities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.core import callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity import DeviceInfo, EntityCategory

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback
    from ..coordinator import GridCoordinator

from ..const import DEFAULT_NAME, DOMAIN, SIGNAL_UPDATE


@dataclass
class BinarySensorDefinition:
    """Definition for a binary sensor."""

    key: str
    name: str
    value_fn: Callable[[Any], bool]
    device_class: BinarySensorDeviceClass | None = None
    icon_on: str | None = None
    icon_off: str | None = None
    entity_category: EntityCategory | None = None
    attributes_fn: Callable[[Any], dict[str, Any]] | None = None


BINARY_SENSOR_DEFINITIONS: list[BinarySensorDefinition] = [
    BinarySensorDefinition(
        key="grid_enabled",
        name="Grid Enabled",
        value_fn=lambda c: c.state.grid_enabled,
        device_class=BinarySensorDeviceClass.POWER,
        attributes_fn=lambda c: {
            "phase": c.state.decision.phase.value,
            "reason": c.state.last_reason,
            "delivered": c.hardware.delivered_state,
            "last_actuator_error": c.state.last_actuator_error,
        },
    ),

    # Conditions
    BinarySensorDefinition(
        key="load_condition",
        name="Load Condition",
        value_fn=lambda c: c.state.load_condition.is_enabled,
        icon_on="mdi:flash-alert",
        icon_off="mdi:flash-outline",
        attributes_fn=lambda c: {"phase": c.state.load_condition.phase.value},
    ),
    BinarySensorDefinition(
        key="voltage_condition",
        name="Voltage Condition",
        value_fn=lambda c: c.state.voltage_condition.is_enabled,
        icon_on="mdi:battery-alert-variant-outline",
        icon_off="mdi:battery-outline",
        attributes_fn=lambda c: {"phase": c.state.voltage_condition.phase.value},
    ),
    BinarySensorDefinition(
        key="soc_condition",
        name="SoC Condition",
        value_fn=lambda c: c.state.soc_condition.is_enabled,
        icon_on="mdi:battery-10",
        icon_off="mdi:battery-50",
        attributes_fn=lambda c: {"phase": c.state.soc_condition.phase.value},
    ),
    BinarySensorDefinition(
        key="schedule_condition",
        name="Schedule Condition",
        value_fn=lambda c: c.state.schedule_condition.is_enabled,
        icon_on="mdi:clock-check",
        icon_off="mdi:clock-outline",
        attributes_fn=lambda c: {
            "window": c.config.schedule.describe(),
            "timezone": c.config.schedule.timezone,
        },
    ),

    # Protections
    BinarySensorDefinition(
        key="battery_protection",
        name="Battery Protection",
        value_fn=lambda c: c.state.standard_protection.is_active,
        device_class=BinarySensorDeviceClass.SAFETY,
        attributes_fn=lambda c: {
            "overridden_by_load": (
                c.state.standard_protection.is_active
                and c.state.load_condition.is_enabled
            ),
        },
    ),
    BinarySensorDefinition(
        key="emergency_protection",
        name="Emergency Protection",
        value_fn=lambda c: c.state.emergency_protection.is_active,
        device_class=BinarySensorDeviceClass.SAFETY,
    ),

    # Diagnostics
    BinarySensorDefinition(
        key="startup_grace",
        name="Startup Grace",
        value_fn=lambda c: c.state.in_startup_grace,
        device_class=BinarySensorDeviceClass.RUNNING,
        entity_category=EntityCategory.DIAGNOSTIC,
    ),
    BinarySensorDefinition(
        key="configuration_problem",
        name="Configuration Problem",
        value_fn=lambda c: c.state.config_error is not None,
        device_class=BinarySensorDeviceClass.PROBLEM,
        entity_category=EntityCategory.DIAGNOSTIC,
        attributes_fn=lambda c: {"error": c.state.config_error},
    ),
]


class GridBinarySensor(BinarySensorEntity):
    """Generic Smart Grid Controller binary sensor."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(
        self,
        entry_id: str,
        coordinator: GridCoordinator,
        definition: BinarySensorDefinition,
    ) -> None:
        """Initialize."""
        self._coordinator = coordinator
        self._definition = definition

        self._attr_unique_id = f"{entry_id}_{definition.key}"
        self._attr_name = definition.name
        self._attr_device_class = definition.device_class
        self._attr_entity_category = definition.entity_category

        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry_id)},
            name=DEFAULT_NAME,
            manufacturer="Smart Grid Controller",
        )

    @property
    def icon(self) -> str | None:
        """Return icon based on state."""
        if self._definition.icon_on and self._definition.icon_off:
            return self._definition.icon_on if self.is_on else self._definition.icon_off
        return None

    async def async_added_to_hass(self) -> None:
        """Register for updates."""
        self.async_on_remove(
            async_dispatcher_connect(
                self.hass,
                SIGNAL_UPDATE,
                self._handle_update,
            )
        )
        self._handle_update()

    @callback
    def _handle_update(self) -> None:
        """Handle state update."""
        try:
            self._attr_is_on = self._definition.value_fn(self._coordinator)
        except (ValueError, TypeError, AttributeError, KeyError):
            self._attr_is_on = False

        if self._definition.attributes_fn is not None:
            try:
                self._attr_extra_state_attributes = self._definition.attributes_fn(
                    self._coordinator
                )
            except (ValueError, TypeError, AttributeError, KeyError):
                self._attr_extra_state_attributes = {}
        self.async_write_ha_state()


async def async_setup_binary_sensors(
    hass: HomeAssistant,
    entry: ConfigEntry,
    coordinator: GridCoordinator,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up binary sensor entities."""
    async_add_entities(
        GridBinarySensor(entry.entry_id, coordinator, definition)
        for definition in BINARY_SENSOR_DEFINITIONS
    )
