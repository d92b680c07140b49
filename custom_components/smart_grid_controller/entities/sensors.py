"""Sensor entities using factory pattern.

Instead of defining each sensor manually, we use a data-driven approach.
Add a new sensor = add one line to SENSOR_DEFINITIONS.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.const import PERCENTAGE, UnitOfElectricPotential, UnitOfEnergy
from homeassistant.core import callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity import DeviceInfo

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback
    from ..coordinator import GridCoordinator

from ..const import DEFAULT_NAME, DOMAIN, SIGNAL_UPDATE

# HA rejects longer state strings
MAX_STATE_LENGTH = 255


@dataclass
class SensorDefinition:
    """Definition for a sensor entity."""

    key: str  # Unique identifier
    name: str  # Display name
    value_fn: Callable[[Any], Any]  # Function to get value from the coordinator
    unit: str | None = None
    device_class: SensorDeviceClass | None = None
    state_class: SensorStateClass | None = None
    icon: str | None = None
    attributes_fn: Callable[[Any], dict[str, Any]] | None = None


def _round(value: float | None, digits: int) -> float | None:
    return round(value, digits) if value is not None else None


SENSOR_DEFINITIONS: list[SensorDefinition] = [
    # Battery
    SensorDefinition(
        key="state_of_charge",
        name="State of Charge",
        value_fn=lambda c: _round(c.state.soc_percent, 1),
        unit=PERCENTAGE,
        device_class=SensorDeviceClass.BATTERY,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    SensorDefinition(
        key="battery_capacity",
        name="Battery Capacity",
        value_fn=lambda c: round(c.config.profile.capacity_kwh, 2),
        unit=UnitOfEnergy.KILO_WATT_HOUR,
        device_class=SensorDeviceClass.ENERGY_STORAGE,
        attributes_fn=lambda c: {
            "battery_type": c.config.profile.battery_type,
            "battery_ah": c.config.profile.battery_ah,
            "charge_threshold_w": round(c.config.profile.one_percent_power_w, 1),
        },
    ),
    SensorDefinition(
        key="charge_state",
        name="Charge State",
        value_fn=lambda c: c.state.charge_state,
        icon="mdi:battery-sync",
    ),

    # Decision
    SensorDefinition(
        key="grid_state",
        name="Grid State",
        value_fn=lambda c: c.state.decision.phase.value,
        icon="mdi:transmission-tower",
    ),
    SensorDefinition(
        key="decision_reason",
        name="Decision Reason",
        value_fn=lambda c: c.state.last_reason[:MAX_STATE_LENGTH],
        icon="mdi:information-outline",
        attributes_fn=lambda c: {
            "reason": c.state.last_reason,
            "decided_at": (
                c.state.last_decision_time.isoformat()
                if c.state.last_decision_time
                else None
            ),
            **c.controller.snapshot(),
        },
    ),
    SensorDefinition(
        key="active_conditions",
        name="Active Conditions",
        value_fn=lambda c: ", ".join(c.state.active_conditions) or "None",
        icon="mdi:format-list-checks",
    ),

    # Pack thresholds (read-only display)
    SensorDefinition(
        key="low_voltage_enable",
        name="Low Voltage Enable",
        value_fn=lambda c: c.config.profile.pack_thresholds.low_enable,
        unit=UnitOfElectricPotential.VOLT,
        device_class=SensorDeviceClass.VOLTAGE,
    ),
    SensorDefinition(
        key="low_voltage_disable",
        name="Low Voltage Disable",
        value_fn=lambda c: c.config.profile.pack_thresholds.low_disable,
        unit=UnitOfElectricPotential.VOLT,
        device_class=SensorDeviceClass.VOLTAGE,
    ),
    SensorDefinition(
        key="high_voltage_protection",
        name="High Voltage Protection",
        value_fn=lambda c: c.config.profile.pack_thresholds.high_protect,
        unit=UnitOfElectricPotential.VOLT,
        device_class=SensorDeviceClass.VOLTAGE,
    ),
    SensorDefinition(
        key="emergency_voltage",
        name="Emergency Voltage",
        value_fn=lambda c: c.config.profile.pack_thresholds.emergency,
        unit=UnitOfElectricPotential.VOLT,
        device_class=SensorDeviceClass.VOLTAGE,
    ),
]


class GridSensor(SensorEntity):
    """Generic Smart Grid Controller sensor entity."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(
        self,
        entry_id: str,
        coordinator: GridCoordinator,
        definition: SensorDefinition,
    ) -> None:
        """Initialize the sensor."""
        self._coordinator = coordinator
        self._definition = definition

        self._attr_unique_id = f"{entry_id}_{definition.key}"
        self._attr_name = definition.name
        self._attr_native_unit_of_measurement = definition.unit
        self._attr_device_class = definition.device_class
        self._attr_state_class = definition.state_class
        if definition.icon:
            self._attr_icon = definition.icon

        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry_id)},
            name=DEFAULT_NAME,
            manufacturer="Smart Grid Controller",
        )

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
            self._attr_native_value = self._definition.value_fn(self._coordinator)
        except (ValueError, TypeError, AttributeError, KeyError):
            # config is None while the configuration is invalid
            self._attr_native_value = None

        if self._definition.attributes_fn is not None:
            try:
                self._attr_extra_state_attributes = self._definition.attributes_fn(
                    self._coordinator
                )
            except (ValueError, TypeError, AttributeError, KeyError):
                self._attr_extra_state_attributes = {}
        self.async_write_ha_state()


async def async_setup_sensors(
    hass: HomeAssistant,
    entry: ConfigEntry,
    coordinator: GridCoordinator,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up all sensor entities."""
    entities = [
        GridSensor(entry.entry_id, coordinator, definition)
        for definition in SENSOR_DEFINITIONS
    ]
    async_add_entities(entities)
