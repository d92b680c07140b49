"""Hardware abstraction layer - single point of access for all HA entities.

This module provides a clean interface to:
- Read the three telemetry sensors into a Sample
- Drive the grid actuator (inverter "ignore AC input" control and/or relay)

There is no retry: a failed command is logged, reported as ACTUATOR_ERROR and
left for the coordinator to re-assert on the next cycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.const import STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.util import dt as dt_util

from ..const import (
    CONTROL_METHOD_AUTO,
    CONTROL_METHOD_DIRECT_AC_INPUT,
    CONTROL_METHOD_RELAY,
)
from ..grid_logging import get_logger
from .events import GridEvent, GridEventBus
from .state import Sample

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..domain.controller import GridCommand
    from ..domain.runtime_config import ActuatorSettings

# Entity domains accepted for each target
NUMERIC_DOMAINS = ("number", "input_number")
TOGGLE_DOMAINS = ("switch", "input_boolean")


class HardwareController:
    """Abstraction layer for all hardware/HA entity interactions.

    Provides:
    - Sensor reading with availability checks
    - Actuator control for every control method
    - Tracking of the last delivered grid state
    """

    def __init__(self, hass: HomeAssistant, events: GridEventBus) -> None:
        """Initialize the hardware controller.

        Args:
            hass: Home Assistant instance
            events: Event bus
        """
        self.hass = hass
        self.events = events
        self._logger = get_logger()

        # None until a command has been delivered (or after a failure)
        self._delivered_state: bool | None = None
        self._in_flight = 0

    # ========== Sensor Reading ==========

    def get_sensor_value(self, entity_id: str | None, sensor_name: str) -> float | None:
        """Get numeric value from a sensor.

        Args:
            entity_id: Entity ID of the sensor
            sensor_name: Name for logging

        Returns:
            Sensor value, or None if missing, unavailable or not numeric
        """
        if not entity_id:
            self._logger.warning(f"{sensor_name.upper()}_NOT_CONFIGURED")
            return None

        state = self.hass.states.get(entity_id)
        if state is None:
            self._logger.warning(f"{sensor_name.upper()}_NOT_FOUND", entity_id=entity_id)
            return None

        if state.state in (STATE_UNKNOWN, STATE_UNAVAILABLE):
            self._logger.warning(f"{sensor_name.upper()}_UNAVAILABLE", entity_id=entity_id)
            return None

        try:
            return float(state.state)
        except (ValueError, TypeError) as ex:
            self._logger.warning(
                f"{sensor_name.upper()}_INVALID_VALUE",
                entity_id=entity_id,
                value=state.state,
                error=str(ex),
            )
            return None

    def read_sample(
        self,
        voltage_entity: str | None,
        ac_load_entity: str | None,
        charge_power_entity: str | None,
    ) -> Sample | None:
        """Read all three sensors.

        Returns:
            A Sample, or None if any sensor has no usable value
        """
        voltage = self.get_sensor_value(voltage_entity, "battery_voltage")
        ac_load = self.get_sensor_value(ac_load_entity, "ac_load")
        charge_power = self.get_sensor_value(charge_power_entity, "charge_power")

        if voltage is None or ac_load is None or charge_power is None:
            return None

        return Sample(
            voltage=voltage,
            ac_load=ac_load,
            charge_power=charge_power,
            timestamp=dt_util.utcnow(),
        )

    # ========== Actuator Control ==========

    def _targets(self, actuator: ActuatorSettings) -> list[tuple[str, str]]:
        """(kind, entity_id) pairs to drive for the control method."""
        targets: list[tuple[str, str]] = []
        method = actuator.control_method
        if method in (CONTROL_METHOD_DIRECT_AC_INPUT, CONTROL_METHOD_AUTO) and actuator.ac_input_entity:
            targets.append(("ignore_ac_input", actuator.ac_input_entity))
        if method in (CONTROL_METHOD_RELAY, CONTROL_METHOD_AUTO) and actuator.relay_entity:
            targets.append(("relay", actuator.relay_entity))
        return targets

    async def _call_service(self, domain: str, service: str, data: dict) -> None:
        await self.hass.services.async_call(domain, service, data, blocking=True)

    async def _set_ignore_ac_input(self, entity_id: str, enable_grid: bool) -> None:
        """Write the inverter's ignore-AC-input control.

        0 / off means AC input is used (grid enabled), 1 / on means ignored.
        """
        domain = entity_id.split(".", 1)[0]
        if domain in NUMERIC_DOMAINS:
            await self._call_service(
                domain,
                "set_value",
                {"entity_id": entity_id, "value": 0 if enable_grid else 1},
            )
        elif domain in TOGGLE_DOMAINS:
            await self._call_service(
                domain,
                "turn_off" if enable_grid else "turn_on",
                {"entity_id": entity_id},
            )
        else:
            raise ValueError(f"Unsupported entity for ignore AC input: {entity_id}")

    async def _set_relay(self, entity_id: str, enable_grid: bool) -> None:
        """Energize the grid relay to connect the grid."""
        domain = entity_id.split(".", 1)[0]
        if domain not in TOGGLE_DOMAINS:
            raise ValueError(f"Unsupported entity for grid relay: {entity_id}")
        await self._call_service(
            domain,
            "turn_on" if enable_grid else "turn_off",
            {"entity_id": entity_id},
        )

    def send(self, command: GridCommand, actuator: ActuatorSettings) -> None:
        """Deliver a command in the background without waiting for it.

        The command counts as in flight from this call, before its task runs.
        """
        self._in_flight += 1
        self.hass.async_create_task(self._send(command, actuator))

    async def _send(self, command: GridCommand, actuator: ActuatorSettings) -> None:
        try:
            await self._deliver(command, actuator)
        finally:
            self._in_flight -= 1

    async def apply(self, command: GridCommand, actuator: ActuatorSettings) -> bool:
        """Deliver a grid command to every configured target.

        Args:
            command: Command from the controller
            actuator: Control method and target entities

        Returns:
            True if every target accepted the command
        """
        self._in_flight += 1
        try:
            return await self._deliver(command, actuator)
        finally:
            self._in_flight -= 1

    async def _deliver(self, command: GridCommand, actuator: ActuatorSettings) -> bool:
        targets = self._targets(actuator)
        if not targets:
            self._logger.error(
                "ACTUATOR_NOT_CONFIGURED", control_method=actuator.control_method
            )
            self._delivered_state = None
            self.events.emit(
                GridEvent.ACTUATOR_ERROR,
                control_method=actuator.control_method,
                error="No actuator entity configured",
            )
            return False

        success = True
        for kind, entity_id in targets:
            try:
                if kind == "relay":
                    await self._set_relay(entity_id, command.enable)
                else:
                    await self._set_ignore_ac_input(entity_id, command.enable)
                self._logger.info(
                    f"{kind.upper()}_SET",
                    entity_id=entity_id,
                    grid_enabled=command.enable,
                )
            except Exception as ex:
                success = False
                self._logger.error(
                    f"{kind.upper()}_FAILED",
                    entity_id=entity_id,
                    grid_enabled=command.enable,
                    error=str(ex),
                )
                self.events.emit(
                    GridEvent.ACTUATOR_ERROR,
                    target=kind,
                    entity_id=entity_id,
                    error=str(ex),
                )

        self._delivered_state = command.enable if success else None
        return success

    @property
    def delivered_state(self) -> bool | None:
        """Last grid state every target accepted, None if unknown."""
        return self._delivered_state

    @property
    def in_flight(self) -> bool:
        """Check if a command is being delivered."""
        return self._in_flight > 0
