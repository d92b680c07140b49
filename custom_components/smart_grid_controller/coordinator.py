"""Coordinator for Smart Grid Controller.

Thin orchestrator - wires sensors, the decision engine and the actuator:
- Subscribes to the three telemetry sensors
- Gates sample validity and resolves the schedule time zone
- Runs one controller pass per sample
- Wakes the controller at its next deadline
- Delivers commands fire-and-forget and re-asserts undelivered state
"""

from __future__ import annotations

from datetime import datetime
from time import monotonic
from typing import TYPE_CHECKING, Any, Callable

from homeassistant.core import callback
from homeassistant.helpers.event import (
    async_call_later,
    async_track_state_change_event,
)
from homeassistant.util import dt as dt_util

from .const import (
    CONF_AC_LOAD_SENSOR,
    CONF_CHARGE_POWER_SENSOR,
    CONF_VOLTAGE_SENSOR,
)
from .core.events import EventData, GridEvent, GridEventBus
from .core.hardware import HardwareController
from .domain.battery import ConfigError
from .domain.controller import GridCommand, GridController
from .domain.runtime_config import RuntimeConfig, RuntimeConfigCache
from .grid_logging import get_logger

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import Event, HomeAssistant


class GridCoordinator:
    """Thin orchestrator for Smart Grid Controller.

    This class:
    - Initializes all components
    - Turns sensor changes and deadline wake-ups into controller passes
    - Hands commands to the hardware layer
    - Keeps entities updated
    """

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        """Initialize the coordinator."""
        self.hass = hass
        self.entry = entry
        self._listeners: list[Callable[[], None]] = []
        self._cancel_wakeup: Callable[[], None] | None = None
        self._logger = get_logger()
        self._clock: Callable[[], float] = monotonic
        self._timezone_warned: str | None = None

        # Initialize event bus
        self.events = GridEventBus(hass)

        # Initialize hardware controller
        self.hardware = HardwareController(hass, self.events)

        # Decision engine owns the state
        self.controller = GridController(clock=self._clock)
        self.state = self.controller.state

        self._config_cache = RuntimeConfigCache()
        self.config: RuntimeConfig | None = None

        self._logger.info("COORDINATOR_INIT_COMPLETE", entry_id=entry.entry_id)

    @property
    def options(self) -> dict[str, Any]:
        """Config entry data overlaid with options."""
        return {**self.entry.data, **self.entry.options}

    async def async_init(self) -> None:
        """Start control: grid on, sensors tracked, first pass run."""
        self._listeners.append(
            self.events.on(GridEvent.ACTUATOR_ERROR, self._handle_actuator_error)
        )

        config = self._load_config()
        if config is not None:
            self._start(config)

        self._setup_sensor_tracking()
        self._run_cycle()

        self._logger.info("COORDINATOR_ASYNC_INIT_COMPLETE")

    def async_unload(self) -> None:
        """Unload the coordinator."""
        for remove in self._listeners:
            remove()
        self._listeners.clear()

        if self._cancel_wakeup is not None:
            self._cancel_wakeup()
            self._cancel_wakeup = None

        self._logger.info("COORDINATOR_UNLOADED")

    def _setup_sensor_tracking(self) -> None:
        """Subscribe to the telemetry sensors."""
        options = self.options
        entity_ids = [
            entity_id
            for entity_id in (
                options.get(CONF_VOLTAGE_SENSOR),
                options.get(CONF_AC_LOAD_SENSOR),
                options.get(CONF_CHARGE_POWER_SENSOR),
            )
            if entity_id
        ]
        if not entity_ids:
            self._logger.warning("NO_SENSORS_CONFIGURED")
            return

        self._listeners.append(
            async_track_state_change_event(
                self.hass, entity_ids, self._handle_sensor_change
            )
        )
        self._logger.debug("SENSOR_TRACKING_ENABLED", sensors=entity_ids)

    # ========== Event Handlers ==========

    @callback
    def _handle_sensor_change(self, event: Event) -> None:
        """Any telemetry sensor changed: run a pass."""
        self._run_cycle()

    @callback
    def _handle_wakeup(self, _now: datetime) -> None:
        """A controller deadline is due."""
        self._cancel_wakeup = None
        if self.config is None or self.state.config_error:
            return

        command = self.controller.tick()
        if command is not None:
            self._dispatch(command, self.config)
        self._schedule_wakeup()
        self.events.emit_state_update()

    def _handle_actuator_error(self, event: EventData) -> None:
        """Remember the last delivery problem for the entities."""
        self.state.last_actuator_error = event.data.get("error")

    # ========== Control Cycle ==========

    def _load_config(self) -> RuntimeConfig | None:
        """Get the runtime config, or report why control is disabled."""
        try:
            config = self._config_cache.get(self.options)
        except ConfigError as ex:
            self._logger.error("CONFIG_ERROR_CONTROL_DISABLED", error=str(ex))
            self.state.config_error = str(ex)
            self.events.emit(GridEvent.CONFIG_ERROR, error=str(ex))
            return None

        if self.state.config_error is not None:
            self._logger.info("CONFIG_ERROR_RESOLVED")
            self.state.config_error = None
        self.config = config
        return config

    def _start(self, config: RuntimeConfig) -> None:
        """Command the grid on and open the grace window."""
        command = self.controller.start()
        self.events.emit(
            GridEvent.CONTROLLER_STARTED,
            battery=config.profile.battery_type,
            capacity_kwh=round(config.profile.capacity_kwh, 1),
        )
        self._dispatch(command, config)
        self._schedule_wakeup()

    def _run_cycle(self) -> None:
        """One complete controller pass for the current sensor values."""
        config = self._load_config()
        if config is None:
            return

        if not self.state.started:
            self._start(config)

        options = self.options
        sample = self.hardware.read_sample(
            options.get(CONF_VOLTAGE_SENSOR),
            options.get(CONF_AC_LOAD_SENSOR),
            options.get(CONF_CHARGE_POWER_SENSOR),
        )
        if sample is None or not sample.is_valid():
            self._logger.warning(
                "INVALID_SAMPLE_SKIPPED",
                sample=sample.to_dict() if sample else None,
            )
            self.events.emit(
                GridEvent.INVALID_SAMPLE,
                sample=sample.to_dict() if sample else None,
            )
            return

        local_time = self._local_time(config.schedule.timezone)
        command = self.controller.evaluate(sample, config, local_time)
        self.state.last_decision_time = dt_util.utcnow()

        for change in self.controller.protection_changes:
            self.events.emit(
                GridEvent.PROTECTION_ACTIVATED if change.active else GridEvent.PROTECTION_CLEARED,
                tier=change.tier,
                detail=change.detail,
            )

        if command is not None:
            self._dispatch(command, config)
        else:
            self._reassert(config)

        self._log_system_state()
        self._schedule_wakeup()
        self.events.emit_state_update()

    def _local_time(self, timezone: str) -> datetime:
        """Current time in the schedule time zone, or HA's zone if it is unknown."""
        tz = dt_util.get_time_zone(timezone)
        if tz is None:
            if self._timezone_warned != timezone:
                self._logger.warning(
                    "TIMEZONE_INVALID_USING_LOCAL",
                    timezone=timezone,
                    fallback=str(dt_util.DEFAULT_TIME_ZONE),
                )
                self._timezone_warned = timezone
            tz = dt_util.DEFAULT_TIME_ZONE
        return dt_util.now(tz)

    # ========== Actuator ==========

    def _dispatch(self, command: GridCommand, config: RuntimeConfig) -> None:
        """Send a command without waiting for delivery."""
        self.events.emit(
            GridEvent.GRID_ENABLED if command.enable else GridEvent.GRID_DISABLED,
            reason=command.reason,
        )
        self.hardware.send(command, config.actuator)

    def _reassert(self, config: RuntimeConfig) -> None:
        """Re-send the desired state if the last delivery did not land."""
        desired = self.controller.grid_enabled
        if self.hardware.in_flight or self.hardware.delivered_state == desired:
            return

        reason = f"Re-assert: {self.state.last_reason}"
        self._logger.warning(
            "COMMAND_REASSERTED",
            grid_enabled=desired,
            delivered=self.hardware.delivered_state,
        )
        self.events.emit(GridEvent.COMMAND_REASSERTED, grid_enabled=desired)
        command = GridCommand(enable=desired, reason=reason, snapshot=self.controller.snapshot())
        self.hardware.send(command, config.actuator)

    # ========== Utility ==========

    def _schedule_wakeup(self) -> None:
        """Arrange a tick at the controller's next deadline."""
        if self._cancel_wakeup is not None:
            self._cancel_wakeup()
            self._cancel_wakeup = None

        deadline = self.controller.next_deadline()
        if deadline is None:
            return

        delay = max(0.0, deadline - self._clock())
        self._cancel_wakeup = async_call_later(self.hass, delay, self._handle_wakeup)

    def _log_system_state(self) -> None:
        """Per-cycle debug line."""
        sample = self.state.last_sample
        soc = self.state.soc_percent
        self._logger.debug(
            "SYSTEM_STATE",
            voltage=f"{sample.voltage:.2f}V" if sample else None,
            soc=f"{soc:.1f}%" if soc is not None else None,
            load=f"{sample.ac_load:.1f}W" if sample else None,
            charge_power=f"{sample.charge_power:.1f}W" if sample else None,
            charge_state=self.state.charge_state,
            grid=self.state.decision.phase.value,
            conditions=",".join(self.state.active_conditions) or "none",
            standard=self.state.standard_protection.status.value,
            emergency=self.state.emergency_protection.status.value,
            grace=self.state.in_startup_grace,
        )
