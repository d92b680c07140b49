"""Shared test helpers."""
from datetime import datetime

from custom_components.smart_grid_controller.const import (
    CONF_BATTERY_AH,
    CONF_BATTERY_TYPE,
    CONF_SCHEDULE_END_HOUR,
    CONF_SCHEDULE_START_HOUR,
)
from custom_components.smart_grid_controller.domain.runtime_config import (
    build_runtime_config,
)

VOLTAGE_SENSOR = "sensor.battery_voltage"
AC_LOAD_SENSOR = "sensor.ac_load"
CHARGE_POWER_SENSOR = "sensor.charge_power"
AC_INPUT_ENTITY = "number.multiplus_ignore_ac_input"
RELAY_ENTITY = "input_boolean.grid_relay"

# Fixed noon timestamp for pure controller tests
NOON = datetime(2024, 6, 3, 12, 0)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now

    def set(self, value: float) -> float:
        self.now = value
        return self.now


def make_options(**overrides):
    """Options for a 15S NCM 280Ah pack with an empty schedule window."""
    options = {
        CONF_BATTERY_TYPE: "li-ncm-15s",
        CONF_BATTERY_AH: 280,
        CONF_SCHEDULE_START_HOUR: 0,
        CONF_SCHEDULE_END_HOUR: 0,
    }
    options.update(overrides)
    return options


def make_config(**overrides):
    """RuntimeConfig built from make_options()."""
    return build_runtime_config(make_options(**overrides))
