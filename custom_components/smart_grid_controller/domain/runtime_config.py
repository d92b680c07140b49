"""Runtime configuration built from the persisted config entry.

build_runtime_config() is a pure function of the options mapping. Tunables
that fail validation fall back to their defaults with a warning; the battery
definition is safety-critical and raises ConfigError instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..const import (
    CONF_AC_INPUT_ENTITY,
    CONF_BATTERY_AH,
    CONF_BATTERY_TYPE,
    CONF_CONTROL_METHOD,
    CONF_HIGH_SOC_PROTECTION,
    CONF_LOAD_DISABLE_WATTS,
    CONF_LOAD_ENABLE_WATTS,
    CONF_LOW_SOC_DISABLE,
    CONF_LOW_SOC_ENABLE,
    CONF_RELAY_SWITCH,
    CONF_SCHEDULE_END_HOUR,
    CONF_SCHEDULE_START_HOUR,
    CONF_TIMEZONE,
    CONTROL_METHODS,
    DEFAULT_BATTERY_TYPE,
    DEFAULT_CONTROL_METHOD,
    DEFAULT_HIGH_SOC_PROTECTION,
    DEFAULT_LOAD_DISABLE_WATTS,
    DEFAULT_LOAD_ENABLE_WATTS,
    DEFAULT_LOW_SOC_DISABLE,
    DEFAULT_LOW_SOC_ENABLE,
    DEFAULT_SCHEDULE_END_HOUR,
    DEFAULT_SCHEDULE_START_HOUR,
    DEFAULT_TIMEZONE,
)
from ..grid_logging import get_logger
from .battery import BatteryProfile, parse_battery_type, resolve_profile


@dataclass(frozen=True)
class LoadThresholds:
    """AC load hysteresis band in watts."""

    enable_watts: float = DEFAULT_LOAD_ENABLE_WATTS
    disable_watts: float = DEFAULT_LOAD_DISABLE_WATTS


@dataclass(frozen=True)
class SocThresholds:
    """SoC thresholds in percent."""

    low_enable: float = DEFAULT_LOW_SOC_ENABLE
    low_disable: float = DEFAULT_LOW_SOC_DISABLE
    high_protect: float = DEFAULT_HIGH_SOC_PROTECTION


@dataclass(frozen=True)
class ScheduleSettings:
    """Off-peak window in local hours, end exclusive."""

    timezone: str = DEFAULT_TIMEZONE
    start_hour: int = DEFAULT_SCHEDULE_START_HOUR
    end_hour: int = DEFAULT_SCHEDULE_END_HOUR

    def contains(self, hour: int) -> bool:
        """Check if an hour is inside the window.

        A start after the end wraps past midnight; equal hours is an empty window.
        """
        if self.start_hour <= self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour

    def describe(self) -> str:
        """Window as HH:00-HH:00."""
        return f"{self.start_hour:02d}:00-{self.end_hour:02d}:00"


@dataclass(frozen=True)
class ActuatorSettings:
    """How grid commands reach the hardware."""

    control_method: str = DEFAULT_CONTROL_METHOD
    ac_input_entity: str | None = None
    relay_entity: str | None = None


@dataclass(frozen=True)
class RuntimeConfig:
    """Everything one controller pass needs."""

    profile: BatteryProfile
    load: LoadThresholds
    soc: SocThresholds
    schedule: ScheduleSettings
    actuator: ActuatorSettings

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "battery": self.profile.to_dict(),
            "load_enable_watts": self.load.enable_watts,
            "load_disable_watts": self.load.disable_watts,
            "low_soc_enable": self.soc.low_enable,
            "low_soc_disable": self.soc.low_disable,
            "high_soc_protection": self.soc.high_protect,
            "schedule": f"{self.schedule.describe()} {self.schedule.timezone}",
            "control_method": self.actuator.control_method,
        }


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_hour(value: Any, upper: int) -> int | None:
    number = _as_float(value)
    if number is None or not number.is_integer() or not 0 <= number <= upper:
        return None
    return int(number)


def _build_load(options: Mapping[str, Any]) -> LoadThresholds:
    logger = get_logger()
    enable = _as_float(options.get(CONF_LOAD_ENABLE_WATTS, DEFAULT_LOAD_ENABLE_WATTS))
    disable = _as_float(options.get(CONF_LOAD_DISABLE_WATTS, DEFAULT_LOAD_DISABLE_WATTS))

    if enable is None or disable is None or disable < 0 or enable <= disable:
        logger.warning(
            "LOAD_THRESHOLDS_INVALID_USING_DEFAULTS",
            enable_watts=options.get(CONF_LOAD_ENABLE_WATTS),
            disable_watts=options.get(CONF_LOAD_DISABLE_WATTS),
        )
        return LoadThresholds()
    return LoadThresholds(enable_watts=enable, disable_watts=disable)


def _build_soc(options: Mapping[str, Any]) -> SocThresholds:
    logger = get_logger()
    low_enable = _as_float(options.get(CONF_LOW_SOC_ENABLE, DEFAULT_LOW_SOC_ENABLE))
    low_disable = _as_float(options.get(CONF_LOW_SOC_DISABLE, DEFAULT_LOW_SOC_DISABLE))
    high = _as_float(options.get(CONF_HIGH_SOC_PROTECTION, DEFAULT_HIGH_SOC_PROTECTION))

    if (
        low_enable is None
        or low_disable is None
        or high is None
        or not 0 <= low_enable < low_disable <= high <= 100
    ):
        logger.warning(
            "SOC_THRESHOLDS_INVALID_USING_DEFAULTS",
            low_enable=options.get(CONF_LOW_SOC_ENABLE),
            low_disable=options.get(CONF_LOW_SOC_DISABLE),
            high_protect=options.get(CONF_HIGH_SOC_PROTECTION),
        )
        return SocThresholds()
    return SocThresholds(low_enable=low_enable, low_disable=low_disable, high_protect=high)


def _build_schedule(options: Mapping[str, Any]) -> ScheduleSettings:
    logger = get_logger()
    timezone = options.get(CONF_TIMEZONE) or DEFAULT_TIMEZONE
    start = _as_hour(options.get(CONF_SCHEDULE_START_HOUR, DEFAULT_SCHEDULE_START_HOUR), 23)
    end = _as_hour(options.get(CONF_SCHEDULE_END_HOUR, DEFAULT_SCHEDULE_END_HOUR), 24)

    if not isinstance(timezone, str):
        logger.warning("SCHEDULE_TIMEZONE_INVALID_USING_DEFAULT", timezone=timezone)
        timezone = DEFAULT_TIMEZONE

    if start is None or end is None:
        logger.warning(
            "SCHEDULE_INVALID_USING_DEFAULTS",
            start_hour=options.get(CONF_SCHEDULE_START_HOUR),
            end_hour=options.get(CONF_SCHEDULE_END_HOUR),
        )
        return ScheduleSettings(timezone=timezone)
    return ScheduleSettings(timezone=timezone, start_hour=start, end_hour=end)


def _build_actuator(options: Mapping[str, Any]) -> ActuatorSettings:
    method = options.get(CONF_CONTROL_METHOD, DEFAULT_CONTROL_METHOD)
    if method not in CONTROL_METHODS:
        get_logger().warning("CONTROL_METHOD_INVALID_USING_DEFAULT", control_method=method)
        method = DEFAULT_CONTROL_METHOD

    return ActuatorSettings(
        control_method=method,
        ac_input_entity=options.get(CONF_AC_INPUT_ENTITY) or None,
        relay_entity=options.get(CONF_RELAY_SWITCH) or None,
    )


def build_runtime_config(options: Mapping[str, Any]) -> RuntimeConfig:
    """Build a RuntimeConfig from merged config entry data and options.

    Raises:
        ConfigError: Battery type, cell count or Ah rating is unusable
    """
    chemistry, cell_count = parse_battery_type(
        options.get(CONF_BATTERY_TYPE, DEFAULT_BATTERY_TYPE)
    )
    profile = resolve_profile(chemistry, cell_count, options.get(CONF_BATTERY_AH))

    return RuntimeConfig(
        profile=profile,
        load=_build_load(options),
        soc=_build_soc(options),
        schedule=_build_schedule(options),
        actuator=_build_actuator(options),
    )


class RuntimeConfigCache:
    """Rebuilds the RuntimeConfig only when the options content changes.

    Failures are never cached, so a broken configuration raises on every call.
    """

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._key: tuple | None = None
        self._config: RuntimeConfig | None = None

    @staticmethod
    def _make_key(options: Mapping[str, Any]) -> tuple:
        return tuple(sorted((str(key), repr(value)) for key, value in options.items()))

    def get(self, options: Mapping[str, Any]) -> RuntimeConfig:
        """Return the config for these options, building it if needed."""
        key = self._make_key(options)
        if self._config is not None and key == self._key:
            return self._config

        self._key = None
        self._config = None
        config = build_runtime_config(options)
        self._key = key
        self._config = config
        get_logger().info("RUNTIME_CONFIG_BUILT", **config.to_dict())
        return config
