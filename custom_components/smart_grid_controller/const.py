"""Constants for the Smart Grid Controller integration."""

DOMAIN = "smart_grid_controller"

# Configuration Keys - Battery
CONF_BATTERY_TYPE = "battery_type"
CONF_BATTERY_AH = "battery_ah"

# Configuration Keys - Telemetry sensors
CONF_VOLTAGE_SENSOR = "battery_voltage_sensor_entity_id"
CONF_AC_LOAD_SENSOR = "ac_load_power_sensor_entity_id"
CONF_CHARGE_POWER_SENSOR = "charge_power_sensor_entity_id"

# Configuration Keys - Actuator
CONF_CONTROL_METHOD = "control_method"
CONF_AC_INPUT_ENTITY = "ignore_ac_input_entity_id"
CONF_RELAY_SWITCH = "grid_relay_switch_entity_id"

# Configuration Keys - Thresholds
CONF_LOAD_ENABLE_WATTS = "load_enable_watts"
CONF_LOAD_DISABLE_WATTS = "load_disable_watts"
CONF_LOW_SOC_ENABLE = "low_soc_enable_percent"
CONF_LOW_SOC_DISABLE = "low_soc_disable_percent"
CONF_HIGH_SOC_PROTECTION = "high_soc_protection_percent"

# Configuration Keys - Schedule
CONF_TIMEZONE = "schedule_timezone"
CONF_SCHEDULE_START_HOUR = "schedule_start_hour"
CONF_SCHEDULE_END_HOUR = "schedule_end_hour"

# Control methods
CONTROL_METHOD_AUTO = "auto"
CONTROL_METHOD_DIRECT_AC_INPUT = "direct_ac_input"
CONTROL_METHOD_RELAY = "relay"
CONTROL_METHODS = [
    CONTROL_METHOD_AUTO,
    CONTROL_METHOD_DIRECT_AC_INPUT,
    CONTROL_METHOD_RELAY,
]

# Battery types offered in the UI: "<chemistry>-<cells>s"
NCM_BATTERY_TYPES = [f"li-ncm-{cells}s" for cells in range(4, 16)]
LIFEPO4_BATTERY_TYPES = [f"lifepo4-{cells}s" for cells in range(4, 17)]
BATTERY_TYPES = NCM_BATTERY_TYPES + LIFEPO4_BATTERY_TYPES

# Defaults
DEFAULT_NAME = "Smart Grid Controller"
DEFAULT_BATTERY_TYPE = "li-ncm-15s"
DEFAULT_CONTROL_METHOD = CONTROL_METHOD_AUTO
DEFAULT_LOAD_ENABLE_WATTS = 2500.0
DEFAULT_LOAD_DISABLE_WATTS = 1750.0
DEFAULT_LOW_SOC_ENABLE = 10.0
DEFAULT_LOW_SOC_DISABLE = 30.0
DEFAULT_HIGH_SOC_PROTECTION = 95.0
DEFAULT_TIMEZONE = "Europe/London"
DEFAULT_SCHEDULE_START_HOUR = 0
DEFAULT_SCHEDULE_END_HOUR = 6

# Timing (seconds)
CONDITION_DEBOUNCE_SECONDS = 3.0
DISABLE_DELAY_SECONDS = 30.0
STARTUP_GRACE_SECONDS = 30.0

# Sample validity gate
MIN_VALID_VOLTAGE = 0.0
MAX_VALID_VOLTAGE = 100.0
MIN_VALID_AC_LOAD = 0.0
MAX_VALID_AC_LOAD = 50000.0

# Dispatcher signal for entity refresh
SIGNAL_UPDATE = f"{DOMAIN}_update"
