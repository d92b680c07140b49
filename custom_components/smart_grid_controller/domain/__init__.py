"""Domain logic module - pure decision logic without HA dependencies.

Modules in this package:
- battery: battery profile resolution
- soc: state-of-charge estimation
- conditions: debounced grid-enable conditions
- protection: battery protection latches
- controller: the decision engine
- runtime_config: configuration built from the config entry
"""

from .battery import BatteryProfile, Chemistry, ConfigError, parse_battery_type, resolve_profile
from .controller import GridCommand, GridController
from .runtime_config import RuntimeConfig, RuntimeConfigCache, build_runtime_config
from .soc import ChargeState, estimate_soc

__all__ = [
    "BatteryProfile",
    "ChargeState",
    "Chemistry",
    "ConfigError",
    "GridCommand",
    "GridController",
    "RuntimeConfig",
    "RuntimeConfigCache",
    "build_runtime_config",
    "estimate_soc",
    "parse_battery_type",
    "resolve_profile",
]
