"""Entities module - HA entity definitions using factory pattern.

All entities are thin wrappers that:
- Read from the coordinator's GridState and RuntimeConfig
- Refresh on the coordinator's dispatcher signal
- Use factory pattern for minimal boilerplate
"""

from .sensors import async_setup_sensors, SENSOR_DEFINITIONS
from .binary_sensors import async_setup_binary_sensors, BINARY_SENSOR_DEFINITIONS
from .switches import async_setup_switches

__all__ = [
    "async_setup_sensors",
    "async_setup_binary_sensors",
    "async_setup_switches",
    "SENSOR_DEFINITIONS",
    "BINARY_SENSOR_DEFINITIONS",
]
