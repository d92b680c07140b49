"""Core module for Smart Grid Controller.

Contains the fundamental building blocks:
- State: Single source of truth for all controller state
- Events: Event bus for component communication
- Hardware: Abstraction layer for HA entities
"""

from .state import GridState, Sample
from .events import GridEventBus, GridEvent
from .hardware import HardwareController

__all__ = ["GridState", "Sample", "GridEventBus", "GridEvent", "HardwareController"]
