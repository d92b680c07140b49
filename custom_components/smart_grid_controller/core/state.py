"""Single Source of Truth - all controller state in one place.

This module contains the GridState class which holds ALL mutable state of the
grid controller: the four conditions, the two protection latches, the decision
state and the last observed sample. Only the GridController mutates it; the
coordinator and the entities read from it.

Deadlines are monotonic-clock timestamps (seconds), never wall-clock times.
Nothing here is persisted: a restart always begins from a fresh GridState.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..const import (
    MAX_VALID_AC_LOAD,
    MAX_VALID_VOLTAGE,
    MIN_VALID_AC_LOAD,
    MIN_VALID_VOLTAGE,
)


@dataclass(frozen=True)
class Sample:
    """One reading of the three telemetry sensors."""

    voltage: float
    ac_load: float
    charge_power: float
    timestamp: datetime | None = None

    def is_valid(self) -> bool:
        """Check the sample against the plausibility bounds."""
        return (
            MIN_VALID_VOLTAGE <= self.voltage <= MAX_VALID_VOLTAGE
            and MIN_VALID_AC_LOAD <= self.ac_load <= MAX_VALID_AC_LOAD
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "voltage": round(self.voltage, 2),
            "ac_load": round(self.ac_load, 1),
            "charge_power": round(self.charge_power, 1),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


class ConditionPhase(str, Enum):
    """Phase of a grid-enable condition."""

    IDLE = "idle"
    PENDING_ENABLE = "pending_enable"
    ENABLED = "enabled"


@dataclass
class ConditionState:
    """State of one condition (load, voltage, soc or schedule)."""

    phase: ConditionPhase = ConditionPhase.IDLE
    deadline: float | None = None

    @property
    def is_enabled(self) -> bool:
        """Check if the condition currently asks for the grid."""
        return self.phase == ConditionPhase.ENABLED

    @property
    def is_pending(self) -> bool:
        """Check if a debounce deadline is running."""
        return self.phase == ConditionPhase.PENDING_ENABLE

    def start_pending(self, deadline: float) -> None:
        """Start the debounce deadline."""
        self.phase = ConditionPhase.PENDING_ENABLE
        self.deadline = deadline

    def enable(self) -> None:
        """Settle in ENABLED."""
        self.phase = ConditionPhase.ENABLED
        self.deadline = None

    def reset(self) -> None:
        """Return to IDLE, dropping any pending deadline."""
        self.phase = ConditionPhase.IDLE
        self.deadline = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"phase": self.phase.value, "deadline": self.deadline}


class ProtectionStatus(str, Enum):
    """Status of a protection latch."""

    CLEAR = "clear"
    ACTIVE = "active"


@dataclass
class ProtectionLatch:
    """Latched battery protection tier."""

    status: ProtectionStatus = ProtectionStatus.CLEAR

    @property
    def is_active(self) -> bool:
        """Check if the latch is set."""
        return self.status == ProtectionStatus.ACTIVE

    def activate(self) -> bool:
        """Set the latch. Returns True if this changed the status."""
        if self.is_active:
            return False
        self.status = ProtectionStatus.ACTIVE
        return True

    def clear(self) -> bool:
        """Release the latch. Returns True if this changed the status."""
        if not self.is_active:
            return False
        self.status = ProtectionStatus.CLEAR
        return True


class GridPhase(str, Enum):
    """Decision engine phase."""

    GRID_ON = "grid_on"
    GRID_OFF = "grid_off"
    PENDING_DISABLE = "pending_disable"


@dataclass
class DecisionState:
    """What the controller wants the actuator to be."""

    phase: GridPhase = GridPhase.GRID_ON
    deadline: float | None = None

    @property
    def grid_enabled(self) -> bool:
        """Grid stays connected until the phase is GRID_OFF."""
        return self.phase != GridPhase.GRID_OFF

    @property
    def is_pending_disable(self) -> bool:
        """Check if the disable delay is running."""
        return self.phase == GridPhase.PENDING_DISABLE

    def set_on(self) -> None:
        """Go to GRID_ON, cancelling any pending disable."""
        self.phase = GridPhase.GRID_ON
        self.deadline = None

    def set_off(self) -> None:
        """Go to GRID_OFF, cancelling any pending disable."""
        self.phase = GridPhase.GRID_OFF
        self.deadline = None

    def start_pending_disable(self, deadline: float) -> None:
        """Start the disable delay."""
        self.phase = GridPhase.PENDING_DISABLE
        self.deadline = deadline

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"phase": self.phase.value, "deadline": self.deadline}


@dataclass
class GridState:
    """Single Source of Truth - ALL controller state lives here.

    Construct it directly to put a controller into an arbitrary state.
    """

    # Conditions
    load_condition: ConditionState = field(default_factory=ConditionState)
    voltage_condition: ConditionState = field(default_factory=ConditionState)
    soc_condition: ConditionState = field(default_factory=ConditionState)
    schedule_condition: ConditionState = field(default_factory=ConditionState)

    # Protections
    standard_protection: ProtectionLatch = field(default_factory=ProtectionLatch)
    emergency_protection: ProtectionLatch = field(default_factory=ProtectionLatch)

    # Decision
    decision: DecisionState = field(default_factory=DecisionState)
    grace_deadline: float | None = None
    started: bool = False

    # Last cycle
    last_sample: Sample | None = None
    soc_percent: float | None = None
    charge_state: str | None = None
    last_reason: str = "Not started"
    last_decision_time: datetime | None = None
    local_time: datetime | None = None

    # Problems reported by the coordinator
    config_error: str | None = None
    last_actuator_error: str | None = None

    @property
    def conditions(self) -> dict[str, ConditionState]:
        """Conditions keyed by their display name, in reporting order."""
        return {
            "Load": self.load_condition,
            "Voltage": self.voltage_condition,
            "SoC": self.soc_condition,
            "Time": self.schedule_condition,
        }

    @property
    def active_conditions(self) -> list[str]:
        """Names of the conditions currently asking for the grid."""
        return [name for name, cond in self.conditions.items() if cond.is_enabled]

    @property
    def any_condition_enabled(self) -> bool:
        """Check if at least one condition is ENABLED."""
        return bool(self.active_conditions)

    @property
    def grid_enabled(self) -> bool:
        """Desired actuator state."""
        return self.decision.grid_enabled

    @property
    def in_startup_grace(self) -> bool:
        """Check if the startup grace window is still open."""
        return self.grace_deadline is not None

    def to_dict(self) -> dict[str, Any]:
        """Export full state as dictionary."""
        return {
            "grid_enabled": self.grid_enabled,
            "decision": self.decision.to_dict(),
            "conditions": {
                name: cond.phase.value for name, cond in self.conditions.items()
            },
            "active_conditions": self.active_conditions,
            "standard_protection": self.standard_protection.status.value,
            "emergency_protection": self.emergency_protection.status.value,
            "startup_grace": self.in_startup_grace,
            "soc_percent": round(self.soc_percent, 1) if self.soc_percent is not None else None,
            "charge_state": self.charge_state,
            "sample": self.last_sample.to_dict() if self.last_sample else None,
            "reason": self.last_reason,
            "config_error": self.config_error,
        }
