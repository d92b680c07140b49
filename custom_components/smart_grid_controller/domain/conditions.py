"""Grid-enable conditions.

Load, voltage and SoC are hysteretic and debounced on the way up:

    trigger zone   -> start a debounce deadline (IDLE only)
    deadline <= now -> ENABLED
    dead zone      -> cancel a pending deadline, hold a settled state
    release zone   -> back to IDLE immediately

The schedule condition is a plain level test of the local hour.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..const import CONDITION_DEBOUNCE_SECONDS
from ..core.state import ConditionPhase, ConditionState, GridState
from .runtime_config import RuntimeConfig


@dataclass(frozen=True)
class ConditionInputs:
    """Values the conditions are evaluated against."""

    ac_load: float
    voltage: float
    soc_percent: float
    local_time: datetime


def update_debounced(
    condition: ConditionState,
    triggered: bool,
    released: bool,
    now: float,
    debounce_seconds: float = CONDITION_DEBOUNCE_SECONDS,
) -> None:
    """Advance one debounced condition for a new value.

    Args:
        condition: State to mutate
        triggered: Value is in the trigger zone
        released: Value is in the release zone
        now: Monotonic time of the sample
        debounce_seconds: Time the trigger must hold
    """
    if triggered:
        if condition.phase == ConditionPhase.IDLE:
            condition.start_pending(now + debounce_seconds)
    elif released:
        condition.reset()
    elif condition.is_pending:
        # dead zone: no partial credit
        condition.reset()


def expire_debounced(condition: ConditionState, now: float) -> bool:
    """Promote a pending condition whose deadline has passed."""
    if condition.is_pending and condition.deadline is not None and condition.deadline <= now:
        condition.enable()
        return True
    return False


class ConditionEvaluator:
    """Runs the four conditions against a GridState."""

    def __init__(self, debounce_seconds: float = CONDITION_DEBOUNCE_SECONDS) -> None:
        """Initialize the evaluator.

        Args:
            debounce_seconds: Hold time before a triggered condition enables
        """
        self.debounce_seconds = debounce_seconds

    def expire(self, state: GridState, now: float) -> list[str]:
        """Promote every condition whose debounce deadline has passed.

        Returns:
            Names of the conditions that became ENABLED
        """
        return [
            name
            for name, condition in state.conditions.items()
            if expire_debounced(condition, now)
        ]

    def evaluate(
        self,
        state: GridState,
        inputs: ConditionInputs,
        config: RuntimeConfig,
        now: float,
    ) -> None:
        """Update all conditions for one sample."""
        pack = config.profile.pack_thresholds

        update_debounced(
            state.load_condition,
            triggered=inputs.ac_load > config.load.enable_watts,
            released=inputs.ac_load < config.load.disable_watts,
            now=now,
            debounce_seconds=self.debounce_seconds,
        )
        update_debounced(
            state.voltage_condition,
            triggered=inputs.voltage < pack.low_enable,
            released=inputs.voltage > pack.low_disable,
            now=now,
            debounce_seconds=self.debounce_seconds,
        )
        update_debounced(
            state.soc_condition,
            triggered=inputs.soc_percent < config.soc.low_enable,
            released=inputs.soc_percent > config.soc.low_disable,
            now=now,
            debounce_seconds=self.debounce_seconds,
        )

        if config.schedule.contains(inputs.local_time.hour):
            state.schedule_condition.enable()
        else:
            state.schedule_condition.reset()

    @staticmethod
    def describe_active(state: GridState, inputs: ConditionInputs) -> list[str]:
        """Describe the ENABLED conditions with their current values."""
        parts = []
        if state.load_condition.is_enabled:
            parts.append(f"Load: {inputs.ac_load:.1f}W")
        if state.voltage_condition.is_enabled:
            parts.append(f"Voltage: {inputs.voltage:.2f}V")
        if state.soc_condition.is_enabled:
            parts.append(f"SoC: {inputs.soc_percent:.1f}%")
        if state.schedule_condition.is_enabled:
            parts.append(f"Time: {inputs.local_time:%H:%M}")
        return parts

    @staticmethod
    def describe_cleared(
        state: GridState, inputs: ConditionInputs, config: RuntimeConfig
    ) -> list[str]:
        """Describe the conditions that are not ENABLED."""
        pack = config.profile.pack_thresholds
        parts = []
        if not state.load_condition.is_enabled:
            parts.append(f"Load: {inputs.ac_load:.1f}W < {config.load.disable_watts:g}W")
        if not state.voltage_condition.is_enabled:
            parts.append(f"Voltage: {inputs.voltage:.2f}V > {pack.low_disable:.2f}V")
        if not state.soc_condition.is_enabled:
            parts.append(f"SoC: {inputs.soc_percent:.1f}% > {config.soc.low_disable:g}%")
        if not state.schedule_condition.is_enabled:
            parts.append(
                f"Time: {inputs.local_time:%H:%M} outside {config.schedule.describe()}"
            )
        return parts
