"""Grid decision engine.

GridController is the one aggregate that owns every transition of a GridState.
It performs no I/O: each pass returns at most one GridCommand for the caller to
deliver.

Timing uses explicit deadlines against an injectable monotonic clock. Any
deadline that has passed when the next sample or wake-up is processed fires at
that point, so callers only need to call tick() at next_deadline().

Arbitration, in strict priority order:
1. Emergency protection -> grid off
2. Standard protection, unless the load condition overrides it -> grid off
3. Any condition enabled while off, nothing blocking -> grid on
4. Nothing enabled while on, grace over -> start the 30s disable delay
5. Any condition enabled while on or pending, nothing blocking -> stay on
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from ..const import DISABLE_DELAY_SECONDS, STARTUP_GRACE_SECONDS
from ..core.state import GridPhase, GridState, Sample
from ..grid_logging import get_logger
from .conditions import ConditionEvaluator, ConditionInputs
from .protection import ProtectionChange, ProtectionEngine
from .runtime_config import RuntimeConfig
from .soc import estimate_soc


@dataclass(frozen=True)
class GridCommand:
    """Actuator command produced by the controller."""

    enable: bool
    reason: str
    snapshot: dict[str, Any] = field(default_factory=dict)


class GridController:
    """Arbitrates conditions and protections into grid on/off commands."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        state: GridState | None = None,
        disable_delay_seconds: float = DISABLE_DELAY_SECONDS,
        grace_seconds: float = STARTUP_GRACE_SECONDS,
        conditions: ConditionEvaluator | None = None,
        protections: ProtectionEngine | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            clock: Monotonic time source in seconds
            state: Existing state to drive (a fresh GridState by default)
            disable_delay_seconds: Delay before an all-clear turns the grid off
            grace_seconds: Startup window in which the all-clear rule is skipped
            conditions: Condition evaluator
            protections: Protection engine
        """
        self._clock = clock
        self.state = state if state is not None else GridState()
        self.disable_delay_seconds = disable_delay_seconds
        self.grace_seconds = grace_seconds
        self.conditions = conditions or ConditionEvaluator()
        self.protections = protections or ProtectionEngine()
        self._logger = get_logger()

        self._last_inputs: ConditionInputs | None = None
        self._last_config: RuntimeConfig | None = None
        self.protection_changes: list[ProtectionChange] = []

    # ========== Lifecycle ==========

    def start(self) -> GridCommand:
        """Begin with the grid on and open the startup grace window."""
        now = self._clock()
        self.state.decision.set_on()
        self.state.grace_deadline = now + self.grace_seconds
        self.state.started = True
        self._logger.info("CONTROLLER_STARTED", grace_seconds=self.grace_seconds)
        return self._transition(
            True, f"Startup - {self.grace_seconds:g}s grace period active"
        )

    # ========== Cycles ==========

    def evaluate(
        self,
        sample: Sample,
        config: RuntimeConfig,
        local_time: datetime,
    ) -> GridCommand | None:
        """Run one complete pass for a valid sample.

        Args:
            sample: Sample that already passed the validity gate
            config: Runtime configuration for this cycle
            local_time: Current time in the schedule's time zone

        Returns:
            The command to deliver, or None if the desired state did not change
        """
        startup = self.start() if not self.state.started else None

        now = self._clock()
        cleared_reason = self._advance(now)

        estimate = estimate_soc(sample.voltage, config.profile, sample.charge_power)
        inputs = ConditionInputs(
            ac_load=sample.ac_load,
            voltage=sample.voltage,
            soc_percent=estimate.soc_percent,
            local_time=local_time,
        )
        self.state.last_sample = sample
        self.state.soc_percent = estimate.soc_percent
        self.state.charge_state = estimate.charge_state.value
        self.state.local_time = local_time
        self._last_inputs = inputs
        self._last_config = config

        self.conditions.evaluate(self.state, inputs, config, now)

        self.protection_changes = self.protections.evaluate(
            self.state, sample.voltage, estimate.soc_percent, config
        )
        for change in self.protection_changes:
            self._logger.info(
                "PROTECTION_ACTIVATED" if change.active else "PROTECTION_CLEARED",
                tier=change.tier,
                detail=change.detail,
            )

        expired = self._finish_disable(cleared_reason)
        command = self._arbitrate(now)
        return command or expired or startup

    def tick(self) -> GridCommand | None:
        """Fire any deadline that has passed.

        Equivalent to a cycle boundary: expired deadlines are applied, then the
        latest known sample is arbitrated again.
        """
        now = self._clock()
        expired = self._finish_disable(self._advance(now))
        if self._last_inputs is None or self._last_config is None:
            return expired
        return self._arbitrate(now) or expired

    def _advance(self, now: float) -> str | None:
        """Apply every deadline that is due at `now`.

        Returns the cleared-conditions reason if the disable delay ran out.
        """
        state = self.state

        for name in self.conditions.expire(state, now):
            self._logger.info("CONDITION_ENABLED", condition=name)

        if state.grace_deadline is not None and state.grace_deadline <= now:
            state.grace_deadline = None
            self._logger.info("STARTUP_GRACE_ENDED")

        decision = state.decision
        if (
            decision.is_pending_disable
            and decision.deadline is not None
            and decision.deadline <= now
        ):
            if state.any_condition_enabled:
                decision.set_on()
                self._logger.info(
                    "DISABLE_CANCELLED", active_conditions=state.active_conditions
                )
                return None

            decision.set_off()
            return self._cleared_reason()

        return None

    def _arbitrate(self, now: float) -> GridCommand | None:
        """Apply the priority rules to the current state."""
        state = self.state
        decision = state.decision
        inputs = self._last_inputs
        config = self._last_config
        if inputs is None or config is None:
            return None

        blocked = self.protections.unoverridden_protection(state)
        any_enabled = state.any_condition_enabled

        # 1. Emergency wins over everything, load included
        # 2. Standard protection; the schedule never overrides it
        if blocked and decision.phase != GridPhase.GRID_OFF:
            decision.set_off()
            return self._transition(False, self._protection_reason())

        # 3. Something wants the grid and nothing forbids it
        if any_enabled and decision.phase == GridPhase.GRID_OFF and not blocked:
            decision.set_on()
            return self._transition(
                True,
                "Active conditions: "
                + ", ".join(self.conditions.describe_active(state, inputs)),
            )

        # 4. All clear: start the disable delay
        if (
            not any_enabled
            and decision.phase == GridPhase.GRID_ON
            and not state.in_startup_grace
        ):
            decision.start_pending_disable(now + self.disable_delay_seconds)
            self._logger.info("DISABLE_PENDING", delay_seconds=self.disable_delay_seconds)
            return None

        # 5. Conditions still want it on
        if any_enabled and decision.is_pending_disable and not blocked:
            decision.set_on()
            self._logger.info("DISABLE_CANCELLED", active_conditions=state.active_conditions)

        return None

    # ========== Helpers ==========

    def _protection_reason(self) -> str | None:
        """Why protection keeps the grid off, None if nothing blocks it."""
        state = self.state
        inputs = self._last_inputs
        config = self._last_config
        if inputs is None or config is None:
            return None

        if state.emergency_protection.is_active:
            pack = config.profile.pack_thresholds
            return f"Emergency protection: Voltage {inputs.voltage:.2f}V >= {pack.emergency:.2f}V"

        if state.standard_protection.is_active and not self.protections.standard_overridden(state):
            reason = "Battery protection: " + ", ".join(
                self.protections.describe_standard(inputs.voltage, inputs.soc_percent, config)
            )
            if state.schedule_condition.is_enabled:
                reason += " (Time condition ignored for safety)"
            return reason

        return None

    def _finish_disable(self, cleared_reason: str | None) -> GridCommand | None:
        """Command off for an expired disable delay.

        Active protection outranks the cleared conditions as the reason.
        """
        if cleared_reason is None:
            return None
        return self._transition(False, self._protection_reason() or cleared_reason)

    def _cleared_reason(self) -> str:
        if self._last_inputs is None or self._last_config is None:
            return "Cleared conditions"
        return "Cleared conditions: " + ", ".join(
            self.conditions.describe_cleared(self.state, self._last_inputs, self._last_config)
        )

    def _transition(self, enable: bool, reason: str) -> GridCommand:
        """Record a decision and build the command for it."""
        self.state.last_reason = reason
        self._logger.info("GRID_ENABLED" if enable else "GRID_DISABLED", reason=reason)
        return GridCommand(enable=enable, reason=reason, snapshot=self.snapshot())

    def next_deadline(self) -> float | None:
        """Earliest pending deadline, if any."""
        state = self.state
        deadlines = [cond.deadline for cond in state.conditions.values()]
        deadlines.extend([state.decision.deadline, state.grace_deadline])
        pending = [deadline for deadline in deadlines if deadline is not None]
        return min(pending) if pending else None

    @property
    def grid_enabled(self) -> bool:
        """Desired actuator state."""
        return self.state.grid_enabled

    def snapshot(self) -> dict[str, Any]:
        """Full observable state for commands, logs and entities."""
        snapshot = self.state.to_dict()
        if self._last_config is not None:
            snapshot["battery"] = self._last_config.profile.to_dict()
        return snapshot
