"""Battery protection latches.

Standard: set when voltage OR SoC reaches its limit, released only when BOTH
have dropped below their recovery points. Only an ENABLED load condition can
override it.

Emergency: set at the emergency pack voltage, released 0.75V below it. Nothing
overrides it.

Both trigger with >= so a reading exactly on the limit counts. No debounce.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..core.state import GridState
from .runtime_config import RuntimeConfig

VOLTAGE_HYSTERESIS = 0.75
SOC_HYSTERESIS = 2.5


@dataclass(frozen=True)
class ProtectionChange:
    """A latch that changed during one evaluation."""

    tier: str
    active: bool
    detail: str


class ProtectionEngine:
    """Evaluates both latches for one sample."""

    def evaluate(
        self,
        state: GridState,
        voltage: float,
        soc_percent: float,
        config: RuntimeConfig,
    ) -> list[ProtectionChange]:
        """Update the latches.

        Returns:
            The latches that changed, in evaluation order
        """
        changes: list[ProtectionChange] = []
        pack = config.profile.pack_thresholds
        high_soc = config.soc.high_protect

        voltage_recovery = pack.high_protect - VOLTAGE_HYSTERESIS
        soc_recovery = high_soc - SOC_HYSTERESIS
        if voltage >= pack.high_protect or soc_percent >= high_soc:
            if state.standard_protection.activate():
                changes.append(
                    ProtectionChange(
                        "standard",
                        True,
                        f"Voltage: {voltage:.2f}V (>= {pack.high_protect:.2f}V), "
                        f"SoC: {soc_percent:.1f}% (>= {high_soc:g}%)",
                    )
                )
        elif voltage < voltage_recovery and soc_percent < soc_recovery:
            if state.standard_protection.clear():
                changes.append(
                    ProtectionChange(
                        "standard",
                        False,
                        f"Voltage: {voltage:.2f}V (< {voltage_recovery:.2f}V), "
                        f"SoC: {soc_percent:.1f}% (< {soc_recovery:g}%)",
                    )
                )

        emergency_recovery = pack.emergency - VOLTAGE_HYSTERESIS
        if voltage >= pack.emergency:
            if state.emergency_protection.activate():
                changes.append(
                    ProtectionChange(
                        "emergency",
                        True,
                        f"Voltage: {voltage:.2f}V >= {pack.emergency:.2f}V",
                    )
                )
        elif voltage < emergency_recovery:
            if state.emergency_protection.clear():
                changes.append(
                    ProtectionChange(
                        "emergency",
                        False,
                        f"Voltage: {voltage:.2f}V < {emergency_recovery:.2f}V",
                    )
                )

        return changes

    @staticmethod
    def standard_overridden(state: GridState) -> bool:
        """Only the load condition may override standard protection."""
        return state.load_condition.is_enabled

    def unoverridden_protection(self, state: GridState) -> bool:
        """Check if any protection currently forbids the grid."""
        if state.emergency_protection.is_active:
            return True
        return state.standard_protection.is_active and not self.standard_overridden(state)

    @staticmethod
    def describe_standard(
        voltage: float, soc_percent: float, config: RuntimeConfig
    ) -> list[str]:
        """Which limits are currently exceeded."""
        pack = config.profile.pack_thresholds
        parts = []
        if voltage >= pack.high_protect:
            parts.append(f"High voltage: {voltage:.2f}V >= {pack.high_protect:.2f}V")
        if soc_percent >= config.soc.high_protect:
            parts.append(f"High SoC: {soc_percent:.1f}% >= {config.soc.high_protect:g}%")
        if not parts:
            parts.append(
                f"Latched until Voltage < {pack.high_protect - VOLTAGE_HYSTERESIS:.2f}V "
                f"and SoC < {config.soc.high_protect - SOC_HYSTERESIS:g}%"
            )
        return parts
