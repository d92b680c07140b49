"""State-of-charge estimation from pack voltage.

The per-cell voltage is shifted by a small offset depending on whether the pack
is charging, discharging or resting (the curves separate under current), then
looked up in a chemistry-specific breakpoint table with linear interpolation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .battery import BatteryProfile, Chemistry


class ChargeState(str, Enum):
    """Direction of battery current."""

    CHARGING = "charging"
    DISCHARGING = "discharging"
    RESTING = "resting"


# (cell volts, percent) in ascending voltage
NCM_CURVE: tuple[tuple[float, float], ...] = (
    (3.00, 0.0),
    (3.39, 10.0),
    (3.48, 20.0),
    (3.54, 30.0),
    (3.58, 40.0),
    (3.63, 50.0),
    (3.70, 60.0),
    (3.78, 70.0),
    (3.87, 80.0),
    (4.00, 90.0),
    (4.20, 100.0),
)

# The 3.188V -> 3.200V segment runs from 9.0% down to 5.5%. Keep it.
LIFEPO4_CURVE: tuple[tuple[float, float], ...] = (
    (3.000, 0.0),
    (3.100, 3.6),
    (3.188, 9.0),
    (3.200, 5.5),
    (3.325, 27.3),
    (3.381, 92.7),
    (3.400, 97.5),
    (3.650, 100.0),
)

SOC_CURVES: dict[Chemistry, tuple[tuple[float, float], ...]] = {
    Chemistry.NCM: NCM_CURVE,
    Chemistry.LIFEPO4: LIFEPO4_CURVE,
}

VOLTAGE_OFFSETS: dict[Chemistry, dict[ChargeState, float]] = {
    Chemistry.NCM: {
        ChargeState.CHARGING: -0.05,
        ChargeState.DISCHARGING: 0.03,
        ChargeState.RESTING: 0.0,
    },
    Chemistry.LIFEPO4: {
        ChargeState.CHARGING: -0.10,
        ChargeState.DISCHARGING: 0.05,
        ChargeState.RESTING: 0.0,
    },
}


@dataclass(frozen=True)
class SocEstimate:
    """Result of one estimation."""

    soc_percent: float
    charge_state: ChargeState
    cell_voltage: float
    adjusted_cell_voltage: float


def classify_charge_state(charge_power: float, threshold_w: float) -> ChargeState:
    """Classify the current direction using a symmetric dead band."""
    if charge_power > threshold_w:
        return ChargeState.CHARGING
    if charge_power < -threshold_w:
        return ChargeState.DISCHARGING
    return ChargeState.RESTING


def interpolate(curve: tuple[tuple[float, float], ...], cell_voltage: float) -> float:
    """Linear interpolation over a breakpoint table, clamped to [0, 100]."""
    if cell_voltage >= curve[-1][0]:
        return 100.0
    if cell_voltage < curve[0][0]:
        return 0.0

    for (v_low, soc_low), (v_high, soc_high) in zip(curve, curve[1:]):
        if v_low <= cell_voltage < v_high:
            fraction = (cell_voltage - v_low) / (v_high - v_low)
            soc = soc_low + fraction * (soc_high - soc_low)
            return max(0.0, min(100.0, soc))

    return 100.0


def estimate_soc(
    pack_voltage: float,
    profile: BatteryProfile,
    charge_power: float,
) -> SocEstimate:
    """Estimate state of charge for a pack.

    Args:
        pack_voltage: Measured pack voltage
        profile: Resolved battery profile
        charge_power: Battery power in W, positive while charging

    Returns:
        SocEstimate with the percentage clamped to [0, 100]
    """
    cell_voltage = pack_voltage / profile.cell_count
    charge_state = classify_charge_state(charge_power, profile.one_percent_power_w)
    adjusted = cell_voltage + VOLTAGE_OFFSETS[profile.chemistry][charge_state]

    return SocEstimate(
        soc_percent=interpolate(SOC_CURVES[profile.chemistry], adjusted),
        charge_state=charge_state,
        cell_voltage=cell_voltage,
        adjusted_cell_voltage=adjusted,
    )
