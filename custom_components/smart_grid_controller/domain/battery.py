"""Battery profile resolution.

Turns (chemistry, cell count, Ah rating) into a validated BatteryProfile with
pack-level voltage thresholds and the capacity-derived power threshold used to
classify charging vs. discharging.

It has NO dependencies on Home Assistant - just pure Python logic.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConfigError(ValueError):
    """Safety-critical configuration is missing or invalid."""


class Chemistry(str, Enum):
    """Supported battery chemistries."""

    NCM = "li-ncm"
    LIFEPO4 = "lifepo4"


@dataclass(frozen=True)
class VoltageThresholds:
    """Voltage thresholds, per cell or per pack."""

    low_enable: float
    low_disable: float
    high_protect: float
    emergency: float

    def scaled(self, cell_count: int) -> VoltageThresholds:
        """Scale per-cell thresholds to a series pack."""
        return VoltageThresholds(
            low_enable=round(self.low_enable * cell_count, 4),
            low_disable=round(self.low_disable * cell_count, 4),
            high_protect=round(self.high_protect * cell_count, 4),
            emergency=round(self.emergency * cell_count, 4),
        )

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "low_enable": self.low_enable,
            "low_disable": self.low_disable,
            "high_protect": self.high_protect,
            "emergency": self.emergency,
        }


# One row per chemistry; every Chemistry member must be present in each table.
CELL_THRESHOLDS: dict[Chemistry, VoltageThresholds] = {
    Chemistry.NCM: VoltageThresholds(3.39, 3.54, 4.10, 4.20),
    Chemistry.LIFEPO4: VoltageThresholds(3.00, 3.25, 3.45, 3.65),
}

NOMINAL_CELL_VOLTAGE: dict[Chemistry, float] = {
    Chemistry.NCM: 3.7,
    Chemistry.LIFEPO4: 3.2,
}

CELL_COUNT_RANGE: dict[Chemistry, tuple[int, int]] = {
    Chemistry.NCM: (4, 15),
    Chemistry.LIFEPO4: (4, 16),
}


@dataclass(frozen=True)
class BatteryProfile:
    """Validated battery description."""

    chemistry: Chemistry
    cell_count: int
    battery_ah: float
    cell_thresholds: VoltageThresholds
    nominal_cell_voltage: float

    @property
    def pack_thresholds(self) -> VoltageThresholds:
        """Per-cell thresholds multiplied by the cell count."""
        return self.cell_thresholds.scaled(self.cell_count)

    @property
    def capacity_kwh(self) -> float:
        """Nominal pack energy."""
        return self.nominal_cell_voltage * self.cell_count * self.battery_ah / 1000

    @property
    def one_percent_power_w(self) -> float:
        """Power equal to 1% of capacity per hour; the charge/discharge threshold."""
        return self.capacity_kwh * 1000 * 0.01

    @property
    def battery_type(self) -> str:
        """Combined type tag, e.g. li-ncm-15s."""
        return f"{self.chemistry.value}-{self.cell_count}s"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "battery_type": self.battery_type,
            "battery_ah": self.battery_ah,
            "capacity_kwh": round(self.capacity_kwh, 2),
            "one_percent_power_w": round(self.one_percent_power_w, 1),
            "pack_thresholds": self.pack_thresholds.to_dict(),
        }


def parse_battery_type(battery_type: Any) -> tuple[Chemistry, int]:
    """Split a type tag like "li-ncm-15s" or "lifepo4-16s".

    Raises:
        ConfigError: If the tag is not a known chemistry followed by a cell count
    """
    if not isinstance(battery_type, str) or "-" not in battery_type:
        raise ConfigError(f"Unknown battery type: {battery_type!r}")

    chemistry_tag, _, cells_tag = battery_type.strip().lower().rpartition("-")
    try:
        chemistry = Chemistry(chemistry_tag)
    except ValueError as ex:
        raise ConfigError(f"Unknown battery chemistry: {chemistry_tag!r}") from ex

    if not cells_tag.endswith("s") or not cells_tag[:-1].isdigit():
        raise ConfigError(f"Unknown battery type: {battery_type!r}")

    return chemistry, int(cells_tag[:-1])


def _validate_ah(battery_ah: Any) -> float:
    """Ah must be a finite positive number."""
    if battery_ah is None or battery_ah == "":
        raise ConfigError("Battery capacity (Ah) is not configured")
    if isinstance(battery_ah, bool):
        raise ConfigError(f"Battery capacity (Ah) is not a number: {battery_ah!r}")

    try:
        value = float(battery_ah)
    except (TypeError, ValueError) as ex:
        raise ConfigError(f"Battery capacity (Ah) is not a number: {battery_ah!r}") from ex

    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"Battery capacity (Ah) must be positive, got {battery_ah!r}")
    return value


def resolve_profile(chemistry: Chemistry, cell_count: int, battery_ah: Any) -> BatteryProfile:
    """Build a BatteryProfile.

    Args:
        chemistry: Battery chemistry
        cell_count: Number of cells in series
        battery_ah: Rated capacity in amp-hours

    Raises:
        ConfigError: Ah missing or not positive, or cell count unsupported
    """
    ah = _validate_ah(battery_ah)

    min_cells, max_cells = CELL_COUNT_RANGE[chemistry]
    if isinstance(cell_count, bool) or not isinstance(cell_count, int):
        raise ConfigError(f"Cell count must be an integer, got {cell_count!r}")
    if not min_cells <= cell_count <= max_cells:
        raise ConfigError(
            f"{chemistry.value} supports {min_cells}-{max_cells} cells, got {cell_count}"
        )

    return BatteryProfile(
        chemistry=chemistry,
        cell_count=cell_count,
        battery_ah=ah,
        cell_thresholds=CELL_THRESHOLDS[chemistry],
        nominal_cell_voltage=NOMINAL_CELL_VOLTAGE[chemistry],
    )
