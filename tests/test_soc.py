"""Tests for SoC estimation."""
import pytest

from custom_components.smart_grid_controller.domain.battery import Chemistry, resolve_profile
from custom_components.smart_grid_controller.domain.soc import (
    LIFEPO4_CURVE,
    NCM_CURVE,
    ChargeState,
    classify_charge_state,
    estimate_soc,
    interpolate,
)


@pytest.fixture
def ncm_profile():
    """15S NCM, 280Ah."""
    return resolve_profile(Chemistry.NCM, 15, 280)


@pytest.fixture
def lifepo4_profile():
    """16S LiFePO4, 100Ah."""
    return resolve_profile(Chemistry.LIFEPO4, 16, 100)


def test_breakpoints_are_exact():
    """A voltage on a breakpoint gives that breakpoint's percentage."""
    for voltage, percent in NCM_CURVE:
        assert interpolate(NCM_CURVE, voltage) == pytest.approx(percent)
    for voltage, percent in LIFEPO4_CURVE:
        assert interpolate(LIFEPO4_CURVE, voltage) == pytest.approx(percent)


def test_interpolation_between_breakpoints():
    """Linear between neighbours."""
    assert interpolate(NCM_CURVE, 3.56) == pytest.approx(35.0)
    assert interpolate(NCM_CURVE, 4.10) == pytest.approx(95.0)


def test_clamped_outside_curve():
    """Below the first point is 0, at or above the last is 100."""
    assert interpolate(NCM_CURVE, 2.5) == 0.0
    assert interpolate(NCM_CURVE, 4.2) == 100.0
    assert interpolate(NCM_CURVE, 4.5) == 100.0
    assert interpolate(LIFEPO4_CURVE, 2.9) == 0.0
    assert interpolate(LIFEPO4_CURVE, 3.7) == 100.0


def test_lifepo4_descending_segment_preserved():
    """The 3.188V-3.200V segment falls from 9.0% to 5.5%."""
    assert interpolate(LIFEPO4_CURVE, 3.194) == pytest.approx(7.25)


def test_ncm_monotonic():
    """NCM SoC never decreases with voltage."""
    previous = -1.0
    voltage = 2.9
    while voltage <= 4.3:
        soc = interpolate(NCM_CURVE, voltage)
        assert soc >= previous
        previous = soc
        voltage += 0.005


def test_lifepo4_monotonic_outside_transition():
    """LiFePO4 only dips inside 3.188V-3.200V."""
    previous = -1.0
    voltage = 3.2
    while voltage <= 3.7:
        soc = interpolate(LIFEPO4_CURVE, voltage)
        assert soc >= previous
        previous = soc
        voltage += 0.002


def test_low_voltage_estimate(ncm_profile):
    """50.0V on 15S NCM at rest is about 8.5%."""
    estimate = estimate_soc(50.0, ncm_profile, 0.0)

    assert estimate.charge_state == ChargeState.RESTING
    assert estimate.cell_voltage == pytest.approx(3.3333, abs=1e-4)
    assert estimate.soc_percent == pytest.approx(8.547, abs=0.01)


def test_charging_offset_lowers_estimate(ncm_profile):
    """Charging voltage reads high, so it is shifted down."""
    resting = estimate_soc(55.0, ncm_profile, 0.0)
    charging = estimate_soc(55.0, ncm_profile, 1000.0)
    discharging = estimate_soc(55.0, ncm_profile, -1000.0)

    assert charging.charge_state == ChargeState.CHARGING
    assert charging.adjusted_cell_voltage == pytest.approx(charging.cell_voltage - 0.05)
    assert discharging.charge_state == ChargeState.DISCHARGING
    assert discharging.adjusted_cell_voltage == pytest.approx(discharging.cell_voltage + 0.03)
    assert charging.soc_percent < resting.soc_percent < discharging.soc_percent


def test_lifepo4_offsets(lifepo4_profile):
    """LiFePO4 offsets are larger."""
    charging = estimate_soc(53.0, lifepo4_profile, 500.0)
    discharging = estimate_soc(53.0, lifepo4_profile, -500.0)

    assert charging.adjusted_cell_voltage == pytest.approx(charging.cell_voltage - 0.10)
    assert discharging.adjusted_cell_voltage == pytest.approx(discharging.cell_voltage + 0.05)


def test_charge_state_dead_band():
    """Exactly on the threshold is still resting."""
    assert classify_charge_state(155.4, 155.4) == ChargeState.RESTING
    assert classify_charge_state(-155.4, 155.4) == ChargeState.RESTING
    assert classify_charge_state(155.5, 155.4) == ChargeState.CHARGING
    assert classify_charge_state(-155.5, 155.4) == ChargeState.DISCHARGING


def test_estimate_always_in_range(ncm_profile):
    """Estimates stay inside 0-100 whatever the input."""
    for voltage in (0.0, 30.0, 45.0, 62.0, 70.0, 100.0):
        for power in (-5000.0, 0.0, 5000.0):
            soc = estimate_soc(voltage, ncm_profile, power).soc_percent
            assert 0.0 <= soc <= 100.0
