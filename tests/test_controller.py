"""Tests for the grid decision engine."""
import pytest

from custom_components.smart_grid_controller.core.state import (
    DecisionState,
    GridPhase,
    GridState,
    Sample,
)
from custom_components.smart_grid_controller.domain.controller import GridController

from helpers import NOON, make_config

NORMAL = Sample(voltage=53.5, ac_load=500.0, charge_power=0.0)


@pytest.fixture
def config():
    """15S NCM 280Ah with an empty schedule window."""
    return make_config()


@pytest.fixture
def controller(clock):
    """A controller that has already started at t=0."""
    controller = GridController(clock=clock)
    controller.start()
    return controller


@pytest.fixture
def grid_off_controller(clock):
    """A started controller sitting in GRID_OFF with no grace window."""
    state = GridState(decision=DecisionState(phase=GridPhase.GRID_OFF), started=True)
    return GridController(clock=clock, state=state)


def _settled_pending_disable(controller, clock, config):
    """Run past the grace window with an all-clear sample."""
    clock.set(1.0)
    assert controller.evaluate(NORMAL, config, NOON) is None
    clock.set(30.0)
    assert controller.tick() is None
    assert controller.state.decision.phase == GridPhase.PENDING_DISABLE


class TestStartup:
    """Startup and grace window."""

    def test_start_commands_grid_on(self, clock):
        controller = GridController(clock=clock)
        command = controller.start()

        assert command.enable is True
        assert command.reason == "Startup - 30s grace period active"
        assert controller.state.decision.phase == GridPhase.GRID_ON
        assert controller.state.in_startup_grace
        assert controller.next_deadline() == 30.0

    def test_first_evaluate_starts_controller(self, clock, config):
        controller = GridController(clock=clock)
        command = controller.evaluate(NORMAL, config, NOON)

        assert command.enable is True
        assert command.reason.startswith("Startup")
        assert controller.state.started

    def test_grace_suppresses_all_clear(self, controller, clock, config):
        clock.set(10.0)
        assert controller.evaluate(NORMAL, config, NOON) is None

        assert controller.state.decision.phase == GridPhase.GRID_ON
        assert controller.state.decision.deadline is None

    def test_emergency_acts_during_grace(self, controller, clock, config):
        command = controller.evaluate(
            Sample(voltage=63.0, ac_load=2600.0, charge_power=0.0), config, NOON
        )

        assert command.enable is False
        assert command.reason == "Emergency protection: Voltage 63.00V >= 63.00V"
        assert controller.state.emergency_protection.is_active

        # Load enabling later never overrides emergency
        clock.set(3.5)
        assert controller.evaluate(
            Sample(voltage=63.0, ac_load=2600.0, charge_power=0.0), config, NOON
        ) is None
        assert controller.state.load_condition.is_enabled
        assert controller.state.decision.phase == GridPhase.GRID_OFF


class TestEnable:
    """Conditions turning the grid on."""

    def test_low_voltage_enables_after_debounce(self, grid_off_controller, clock, config):
        low = Sample(voltage=50.0, ac_load=0.0, charge_power=0.0)

        assert grid_off_controller.evaluate(low, config, NOON) is None
        assert grid_off_controller.state.voltage_condition.is_pending
        assert grid_off_controller.next_deadline() == 3.0

        clock.set(3.0)
        command = grid_off_controller.evaluate(low, config, NOON)

        assert command.enable is True
        assert command.reason == "Active conditions: Voltage: 50.00V, SoC: 8.5%"
        assert grid_off_controller.state.decision.phase == GridPhase.GRID_ON

    def test_no_repeat_command_while_unchanged(self, grid_off_controller, clock, config):
        low = Sample(voltage=50.0, ac_load=0.0, charge_power=0.0)
        grid_off_controller.evaluate(low, config, NOON)
        clock.set(3.0)
        grid_off_controller.evaluate(low, config, NOON)

        clock.set(4.0)
        assert grid_off_controller.evaluate(low, config, NOON) is None

    def test_short_load_spike_does_nothing(self, grid_off_controller, clock, config):
        grid_off_controller.evaluate(
            Sample(voltage=53.5, ac_load=3000.0, charge_power=0.0), config, NOON
        )
        clock.set(2.0)
        grid_off_controller.evaluate(NORMAL, config, NOON)
        clock.set(5.0)

        assert grid_off_controller.tick() is None
        assert grid_off_controller.state.decision.phase == GridPhase.GRID_OFF

    def test_load_overrides_standard_protection(self, grid_off_controller, clock, config):
        hot = Sample(voltage=61.6, ac_load=2600.0, charge_power=0.0)

        assert grid_off_controller.evaluate(hot, config, NOON) is None
        assert grid_off_controller.state.standard_protection.is_active

        clock.set(3.1)
        command = grid_off_controller.evaluate(hot, config, NOON)
        assert command.enable is True
        assert command.reason == "Active conditions: Load: 2600.0W"

        clock.set(4.0)
        command = grid_off_controller.evaluate(
            Sample(voltage=63.0, ac_load=2600.0, charge_power=0.0), config, NOON
        )
        assert command.enable is False
        assert command.reason.startswith("Emergency protection")


class TestProtection:
    """Protection turning the grid off."""

    def test_standard_protection_disables(self, controller, clock, config):
        command = controller.evaluate(
            Sample(voltage=61.6, ac_load=500.0, charge_power=0.0), config, NOON
        )

        assert command.enable is False
        assert command.reason == (
            "Battery protection: High voltage: 61.60V >= 61.50V, High SoC: 95.3% >= 95%"
        )

    def test_schedule_never_overrides_protection(self, clock):
        config = make_config(schedule_start_hour=0, schedule_end_hour=24)
        controller = GridController(clock=clock)
        controller.start()
        hot = Sample(voltage=61.6, ac_load=500.0, charge_power=0.0)

        command = controller.evaluate(hot, config, NOON)
        assert command.enable is False
        assert command.reason.endswith("(Time condition ignored for safety)")

        clock.set(5.0)
        assert controller.evaluate(hot, config, NOON) is None
        assert controller.state.schedule_condition.is_enabled
        assert controller.state.decision.phase == GridPhase.GRID_OFF


class TestDisableDelay:
    """The 30 second disable delay."""

    def test_all_clear_disables_after_delay(self, controller, clock, config):
        _settled_pending_disable(controller, clock, config)
        assert controller.next_deadline() == 60.0

        clock.set(59.9)
        assert controller.tick() is None

        clock.set(60.0)
        command = controller.tick()
        assert command.enable is False
        assert command.reason == (
            "Cleared conditions: Load: 500.0W < 1750W, Voltage: 53.50V > 53.10V, "
            "SoC: 36.7% > 30%, Time: 12:00 outside 00:00-00:00"
        )
        assert controller.state.decision.phase == GridPhase.GRID_OFF

    def test_late_wakeup_fires_on_next_sample(self, controller, clock, config):
        _settled_pending_disable(controller, clock, config)

        clock.set(75.0)
        command = controller.evaluate(NORMAL, config, NOON)
        assert command.enable is False

    def test_expired_delay_reports_emergency(self, controller, clock, config):
        _settled_pending_disable(controller, clock, config)

        clock.set(75.0)
        command = controller.evaluate(
            Sample(voltage=63.0, ac_load=500.0, charge_power=0.0), config, NOON
        )

        assert command.enable is False
        assert command.reason == "Emergency protection: Voltage 63.00V >= 63.00V"
        assert controller.state.last_reason == command.reason
        assert controller.state.decision.phase == GridPhase.GRID_OFF

    def test_condition_cancels_pending_disable(self, controller, clock, config):
        _settled_pending_disable(controller, clock, config)

        clock.set(45.0)
        busy = Sample(voltage=53.5, ac_load=2600.0, charge_power=0.0)
        assert controller.evaluate(busy, config, NOON) is None
        assert controller.state.decision.phase == GridPhase.PENDING_DISABLE

        clock.set(48.0)
        assert controller.tick() is None
        assert controller.state.decision.phase == GridPhase.GRID_ON
        assert controller.state.decision.deadline is None

    def test_conditions_rechecked_when_delay_expires(self, controller, clock, config):
        _settled_pending_disable(controller, clock, config)

        clock.set(57.0)
        controller.evaluate(
            Sample(voltage=53.5, ac_load=2600.0, charge_power=0.0), config, NOON
        )

        clock.set(60.0)
        assert controller.tick() is None
        assert controller.state.decision.phase == GridPhase.GRID_ON
        assert controller.grid_enabled


def test_snapshot_includes_battery(controller, clock, config):
    controller.evaluate(NORMAL, config, NOON)
    snapshot = controller.snapshot()

    assert snapshot["battery"]["battery_type"] == "li-ncm-15s"
    assert snapshot["grid_enabled"] is True
    assert snapshot["startup_grace"] is True
    assert snapshot["soc_percent"] == pytest.approx(36.7)
