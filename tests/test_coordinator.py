"""Tests for the coordinator."""
from datetime import timedelta
from unittest.mock import patch

import pytest
from pytest_homeassistant_custom_component.common import (
    MockConfigEntry,
    async_fire_time_changed,
    async_mock_service,
)

from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.util import dt as dt_util

from custom_components.smart_grid_controller.const import (
    CONF_BATTERY_AH,
    CONF_TIMEZONE,
    DEFAULT_NAME,
    DOMAIN,
)
from custom_components.smart_grid_controller.core.state import GridPhase

from helpers import AC_LOAD_SENSOR, VOLTAGE_SENSOR

VOLT_ATTRS = {"unit_of_measurement": "V", "device_class": "voltage"}
WATT_ATTRS = {"unit_of_measurement": "W", "device_class": "power"}


async def _setup(hass: HomeAssistant, config_data: dict) -> MockConfigEntry:
    entry = MockConfigEntry(domain=DOMAIN, title=DEFAULT_NAME, data=config_data)
    entry.add_to_hass(hass)
    await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()
    return entry


async def _unload(hass: HomeAssistant, entry: MockConfigEntry) -> None:
    await hass.config_entries.async_unload(entry.entry_id)
    await hass.async_block_till_done()


@pytest.mark.asyncio
async def test_startup_commands_grid_on(hass: HomeAssistant, setup_integration, service_calls):
    """Test the grid is commanded on at startup."""
    set_value = service_calls["set_value"]
    turn_on = service_calls["turn_on"]

    assert set_value
    assert all(call.data["value"] == 0 for call in set_value)
    assert set_value[0].data["entity_id"] == "number.multiplus_ignore_ac_input"
    assert turn_on
    assert not service_calls["turn_off"]

    coordinator = hass.data[DOMAIN][setup_integration.entry_id]
    assert coordinator.state.started
    assert coordinator.state.in_startup_grace
    assert coordinator.state.last_reason == "Startup - 30s grace period active"


@pytest.mark.asyncio
async def test_emergency_voltage_disables_immediately(
    hass: HomeAssistant, setup_integration, service_calls
):
    """Test emergency protection turns the grid off in the same cycle, grace or not."""
    hass.states.async_set(VOLTAGE_SENSOR, "63.0", VOLT_ATTRS)
    await hass.async_block_till_done()

    assert service_calls["set_value"][-1].data["value"] == 1
    assert len(service_calls["turn_off"]) == 1

    coordinator = hass.data[DOMAIN][setup_integration.entry_id]
    assert coordinator.state.decision.phase == GridPhase.GRID_OFF
    assert coordinator.state.last_reason == "Emergency protection: Voltage 63.00V >= 63.00V"

    assert hass.states.get("binary_sensor.smart_grid_controller_emergency_protection").state == "on"
    assert hass.states.get("binary_sensor.smart_grid_controller_grid_enabled").state == "off"


@pytest.mark.asyncio
async def test_invalid_samples_are_skipped(hass: HomeAssistant, setup_integration, caplog):
    """Test unavailable or implausible readings never reach the controller."""
    coordinator = hass.data[DOMAIN][setup_integration.entry_id]
    last_sample = coordinator.state.last_sample
    assert last_sample is not None

    hass.states.async_set(VOLTAGE_SENSOR, "unavailable", VOLT_ATTRS)
    await hass.async_block_till_done()
    assert coordinator.state.last_sample is last_sample

    hass.states.async_set(VOLTAGE_SENSOR, "120.0", VOLT_ATTRS)
    await hass.async_block_till_done()
    assert coordinator.state.last_sample is last_sample

    hass.states.async_set(VOLTAGE_SENSOR, "53.4", VOLT_ATTRS)
    await hass.async_block_till_done()
    last_sample = coordinator.state.last_sample
    assert last_sample.voltage == 53.4

    hass.states.async_set(AC_LOAD_SENSOR, "60000", WATT_ATTRS)
    await hass.async_block_till_done()
    assert coordinator.state.last_sample is last_sample

    assert "INVALID_SAMPLE_SKIPPED" in caplog.text
    assert coordinator.state.decision.phase == GridPhase.GRID_ON


@pytest.mark.asyncio
async def test_invalid_samples_leave_deadlines_untouched(
    hass: HomeAssistant, enable_custom_integrations, set_states, config_data, service_calls, clock
):
    """Test skipped samples neither fire nor move pending deadlines."""
    with patch("custom_components.smart_grid_controller.coordinator.monotonic", clock):
        entry = await _setup(hass, config_data)
    coordinator = hass.data[DOMAIN][entry.entry_id]
    state = coordinator.state

    clock.set(31.0)
    async_fire_time_changed(hass, dt_util.utcnow() + timedelta(seconds=31))
    await hass.async_block_till_done()
    assert state.decision.phase == GridPhase.PENDING_DISABLE
    assert state.decision.deadline == 61.0

    clock.set(40.0)
    hass.states.async_set(AC_LOAD_SENSOR, "2600", WATT_ATTRS)
    await hass.async_block_till_done()
    assert state.load_condition.is_pending
    assert state.load_condition.deadline == 43.0

    standard = state.standard_protection.status
    emergency = state.emergency_protection.status
    sent = len(service_calls["set_value"])

    # Past both deadlines: a pass here would enable Load and turn the grid off
    clock.set(70.0)
    hass.states.async_set(VOLTAGE_SENSOR, "unavailable", VOLT_ATTRS)
    await hass.async_block_till_done()
    hass.states.async_set(VOLTAGE_SENSOR, "120.0", VOLT_ATTRS)
    await hass.async_block_till_done()
    hass.states.async_set(AC_LOAD_SENSOR, "-5", WATT_ATTRS)
    await hass.async_block_till_done()

    assert state.load_condition.is_pending
    assert state.load_condition.deadline == 43.0
    assert state.decision.phase == GridPhase.PENDING_DISABLE
    assert state.decision.deadline == 61.0
    assert state.standard_protection.status == standard
    assert state.emergency_protection.status == emergency
    assert len(service_calls["set_value"]) == sent

    await _unload(hass, entry)


@pytest.mark.asyncio
async def test_back_to_back_samples_send_one_command(
    hass: HomeAssistant, setup_integration, service_calls, caplog
):
    """Test a queued command is not re-sent by the sample right behind it."""
    sent = len(service_calls["set_value"])

    hass.states.async_set(VOLTAGE_SENSOR, "63.5", VOLT_ATTRS)
    hass.states.async_set(AC_LOAD_SENSOR, "600", WATT_ATTRS)
    await hass.async_block_till_done()

    assert [call.data["value"] for call in service_calls["set_value"][sent:]] == [1]
    assert len(service_calls["turn_off"]) == 1
    assert "COMMAND_REASSERTED" not in caplog.text


@pytest.mark.asyncio
async def test_missing_capacity_disables_control(
    hass: HomeAssistant, enable_custom_integrations, set_states, config_data, service_calls
):
    """Test a missing Ah rating never sends a command."""
    config_data.pop(CONF_BATTERY_AH)
    entry = await _setup(hass, config_data)

    assert entry.state is ConfigEntryState.LOADED
    problem = hass.states.get("binary_sensor.smart_grid_controller_configuration_problem")
    assert problem.state == "on"
    assert "Ah" in problem.attributes["error"]

    hass.states.async_set(VOLTAGE_SENSOR, "63.5", VOLT_ATTRS)
    await hass.async_block_till_done()

    assert not service_calls["set_value"]
    assert not service_calls["turn_on"]
    assert not service_calls["turn_off"]

    await _unload(hass, entry)


@pytest.mark.asyncio
async def test_failed_command_is_reasserted(
    hass: HomeAssistant, enable_custom_integrations, set_states, config_data
):
    """Test a command that did not land is re-sent on the next sample."""

    async def _inverter_offline(call):
        raise HomeAssistantError("inverter offline")

    hass.services.async_register("number", "set_value", _inverter_offline)
    async_mock_service(hass, "input_boolean", "turn_on")
    async_mock_service(hass, "input_boolean", "turn_off")

    entry = await _setup(hass, config_data)
    coordinator = hass.data[DOMAIN][entry.entry_id]

    assert coordinator.hardware.delivered_state is None
    assert "inverter offline" in coordinator.state.last_actuator_error
    grid = hass.states.get("binary_sensor.smart_grid_controller_grid_enabled")
    assert grid.attributes["delivered"] is None

    set_value = async_mock_service(hass, "number", "set_value")
    hass.states.async_set(VOLTAGE_SENSOR, "53.6", VOLT_ATTRS)
    await hass.async_block_till_done()

    assert len(set_value) == 1
    assert set_value[0].data["value"] == 0
    assert coordinator.hardware.delivered_state is True

    # Nothing more to re-send once delivered
    hass.states.async_set(VOLTAGE_SENSOR, "53.7", VOLT_ATTRS)
    await hass.async_block_till_done()
    assert len(set_value) == 1

    await _unload(hass, entry)


@pytest.mark.asyncio
async def test_unknown_timezone_falls_back(
    hass: HomeAssistant, enable_custom_integrations, set_states, config_data, service_calls, caplog
):
    """Test an unknown schedule zone uses Home Assistant's zone and warns once."""
    config_data[CONF_TIMEZONE] = "Mars/Olympus"
    entry = await _setup(hass, config_data)
    coordinator = hass.data[DOMAIN][entry.entry_id]

    hass.states.async_set(VOLTAGE_SENSOR, "53.6", VOLT_ATTRS)
    await hass.async_block_till_done()

    assert coordinator.state.local_time.tzinfo == dt_util.DEFAULT_TIME_ZONE
    assert caplog.text.count("TIMEZONE_INVALID_USING_LOCAL") == 1

    await _unload(hass, entry)


@pytest.mark.asyncio
async def test_wakeups_end_grace_and_disable(
    hass: HomeAssistant, enable_custom_integrations, set_states, config_data, service_calls, clock
):
    """Test the grid goes off 30s after the grace window when nothing asks for it."""
    with patch("custom_components.smart_grid_controller.coordinator.monotonic", clock):
        entry = await _setup(hass, config_data)
    coordinator = hass.data[DOMAIN][entry.entry_id]
    assert coordinator.controller.next_deadline() == 30.0

    clock.set(31.0)
    async_fire_time_changed(hass, dt_util.utcnow() + timedelta(seconds=31))
    await hass.async_block_till_done()

    assert not coordinator.state.in_startup_grace
    assert coordinator.state.decision.phase == GridPhase.PENDING_DISABLE
    assert coordinator.controller.next_deadline() == 61.0

    clock.set(62.0)
    async_fire_time_changed(hass, dt_util.utcnow() + timedelta(seconds=62))
    await hass.async_block_till_done()

    assert coordinator.state.decision.phase == GridPhase.GRID_OFF
    assert coordinator.state.last_reason.startswith("Cleared conditions: Load: 500.0W < 1750W")
    assert service_calls["set_value"][-1].data["value"] == 1
    assert len(service_calls["turn_off"]) == 1

    await _unload(hass, entry)
