"""Fixtures for testing."""
import pytest
from pytest_homeassistant_custom_component.common import (
    MockConfigEntry,
    async_mock_service,
)

from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant

from custom_components.smart_grid_controller.const import (
    CONF_AC_INPUT_ENTITY,
    CONF_AC_LOAD_SENSOR,
    CONF_BATTERY_AH,
    CONF_BATTERY_TYPE,
    CONF_CHARGE_POWER_SENSOR,
    CONF_CONTROL_METHOD,
    CONF_RELAY_SWITCH,
    CONF_SCHEDULE_END_HOUR,
    CONF_SCHEDULE_START_HOUR,
    CONF_VOLTAGE_SENSOR,
    CONTROL_METHOD_AUTO,
    DEFAULT_NAME,
    DOMAIN,
)
from helpers import (
    AC_INPUT_ENTITY,
    AC_LOAD_SENSOR,
    CHARGE_POWER_SENSOR,
    RELAY_ENTITY,
    VOLTAGE_SENSOR,
    FakeClock,
)


@pytest.fixture
def clock():
    """A FakeClock starting at zero."""
    return FakeClock()


@pytest.fixture
def config_data():
    """Config entry data for a fully configured controller."""
    return {
        CONF_BATTERY_TYPE: "li-ncm-15s",
        CONF_BATTERY_AH: 280.0,
        CONF_VOLTAGE_SENSOR: VOLTAGE_SENSOR,
        CONF_AC_LOAD_SENSOR: AC_LOAD_SENSOR,
        CONF_CHARGE_POWER_SENSOR: CHARGE_POWER_SENSOR,
        CONF_CONTROL_METHOD: CONTROL_METHOD_AUTO,
        CONF_AC_INPUT_ENTITY: AC_INPUT_ENTITY,
        CONF_RELAY_SWITCH: RELAY_ENTITY,
        CONF_SCHEDULE_START_HOUR: 0.0,
        CONF_SCHEDULE_END_HOUR: 0.0,
    }


@pytest.fixture
def mock_battery_states():
    """Mock a resting pack at about 37% with a small load."""
    return {
        VOLTAGE_SENSOR: ("53.5", {"unit_of_measurement": "V", "device_class": "voltage"}),
        AC_LOAD_SENSOR: ("500", {"unit_of_measurement": "W", "device_class": "power"}),
        CHARGE_POWER_SENSOR: ("0", {"unit_of_measurement": "W", "device_class": "power"}),
        AC_INPUT_ENTITY: ("0", {"min": 0, "max": 1, "step": 1}),
        RELAY_ENTITY: ("on", {}),
    }


@pytest.fixture
def service_calls(hass: HomeAssistant):
    """Track actuator service calls."""
    return {
        "set_value": async_mock_service(hass, "number", "set_value"),
        "turn_on": async_mock_service(hass, "input_boolean", "turn_on"),
        "turn_off": async_mock_service(hass, "input_boolean", "turn_off"),
    }


@pytest.fixture
def set_states(hass: HomeAssistant, mock_battery_states):
    """Write the mock sensor states into hass."""
    for entity_id, (state, attributes) in mock_battery_states.items():
        hass.states.async_set(entity_id, state, attributes)


@pytest.fixture
async def setup_integration(
    hass: HomeAssistant,
    enable_custom_integrations,
    set_states,
    config_data,
    service_calls,
):
    """Set up integration with mock states."""
    entry = MockConfigEntry(domain=DOMAIN, title=DEFAULT_NAME, data=config_data)
    entry.add_to_hass(hass)

    await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()

    yield entry

    if entry.state is ConfigEntryState.LOADED:
        await hass.config_entries.async_unload(entry.entry_id)
        await hass.async_block_till_done()
