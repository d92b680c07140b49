"""Config flow for Smart Grid Controller integration."""
from __future__ import annotations

from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers import selector

from .const import (
    BATTERY_TYPES,
    CONF_AC_INPUT_ENTITY,
    CONF_AC_LOAD_SENSOR,
    CONF_BATTERY_AH,
    CONF_BATTERY_TYPE,
    CONF_CHARGE_POWER_SENSOR,
    CONF_CONTROL_METHOD,
    CONF_HIGH_SOC_PROTECTION,
    CONF_LOAD_DISABLE_WATTS,
    CONF_LOAD_ENABLE_WATTS,
    CONF_LOW_SOC_DISABLE,
    CONF_LOW_SOC_ENABLE,
    CONF_RELAY_SWITCH,
    CONF_SCHEDULE_END_HOUR,
    CONF_SCHEDULE_START_HOUR,
    CONF_TIMEZONE,
    CONF_VOLTAGE_SENSOR,
    CONTROL_METHOD_AUTO,
    CONTROL_METHOD_DIRECT_AC_INPUT,
    CONTROL_METHOD_RELAY,
    CONTROL_METHODS,
    DEFAULT_BATTERY_TYPE,
    DEFAULT_CONTROL_METHOD,
    DEFAULT_HIGH_SOC_PROTECTION,
    DEFAULT_LOAD_DISABLE_WATTS,
    DEFAULT_LOAD_ENABLE_WATTS,
    DEFAULT_LOW_SOC_DISABLE,
    DEFAULT_LOW_SOC_ENABLE,
    DEFAULT_NAME,
    DEFAULT_SCHEDULE_END_HOUR,
    DEFAULT_SCHEDULE_START_HOUR,
    DEFAULT_TIMEZONE,
    DOMAIN,
)

SENSOR_KEYS = (CONF_VOLTAGE_SENSOR, CONF_AC_LOAD_SENSOR, CONF_CHARGE_POWER_SENSOR)


def _battery_ah_selector() -> selector.NumberSelector:
    return selector.NumberSelector(
        selector.NumberSelectorConfig(
            min=1,
            max=10000,
            step=1,
            unit_of_measurement="Ah",
            mode=selector.NumberSelectorMode.BOX,
        )
    )


def _watts_selector() -> selector.NumberSelector:
    return selector.NumberSelector(
        selector.NumberSelectorConfig(
            min=0,
            max=50000,
            step=50,
            unit_of_measurement="W",
            mode=selector.NumberSelectorMode.BOX,
        )
    )


def _percent_selector() -> selector.NumberSelector:
    return selector.NumberSelector(
        selector.NumberSelectorConfig(
            min=0,
            max=100,
            step=0.5,
            unit_of_measurement="%",
            mode=selector.NumberSelectorMode.SLIDER,
        )
    )


def _hour_selector(maximum: int) -> selector.NumberSelector:
    return selector.NumberSelector(
        selector.NumberSelectorConfig(
            min=0,
            max=maximum,
            step=1,
            mode=selector.NumberSelectorMode.BOX,
        )
    )


def _control_schema(values: dict[str, Any]) -> dict:
    """Control method and actuator targets."""
    return {
        vol.Required(
            CONF_CONTROL_METHOD,
            default=values.get(CONF_CONTROL_METHOD, DEFAULT_CONTROL_METHOD),
        ): selector.SelectSelector(
            selector.SelectSelectorConfig(
                options=CONTROL_METHODS,
                mode=selector.SelectSelectorMode.DROPDOWN,
                translation_key=CONF_CONTROL_METHOD,
            )
        ),
        vol.Optional(
            CONF_AC_INPUT_ENTITY,
            description={"suggested_value": values.get(CONF_AC_INPUT_ENTITY)},
        ): selector.EntitySelector(
            selector.EntitySelectorConfig(
                domain=["number", "input_number", "switch", "input_boolean"]
            )
        ),
        vol.Optional(
            CONF_RELAY_SWITCH,
            description={"suggested_value": values.get(CONF_RELAY_SWITCH)},
        ): selector.EntitySelector(
            selector.EntitySelectorConfig(domain=["switch", "input_boolean"])
        ),
    }


def _thresholds_schema(values: dict[str, Any]) -> dict:
    """Load, SoC and schedule tunables."""
    return {
        vol.Required(
            CONF_LOAD_ENABLE_WATTS,
            default=values.get(CONF_LOAD_ENABLE_WATTS, DEFAULT_LOAD_ENABLE_WATTS),
        ): _watts_selector(),
        vol.Required(
            CONF_LOAD_DISABLE_WATTS,
            default=values.get(CONF_LOAD_DISABLE_WATTS, DEFAULT_LOAD_DISABLE_WATTS),
        ): _watts_selector(),
        vol.Required(
            CONF_LOW_SOC_ENABLE,
            default=values.get(CONF_LOW_SOC_ENABLE, DEFAULT_LOW_SOC_ENABLE),
        ): _percent_selector(),
        vol.Required(
            CONF_LOW_SOC_DISABLE,
            default=values.get(CONF_LOW_SOC_DISABLE, DEFAULT_LOW_SOC_DISABLE),
        ): _percent_selector(),
        vol.Required(
            CONF_HIGH_SOC_PROTECTION,
            default=values.get(CONF_HIGH_SOC_PROTECTION, DEFAULT_HIGH_SOC_PROTECTION),
        ): _percent_selector(),
        vol.Required(
            CONF_TIMEZONE,
            default=values.get(CONF_TIMEZONE, DEFAULT_TIMEZONE),
        ): selector.TextSelector(
            selector.TextSelectorConfig(type=selector.TextSelectorType.TEXT)
        ),
        vol.Required(
            CONF_SCHEDULE_START_HOUR,
            default=values.get(CONF_SCHEDULE_START_HOUR, DEFAULT_SCHEDULE_START_HOUR),
        ): _hour_selector(23),
        vol.Required(
            CONF_SCHEDULE_END_HOUR,
            default=values.get(CONF_SCHEDULE_END_HOUR, DEFAULT_SCHEDULE_END_HOUR),
        ): _hour_selector(24),
    }


def validate_control(user_input: dict[str, Any]) -> dict[str, str]:
    """The chosen control method needs its target entity."""
    method = user_input.get(CONF_CONTROL_METHOD, DEFAULT_CONTROL_METHOD)
    ac_input = user_input.get(CONF_AC_INPUT_ENTITY)
    relay = user_input.get(CONF_RELAY_SWITCH)

    if method == CONTROL_METHOD_DIRECT_AC_INPUT and not ac_input:
        return {CONF_AC_INPUT_ENTITY: "control_target_required"}
    if method == CONTROL_METHOD_RELAY and not relay:
        return {CONF_RELAY_SWITCH: "control_target_required"}
    if method == CONTROL_METHOD_AUTO and not (ac_input or relay):
        return {"base": "control_target_required"}
    return {}


def validate_thresholds(user_input: dict[str, Any]) -> dict[str, str]:
    """Hysteresis bands must be ordered."""
    errors: dict[str, str] = {}
    if user_input[CONF_LOAD_ENABLE_WATTS] <= user_input[CONF_LOAD_DISABLE_WATTS]:
        errors[CONF_LOAD_ENABLE_WATTS] = "load_thresholds_invalid"

    low_enable = user_input[CONF_LOW_SOC_ENABLE]
    low_disable = user_input[CONF_LOW_SOC_DISABLE]
    high = user_input[CONF_HIGH_SOC_PROTECTION]
    if not low_enable < low_disable <= high:
        errors[CONF_LOW_SOC_ENABLE] = "soc_thresholds_invalid"
    return errors


class ConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Smart Grid Controller."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the config flow."""
        self.battery_info: dict[str, Any] = {}
        self.sensor_info: dict[str, Any] = {}
        self.control_info: dict[str, Any] = {}

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Step 1: Battery - chemistry, cell count and capacity."""
        if user_input is not None:
            self.battery_info = user_input
            return await self.async_step_sensors()

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        CONF_BATTERY_TYPE, default=DEFAULT_BATTERY_TYPE
                    ): selector.SelectSelector(
                        selector.SelectSelectorConfig(
                            options=BATTERY_TYPES,
                            mode=selector.SelectSelectorMode.DROPDOWN,
                        )
                    ),
                    vol.Required(CONF_BATTERY_AH): _battery_ah_selector(),
                }
            ),
        )

    async def async_step_sensors(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Step 2: Telemetry sensors."""
        errors: dict[str, str] = {}

        if user_input is not None:
            # Validate entities exist
            for key in SENSOR_KEYS:
                if self.hass.states.get(user_input[key]) is None:
                    errors[key] = "entity_not_found"

            if not errors:
                self.sensor_info = user_input
                return await self.async_step_control()

        return self.async_show_form(
            step_id="sensors",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_VOLTAGE_SENSOR): selector.EntitySelector(
                        selector.EntitySelectorConfig(
                            domain="sensor", device_class="voltage"
                        )
                    ),
                    vol.Required(CONF_AC_LOAD_SENSOR): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain="sensor", device_class="power")
                    ),
                    vol.Required(CONF_CHARGE_POWER_SENSOR): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain="sensor", device_class="power")
                    ),
                }
            ),
            errors=errors,
        )

    async def async_step_control(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Step 3: Control method and actuator entities."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = validate_control(user_input)
            for key in (CONF_AC_INPUT_ENTITY, CONF_RELAY_SWITCH):
                entity_id = user_input.get(key)
                if entity_id and self.hass.states.get(entity_id) is None:
                    errors[key] = "entity_not_found"

            if not errors:
                self.control_info = user_input
                return await self.async_step_thresholds()

        return self.async_show_form(
            step_id="control",
            data_schema=vol.Schema(_control_schema(user_input or {})),
            errors=errors,
        )

    async def async_step_thresholds(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Step 4: Load, SoC and schedule thresholds."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = validate_thresholds(user_input)

            if not errors:
                # Merge all data and create entry
                data = {
                    **self.battery_info,
                    **self.sensor_info,
                    **self.control_info,
                    **user_input,
                }
                return self.async_create_entry(title=DEFAULT_NAME, data=data)

        return self.async_show_form(
            step_id="thresholds",
            data_schema=vol.Schema(_thresholds_schema(user_input or {})),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> config_entries.OptionsFlow:
        """Create the options flow."""
        return OptionsFlowHandler(config_entry)


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Handle options flow for Smart Grid Controller."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        """Initialize options flow."""
        self._config_entry = config_entry

    def _current(self) -> dict[str, Any]:
        """Data overlaid with options."""
        return {**self._config_entry.data, **self._config_entry.options}

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Manage the options - single page for simplicity."""
        errors: dict[str, str] = {}
        values = self._current()

        if user_input is not None:
            errors = {**validate_control(user_input), **validate_thresholds(user_input)}
            if not errors:
                # Cleared optional targets must override the original data
                return self.async_create_entry(
                    title="",
                    data={CONF_AC_INPUT_ENTITY: None, CONF_RELAY_SWITCH: None, **user_input},
                )
            values = {**values, **user_input}

        schema_dict = {
            vol.Required(
                CONF_BATTERY_AH,
                default=values.get(CONF_BATTERY_AH, vol.UNDEFINED),
            ): _battery_ah_selector(),
            **_control_schema(values),
            **_thresholds_schema(values),
        }

        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(schema_dict),
            errors=errors,
        )
