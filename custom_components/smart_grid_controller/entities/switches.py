"""Switch entities."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.components.switch import SwitchEntity
from homeassistant.helpers.entity import DeviceInfo, EntityCategory
from homeassistant.helpers.restore_state import RestoreEntity

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

from ..const import DEFAULT_NAME, DOMAIN
from ..grid_logging import get_logger


class DecisionLoggingSwitch(SwitchEntity, RestoreEntity):
    """Switch to control the JSON-lines decision journal.

    When ON: every logged event is also appended to log/decisions.jsonl
    When OFF: events only go to the Home Assistant log (default)
    """

    _attr_has_entity_name = True
    _attr_icon = "mdi:notebook-edit-outline"
    _attr_entity_category = EntityCategory.DIAGNOSTIC

    def __init__(self, entry_id: str) -> None:
        """Initialize."""
        self._logger = get_logger()
        self._journal_size_kb = 0.0

        self._attr_unique_id = f"{entry_id}_decision_logging"
        self._attr_name = "Decision Logging"
        self._attr_is_on = self._logger.journal_enabled

        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry_id)},
            name=DEFAULT_NAME,
            manufacturer="Smart Grid Controller",
        )

    async def async_added_to_hass(self) -> None:
        """Restore the previous journal setting."""
        await super().async_added_to_hass()

        last_state = await self.async_get_last_state()
        if last_state is not None and last_state.state == "on" and not self._attr_is_on:
            await self._async_set_journal(True)

    async def _async_set_journal(self, enabled: bool) -> None:
        # Creating the directory and sizing files touch the disk
        await self.hass.async_add_executor_job(self._logger.set_journal, enabled)
        self._journal_size_kb = await self.hass.async_add_executor_job(
            self._logger.get_journal_size_kb
        )
        self._attr_is_on = enabled
        self.async_write_ha_state()

    async def async_turn_on(self, **kwargs) -> None:
        """Turn on the decision journal."""
        await self._async_set_journal(True)

    async def async_turn_off(self, **kwargs) -> None:
        """Turn off the decision journal."""
        await self._async_set_journal(False)

    @property
    def extra_state_attributes(self) -> dict:
        """Return extra attributes."""
        return {
            "journal_file": str(self._logger.journal_file),
            "journal_size_kb": self._journal_size_kb,
        }


async def async_setup_switches(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up switch entities."""
    async_add_entities([
        DecisionLoggingSwitch(entry.entry_id),
    ])
