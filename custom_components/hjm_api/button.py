"""Refresh buttons for HJM heaters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from homeassistant.components.button import ButtonEntity
from homeassistant.const import EntityCategory
from homeassistant.exceptions import HomeAssistantError

from .api import HjmApiClientError
from .const import DOMAIN
from .entity import build_device_info

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import HjmDeviceCoordinator

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up one refresh button per paired HJM heater."""
    entry_data = hass.data[DOMAIN][entry.entry_id]
    coordinators = entry_data["coordinators"]

    async_add_entities(
        [
            HjmRefreshButton(coordinators[device["id"]], device)
            for device in entry_data["devices"]
            if device["id"] in coordinators
        ]
    )


class HjmRefreshButton(ButtonEntity):
    """Button that reads the heater state from the cloud on demand."""

    _attr_has_entity_name = True
    _attr_translation_key = "refresh"
    _attr_entity_category = EntityCategory.DIAGNOSTIC

    def __init__(
        self,
        coordinator: HjmDeviceCoordinator,
        device: dict[str, Any],
    ) -> None:
        """Initialize the refresh button for ``device``."""
        self._coordinator = coordinator
        self._attr_unique_id = f"{device['id']}_refresh"
        self._attr_device_info = build_device_info(device)

    async def async_press(self) -> None:
        """Refresh the heater now."""
        try:
            await self._coordinator.async_refresh_now()
        except HjmApiClientError as err:
            _LOGGER.exception("API error while refreshing %s", self.unique_id)
            raise HomeAssistantError(str(err)) from err
        except httpx.RequestError as err:
            _LOGGER.exception("Connection error while refreshing %s", self.unique_id)
            raise HomeAssistantError(f"Connection error: {err}") from err
