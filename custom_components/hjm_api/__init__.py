from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant

from . import api
from .config_flow import credentials_from_data
from .const import CONF_DEBUG_REST, CONF_DEVICES, DOMAIN
from .coordinator import HjmDeviceCoordinator

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [Platform.BUTTON, Platform.CLIMATE]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Setting up HJM integration for entry %s", entry.entry_id)

    credentials = credentials_from_data(entry.data)
    missing = credentials.missing_fields()
    if missing:
        _LOGGER.error(
            "Missing %s in configuration for entry %s",
            ", ".join(missing),
            entry.entry_id,
        )
        return False

    client = api.create_api_client(
        hass, credentials, debug=entry.options.get(CONF_DEBUG_REST, False)
    )
    devices = entry.data.get(CONF_DEVICES, [])

    coordinators: dict[str, HjmDeviceCoordinator] = {}
    for device in devices:
        coordinator = HjmDeviceCoordinator(hass, client, device["id"], entry)
        await coordinator.async_activate(entry.options)
        coordinators[device["id"]] = coordinator
    _LOGGER.debug("Activated %d heaters for entry %s", len(coordinators), entry.entry_id)

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "client": client,
        "coordinators": coordinators,
        "devices": devices,
    }
    entry.async_on_unload(entry.add_update_listener(async_update_options))

    try:
        await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
        _LOGGER.info("Successfully setup HJM integration for entry %s", entry.entry_id)
        return True
    except Exception as err:
        _LOGGER.error("Failed to setup platforms for entry %s: %s", entry.entry_id, err)
        _deactivate(coordinators)
        hass.data[DOMAIN].pop(entry.entry_id, None)
        return False


async def async_update_options(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Apply changed polling and diagnostic options to a running entry."""
    entry_data = hass.data.get(DOMAIN, {}).get(entry.entry_id)
    if entry_data is None:
        return

    _LOGGER.debug("Options changed for entry %s: %s", entry.entry_id, entry.options)
    entry_data["client"].debug = entry.options.get(CONF_DEBUG_REST, False)
    for coordinator in entry_data["coordinators"].values():
        coordinator.async_apply_settings(entry.options)


def _deactivate(coordinators: dict[str, HjmDeviceCoordinator]) -> None:
    for coordinator in coordinators.values():
        coordinator.async_deactivate()


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Unloading HJM integration for entry %s", entry.entry_id)

    try:
        unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
        if unload_ok:
            if DOMAIN in hass.data and entry.entry_id in hass.data[DOMAIN]:
                entry_data = hass.data[DOMAIN].pop(entry.entry_id)
                _deactivate(entry_data["coordinators"])
                _LOGGER.debug("Cleaned up data for entry %s", entry.entry_id)
            _LOGGER.info(
                "Successfully unloaded HJM integration for entry %s",
                entry.entry_id,
            )
        else:
            _LOGGER.warning(
                "Failed to unload some platforms for entry %s", entry.entry_id
            )

        return unload_ok
    except Exception as err:
        _LOGGER.error(
            "Error unloading HJM integration for entry %s: %s",
            entry.entry_id,
            err,
        )
        return False
