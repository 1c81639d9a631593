"""Climate entities for HJM heaters.

This module provides climate entities that represent HJM heaters as Home
Assistant climate entities, plus the entity services used by automations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
import voluptuous as vol
from homeassistant.components.climate import (
    ClimateEntity,
    ClimateEntityFeature,
    HVACMode,
)
from homeassistant.const import ATTR_TEMPERATURE, UnitOfTemperature
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers import entity_platform

from .api import HjmApiClientError, HjmInvalidStateError
from .const import (
    ATTR_MODE,
    DOMAIN,
    HVAC_MODE_MAP,
    HVAC_MODE_REVERSE_MAP,
    SERVICE_REFRESH_DEVICE,
    SERVICE_SET_MODE,
    SERVICE_SET_TEMPERATURE,
)
from .entity import build_device_info

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import HjmDeviceCoordinator

_LOGGER = logging.getLogger(__name__)

SET_MODE_SCHEMA = {
    vol.Required(ATTR_MODE): vol.In([mode.value for mode in HVAC_MODE_MAP]),
}
SET_TEMPERATURE_SCHEMA = {
    vol.Required(ATTR_TEMPERATURE): vol.Coerce(float),
}


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up climate entities for paired HJM heaters."""
    entry_data = hass.data[DOMAIN][entry.entry_id]
    coordinators = entry_data["coordinators"]

    entities = [
        HjmThermostatClimateEntity(coordinators[device["id"]], device)
        for device in entry_data["devices"]
        if device["id"] in coordinators
    ]
    async_add_entities(entities)

    platform = entity_platform.async_get_current_platform()
    platform.async_register_entity_service(
        SERVICE_REFRESH_DEVICE, {}, "async_refresh_device"
    )
    platform.async_register_entity_service(
        SERVICE_SET_MODE, SET_MODE_SCHEMA, "async_set_mode_from_automation"
    )
    platform.async_register_entity_service(
        SERVICE_SET_TEMPERATURE,
        SET_TEMPERATURE_SCHEMA,
        "async_set_temperature_from_automation",
    )


class HjmThermostatClimateEntity(ClimateEntity):
    """Climate entity for an HJM heater.

    Mirrors the coordinator's normalized state and forwards mode and setpoint
    changes to it.
    """

    _attr_temperature_unit = UnitOfTemperature.CELSIUS
    _attr_target_temperature_step = 0.5
    _attr_has_entity_name = True
    _attr_name = None
    _attr_should_poll = False
    _attr_hvac_modes = [HVACMode.OFF, HVACMode.HEAT, HVACMode.AUTO]
    _attr_supported_features = (
        ClimateEntityFeature.TARGET_TEMPERATURE
        | ClimateEntityFeature.TURN_OFF
        | ClimateEntityFeature.TURN_ON
    )
    _attr_min_temp = 5.0
    _attr_max_temp = 30.0

    def __init__(
        self,
        coordinator: HjmDeviceCoordinator,
        device: dict[str, Any],
    ) -> None:
        """Initialize the HJM climate entity.

        Args:
            coordinator: Coordinator polling and commanding this heater.
            device: Paired device entry with id, name and metadata.

        """
        self._coordinator = coordinator
        self._device = device
        self._attr_unique_id = device["id"]
        self._attr_available = False
        self._attr_hvac_mode = None
        self._coordinator_listener_unsub: Callable[[], None] | None = None

        self._attr_device_info = build_device_info(device)

    async def async_added_to_hass(self) -> None:
        """Subscribe to coordinator updates and show any state already read."""
        await super().async_added_to_hass()

        self._coordinator_listener_unsub = self._coordinator.async_add_listener(
            self._handle_coordinator_update
        )

        if self._coordinator.data is not None and self._coordinator.last_update_success:
            self._update_from_coordinator()
            self._attr_available = True

    async def async_will_remove_from_hass(self) -> None:
        """Handle entity being removed from Home Assistant."""
        await super().async_will_remove_from_hass()

        if self._coordinator_listener_unsub is not None:
            self._coordinator_listener_unsub()
            self._coordinator_listener_unsub = None

    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        if not self._coordinator.last_update_success:
            _LOGGER.debug("%s: refresh failed, keeping previous state", self.unique_id)
            return

        self._update_from_coordinator()
        try:
            self._mark_available()
        except HomeAssistantError:
            _LOGGER.exception("Failed to mark %s as available", self.unique_id)

    def _mark_available(self) -> None:
        self._attr_available = True
        self.async_write_ha_state()

    def _update_from_coordinator(self) -> None:
        """Update entity state from coordinator data."""
        status = self._coordinator.data
        if status is None:
            _LOGGER.debug("%s: No coordinator data", self.unique_id)
            return

        if status.measured_temperature is not None:
            self._attr_current_temperature = status.measured_temperature

        if status.setpoint_temperature is not None:
            self._attr_target_temperature = status.setpoint_temperature

        if status.mode is not None:
            self._attr_hvac_mode = HVAC_MODE_REVERSE_MAP.get(status.mode, HVACMode.AUTO)

        _LOGGER.debug("Updated %s from coordinator: %s", self.unique_id, status)

    async def _async_run_command(self, command: Awaitable[None]) -> None:
        """Await a coordinator command and translate its errors."""
        try:
            await command
        except HjmInvalidStateError as err:
            raise ServiceValidationError(
                str(err),
                translation_domain=DOMAIN,
                translation_key="temp_manual_only",
            ) from err
        except HjmApiClientError as err:
            _LOGGER.exception("API error while commanding %s", self.unique_id)
            raise HomeAssistantError(str(err)) from err
        except httpx.RequestError as err:
            _LOGGER.exception("Connection error while commanding %s", self.unique_id)
            raise HomeAssistantError(f"Connection error: {err}") from err

    async def async_set_hvac_mode(self, hvac_mode: HVACMode) -> None:
        """Set the HVAC mode.

        Args:
            hvac_mode: The HVAC mode to set.

        """
        await self._async_run_command(self._coordinator.async_set_mode(hvac_mode.value))

    async def async_set_temperature(self, **kwargs: Any) -> None:  # noqa: ANN401
        """Set the target temperature.

        Args:
            **kwargs: Keyword arguments containing temperature data.

        """
        temperature = kwargs.get(ATTR_TEMPERATURE)
        if temperature is None:
            return
        await self._async_run_command(
            self._coordinator.async_set_target_temperature(temperature)
        )

    async def async_turn_on(self) -> None:
        """Turn the heater on in manual mode."""
        await self.async_set_hvac_mode(HVACMode.HEAT)

    async def async_turn_off(self) -> None:
        """Turn the heater off."""
        await self.async_set_hvac_mode(HVACMode.OFF)

    async def async_refresh_device(self) -> None:
        """Read the heater now."""
        await self._async_run_command(self._coordinator.async_refresh_now())

    async def async_set_mode_from_automation(self, mode: str) -> None:
        """Set the heater mode from an automation action."""
        await self._async_run_command(self._coordinator.async_set_mode(mode))

    async def async_set_temperature_from_automation(self, temperature: float) -> None:
        """Set the heater setpoint from an automation action."""
        await self._async_run_command(
            self._coordinator.async_set_target_temperature(temperature)
        )
