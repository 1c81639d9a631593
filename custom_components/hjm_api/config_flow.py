"""
Configuration flow for HJM heater integration.

This module handles the credential setup, heater pairing and polling options
of the HJM integration through Home Assistant's config flow system.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
import voluptuous as vol
from homeassistant.config_entries import (
    ConfigEntry,
    ConfigFlow,
    ConfigFlowResult,
    OptionsFlow,
)
from homeassistant.const import (
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_PASSWORD,
    CONF_USERNAME,
)
from homeassistant.core import callback
from homeassistant.helpers import config_validation as cv

from . import api
from .const import (
    ABSOLUTE_MIN_POLL_INTERVAL,
    CONF_DEBUG_REST,
    CONF_DEVICES,
    CONF_POLLING_ENABLED,
    CONF_POLLING_INTERVAL,
    DEFAULT_DEBUG_REST,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLLING_ENABLED,
    DOMAIN,
    ERROR_API_ERROR,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_MISSING_CREDENTIALS,
    ERROR_NO_DEVICES,
    ERROR_TIMEOUT,
    ERROR_UNKNOWN,
)
from .models import Credentials, PairableDevice

_LOGGER = logging.getLogger(__name__)

USER_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_CLIENT_ID): str,
        vol.Required(CONF_CLIENT_SECRET): str,
        vol.Required(CONF_USERNAME): str,
        vol.Required(CONF_PASSWORD): str,
    }
)


def credentials_from_data(data: dict[str, Any]) -> Credentials:
    """Build Credentials from config entry data or user input."""
    return Credentials(
        client_id=data.get(CONF_CLIENT_ID),
        client_secret=data.get(CONF_CLIENT_SECRET),
        username=data.get(CONF_USERNAME),
        password=data.get(CONF_PASSWORD),
    )


class HjmConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle configuration flow for HJM heater integration."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the config flow."""
        super().__init__()
        self._user_input: dict[str, Any] = {}
        self._pairable: list[PairableDevice] = []

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> OptionsFlow:
        """Return the options flow for polling settings."""
        return HjmOptionsFlow()

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """
        Handle the credential step of the config flow.

        Args:
            user_input: User input data containing the cloud credentials.

        Returns:
            ConfigFlowResult indicating the next step or errors.

        """
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                client = api.create_api_client(
                    self.hass, credentials_from_data(user_input)
                )
                pairable = await api.async_list_pairable_devices(client)
                _LOGGER.info("Successfully authenticated with HJM API")

            except api.HjmConfigurationError as err:
                _LOGGER.warning(
                    "Incomplete credentials (%s): %s", ERROR_MISSING_CREDENTIALS, err
                )
                errors["base"] = ERROR_MISSING_CREDENTIALS
            except api.HjmApiAuthError as err:
                _LOGGER.warning(
                    "Authentication failed (%s): %s", ERROR_INVALID_AUTH, err
                )
                errors["base"] = ERROR_INVALID_AUTH
            except httpx.ConnectError:
                _LOGGER.exception("Connection error (%s)", ERROR_CANNOT_CONNECT)
                errors["base"] = ERROR_CANNOT_CONNECT
            except httpx.TimeoutException:
                _LOGGER.exception("Timeout error (%s)", ERROR_TIMEOUT)
                errors["base"] = ERROR_TIMEOUT
            except api.HjmApiClientError:
                _LOGGER.exception("API client error (%s)", ERROR_API_ERROR)
                errors["base"] = ERROR_API_ERROR
            except Exception:
                _LOGGER.exception(
                    "Unexpected error during authentication (%s)",
                    ERROR_UNKNOWN,
                )
                errors["base"] = ERROR_UNKNOWN

            else:
                if not pairable:
                    errors["base"] = ERROR_NO_DEVICES
                else:
                    await self.async_set_unique_id(user_input[CONF_USERNAME].lower())
                    self._abort_if_unique_id_configured()
                    self._user_input = user_input
                    self._pairable = pairable
                    return await self.async_step_devices()

        return self.async_show_form(
            step_id="user",
            data_schema=USER_SCHEMA,
            errors=errors,
        )

    async def async_step_devices(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """
        Let the user pick which heaters to add.

        Args:
            user_input: User input data containing the selected device ids.

        Returns:
            ConfigFlowResult creating the entry or showing the selection.

        """
        choices = {device.id: device.display_name for device in self._pairable}

        if user_input is not None:
            selected = set(user_input[CONF_DEVICES])
            devices = [
                {
                    "id": device.id,
                    "name": device.display_name,
                    "metadata": dict(device.metadata),
                }
                for device in self._pairable
                if device.id in selected
            ]
            username = self._user_input[CONF_USERNAME]
            return self.async_create_entry(
                title=f"HJM ({username})",
                data={**self._user_input, CONF_DEVICES: devices},
                options={
                    CONF_POLLING_ENABLED: DEFAULT_POLLING_ENABLED,
                    CONF_POLLING_INTERVAL: DEFAULT_POLL_INTERVAL,
                    CONF_DEBUG_REST: DEFAULT_DEBUG_REST,
                },
            )

        return self.async_show_form(
            step_id="devices",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_DEVICES, default=list(choices)): cv.multi_select(
                        choices
                    ),
                }
            ),
        )


class HjmOptionsFlow(OptionsFlow):
    """Handle polling and diagnostic options."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Manage the options."""
        if user_input is not None:
            return self.async_create_entry(data=user_input)

        options = self.config_entry.options
        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        CONF_POLLING_ENABLED,
                        default=options.get(
                            CONF_POLLING_ENABLED, DEFAULT_POLLING_ENABLED
                        ),
                    ): bool,
                    vol.Required(
                        CONF_POLLING_INTERVAL,
                        default=options.get(
                            CONF_POLLING_INTERVAL, DEFAULT_POLL_INTERVAL
                        ),
                    ): vol.All(
                        vol.Coerce(int), vol.Range(min=ABSOLUTE_MIN_POLL_INTERVAL)
                    ),
                    vol.Required(
                        CONF_DEBUG_REST,
                        default=options.get(CONF_DEBUG_REST, DEFAULT_DEBUG_REST),
                    ): bool,
                }
            ),
        )
