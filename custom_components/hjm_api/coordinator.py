"""Coordinator for HJM heater integration."""

from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx
from homeassistant.helpers.event import async_track_time_interval
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import api
from .const import (
    ABSOLUTE_MIN_POLL_INTERVAL,
    CONF_POLLING_ENABLED,
    CONF_POLLING_INTERVAL,
    DEFAULT_POLL_INTERVAL,
    DOMAIN,
    MIN_POLL_INTERVAL,
    MODE_AUTO,
    MODE_MANUAL,
    MODE_OFF,
    SETTLE_DELAY,
)
from .models import DeviceStatus, PollState

if TYPE_CHECKING:
    from collections.abc import Mapping

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)

_FLOAT_PREFIX_RE = re.compile(r"\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

TEMP_MANUAL_ONLY_MESSAGE = "temperature can only be set in manual mode"


def to_float(value: Any) -> float | None:
    """Parse a loosely typed numeric field.

    Strings may use a comma as decimal separator and may carry trailing
    garbage after the number. Anything that does not yield a finite number
    gives None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            match = _FLOAT_PREFIX_RE.match(str(value).replace(",", ".", 1))
            if match is None:
                return None
            number = float(match.group(0))
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def normalize_mode(mode: Any) -> str:
    """Map a vendor mode value to off, manual or auto."""
    if mode in (MODE_MANUAL, "heat"):
        return MODE_MANUAL
    if mode == MODE_OFF:
        return MODE_OFF
    return MODE_AUTO


def to_api_mode(mode: Any) -> str:
    """Map an external mode value to the vendor vocabulary."""
    if mode in ("heat", MODE_MANUAL):
        return MODE_MANUAL
    if mode == MODE_OFF:
        return MODE_OFF
    return MODE_AUTO


def format_temperature(value: float) -> str:
    """Render a setpoint the way the vendor app sends it (21, 21.5)."""
    return f"{float(value):g}"


def merge_status(previous: DeviceStatus | None, raw: Any) -> DeviceStatus:
    """Apply a raw status payload on top of the previous normalized state.

    Fields that are absent or unparsable leave the previous value in place.
    """
    status = previous or DeviceStatus()
    if not isinstance(raw, dict):
        _LOGGER.debug("Ignoring non-object status payload: %s", raw)
        return status

    updates: dict[str, Any] = {}

    measured = to_float(raw.get("mtemp"))
    if measured is not None:
        updates["measured_temperature"] = measured

    setpoint = to_float(raw.get("stemp"))
    if setpoint is not None:
        updates["setpoint_temperature"] = setpoint

    if isinstance(raw.get("mode"), str):
        updates["mode"] = normalize_mode(raw["mode"])

    return replace(status, **updates)


def compute_poll_interval(
    options: Mapping[str, Any],
    floor: int = MIN_POLL_INTERVAL,
) -> timedelta | None:
    """Return the effective poll interval, or None when polling is disabled.

    Args:
        options: Settings holding ``polling_enabled`` and ``polling_interval``.
        floor: Minimum interval in seconds, never below the absolute minimum.

    Returns:
        The clamped interval, or None if polling is not enabled.

    """
    if options.get(CONF_POLLING_ENABLED) is not True:
        return None

    seconds = to_float(options.get(CONF_POLLING_INTERVAL)) or DEFAULT_POLL_INTERVAL
    seconds = max(seconds, floor, ABSOLUTE_MIN_POLL_INTERVAL)
    return timedelta(seconds=seconds)


class HjmDeviceCoordinator(DataUpdateCoordinator[DeviceStatus]):
    """Coordinator that polls and commands one HJM heater.

    Home Assistant's own refresh scheduling is disabled; the coordinator owns
    a single interval timer that is started, restarted and stopped from the
    entry options.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        client: api.HjmApiClient,
        dev_id: str,
        config_entry: ConfigEntry | None = None,
        *,
        floor: int = MIN_POLL_INTERVAL,
        settle_delay: float = SETTLE_DELAY,
    ) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            config_entry=config_entry,
            name=f"{DOMAIN}_{dev_id}",
            update_interval=None,
        )
        self.client = client
        self.dev_id = dev_id
        self.floor = floor
        self.settle_delay = settle_delay
        self.poll_state = PollState()

    @property
    def polling(self) -> bool:
        """Return True while the poll timer is running."""
        return self.poll_state.unsub is not None

    async def async_activate(self, options: Mapping[str, Any]) -> None:
        """Read the heater once and start polling per ``options``."""
        _LOGGER.info("Activating HJM heater %s", self.dev_id)
        await self.async_refresh()
        self.async_apply_settings(options)

    def async_deactivate(self) -> None:
        """Stop polling; in-flight refreshes are left to complete."""
        _LOGGER.info("Deactivating HJM heater %s", self.dev_id)
        self._stop_polling()

    async def async_shutdown(self) -> None:
        """Cancel the poll timer when the coordinator shuts down."""
        self._stop_polling()
        await super().async_shutdown()

    def async_apply_settings(self, options: Mapping[str, Any]) -> None:
        """Start, restart or stop polling to match ``options``."""
        interval = compute_poll_interval(options, self.floor)
        _LOGGER.debug(
            "Polling setup for %s: enabled=%s, interval=%s",
            self.dev_id,
            interval is not None,
            interval,
        )

        if interval is None:
            self._stop_polling()
            return

        if self.polling and self.poll_state.interval == interval:
            _LOGGER.debug(
                "Polling for %s already running every %s, keeping timer",
                self.dev_id,
                interval,
            )
            return

        self._start_polling(interval)

    def _start_polling(self, interval: timedelta) -> None:
        self._stop_polling()
        unsub = async_track_time_interval(
            self.hass,
            self._async_poll_tick,
            interval,
            name=f"{DOMAIN} poll {self.dev_id}",
        )
        self.poll_state = PollState(unsub=unsub, interval=interval)
        _LOGGER.info(
            "Started polling %s every %ds", self.dev_id, interval.total_seconds()
        )

    def _stop_polling(self) -> None:
        unsub = self.poll_state.unsub
        self.poll_state = PollState()
        if unsub is not None:
            unsub()
            _LOGGER.info("Stopped polling %s", self.dev_id)

    async def _async_poll_tick(self, _now: datetime) -> None:
        await self.async_refresh()

    async def _async_fetch_status(self) -> DeviceStatus:
        raw = await self.client.async_get_device_status(self.dev_id)
        return merge_status(self.data, raw)

    async def _async_update_data(self) -> DeviceStatus:
        try:
            status = await self._async_fetch_status()
        except api.HjmConfigurationError as err:
            raise UpdateFailed(f"Configuration error: {err}") from err
        except api.HjmApiAuthError as err:
            raise UpdateFailed(f"Authentication error while polling: {err}") from err
        except api.HjmApiClientError as err:
            raise UpdateFailed(f"API error while polling: {err}") from err
        except httpx.RequestError as err:
            raise UpdateFailed(f"Connection error while polling: {err}") from err

        _LOGGER.debug("Polled status for %s: %s", self.dev_id, status)
        return status

    async def async_refresh_now(self) -> None:
        """Read the heater and publish its state, propagating any error."""
        status = await self._async_fetch_status()
        self.async_set_updated_data(status)

    async def async_set_target_temperature(self, temperature: float) -> None:
        """Set the setpoint; only allowed while the heater is in manual mode.

        Raises:
            HjmInvalidStateError: If the heater is not in manual mode.

        """
        current = await self.client.async_get_device_status(self.dev_id)
        current_mode = current.get("mode") if isinstance(current, dict) else None
        if normalize_mode(current_mode) != MODE_MANUAL:
            raise api.HjmInvalidStateError(TEMP_MANUAL_ONLY_MESSAGE)

        payload = {
            "stemp": format_temperature(temperature),
            "units": "C",
            "mode": MODE_MANUAL,
        }
        await self.client.async_set_device_status(self.dev_id, payload)

        self.async_set_updated_data(
            replace(
                self.data or DeviceStatus(),
                setpoint_temperature=float(temperature),
                mode=MODE_MANUAL,
            )
        )
        await self._async_settle_and_refresh()

    async def async_set_mode(self, mode: str) -> None:
        """Switch the heater mode and read the result back."""
        api_mode = to_api_mode(mode)
        await self.client.async_set_device_status(self.dev_id, {"mode": api_mode})
        await self._async_settle_and_refresh()

    async def _async_settle_and_refresh(self) -> None:
        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)
        await self.async_refresh_now()
