"""Tests for the HJM integration setup and unload."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from homeassistant.const import (
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_PASSWORD,
    CONF_USERNAME,
)

from custom_components.hjm_api import (
    async_setup_entry,
    async_unload_entry,
    async_update_options,
)
from custom_components.hjm_api.const import (
    CONF_DEBUG_REST,
    CONF_DEVICES,
    CONF_POLLING_ENABLED,
    CONF_POLLING_INTERVAL,
    DOMAIN,
)

CREATE_CLIENT = "custom_components.hjm_api.api.create_api_client"
COORDINATOR = "custom_components.hjm_api.HjmDeviceCoordinator"


@pytest.fixture
def mock_hass() -> Mock:
    """Create a mock Home Assistant instance."""
    hass = Mock()
    hass.data = {}
    hass.config_entries.async_forward_entry_setups = AsyncMock()
    hass.config_entries.async_unload_platforms = AsyncMock(return_value=True)
    return hass


@pytest.fixture
def mock_entry() -> Mock:
    """Create a config entry with two paired heaters."""
    entry = Mock()
    entry.entry_id = "test_entry"
    entry.data = {
        CONF_CLIENT_ID: "client",
        CONF_CLIENT_SECRET: "secret",
        CONF_USERNAME: "user",
        CONF_PASSWORD: "pw",
        CONF_DEVICES: [
            {"id": "dev1", "name": "Home • Living room", "metadata": {}},
            {"id": "dev2", "name": "Home • Bedroom", "metadata": {}},
        ],
    }
    entry.options = {
        CONF_POLLING_ENABLED: True,
        CONF_POLLING_INTERVAL: 60,
        CONF_DEBUG_REST: False,
    }
    return entry


def _coordinator_factory() -> tuple[Mock, list[Mock]]:
    built: list[Mock] = []

    def _build(hass: Mock, client: Mock, dev_id: str, entry: Mock) -> Mock:
        coordinator = Mock()
        coordinator.dev_id = dev_id
        coordinator.async_activate = AsyncMock()
        built.append(coordinator)
        return coordinator

    return Mock(side_effect=_build), built


class TestAsyncSetupEntry:
    """Tests for async_setup_entry."""

    @pytest.mark.asyncio
    async def test_setup_activates_one_coordinator_per_device(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that every paired heater gets an activated coordinator."""
        client = Mock()
        factory, _ = _coordinator_factory()
        with patch(CREATE_CLIENT, return_value=client), patch(COORDINATOR, factory):
            result = await async_setup_entry(mock_hass, mock_entry)

        assert result is True
        entry_data = mock_hass.data[DOMAIN]["test_entry"]
        assert entry_data["client"] is client
        assert list(entry_data["coordinators"]) == ["dev1", "dev2"]
        for coordinator in entry_data["coordinators"].values():
            coordinator.async_activate.assert_awaited_once_with(mock_entry.options)
        mock_entry.add_update_listener.assert_called_once()
        mock_hass.config_entries.async_forward_entry_setups.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_setup_fails_with_missing_credentials(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that incomplete credentials abort setup before any request."""
        mock_entry.data[CONF_PASSWORD] = ""
        with patch(CREATE_CLIENT) as create_client:
            result = await async_setup_entry(mock_hass, mock_entry)

        assert result is False
        create_client.assert_not_called()
        assert DOMAIN not in mock_hass.data

    @pytest.mark.asyncio
    async def test_setup_deactivates_when_platform_setup_fails(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that polling is stopped if the climate platform fails."""
        mock_hass.config_entries.async_forward_entry_setups.side_effect = RuntimeError(
            "boom"
        )
        factory, built = _coordinator_factory()
        with patch(CREATE_CLIENT, return_value=Mock()), patch(COORDINATOR, factory):
            result = await async_setup_entry(mock_hass, mock_entry)

        assert result is False
        assert "test_entry" not in mock_hass.data[DOMAIN]
        assert factory.call_count == 2
        for coordinator in built:
            coordinator.async_deactivate.assert_called_once()


class TestAsyncUpdateOptions:
    """Tests for the options update listener."""

    @pytest.mark.asyncio
    async def test_update_options_reapplies_settings(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that new options reach the client and every coordinator."""
        client = Mock()
        coordinators = {"dev1": Mock(), "dev2": Mock()}
        mock_hass.data[DOMAIN] = {
            "test_entry": {"client": client, "coordinators": coordinators}
        }
        mock_entry.options = {
            CONF_POLLING_ENABLED: False,
            CONF_DEBUG_REST: True,
        }

        await async_update_options(mock_hass, mock_entry)

        assert client.debug is True
        for coordinator in coordinators.values():
            coordinator.async_apply_settings.assert_called_once_with(mock_entry.options)

    @pytest.mark.asyncio
    async def test_update_options_ignores_unknown_entry(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that options for an unloaded entry are ignored."""
        await async_update_options(mock_hass, mock_entry)
        assert mock_hass.data == {}


class TestAsyncUnloadEntry:
    """Tests for async_unload_entry."""

    @pytest.mark.asyncio
    async def test_unload_deactivates_coordinators(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that unloading stops every poll timer and drops entry data."""
        coordinators = {"dev1": Mock(), "dev2": Mock()}
        mock_hass.data[DOMAIN] = {
            "test_entry": {"client": Mock(), "coordinators": coordinators}
        }

        result = await async_unload_entry(mock_hass, mock_entry)

        assert result is True
        assert "test_entry" not in mock_hass.data[DOMAIN]
        for coordinator in coordinators.values():
            coordinator.async_deactivate.assert_called_once()

    @pytest.mark.asyncio
    async def test_unload_keeps_data_when_platform_unload_fails(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that a failed platform unload leaves polling running."""
        coordinators = {"dev1": Mock()}
        mock_hass.data[DOMAIN] = {
            "test_entry": {"client": Mock(), "coordinators": coordinators}
        }
        mock_hass.config_entries.async_unload_platforms.return_value = False

        result = await async_unload_entry(mock_hass, mock_entry)

        assert result is False
        assert "test_entry" in mock_hass.data[DOMAIN]
        coordinators["dev1"].async_deactivate.assert_not_called()
