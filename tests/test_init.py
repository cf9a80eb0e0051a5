"""Tests for the Qingping integration setup."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from custom_components.qingping_air import (
    PLATFORMS,
    async_reload_entry,
    async_remove_entry,
    async_setup_entry,
    async_unload_entry,
)
from custom_components.qingping_air.api import DeviceClient, TokenManager
from custom_components.qingping_air.const import (
    CONF_APP_KEY,
    CONF_APP_SECRET,
    CONF_TVOC_UNIT,
    DOMAIN,
)
from custom_components.qingping_air.models import TvocUnit


@pytest.fixture
def mock_hass() -> Mock:
    """Create a mock Home Assistant instance."""
    hass = Mock()
    hass.data = {}
    hass.config_entries = Mock()
    hass.config_entries.async_forward_entry_setups = AsyncMock()
    hass.config_entries.async_unload_platforms = AsyncMock(return_value=True)
    hass.config_entries.async_reload = AsyncMock()
    return hass


@pytest.fixture
def mock_entry() -> Mock:
    """Create a mock config entry."""
    entry = Mock()
    entry.entry_id = "test_entry_id"
    entry.data = {CONF_APP_KEY: "test_app_key", CONF_APP_SECRET: "test_app_secret"}
    entry.options = {CONF_TVOC_UNIT: "ppb"}
    return entry


class TestAsyncSetupEntry:
    """Tests for async_setup_entry."""

    @pytest.mark.asyncio
    async def test_setup_wires_clients_and_forwards_platforms(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that setup stores the clients and forwards the sensor platform."""
        session = Mock()
        with patch(
            "custom_components.qingping_air.create_session_client",
            return_value=session,
        ):
            assert await async_setup_entry(mock_hass, mock_entry) is True

        entry_data = mock_hass.data[DOMAIN][mock_entry.entry_id]
        assert entry_data["session"] is session
        assert isinstance(entry_data["token_manager"], TokenManager)
        assert isinstance(entry_data["device_client"], DeviceClient)
        assert entry_data["resolver"].tvoc_unit is TvocUnit.PPB
        mock_hass.config_entries.async_forward_entry_setups.assert_awaited_once_with(
            mock_entry, PLATFORMS
        )
        mock_entry.async_on_unload.assert_called_once()

    @pytest.mark.asyncio
    async def test_setup_fails_without_credentials(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that setup refuses an entry without app secret."""
        mock_entry.data = {CONF_APP_KEY: "test_app_key"}

        assert await async_setup_entry(mock_hass, mock_entry) is False
        mock_hass.config_entries.async_forward_entry_setups.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_setup_cleans_up_when_platform_setup_fails(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that a failing platform setup removes the stored data."""
        mock_hass.config_entries.async_forward_entry_setups.side_effect = RuntimeError(
            "boom"
        )
        with patch("custom_components.qingping_air.create_session_client"):
            assert await async_setup_entry(mock_hass, mock_entry) is False

        assert mock_entry.entry_id not in mock_hass.data[DOMAIN]


class TestAsyncUnloadEntry:
    """Tests for async_unload_entry."""

    @pytest.mark.asyncio
    async def test_unload_removes_entry_data(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that unloading drops the stored entry data."""
        mock_hass.data = {DOMAIN: {mock_entry.entry_id: {}}}

        assert await async_unload_entry(mock_hass, mock_entry) is True
        assert mock_entry.entry_id not in mock_hass.data[DOMAIN]

    @pytest.mark.asyncio
    async def test_unload_keeps_data_when_platforms_fail(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
    ) -> None:
        """Test that a failed platform unload keeps the entry data."""
        mock_hass.data = {DOMAIN: {mock_entry.entry_id: {}}}
        mock_hass.config_entries.async_unload_platforms.return_value = False

        assert await async_unload_entry(mock_hass, mock_entry) is False
        assert mock_entry.entry_id in mock_hass.data[DOMAIN]


@pytest.mark.asyncio
async def test_reload_entry_reloads(mock_hass: Mock, mock_entry: Mock) -> None:
    """Test that an options update reloads the entry."""
    await async_reload_entry(mock_hass, mock_entry)
    mock_hass.config_entries.async_reload.assert_awaited_once_with(mock_entry.entry_id)


@pytest.mark.asyncio
async def test_remove_entry_deletes_accessory_cache(
    mock_hass: Mock,
    mock_entry: Mock,
) -> None:
    """Test that removing an entry deletes its accessory cache."""
    store = Mock()
    store.async_remove = AsyncMock()
    with patch(
        "custom_components.qingping_air.create_accessory_store",
        return_value=store,
    ) as create_store:
        await async_remove_entry(mock_hass, mock_entry)

    create_store.assert_called_once_with(mock_hass, mock_entry.entry_id)
    store.async_remove.assert_awaited_once()
