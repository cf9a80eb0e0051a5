from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant

from .api import DeviceClient, TokenManager, create_session_client
from .const import CONF_APP_KEY, CONF_APP_SECRET, CONF_TVOC_UNIT, DOMAIN
from .models import TvocUnit
from .sensor import create_accessory_store
from .sensor_values import SensorValueResolver

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [Platform.SENSOR]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Setting up Qingping integration for entry %s", entry.entry_id)

    if CONF_APP_KEY not in entry.data or CONF_APP_SECRET not in entry.data:
        _LOGGER.error(
            "Missing app key or secret in configuration for entry %s", entry.entry_id
        )
        return False

    app_key = entry.data[CONF_APP_KEY]
    app_secret = entry.data[CONF_APP_SECRET]
    _LOGGER.info(
        "Using app key %s and app secret %s...", app_key, app_secret[:6]
    )

    session = create_session_client(hass)
    token_manager = TokenManager(session, app_key, app_secret)
    device_client = DeviceClient(session, token_manager)
    resolver = SensorValueResolver(
        TvocUnit(entry.options.get(CONF_TVOC_UNIT, TvocUnit.NATIVE))
    )

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "session": session,
        "token_manager": token_manager,
        "device_client": device_client,
        "resolver": resolver,
    }
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    try:
        await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    except Exception as err:
        _LOGGER.error("Failed to setup platforms for entry %s: %s", entry.entry_id, err)
        hass.data[DOMAIN].pop(entry.entry_id, None)
        return False

    _LOGGER.info("Successfully setup Qingping integration for entry %s", entry.entry_id)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Unloading Qingping integration for entry %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        if DOMAIN in hass.data and entry.entry_id in hass.data[DOMAIN]:
            hass.data[DOMAIN].pop(entry.entry_id)
            _LOGGER.debug("Cleaned up data for entry %s", entry.entry_id)
    else:
        _LOGGER.warning("Failed to unload some platforms for entry %s", entry.entry_id)

    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Delete the accessory cache of a removed entry."""
    await create_accessory_store(hass, entry.entry_id).async_remove()
    _LOGGER.debug("Removed accessory cache for entry %s", entry.entry_id)


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry when its options change."""
    await hass.config_entries.async_reload(entry.entry_id)
