"""
Configuration flow for Qingping Air Monitor integration.

This module handles the setup and configuration of the Qingping integration
through Home Assistant's config flow system.
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
from homeassistant.core import callback
from homeassistant.helpers.httpx_client import get_async_client

from . import api
from .const import (
    CONF_APP_KEY,
    CONF_APP_SECRET,
    CONF_AQI_NAME,
    CONF_CO2_NAME,
    CONF_HUMIDITY_NAME,
    CONF_INTERVAL,
    CONF_TEMPERATURE_NAME,
    CONF_TVOC_UNIT,
    DEFAULT_AQI_NAME,
    DEFAULT_CO2_NAME,
    DEFAULT_HUMIDITY_NAME,
    DEFAULT_INTERVAL,
    DEFAULT_TEMPERATURE_NAME,
    DOMAIN,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_TIMEOUT,
    ERROR_UNKNOWN,
    MIN_INTERVAL,
)
from .models import TvocUnit

_LOGGER = logging.getLogger(__name__)


def auth_error_reason(err: api.AuthError) -> str:
    """Map a failed token exchange to a config flow error key.

    Args:
        err: Error raised by the token manager.

    Returns:
        One of the config flow error keys.

    """
    cause = err.__cause__
    if isinstance(cause, httpx.TimeoutException):
        return ERROR_TIMEOUT
    if isinstance(cause, httpx.RequestError):
        return ERROR_CANNOT_CONNECT
    return ERROR_INVALID_AUTH


class QingpingConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle configuration flow for Qingping integration."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """
        Handle the initial step of the config flow.

        Args:
            user_input: User input data containing app key and secret.

        Returns:
            ConfigFlowResult indicating the next step or errors.

        """
        errors: dict[str, str] = {}

        if user_input is not None:
            app_key = user_input[CONF_APP_KEY].strip()
            app_secret = user_input[CONF_APP_SECRET].strip()

            try:
                session = get_async_client(self.hass)
                token_manager = api.TokenManager(session, app_key, app_secret)
                await token_manager.async_refresh()
                _LOGGER.info("Successfully authenticated with Qingping API")

            except api.AuthError as err:
                errors["base"] = auth_error_reason(err)
                _LOGGER.warning("Authentication failed (%s): %s", errors["base"], err)
            except Exception:
                _LOGGER.exception(
                    "Unexpected error during authentication (%s)",
                    ERROR_UNKNOWN,
                )
                errors["base"] = ERROR_UNKNOWN

            else:
                await self.async_set_unique_id(app_key)
                self._abort_if_unique_id_configured()

                return self.async_create_entry(
                    title=f"Qingping ({app_key})",
                    data={
                        CONF_APP_KEY: app_key,
                        CONF_APP_SECRET: app_secret,
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_APP_KEY): str,
                    vol.Required(CONF_APP_SECRET): str,
                }
            ),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> QingpingOptionsFlow:
        """Return the options flow handler."""
        return QingpingOptionsFlow()


class QingpingOptionsFlow(OptionsFlow):
    """Handle polling interval, sensor names and VOC unit."""

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
                        CONF_INTERVAL,
                        default=options.get(CONF_INTERVAL, DEFAULT_INTERVAL),
                    ): vol.All(vol.Coerce(int), vol.Range(min=MIN_INTERVAL)),
                    vol.Optional(
                        CONF_TEMPERATURE_NAME,
                        default=options.get(
                            CONF_TEMPERATURE_NAME, DEFAULT_TEMPERATURE_NAME
                        ),
                    ): str,
                    vol.Optional(
                        CONF_HUMIDITY_NAME,
                        default=options.get(CONF_HUMIDITY_NAME, DEFAULT_HUMIDITY_NAME),
                    ): str,
                    vol.Optional(
                        CONF_CO2_NAME,
                        default=options.get(CONF_CO2_NAME, DEFAULT_CO2_NAME),
                    ): str,
                    vol.Optional(
                        CONF_AQI_NAME,
                        default=options.get(CONF_AQI_NAME, DEFAULT_AQI_NAME),
                    ): str,
                    vol.Required(
                        CONF_TVOC_UNIT,
                        default=options.get(CONF_TVOC_UNIT, TvocUnit.NATIVE.value),
                    ): vol.In([unit.value for unit in TvocUnit]),
                }
            ),
        )
