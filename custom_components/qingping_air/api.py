"""API client for the Qingping cloud.

This module provides the OAuth token manager and the device listing client
used to poll Qingping air monitors, together with the exceptions they raise.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx
from homeassistant.core import HomeAssistant
from homeassistant.helpers.httpx_client import create_async_httpx_client

from .const import (
    DEVICES_URL,
    HTTP_TIMEOUT,
    OAUTH_GRANT_TYPE,
    OAUTH_SCOPE,
    OAUTH_TOKEN_URL,
)
from .models import Credential, Device

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_OK = 200
HTTP_MULTIPLE_CHOICES = 300
HTTP_UNAUTHORIZED = 401


class QingpingError(Exception):
    """Base exception for the Qingping integration."""


class QingpingApiError(QingpingError):
    """Base exception for Qingping API client errors."""


class AuthError(QingpingApiError):
    """Exception raised when the token exchange fails."""


class FetchError(QingpingApiError):
    """Exception raised when the device listing fails."""


class MalformedResponseError(QingpingApiError):
    """Exception raised when a response body has an unexpected shape."""


class MissingReadingError(QingpingError):
    """Exception raised when a requested sensor value is not available."""


class UnsupportedDeviceError(QingpingError):
    """Exception raised for devices of a product we cannot expose."""


def create_basic_auth_header(app_key: str, app_secret: str) -> str:
    """Create the HTTP Basic authorization value for the token exchange.

    Args:
        app_key: Qingping application key.
        app_secret: Qingping application secret.

    Returns:
        The ``Authorization`` header value.

    """
    encoded = base64.b64encode(f"{app_key}:{app_secret}".encode()).decode()
    return f"Basic {encoded}"


def create_bearer_headers(credential: Credential) -> dict[str, str]:
    """Create HTTP headers for authenticated API requests.

    Args:
        credential: Access credential to send.

    Returns:
        Dictionary containing HTTP headers for API requests.

    """
    return {
        "accept": "application/json",
        "authorization": f"Bearer {credential.token}",
    }


def is_http_error(status: int) -> bool:
    """Check if HTTP status code indicates an error.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is outside the 2xx range, False otherwise.

    """
    return not HTTP_OK <= status < HTTP_MULTIPLE_CHOICES


def is_auth_error(status: int) -> bool:
    """Check if HTTP status code indicates authentication error."""
    return status == HTTP_UNAUTHORIZED


def parse_json_object(response: httpx.Response) -> dict[str, Any]:
    """Decode a response body that must be a JSON object.

    Raises:
        MalformedResponseError: If the body is not a JSON object.

    """
    try:
        data = response.json()
    except ValueError as err:
        msg = f"Response body is not valid JSON: {err}"
        raise MalformedResponseError(msg) from err

    if not isinstance(data, dict):
        msg = f"Response body is not an object: {type(data).__name__}"
        raise MalformedResponseError(msg)
    return data


def extract_credential(data: dict[str, Any], issued_at: float) -> Credential:
    """Build a credential from a token endpoint response.

    Args:
        data: Decoded token response.
        issued_at: Time the response was received.

    Returns:
        The new credential.

    Raises:
        MalformedResponseError: If a required field is missing or invalid.

    """
    token = data.get("access_token")
    expires_in = data.get("expires_in")

    if not isinstance(token, str) or not token:
        msg = "Token response has no access_token"
        raise MalformedResponseError(msg)
    if isinstance(expires_in, bool) or not isinstance(expires_in, int | float):
        msg = "Token response has no numeric expires_in"
        raise MalformedResponseError(msg)

    return Credential(
        token=token,
        token_type=str(data.get("token_type", "bearer")),
        scope=str(data.get("scope", OAUTH_SCOPE)),
        issued_at=issued_at,
        expires_in=int(expires_in),
    )


def extract_devices(data: dict[str, Any]) -> tuple[Device, ...]:
    """Extract the device list from a device listing response.

    Entries that are not devices are logged and dropped.

    Args:
        data: Decoded device listing response.

    Returns:
        Tuple of devices in response order.

    Raises:
        MalformedResponseError: If ``devices`` is not a list.

    """
    devices = data.get("devices")
    if not isinstance(devices, list):
        msg = f"Field 'devices' is not a list: {type(devices).__name__}"
        raise MalformedResponseError(msg)

    parsed = []
    for entry in devices:
        try:
            parsed.append(Device.from_dict(entry))
        except ValueError as err:
            _LOGGER.warning("Skipping invalid device entry: %s", err)
    return tuple(parsed)


def create_session_client(hass: HomeAssistant) -> httpx.AsyncClient:
    """Create HTTP client for the Qingping API.

    Args:
        hass: Home Assistant instance.

    Returns:
        Configured httpx AsyncClient.

    """
    return create_async_httpx_client(hass, timeout=HTTP_TIMEOUT)


class TokenManager:
    """Owns the OAuth access credential and refreshes it before it expires."""

    def __init__(
        self,
        session: httpx.AsyncClient,
        app_key: str,
        app_secret: str,
        now: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the token manager.

        Args:
            session: HTTP client session.
            app_key: Qingping application key.
            app_secret: Qingping application secret.
            now: Clock returning the current time in seconds.

        """
        self._session = session
        self._app_key = app_key
        self._app_secret = app_secret
        self._now = now
        self._credential: Credential | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def credential(self) -> Credential | None:
        """Return the cached credential, if any."""
        return self._credential

    def is_valid(self) -> bool:
        """Return True if the cached credential can still be used."""
        credential = self._credential
        return credential is not None and self._now() < credential.refresh_deadline

    def invalidate(self) -> None:
        """Drop the cached credential so the next request re-authenticates."""
        self._credential = None

    async def async_ensure_valid_token(self) -> Credential:
        """Return a credential that is not due for refresh.

        Concurrent callers that find the credential expired share a single
        refresh exchange.

        Raises:
            AuthError: If a refresh was needed and failed.

        """
        credential = self._credential
        if credential is not None and self._now() < credential.refresh_deadline:
            return credential

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited for the lock
            credential = self._credential
            if credential is not None and self._now() < credential.refresh_deadline:
                return credential
            return await self._async_exchange()

    async def async_refresh(self) -> Credential:
        """Unconditionally exchange the app credentials for a new token.

        Raises:
            AuthError: If the exchange failed. The cached credential is kept.

        """
        async with self._refresh_lock:
            return await self._async_exchange()

    async def _async_exchange(self) -> Credential:
        headers = {
            "authorization": create_basic_auth_header(self._app_key, self._app_secret),
            "accept": "application/json",
        }
        payload = {"grant_type": OAUTH_GRANT_TYPE, "scope": OAUTH_SCOPE}

        _LOGGER.debug("Requesting access token from Qingping API")
        try:
            response = await self._session.post(
                OAUTH_TOKEN_URL,
                headers=headers,
                data=payload,
            )
        except httpx.RequestError as err:
            msg = f"Connection error during token exchange: {err}"
            raise AuthError(msg) from err

        issued_at = self._now()

        if is_http_error(response.status_code):
            msg = f"Token exchange failed: {response.status_code}"
            raise AuthError(msg)

        try:
            credential = extract_credential(parse_json_object(response), issued_at)
        except MalformedResponseError as err:
            msg = f"Malformed token response: {err}"
            raise AuthError(msg) from err

        self._credential = credential
        _LOGGER.info(
            "Obtained Qingping access token, expires in %d seconds",
            credential.expires_in,
        )
        return credential


class DeviceClient:
    """Fetches the device list and caches the last well-formed one."""

    def __init__(
        self,
        session: httpx.AsyncClient,
        token_manager: TokenManager,
        now: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the device client.

        Args:
            session: HTTP client session.
            token_manager: Provides the bearer credential.
            now: Clock used for the cache-busting timestamp.

        """
        self._session = session
        self._token_manager = token_manager
        self._now = now
        self._devices: tuple[Device, ...] = ()

    @property
    def devices(self) -> tuple[Device, ...]:
        """Return the devices of the last well-formed response."""
        return self._devices

    async def async_update_devices(self) -> None:
        """Poll the device list and replace the cache if the response is valid.

        A malformed body is logged and leaves the cache untouched.

        Raises:
            FetchError: If authentication or the request failed.

        """
        try:
            credential = await self._token_manager.async_ensure_valid_token()
        except AuthError as err:
            msg = f"Authentication failed: {err}"
            raise FetchError(msg) from err

        params = {"timestamp": int(self._now() * 1000)}

        _LOGGER.debug("Fetching devices from Qingping API")
        try:
            response = await self._session.get(
                DEVICES_URL,
                headers=create_bearer_headers(credential),
                params=params,
            )
        except httpx.RequestError as err:
            msg = f"Connection error while fetching devices: {err}"
            raise FetchError(msg) from err

        if is_http_error(response.status_code):
            if is_auth_error(response.status_code):
                self._token_manager.invalidate()
            msg = f"Device listing failed: {response.status_code}"
            raise FetchError(msg)

        try:
            devices = extract_devices(parse_json_object(response))
        except MalformedResponseError as err:
            _LOGGER.warning("Ignoring malformed device listing: %s", err)
            return

        self._devices = devices
        _LOGGER.debug("Retrieved %d devices from Qingping API", len(devices))
