"""Accessory reconciliation for Qingping Air Monitor integration."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from homeassistant.core import callback
from homeassistant.helpers.event import async_track_time_interval

from .api import QingpingApiError, UnsupportedDeviceError
from .const import DEFAULT_INTERVAL
from .models import (
    SUPPORTED_PRODUCT_IDS,
    AccessoryRecord,
    Device,
    ReconciliationResult,
)
from .sensor_values import capabilities_for

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .api import DeviceClient

_LOGGER = logging.getLogger(__name__)


class AccessoryHost(Protocol):
    """Framework that exposes accessories to the outside world."""

    def generate_stable_id(self, mac_address: str) -> str:
        """Return the accessory id for a mac address."""

    async def async_register_accessories(self, records: list[AccessoryRecord]) -> None:
        """Start exposing accessories."""

    async def async_unregister_accessories(
        self, records: list[AccessoryRecord]
    ) -> None:
        """Stop exposing accessories and forget them."""

    async def async_update_accessories(self, records: list[AccessoryRecord]) -> None:
        """Publish new device snapshots of exposed accessories."""

    async def async_persist_accessories(self, records: list[AccessoryRecord]) -> None:
        """Store the full accessory set for the next startup."""

    async def async_restore_accessories(self) -> list[AccessoryRecord]:
        """Return the accessories stored by the previous run."""


def check_supported(device: Device) -> None:
    """Check that a device belongs to a product we can expose.

    Raises:
        UnsupportedDeviceError: If the product id is not supported.

    """
    if device.info.product_id not in SUPPORTED_PRODUCT_IDS:
        msg = (
            f"Unsupported device {device.info.display_name}: product "
            f"{device.info.product_id} ({device.info.product_name})"
        )
        raise UnsupportedDeviceError(msg)


class AccessoryReconciler:
    """Keeps the accessory set in sync with the devices reported by the API."""

    def __init__(
        self,
        hass: HomeAssistant,
        device_client: DeviceClient,
        host: AccessoryHost,
        interval: int = DEFAULT_INTERVAL,
    ) -> None:
        """Initialize the reconciler.

        Args:
            hass: Home Assistant instance.
            device_client: Client providing the polled device set.
            host: Framework the accessories are exposed through.
            interval: Poll period in milliseconds.

        """
        self.hass = hass
        self._device_client = device_client
        self._host = host
        self.update_interval = timedelta(milliseconds=interval)
        self._records: dict[str, AccessoryRecord] = {}
        self._sync_lock = asyncio.Lock()
        self._unsub_timer: Callable[[], None] | None = None

    @property
    def records(self) -> dict[str, AccessoryRecord]:
        """Return the known accessories by id."""
        return self._records

    @property
    def is_running(self) -> bool:
        """Return True if periodic polling is scheduled."""
        return self._unsub_timer is not None

    async def async_restore(self) -> list[AccessoryRecord]:
        """Load the accessories of the previous run and expose them again.

        Returns:
            The restored records that are still supported.

        """
        restored = []
        for record in await self._host.async_restore_accessories():
            try:
                check_supported(record.device)
            except UnsupportedDeviceError as err:
                _LOGGER.warning("Not restoring cached accessory: %s", err)
                continue
            _LOGGER.info("Loading accessory from cache: %s", record.display_name)
            restored.append(record)

        self._records = {record.id: record for record in restored}
        if restored:
            await self._host.async_register_accessories(restored)
        return restored

    async def async_start(self) -> None:
        """Run a first sync and schedule the following ones."""
        if self._unsub_timer is not None:
            return

        await self._async_handle_tick()
        self._unsub_timer = async_track_time_interval(
            self.hass, self._async_handle_tick, self.update_interval
        )
        _LOGGER.debug("Polling Qingping devices every %s", self.update_interval)

    @callback
    def async_stop(self) -> None:
        """Cancel periodic polling."""
        if self._unsub_timer is None:
            return
        self._unsub_timer()
        self._unsub_timer = None
        _LOGGER.debug("Stopped polling Qingping devices")

    async def _async_handle_tick(self, _now: datetime | None = None) -> None:
        try:
            await self.async_sync()
        except Exception:
            _LOGGER.exception("Unexpected error while syncing Qingping devices")

    async def async_sync(self) -> ReconciliationResult | None:
        """Poll the devices and reconcile the accessory set.

        Returns:
            The applied changes, or None if the cycle was skipped or aborted.

        """
        if self._sync_lock.locked():
            _LOGGER.debug("Previous sync still in progress, skipping this one")
            return None

        async with self._sync_lock:
            try:
                await self._device_client.async_update_devices()
            except QingpingApiError as err:
                _LOGGER.warning("Failed to update Qingping devices: %s", err)
                return None

            result = self.reconcile(self._device_client.devices)
            await self._async_apply(result)
            self._records = result.current
            return result

    def reconcile(self, devices: tuple[Device, ...]) -> ReconciliationResult:
        """Diff a polled device set against the known accessories.

        The known record set is left untouched. The result carries the new
        set in ``current``, adopted once the host has applied the changes.

        Args:
            devices: Devices in API response order.

        Returns:
            The added, updated and removed records and the resulting set.

        """
        result = ReconciliationResult()
        current = result.current

        for device in devices:
            try:
                check_supported(device)
            except UnsupportedDeviceError as err:
                _LOGGER.warning("%s", err)
                continue

            accessory_id = self._host.generate_stable_id(device.info.mac_address)
            if accessory_id in current:
                _LOGGER.warning(
                    "Ignoring duplicate entry for device %s",
                    device.info.mac_address,
                )
                continue

            existing = self._records.get(accessory_id)
            if existing is not None:
                _LOGGER.debug("Existing accessory: %s", device.info.display_name)
                record = AccessoryRecord(
                    id=accessory_id,
                    device=device,
                    capabilities=existing.capabilities,
                )
                result.updated.append(record)
            else:
                _LOGGER.info("Adding new accessory: %s", device.info.display_name)
                record = AccessoryRecord(
                    id=accessory_id,
                    device=device,
                    capabilities=capabilities_for(device),
                )
                result.added.append(record)
            current[accessory_id] = record

        for accessory_id, record in self._records.items():
            if accessory_id not in current:
                _LOGGER.info("Removing unknown accessory: %s", record.display_name)
                result.removed.append(record)

        _LOGGER.debug(
            "Reconciled accessories: %d added, %d updated, %d removed",
            len(result.added),
            len(result.updated),
            len(result.removed),
        )
        return result

    async def _async_apply(self, result: ReconciliationResult) -> None:
        if result.removed:
            await self._host.async_unregister_accessories(result.removed)
        if result.added:
            await self._host.async_register_accessories(result.added)
        if result.updated:
            await self._host.async_update_accessories(result.updated)
        await self._host.async_persist_accessories(list(result.current.values()))
