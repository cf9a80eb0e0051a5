"""Sensor entities for Qingping air monitors.

This module exposes every accessory known to the reconciler as a Home
Assistant device with one sensor entity per capability value, and implements
the host side of the reconciliation: creating entities for new accessories,
removing devices that disappeared, and persisting the accessory cache.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.const import (
    CONCENTRATION_MICROGRAMS_PER_CUBIC_METER,
    CONCENTRATION_PARTS_PER_MILLION,
    PERCENTAGE,
    EntityCategory,
    UnitOfTemperature,
)
from homeassistant.helpers import device_registry as dr
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.storage import Store

from .const import (
    CONF_AQI_NAME,
    CONF_CO2_NAME,
    CONF_HUMIDITY_NAME,
    CONF_INTERVAL,
    CONF_TEMPERATURE_NAME,
    DEFAULT_AQI_NAME,
    DEFAULT_CO2_NAME,
    DEFAULT_HUMIDITY_NAME,
    DEFAULT_INTERVAL,
    DEFAULT_TEMPERATURE_NAME,
    DOMAIN,
    MANUFACTURER,
    STORAGE_KEY,
    STORAGE_SAVE_DELAY,
    STORAGE_VERSION,
)
from .coordinator import AccessoryReconciler
from .models import (
    AccessoryRecord,
    AirQualityLevel,
    BatteryStatus,
    CapabilityBinding,
    Device,
)
from .sensor_values import SensorNames, SensorValueResolver

if TYPE_CHECKING:
    from collections.abc import Mapping

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

_LOGGER = logging.getLogger(__name__)

# Namespace of the accessory ids derived from mac addresses
ACCESSORY_ID_NAMESPACE = uuid.UUID("5c1f3e0a-8b4d-5e7a-9c2b-71a4d6f0e3b8")

SENSOR_DESCRIPTIONS: dict[str, SensorEntityDescription] = {
    "battery": SensorEntityDescription(
        key="battery",
        device_class=SensorDeviceClass.BATTERY,
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        entity_category=EntityCategory.DIAGNOSTIC,
    ),
    "battery_status": SensorEntityDescription(
        key="battery_status",
        device_class=SensorDeviceClass.ENUM,
        options=[status.value for status in BatteryStatus],
        entity_category=EntityCategory.DIAGNOSTIC,
    ),
    "temperature": SensorEntityDescription(
        key="temperature",
        device_class=SensorDeviceClass.TEMPERATURE,
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    "humidity": SensorEntityDescription(
        key="humidity",
        device_class=SensorDeviceClass.HUMIDITY,
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    "air_quality": SensorEntityDescription(
        key="air_quality",
        device_class=SensorDeviceClass.ENUM,
        options=[level.value for level in AirQualityLevel],
    ),
    "pm25": SensorEntityDescription(
        key="pm25",
        device_class=SensorDeviceClass.PM25,
        native_unit_of_measurement=CONCENTRATION_MICROGRAMS_PER_CUBIC_METER,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    "tvoc": SensorEntityDescription(
        key="tvoc",
        device_class=SensorDeviceClass.VOLATILE_ORGANIC_COMPOUNDS,
        native_unit_of_measurement=CONCENTRATION_MICROGRAMS_PER_CUBIC_METER,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    "co2": SensorEntityDescription(
        key="co2",
        device_class=SensorDeviceClass.CO2,
        native_unit_of_measurement=CONCENTRATION_PARTS_PER_MILLION,
        state_class=SensorStateClass.MEASUREMENT,
    ),
}


def sensor_names_from_options(options: Mapping[str, Any]) -> SensorNames:
    """Build the sensor display names from the config entry options."""
    return SensorNames(
        temperature=options.get(CONF_TEMPERATURE_NAME) or DEFAULT_TEMPERATURE_NAME,
        humidity=options.get(CONF_HUMIDITY_NAME) or DEFAULT_HUMIDITY_NAME,
        co2=options.get(CONF_CO2_NAME) or DEFAULT_CO2_NAME,
        aqi=options.get(CONF_AQI_NAME) or DEFAULT_AQI_NAME,
    )


def create_accessory_store(
    hass: HomeAssistant, entry_id: str
) -> Store[dict[str, Any]]:
    """Return the store holding the accessory cache of a config entry."""
    return Store(hass, STORAGE_VERSION, f"{STORAGE_KEY}.{entry_id}")


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up sensor entities and start polling Qingping devices."""
    entry_data = hass.data[DOMAIN][entry.entry_id]

    host = HomeAssistantAccessoryHost(
        hass,
        entry,
        async_add_entities,
        entry_data["resolver"],
        sensor_names_from_options(entry.options),
    )
    reconciler = AccessoryReconciler(
        hass,
        entry_data["device_client"],
        host,
        entry.options.get(CONF_INTERVAL, DEFAULT_INTERVAL),
    )
    entry_data["reconciler"] = reconciler
    entry.async_on_unload(reconciler.async_stop)

    await reconciler.async_restore()
    await reconciler.async_start()


class HomeAssistantAccessoryHost:
    """Exposes reconciled accessories as Home Assistant devices and sensors."""

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        async_add_entities: AddEntitiesCallback,
        resolver: SensorValueResolver,
        names: SensorNames,
    ) -> None:
        """Initialize the host.

        Args:
            hass: Home Assistant instance.
            entry: Config entry the accessories belong to.
            async_add_entities: Callback adding entities to the platform.
            resolver: Resolver building the capability bindings.
            names: Display names of the sensors.

        """
        self.hass = hass
        self._entry = entry
        self._async_add_entities = async_add_entities
        self._resolver = resolver
        self._names = names
        self._store = create_accessory_store(hass, entry.entry_id)
        self._records: dict[str, AccessoryRecord] = {}
        self._entities: dict[str, list[QingpingSensorEntity]] = {}

    def generate_stable_id(self, mac_address: str) -> str:
        """Return the accessory id for a mac address."""
        return str(uuid.uuid5(ACCESSORY_ID_NAMESPACE, mac_address))

    def get_device(self, accessory_id: str) -> Device | None:
        """Return the current device snapshot of an accessory."""
        record = self._records.get(accessory_id)
        return record.device if record is not None else None

    async def async_register_accessories(self, records: list[AccessoryRecord]) -> None:
        """Create the sensor entities of new accessories."""
        new_entities = []
        for record in records:
            self._records[record.id] = record
            entities = [
                QingpingSensorEntity(self, record, binding)
                for binding in self._resolver.bindings(
                    record,
                    lambda accessory_id=record.id: self._records[accessory_id].device,
                    self._names,
                )
            ]
            self._entities[record.id] = entities
            new_entities.extend(entities)
            _LOGGER.info("Registered device: %s", record.display_name)

        if new_entities:
            self._async_add_entities(new_entities)

    async def async_unregister_accessories(
        self, records: list[AccessoryRecord]
    ) -> None:
        """Remove accessories and their entities from Home Assistant."""
        device_registry = dr.async_get(self.hass)
        for record in records:
            self._records.pop(record.id, None)
            self._entities.pop(record.id, None)
            device = device_registry.async_get_device(identifiers={(DOMAIN, record.id)})
            if device is not None:
                device_registry.async_remove_device(device.id)
            _LOGGER.info("Unregistered device: %s", record.display_name)

    async def async_update_accessories(self, records: list[AccessoryRecord]) -> None:
        """Publish the new device snapshots to the entities."""
        for record in records:
            self._records[record.id] = record
            for entity in self._entities.get(record.id, []):
                if entity.hass is not None:
                    entity.async_write_ha_state()

    async def async_persist_accessories(self, records: list[AccessoryRecord]) -> None:
        """Schedule a write of the accessory set for the next startup.

        Writes are delayed so that consecutive cycles only hit the disk once.
        """
        data = {"accessories": [record.as_dict() for record in records]}
        self._store.async_delay_save(lambda: data, STORAGE_SAVE_DELAY)

    async def async_restore_accessories(self) -> list[AccessoryRecord]:
        """Load the accessory set stored by the previous run."""
        data = await self._store.async_load()
        if not data:
            return []

        records = []
        for raw in data.get("accessories", []):
            try:
                records.append(AccessoryRecord.from_dict(raw))
            except (KeyError, TypeError, ValueError) as err:
                _LOGGER.warning("Skipping malformed cached accessory: %s", err)
        return records


class QingpingSensorEntity(SensorEntity):
    """Sensor entity exposing one capability value of a Qingping accessory."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(
        self,
        host: HomeAssistantAccessoryHost,
        record: AccessoryRecord,
        binding: CapabilityBinding,
    ) -> None:
        """Initialize the sensor entity.

        Args:
            host: Host tracking the current device snapshot.
            record: Accessory the entity belongs to.
            binding: Capability value the entity exposes.

        """
        self._host = host
        self._accessory_id = record.id
        self._binding = binding
        self.entity_description = SENSOR_DESCRIPTIONS[binding.key]
        self._attr_unique_id = f"{record.id}_{binding.key}"
        self._attr_name = binding.name

        info = record.device.info
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, record.id)},
            connections={(dr.CONNECTION_NETWORK_MAC, dr.format_mac(info.mac_address))},
            manufacturer=MANUFACTURER,
            model=info.product_name,
            name=info.display_name,
            sw_version=info.firmware_version or None,
        )

    @property
    def available(self) -> bool:
        """Return True if the device is known and online."""
        device = self._host.get_device(self._accessory_id)
        return device is not None and not device.info.offline

    @property
    def native_value(self) -> Any:
        """Return the current value, None when the reading is missing."""
        if self._host.get_device(self._accessory_id) is None:
            return None
        result = self._binding.read()
        if not result.ok:
            return None
        return result.value
