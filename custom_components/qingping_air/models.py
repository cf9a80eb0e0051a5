"""Data models for Qingping Air Monitor integration."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from typing import Any

from .const import TOKEN_REFRESH_FACTOR


class ProductId(IntEnum):
    """Qingping product ids this integration knows how to expose."""

    AIR_MONITOR = 1201


SUPPORTED_PRODUCT_IDS = frozenset(product.value for product in ProductId)


class ReadingKind(StrEnum):
    """Keys of the per-device ``data`` object returned by the API."""

    TIMESTAMP = "timestamp"
    BATTERY = "battery"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    TVOC = "tvoc"
    CO2 = "co2"
    PM25 = "pm25"


class CapabilityKind(StrEnum):
    """Sensor dimensions an accessory can expose."""

    BATTERY = "battery"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    AIR_QUALITY = "air_quality"
    CARBON_DIOXIDE = "carbon_dioxide"


class AirQualityLevel(StrEnum):
    """Qualitative air quality, from best to worst after ``UNKNOWN``."""

    UNKNOWN = "unknown"
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    INFERIOR = "inferior"
    POOR = "poor"


class Comparison(StrEnum):
    """How an air quality rule compares readings with its thresholds."""

    UNDER = "under"
    OVER = "over"


class BatteryStatus(StrEnum):
    """Binary battery state derived from the battery percentage."""

    NORMAL = "normal"
    LOW = "low"


class TvocUnit(StrEnum):
    """Unit the API reports the VOC reading in."""

    NATIVE = "native"
    PPB = "ppb"


@dataclass(frozen=True)
class Credential:
    """An OAuth access token together with its lifetime."""

    token: str
    token_type: str
    scope: str
    issued_at: float
    expires_in: int

    @property
    def refresh_deadline(self) -> float:
        """Return the timestamp after which the token must be refreshed."""
        return self.issued_at + self.expires_in * TOKEN_REFRESH_FACTOR


@dataclass(frozen=True)
class SensorReading:
    """A single raw sensor value."""

    value: float


@dataclass(frozen=True)
class DeviceInfo:
    """Static description of a Qingping device.

    Attributes:
        mac_address: Hardware address; the stable identity of the device.
        product_id: Product id as reported, may be unknown to us.
        product_name: English product name.
        display_name: Name the user gave the device.
        firmware_version: Firmware version string.
        group_id: Id of the group the device belongs to.
        group_name: Name of the group the device belongs to.
        offline: Whether the cloud considers the device offline.

    """

    mac_address: str
    product_id: int | None
    product_name: str
    display_name: str
    firmware_version: str = ""
    group_id: int | None = None
    group_name: str = ""
    offline: bool = False


@dataclass(frozen=True)
class Device:
    """Snapshot of a device and its readings from one poll."""

    info: DeviceInfo
    data: Mapping[ReadingKind, SensorReading] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> Device:
        """Parse a device entry in the API wire format.

        Raises:
            ValueError: If the entry is not structurally a device.

        """
        if not isinstance(raw, dict):
            msg = f"Device entry is not an object: {raw!r}"
            raise ValueError(msg)

        info = raw.get("info")
        if not isinstance(info, dict):
            msg = "Device entry has no info object"
            raise ValueError(msg)

        mac = info.get("mac")
        if not isinstance(mac, str) or not mac:
            msg = "Device entry has no mac address"
            raise ValueError(msg)

        product = info.get("product")
        if not isinstance(product, dict):
            product = {}
        status = info.get("status")
        if not isinstance(status, dict):
            status = {}

        raw_data = raw.get("data")
        if raw_data is None:
            raw_data = {}
        if not isinstance(raw_data, dict):
            msg = f"Device {mac} has a malformed data object"
            raise ValueError(msg)

        return cls(
            info=DeviceInfo(
                mac_address=mac,
                product_id=product.get("id"),
                product_name=str(product.get("en_name") or product.get("name") or ""),
                display_name=str(info.get("name") or mac),
                firmware_version=str(info.get("version") or ""),
                group_id=info.get("group_id"),
                group_name=str(info.get("group_name") or ""),
                offline=bool(status.get("offline", False)),
            ),
            data=_parse_readings(raw_data),
        )

    def as_dict(self) -> dict[str, Any]:
        """Return the device in the API wire format."""
        return {
            "info": {
                "mac": self.info.mac_address,
                "product": {
                    "id": self.info.product_id,
                    "en_name": self.info.product_name,
                },
                "name": self.info.display_name,
                "version": self.info.firmware_version,
                "group_id": self.info.group_id,
                "group_name": self.info.group_name,
                "status": {"offline": self.info.offline},
            },
            "data": {
                kind.value: {"value": reading.value}
                for kind, reading in self.data.items()
            },
        }


def _parse_readings(raw_data: dict[str, Any]) -> dict[ReadingKind, SensorReading]:
    readings = {}
    for kind in ReadingKind:
        entry = raw_data.get(kind.value)
        if not isinstance(entry, dict):
            continue
        value = entry.get("value")
        # bool is an int subclass but never a sensor value
        if isinstance(value, bool) or not isinstance(value, int | float):
            continue
        readings[kind] = SensorReading(value=float(value))
    return readings


@dataclass(frozen=True)
class AccessoryRecord:
    """Binding between a device and the capabilities exposed for it."""

    id: str
    device: Device
    capabilities: frozenset[CapabilityKind]

    @property
    def mac_address(self) -> str:
        """Return the mac address of the bound device."""
        return self.device.info.mac_address

    @property
    def display_name(self) -> str:
        """Return the name of the bound device."""
        return self.device.info.display_name

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> AccessoryRecord:
        """Restore a record written by ``as_dict``.

        Raises:
            ValueError: If the stored record is malformed.
            KeyError: If a required field is missing.

        """
        return cls(
            id=str(raw["id"]),
            device=Device.from_dict(raw["device"]),
            capabilities=frozenset(
                CapabilityKind(capability) for capability in raw["capabilities"]
            ),
        )

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON serializable representation of the record."""
        return {
            "id": self.id,
            "device": self.device.as_dict(),
            "capabilities": sorted(capability.value for capability in self.capabilities),
        }


@dataclass(frozen=True)
class AirQualityRule:
    """One row of the air quality rule table."""

    comparison: Comparison
    thresholds: Mapping[ReadingKind, float]
    level: AirQualityLevel


@dataclass(frozen=True)
class ReadResult:
    """Outcome of reading a capability value."""

    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        """Return True if the value was read successfully."""
        return self.error is None


@dataclass(frozen=True)
class CapabilityBinding:
    """A single exposed value of an accessory and its accessor."""

    capability: CapabilityKind
    key: str
    name: str
    getter: Callable[[], ReadResult]

    def read(self) -> ReadResult:
        """Resolve the current value."""
        return self.getter()


@dataclass(frozen=True)
class ReconciliationResult:
    """Changes applied to the accessory set by one sync cycle."""

    added: list[AccessoryRecord] = field(default_factory=list)
    updated: list[AccessoryRecord] = field(default_factory=list)
    removed: list[AccessoryRecord] = field(default_factory=list)
    current: dict[str, AccessoryRecord] = field(default_factory=dict)
