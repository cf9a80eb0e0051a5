"""Resolution of raw Qingping readings into exposed sensor values."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .air_quality import classify
from .api import MissingReadingError
from .const import (
    DEFAULT_AQI_NAME,
    DEFAULT_BATTERY_NAME,
    DEFAULT_CO2_NAME,
    DEFAULT_HUMIDITY_NAME,
    DEFAULT_TEMPERATURE_NAME,
    LOW_BATTERY_THRESHOLD,
    TVOC_PPB_TO_UGM3,
)
from .models import (
    AccessoryRecord,
    BatteryStatus,
    CapabilityBinding,
    CapabilityKind,
    Device,
    ReadingKind,
    ReadResult,
    SensorReading,
    TvocUnit,
)

_LOGGER = logging.getLogger(__name__)

ALWAYS_EXPOSED_CAPABILITIES = frozenset(
    {
        CapabilityKind.TEMPERATURE,
        CapabilityKind.HUMIDITY,
        CapabilityKind.AIR_QUALITY,
        CapabilityKind.CARBON_DIOXIDE,
    }
)

CLASSIFIED_KINDS = (ReadingKind.PM25, ReadingKind.TVOC, ReadingKind.CO2)


@dataclass(frozen=True)
class SensorNames:
    """Display names of the exposed sensors."""

    temperature: str = DEFAULT_TEMPERATURE_NAME
    humidity: str = DEFAULT_HUMIDITY_NAME
    co2: str = DEFAULT_CO2_NAME
    aqi: str = DEFAULT_AQI_NAME
    battery: str = DEFAULT_BATTERY_NAME


def battery_status(level: float) -> BatteryStatus:
    """Map a battery percentage to a low/normal status.

    The threshold is inclusive: exactly 20% is low.
    """
    if level > LOW_BATTERY_THRESHOLD:
        return BatteryStatus.NORMAL
    return BatteryStatus.LOW


def capabilities_for(device: Device) -> frozenset[CapabilityKind]:
    """Determine which capabilities to expose for a newly seen device."""
    if ReadingKind.BATTERY in device.data:
        return ALWAYS_EXPOSED_CAPABILITIES | {CapabilityKind.BATTERY}
    return ALWAYS_EXPOSED_CAPABILITIES


class SensorValueResolver:
    """Turns raw device readings into the values exposed to Home Assistant."""

    def __init__(
        self,
        tvoc_unit: TvocUnit = TvocUnit.NATIVE,
        *,
        zero_is_missing: bool = False,
    ) -> None:
        """Initialize the resolver.

        Args:
            tvoc_unit: Unit the API reports VOC in; ``ppb`` is converted
                to µg/m³.
            zero_is_missing: Treat a reading of exactly 0 as absent.

        """
        self.tvoc_unit = TvocUnit(tvoc_unit)
        self.zero_is_missing = zero_is_missing

    def _is_present(self, reading: SensorReading | None) -> bool:
        if reading is None:
            return False
        return not (self.zero_is_missing and reading.value == 0)

    def read(self, data: Mapping[ReadingKind, SensorReading], kind: ReadingKind) -> float:
        """Return the raw value of a reading.

        Raises:
            MissingReadingError: If the device did not report the reading.

        """
        reading = data.get(kind)
        if not self._is_present(reading):
            msg = f"No {kind.value} reading available"
            raise MissingReadingError(msg)
        return reading.value

    def read_tvoc(self, data: Mapping[ReadingKind, SensorReading]) -> float:
        """Return the VOC density in the exposed unit.

        Raises:
            MissingReadingError: If the device did not report VOC.

        """
        value = self.read(data, ReadingKind.TVOC)
        if self.tvoc_unit is TvocUnit.PPB:
            value *= TVOC_PPB_TO_UGM3
        return value

    def read_battery_status(
        self, data: Mapping[ReadingKind, SensorReading]
    ) -> BatteryStatus:
        """Return the low/normal battery status.

        Raises:
            MissingReadingError: If the device did not report its battery.

        """
        return battery_status(self.read(data, ReadingKind.BATTERY))

    def numeric_readings(
        self, data: Mapping[ReadingKind, SensorReading]
    ) -> dict[ReadingKind, float]:
        """Return the readings used for air quality classification."""
        return {
            kind: data[kind].value
            for kind in CLASSIFIED_KINDS
            if self._is_present(data.get(kind))
        }

    def bindings(
        self,
        record: AccessoryRecord,
        get_device: Callable[[], Device],
        names: SensorNames | None = None,
    ) -> list[CapabilityBinding]:
        """Build the capability bindings of an accessory.

        Getters resolve against ``get_device()`` at read time, so they always
        see the latest device snapshot.

        Args:
            record: Accessory to expose.
            get_device: Returns the current device snapshot of the accessory.
            names: Display names, defaults used when omitted.

        Returns:
            Bindings for every capability of the record.

        """
        names = names or SensorNames()

        def reading(kind: ReadingKind) -> Callable[[], ReadResult]:
            return self._guard(lambda: self.read(get_device().data, kind))

        bindings = []
        if CapabilityKind.BATTERY in record.capabilities:
            bindings.extend(
                [
                    CapabilityBinding(
                        CapabilityKind.BATTERY,
                        "battery",
                        names.battery,
                        reading(ReadingKind.BATTERY),
                    ),
                    CapabilityBinding(
                        CapabilityKind.BATTERY,
                        "battery_status",
                        f"{names.battery} Status",
                        self._guard(
                            lambda: self.read_battery_status(get_device().data)
                        ),
                    ),
                ]
            )
        if CapabilityKind.TEMPERATURE in record.capabilities:
            bindings.append(
                CapabilityBinding(
                    CapabilityKind.TEMPERATURE,
                    "temperature",
                    names.temperature,
                    reading(ReadingKind.TEMPERATURE),
                )
            )
        if CapabilityKind.HUMIDITY in record.capabilities:
            bindings.append(
                CapabilityBinding(
                    CapabilityKind.HUMIDITY,
                    "humidity",
                    names.humidity,
                    reading(ReadingKind.HUMIDITY),
                )
            )
        if CapabilityKind.AIR_QUALITY in record.capabilities:
            bindings.extend(
                [
                    CapabilityBinding(
                        CapabilityKind.AIR_QUALITY,
                        "air_quality",
                        names.aqi,
                        lambda: ReadResult(
                            value=classify(self.numeric_readings(get_device().data))
                        ),
                    ),
                    CapabilityBinding(
                        CapabilityKind.AIR_QUALITY,
                        "pm25",
                        f"{names.aqi} PM2.5",
                        reading(ReadingKind.PM25),
                    ),
                    CapabilityBinding(
                        CapabilityKind.AIR_QUALITY,
                        "tvoc",
                        f"{names.aqi} VOC",
                        self._guard(lambda: self.read_tvoc(get_device().data)),
                    ),
                ]
            )
        if CapabilityKind.CARBON_DIOXIDE in record.capabilities:
            bindings.append(
                CapabilityBinding(
                    CapabilityKind.CARBON_DIOXIDE,
                    "co2",
                    names.co2,
                    reading(ReadingKind.CO2),
                )
            )
        return bindings

    @staticmethod
    def _guard(read: Callable[[], object]) -> Callable[[], ReadResult]:
        def getter() -> ReadResult:
            try:
                return ReadResult(value=read())
            except MissingReadingError as err:
                _LOGGER.debug("Capability read failed: %s", err)
                return ReadResult(error=err)

        return getter
