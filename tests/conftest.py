"""Pytest configuration and fixtures for Qingping tests."""

from typing import Any

import pytest

from custom_components.qingping_air.models import Credential, Device

MAC_A = "582D3400000A"
MAC_B = "582D3400000B"
MAC_C = "582D3400000C"


def make_device_dict(
    mac: str,
    name: str | None = None,
    product_id: int = 1201,
    data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a device entry in the API wire format.

    Args:
        mac: Mac address of the device.
        name: Display name, defaults to a name derived from the mac.
        product_id: Qingping product id.
        data: Raw readings, defaults to a full set of readings.

    Returns:
        A dictionary representing one entry of the device listing.

    """
    if data is None:
        data = {
            "timestamp": {"value": 1700000000},
            "battery": {"value": 85},
            "temperature": {"value": 22.5},
            "humidity": {"value": 45.2},
            "tvoc": {"value": 50},
            "co2": {"value": 900},
            "pm25": {"value": 10},
        }
    return {
        "info": {
            "mac": mac,
            "product": {"id": product_id, "name": "空气检测仪", "en_name": "Air Monitor"},
            "name": name or f"Monitor {mac[-1]}",
            "version": "4.2.7",
            "created_at": 1600000000,
            "group_id": 7,
            "group_name": "Home",
            "status": {"offline": False},
        },
        "data": data,
    }


def make_device(mac: str, **kwargs: Any) -> Device:
    """Create a parsed device."""
    return Device.from_dict(make_device_dict(mac, **kwargs))


@pytest.fixture
def sample_token_response() -> dict[str, Any]:
    """Fixture providing a sample token endpoint response."""
    return {
        "access_token": "test_access_token",
        "expires_in": 7200,
        "scope": "device_full_access",
        "token_type": "bearer",
    }


@pytest.fixture
def sample_devices_response() -> dict[str, Any]:
    """Fixture providing a sample device listing with two monitors."""
    return {
        "total": 2,
        "devices": [make_device_dict(MAC_A), make_device_dict(MAC_B)],
    }


@pytest.fixture
def sample_credential() -> Credential:
    """Fixture providing a credential issued at t=1000 valid for 7200s."""
    return Credential(
        token="test_access_token",
        token_type="bearer",
        scope="device_full_access",
        issued_at=1000.0,
        expires_in=7200,
    )


class FakeClock:
    """Settable clock returning seconds."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Fixture providing a settable clock starting at t=1000."""
    return FakeClock()
