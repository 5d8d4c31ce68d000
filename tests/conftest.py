"""Shared test fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

import podwise.config as config_module
from podwise.intelligence.engine import BatteryIntelligence
from podwise.intelligence.models import BatteryEvent

ADDRESS = "AA:BB:CC:DD:EE:FF"
NAME = "Test Buds"


@pytest.fixture(autouse=True)
def isolated_env_file(tmp_path, monkeypatch):
    """Point Settings at an empty .env so a developer's file never leaks in."""
    monkeypatch.setattr(config_module, "_ENV_FILE", tmp_path / ".env")


@pytest.fixture
def base_time() -> datetime:
    return datetime(2026, 1, 15, 9, 0, tzinfo=UTC)


@pytest.fixture
def storage_dir(tmp_path):
    return tmp_path / "battery_intelligence"


@pytest.fixture
def intelligence(storage_dir) -> BatteryIntelligence:
    return BatteryIntelligence(storage_dir)


@pytest.fixture
def feed(intelligence, base_time) -> Callable[..., BatteryEvent | None]:
    """Send one reading, ``minutes`` after base_time."""

    def _feed(
        minutes: float = 0,
        left: int | None = None,
        right: int | None = None,
        case: int | None = None,
        *,
        address: str = ADDRESS,
        name: str = NAME,
        left_charging: bool = False,
        right_charging: bool = False,
        case_charging: bool = False,
        left_in_ear: bool = False,
        right_in_ear: bool = False,
        rssi: int | None = -50,
    ) -> BatteryEvent | None:
        return intelligence.update_device_battery(
            address,
            name,
            left,
            right,
            case,
            left_charging,
            right_charging,
            case_charging,
            left_in_ear,
            right_in_ear,
            rssi=rssi,
            timestamp=base_time + timedelta(minutes=minutes),
        )

    return _feed
