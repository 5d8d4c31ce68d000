"""Base interface for battery reading sources."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime


@dataclass
class BatteryReading:
    """One decoded battery advertisement from the earbuds."""

    device_address: str
    device_name: str
    left: int | None  # percent, None if not reported
    right: int | None
    case: int | None
    left_charging: bool
    right_charging: bool
    case_charging: bool
    left_in_ear: bool
    right_in_ear: bool
    rssi: int | None  # dBm (negative, e.g. -55)
    timestamp: datetime


class BaseReadingSource(ABC):
    """Abstract base for everything that delivers decoded readings."""

    @abstractmethod
    async def start(self) -> None:
        """Start delivering readings."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop delivering readings."""

    @abstractmethod
    def on_reading(self, callback: Callable[[BatteryReading], None]) -> None:
        """Register a callback for new readings."""
