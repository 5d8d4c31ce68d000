"""Mock reading source for development and testing.

Simulates one pair of earbuds going through listening sessions: both buds
drain while in ear, go back into the case to charge when low, and the case
drains a little for every point it hands to the buds.
"""

import asyncio
import logging
import random
from collections.abc import Callable
from datetime import UTC, datetime

from podwise.source.base import BaseReadingSource, BatteryReading

logger = logging.getLogger(__name__)

_LOW_LEVEL = 15  # buds go back into the case at this level
_BASE_RSSI = -55


class MockReadingSource(BaseReadingSource):
    """Generates fake battery readings for development."""

    def __init__(
        self,
        device_address: str = "AA:BB:CC:11:22:33",
        device_name: str = "Mock Earbuds",
        poll_interval: int = 5,
    ) -> None:
        self.device_address = device_address
        self.device_name = device_name
        self.poll_interval = poll_interval
        self._callbacks: list[Callable[[BatteryReading], None]] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None

        self._left = 100
        self._right = 100
        self._case = 100
        self._in_ear = True

    async def start(self) -> None:
        logger.info("Starting mock reading source (interval=%ds)", self.poll_interval)
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        logger.info("Stopping mock reading source")
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    def on_reading(self, callback: Callable[[BatteryReading], None]) -> None:
        self._callbacks.append(callback)

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                reading = self._generate_reading(datetime.now(UTC))
                for cb in self._callbacks:
                    cb(reading)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Mock reading source error")

            await asyncio.sleep(self.poll_interval)

    def _generate_reading(self, now: datetime) -> BatteryReading:
        if self._in_ear:
            # Buds drain at slightly different speeds
            if random.random() < 0.5:
                self._left = max(0, self._left - 1)
            if random.random() < 0.45:
                self._right = max(0, self._right - 1)
            if min(self._left, self._right) <= _LOW_LEVEL:
                self._in_ear = False
        else:
            for _ in range(2):
                if self._case > 0 and self._left < 100:
                    self._left += 1
                    self._case = max(0, self._case - 1)
                if self._case > 0 and self._right < 100:
                    self._right += 1
                    self._case = max(0, self._case - 1)
            if self._case == 0:
                # Case went onto the cable off-screen
                self._case = 100
            if self._left >= 100 and self._right >= 100:
                self._in_ear = True

        charging = not self._in_ear
        return BatteryReading(
            device_address=self.device_address,
            device_name=self.device_name,
            left=self._left,
            right=self._right,
            case=self._case,
            left_charging=charging and self._left < 100,
            right_charging=charging and self._right < 100,
            case_charging=False,
            left_in_ear=self._in_ear,
            right_in_ear=self._in_ear,
            rssi=_BASE_RSSI + random.randint(-5, 5),
            timestamp=now,
        )
