"""Podwise entrypoint: wire a reading source into the intelligence engine."""

import asyncio
import contextlib
import logging
from collections.abc import Callable

from podwise.config import Settings, load_config, settings
from podwise.intelligence.engine import BatteryIntelligence
from podwise.intelligence.storage import StorageError
from podwise.source.base import BaseReadingSource, BatteryReading

logger = logging.getLogger(__name__)


def _create_source(mode: str, cfg: Settings) -> BaseReadingSource | None:
    """Factory: instantiate the configured reading source."""
    if mode == "mock":
        from podwise.source.mock import MockReadingSource

        return MockReadingSource(
            device_address=cfg.device_address,
            device_name=cfg.device_name,
            poll_interval=cfg.poll_interval,
        )
    if mode == "none":
        return None
    logger.warning("Unknown source mode '%s', skipping", mode)
    return None


def create_intelligence(cfg: Settings) -> BatteryIntelligence:
    """Build the engine and restore saved state, starting empty on failure."""
    intelligence = BatteryIntelligence(cfg.data_dir, cfg.intelligence_settings())
    try:
        if intelligence.load():
            logger.info("Restored saved battery profile")
    except StorageError:
        logger.warning("Could not load saved battery profile, starting empty", exc_info=True)
    return intelligence


def make_reading_handler(
    intelligence: BatteryIntelligence,
) -> Callable[[BatteryReading], None]:
    """Callback: feed a reading into the engine."""

    def _handle_reading(reading: BatteryReading) -> None:
        try:
            event = intelligence.update_device_battery(
                reading.device_address,
                reading.device_name,
                reading.left,
                reading.right,
                reading.case,
                reading.left_charging,
                reading.right_charging,
                reading.case_charging,
                reading.left_in_ear,
                reading.right_in_ear,
                rssi=reading.rssi,
                timestamp=reading.timestamp,
            )
            if event is not None:
                logger.info("Battery event: %s %s", reading.device_address, event.event_type)
        except Exception:
            logger.exception("Error handling battery reading for %s", reading.device_address)

    return _handle_reading


def save_quietly(intelligence: BatteryIntelligence) -> bool:
    """Save, keeping in-memory state if the write fails."""
    try:
        intelligence.save()
    except StorageError:
        logger.exception("Auto-save failed, keeping in-memory battery profile")
        return False
    return True


async def _autosave_loop(intelligence: BatteryIntelligence, interval: int) -> None:
    while True:
        await asyncio.sleep(interval)
        await asyncio.to_thread(save_quietly, intelligence)


async def run(cfg: Settings | None = None) -> None:
    """Run until cancelled, saving periodically and on shutdown."""
    cfg = cfg or load_config()
    intelligence = create_intelligence(cfg)

    source = _create_source(cfg.source_mode, cfg)
    if source is None:
        logger.info("No reading source configured")
    else:
        source.on_reading(make_reading_handler(intelligence))
        await source.start()
        logger.info("Reading source started: %s", cfg.source_mode)

    autosave = asyncio.create_task(_autosave_loop(intelligence, cfg.autosave_interval))
    try:
        await asyncio.Event().wait()
    finally:
        autosave.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await autosave
        if source is not None:
            await source.stop()
        save_quietly(intelligence)
        logger.info("Podwise stopped")


def main() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    logger.info("Starting Podwise (data dir %s)", settings.data_dir)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run(settings))


if __name__ == "__main__":
    main()
