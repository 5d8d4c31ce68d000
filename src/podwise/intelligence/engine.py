"""Battery intelligence facade for the single tracked device.

Owns at most one DeviceProfile. Readings for a new address replace the
resident profile wholesale. Profile state sits behind one lock that every
public method holds while it reads or mutates, so ingestion from a scanner
task and estimate reads from a UI task never interleave mid-update.

File I/O is serialized by a second lock, always taken before the state
lock. Saving snapshots the profile under the state lock and writes after
releasing it, so ingestion never waits on the disk.
"""

import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

from podwise.intelligence.estimator import estimate_profile
from podwise.intelligence.models import (
    BatteryEstimate,
    BatteryEvent,
    BatteryEventType,
    IntelligenceSettings,
    ensure_utc,
)
from podwise.intelligence.profile import DeviceProfile, ReadingState
from podwise.intelligence.rates import learn_from_discharge
from podwise.intelligence.significance import classify_event, is_significant
from podwise.intelligence.storage import (
    ProfileRecord,
    delete_profile_file,
    load_profile,
    profile_path,
    save_profile,
)

logger = logging.getLogger(__name__)

Estimates = tuple[BatteryEstimate | None, BatteryEstimate | None, BatteryEstimate | None]


def _valid_percent(value: int | None, channel: str) -> int | None:
    """Return ``value`` if it is a usable percentage, else None."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
        logger.debug("Ignoring out-of-range %s reading: %r", channel, value)
        return None
    return value


def _valid_rssi(value: int | None) -> int | None:
    if value is None or (isinstance(value, int) and not isinstance(value, bool)):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    logger.debug("Ignoring non-integral rssi: %r", value)
    return None


class BatteryIntelligence:
    """Ingest readings, learn depletion rates and estimate battery levels."""

    def __init__(self, storage_dir: Path, settings: IntelligenceSettings | None = None) -> None:
        self.storage_dir = Path(storage_dir)
        self.settings = settings or IntelligenceSettings()
        self._profile: DeviceProfile | None = None
        self._lock = threading.Lock()
        self._io_lock = threading.Lock()

    @property
    def profile_path(self) -> Path:
        return profile_path(self.storage_dir)

    @property
    def device_profile(self) -> DeviceProfile | None:
        """The resident profile, for inspection. Mutated in place by updates."""
        with self._lock:
            return self._profile

    def _ensure_profile(
        self, device_address: str, device_name: str
    ) -> tuple[DeviceProfile, bool]:
        current = self._profile
        if current is not None and current.device_address == device_address:
            return current, False

        if current is not None:
            logger.info(
                "Replacing battery profile %s (%s) with %s (%s)",
                current.device_name,
                current.device_address,
                device_name,
                device_address,
            )
        else:
            logger.info("Creating battery profile for %s (%s)", device_name, device_address)

        self._profile = DeviceProfile.create(
            device_address,
            device_name,
            max_events=self.settings.max_events,
            max_samples=self.settings.max_depletion_samples,
        )
        return self._profile, True

    def ensure_device_profile(self, device_address: str, device_name: str) -> bool:
        """Make sure a profile exists for ``device_address``.

        Returns True if a new profile was created (none existed, or the
        resident one belonged to another address). For the same address
        nothing changes, including the stored name.
        """
        with self._lock:
            _, created = self._ensure_profile(device_address, device_name)
            return created

    def update_device_battery(
        self,
        device_address: str,
        device_name: str,
        left: int | None,
        right: int | None,
        case: int | None,
        left_charging: bool,
        right_charging: bool,
        case_charging: bool,
        left_in_ear: bool,
        right_in_ear: bool,
        rssi: int | None = None,
        timestamp: datetime | None = None,
    ) -> BatteryEvent | None:
        """Apply one decoded reading.

        Returns the event recorded for this reading, or None when the
        reading was not significant.
        """
        now = ensure_utc(timestamp) if timestamp is not None else datetime.now(UTC)
        state = ReadingState(
            left=_valid_percent(left, "left"),
            right=_valid_percent(right, "right"),
            case=_valid_percent(case, "case"),
            left_charging=bool(left_charging),
            right_charging=bool(right_charging),
            case_charging=bool(case_charging),
            left_in_ear=bool(left_in_ear),
            right_in_ear=bool(right_in_ear),
        )
        rssi = _valid_rssi(rssi)

        with self._lock:
            profile, _ = self._ensure_profile(device_address, device_name)

            previous = profile.state() if profile.last_update is not None else None
            session_start = profile.session_start
            profile.apply(state, now)

            if not is_significant(previous, state, self.settings):
                return None

            event = BatteryEvent(
                timestamp=now,
                event_type=classify_event(previous, state),
                left_battery=state.left,
                right_battery=state.right,
                case_battery=state.case,
                left_charging=state.left_charging,
                right_charging=state.right_charging,
                case_charging=state.case_charging,
                left_in_ear=state.left_in_ear,
                right_in_ear=state.right_in_ear,
                rssi=rssi,
                session_duration=(now - ensure_utc(session_start)) if session_start else None,
            )
            profile.events.append(event)
            logger.debug("Recorded %s event for %s", event.event_type, device_address)

            if event.event_type == BatteryEventType.discharge:
                learn_from_discharge(
                    event,
                    profile.events.history_before_latest(),
                    profile.depletion_rates,
                    self.settings,
                )
            return event

    def get_battery_estimates(self, now: datetime | None = None) -> Estimates | None:
        """Estimates for (left, right, case), or None before the first update.

        A channel with no reading gets None in its slot.
        """
        with self._lock:
            if self._profile is None:
                return None
            return estimate_profile(self._profile, now or datetime.now(UTC))

    def get_display_levels(
        self, now: datetime | None = None
    ) -> tuple[int | None, int | None, int | None] | None:
        """Estimated levels rounded to whole percentages."""
        estimates = self.get_battery_estimates(now)
        if estimates is None:
            return None
        left, right, case = (round(e.level) if e is not None else None for e in estimates)
        return left, right, case

    def save(self) -> None:
        """Write the resident profile to disk. No-op without a profile.

        Raises:
            StorageError: If the file cannot be written.
        """
        with self._io_lock:
            with self._lock:
                if self._profile is None:
                    logger.debug("No battery profile to save")
                    return
                record = ProfileRecord.from_profile(self._profile)
            save_profile(record, self.profile_path)

    def load(self) -> bool:
        """Replace the resident profile with the saved one.

        Returns False if there is no saved profile. On error the resident
        profile is left untouched.

        Raises:
            StorageError: If the file is unreadable or corrupt.
        """
        with self._io_lock:
            profile = load_profile(self.profile_path, self.settings)
            if profile is None:
                return False
            with self._lock:
                self._profile = profile
            return True

    def purge_all_profiles(self) -> None:
        """Drop the resident profile and remove its file (best effort)."""
        with self._io_lock:
            with self._lock:
                self._profile = None
            delete_profile_file(self.profile_path)
            logger.info("Purged battery intelligence data")

    def cleanup_inactive_device_profile(self, active_address: str | None) -> bool:
        """Drop the resident profile unless it belongs to ``active_address``.

        With no active address the profile is always dropped. Returns True
        if a profile was removed.
        """
        with self._io_lock:
            with self._lock:
                profile = self._profile
                if profile is None:
                    return False
                if active_address is not None and profile.device_address == active_address:
                    return False
                self._profile = None
            logger.info(
                "Removing battery profile for inactive device %s (%s)",
                profile.device_name,
                profile.device_address,
            )
            delete_profile_file(self.profile_path)
            return True
