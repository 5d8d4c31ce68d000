"""JSON persistence for the device profile."""

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from podwise.intelligence.models import (
    BatteryEvent,
    DepletionRateSample,
    DepletionTarget,
    IntelligenceSettings,
    UtcDatetime,
)
from podwise.intelligence.profile import DeviceProfile

logger = logging.getLogger(__name__)

PROFILE_FILENAME = "battery_profile.json"


class StorageError(Exception):
    """Saving or loading the profile file failed."""


class ProfileRecord(BaseModel):
    """On-disk shape of a DeviceProfile. Unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    device_address: str
    device_name: str

    current_left: int | None = Field(default=None, ge=0, le=100)
    current_right: int | None = Field(default=None, ge=0, le=100)
    current_case: int | None = Field(default=None, ge=0, le=100)

    left_charging: bool = False
    right_charging: bool = False
    case_charging: bool = False

    left_in_ear: bool = False
    right_in_ear: bool = False

    last_update: UtcDatetime | None = None
    session_start: UtcDatetime | None = None

    events: list[BatteryEvent] = []
    depletion_rates: dict[DepletionTarget, list[DepletionRateSample]] = {}

    @classmethod
    def from_profile(cls, profile: DeviceProfile) -> "ProfileRecord":
        return cls(
            device_address=profile.device_address,
            device_name=profile.device_name,
            current_left=profile.current_left,
            current_right=profile.current_right,
            current_case=profile.current_case,
            left_charging=profile.left_charging,
            right_charging=profile.right_charging,
            case_charging=profile.case_charging,
            left_in_ear=profile.left_in_ear,
            right_in_ear=profile.right_in_ear,
            last_update=profile.last_update,
            session_start=profile.session_start,
            events=list(profile.events),
            depletion_rates={
                target: profile.depletion_rates.get_samples(target) for target in DepletionTarget
            },
        )

    def to_profile(self, settings: IntelligenceSettings) -> DeviceProfile:
        profile = DeviceProfile.create(
            self.device_address,
            self.device_name,
            max_events=settings.max_events,
            max_samples=settings.max_depletion_samples,
        )
        profile.current_left = self.current_left
        profile.current_right = self.current_right
        profile.current_case = self.current_case
        profile.left_charging = self.left_charging
        profile.right_charging = self.right_charging
        profile.case_charging = self.case_charging
        profile.left_in_ear = self.left_in_ear
        profile.right_in_ear = self.right_in_ear
        profile.last_update = self.last_update
        profile.session_start = self.session_start

        for event in sorted(self.events, key=lambda e: e.timestamp):
            profile.events.append(event)
        for target, samples in self.depletion_rates.items():
            for sample in sorted(samples, key=lambda s: s.timestamp):
                if sample.target != target:
                    logger.warning(
                        "Skipping %s sample filed under %s in saved profile", sample.target, target
                    )
                    continue
                profile.depletion_rates.add_sample(sample)
        return profile


def profile_path(data_dir: Path) -> Path:
    return data_dir / PROFILE_FILENAME


def save_profile(record: ProfileRecord, path: Path) -> None:
    """Write a profile snapshot to ``path`` as pretty JSON.

    Takes a ``ProfileRecord`` rather than the live profile so callers can
    snapshot under their lock and write after releasing it.

    Raises:
        StorageError: If the directory or file cannot be written.
    """
    payload = record.model_dump_json(indent=2)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload, encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Failed to save battery profile to {path}: {e}") from e
    logger.info("Saved battery profile for %s to %s", record.device_address, path)


def load_profile(path: Path, settings: IntelligenceSettings) -> DeviceProfile | None:
    """Read a profile from ``path``. Returns None if the file does not exist.

    Raises:
        StorageError: If the file cannot be read or is not a valid profile.
    """
    if not path.exists():
        logger.debug("No saved battery profile at %s", path)
        return None

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(f"Failed to read battery profile {path}: {e}") from e

    try:
        record = ProfileRecord.model_validate_json(raw)
    except ValidationError as e:
        raise StorageError(f"Corrupt battery profile {path}: {e}") from e

    profile = record.to_profile(settings)
    logger.info(
        "Loaded battery profile for %s (%d events) from %s",
        profile.device_address,
        len(profile.events),
        path,
    )
    return profile


def delete_profile_file(path: Path) -> bool:
    """Best-effort removal of the profile file.

    Returns True if a file was removed. Failures are logged, never raised.
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Failed to remove battery profile %s: %s", path, e)
        return False
    logger.info("Removed battery profile %s", path)
    return True
