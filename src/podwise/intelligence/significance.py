"""Significance filter and event classification for incoming readings."""

from podwise.intelligence.models import BatteryEventType, DepletionTarget, IntelligenceSettings
from podwise.intelligence.profile import ReadingState

_CHARGING_FLAGS = ("left_charging", "right_charging", "case_charging")
_IN_EAR_FLAGS = ("left_in_ear", "right_in_ear")


def _level_changes(previous: ReadingState, current: ReadingState) -> list[int]:
    """Signed change per target where both readings are known."""
    changes = []
    for target in DepletionTarget:
        before = previous.battery_for(target)
        after = current.battery_for(target)
        if before is not None and after is not None:
            changes.append(after - before)
    return changes


def _flipped(
    previous: ReadingState, current: ReadingState, flags: tuple[str, ...], on: bool
) -> bool:
    """True if any of ``flags`` changed to ``on``."""
    return any(
        bool(getattr(current, flag)) == on and bool(getattr(previous, flag)) != on
        for flag in flags
    )


def is_significant(
    previous: ReadingState | None,
    current: ReadingState,
    settings: IntelligenceSettings,
) -> bool:
    """Decide whether a reading differs enough from the last one to record.

    The first reading for a profile (``previous`` is None) is always recorded.
    """
    if previous is None:
        return True

    changes = _level_changes(previous, current)
    if any(abs(delta) >= settings.min_battery_change for delta in changes):
        return True

    flags = _CHARGING_FLAGS + _IN_EAR_FLAGS
    return any(getattr(previous, flag) != getattr(current, flag) for flag in flags)


def classify_event(previous: ReadingState | None, current: ReadingState) -> BatteryEventType:
    """Assign an event type to a significant transition.

    Precedence: charging started, charging stopped, usage started,
    usage stopped, then discharge.
    """
    before = previous if previous is not None else ReadingState()

    if _flipped(before, current, _CHARGING_FLAGS, on=True):
        return BatteryEventType.charging_started
    if _flipped(before, current, _CHARGING_FLAGS, on=False):
        return BatteryEventType.charging_stopped
    if _flipped(before, current, _IN_EAR_FLAGS, on=True):
        return BatteryEventType.usage_started
    if _flipped(before, current, _IN_EAR_FLAGS, on=False):
        return BatteryEventType.usage_stopped

    # Level moved without a state change; rises are filtered out by the learner.
    return BatteryEventType.discharge
