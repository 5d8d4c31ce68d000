"""Battery level estimation between readings.

A reading younger than FRESH_READING_WINDOW is reported as-is. Older
readings are extrapolated linearly with the learned depletion rate:
``level = current - elapsed_minutes / minutes_per_percent``. Confidence
comes from the rate buffer's sample count and decays with elapsed time as
``confidence / (1 + elapsed_minutes / 60)``.
"""

from datetime import datetime, timedelta

from podwise.intelligence.models import BatteryEstimate, DepletionTarget, ensure_utc
from podwise.intelligence.profile import DeviceProfile
from podwise.intelligence.rates import DepletionRateBuffer

FRESH_READING_WINDOW = timedelta(seconds=30)
FRESH_CONFIDENCE_FLOOR = 0.9
CRITICAL_LEVEL = 10.0

# Used until a target has learned samples: earbuds ~3%/hour, case ~0.6%/hour.
DEFAULT_MINUTES_PER_PERCENT: dict[DepletionTarget, float] = {
    DepletionTarget.left: 20.0,
    DepletionTarget.right: 20.0,
    DepletionTarget.case: 100.0,
}

# Elapsed minutes after which an extrapolated estimate keeps half its confidence.
_CONFIDENCE_DECAY_MINUTES = 60.0


def select_rate(buffer: DepletionRateBuffer, target: DepletionTarget) -> float:
    """Minutes per 1% for ``target``: median, then mean, then the default."""
    for rate in (buffer.get_median_rate(target), buffer.get_mean_rate(target)):
        if rate is not None and rate > 0:
            return rate
    return DEFAULT_MINUTES_PER_PERCENT[target]


def time_to_next_10_percent(level: float, minutes_per_percent: float) -> timedelta | None:
    """Time until ``level`` crosses the next lower multiple of 10."""
    if level <= CRITICAL_LEVEL:
        return None
    # Exactly on a boundary means a full 10-point step to the next one.
    points = level % 10 or 10.0
    return timedelta(minutes=points * minutes_per_percent)


def time_to_critical(level: float, minutes_per_percent: float) -> timedelta | None:
    """Time until ``level`` reaches CRITICAL_LEVEL."""
    if level <= CRITICAL_LEVEL:
        return None
    return timedelta(minutes=(level - CRITICAL_LEVEL) * minutes_per_percent)


def estimate_target(
    profile: DeviceProfile, target: DepletionTarget, now: datetime
) -> BatteryEstimate | None:
    """Estimate one channel, or None if it has no reading."""
    current = profile.current_battery(target)
    if current is None or profile.last_update is None:
        return None

    buffer = profile.depletion_rates
    rate = select_rate(buffer, target)
    base_confidence = buffer.get_confidence(target)
    elapsed = ensure_utc(now) - ensure_utc(profile.last_update)

    if elapsed < FRESH_READING_WINDOW:
        level = float(current)
        return BatteryEstimate(
            level=level,
            confidence=max(base_confidence, FRESH_CONFIDENCE_FLOOR),
            is_real_data=True,
            time_to_next_10_percent=time_to_next_10_percent(level, rate),
            time_to_critical=time_to_critical(level, rate),
        )

    elapsed_minutes = elapsed.total_seconds() / 60.0
    if profile.is_charging(target):
        # No charge-rate model; hold the last reading.
        level = float(current)
    else:
        level = min(100.0, max(0.0, current - elapsed_minutes / rate))

    confidence = base_confidence / (1.0 + elapsed_minutes / _CONFIDENCE_DECAY_MINUTES)
    return BatteryEstimate(
        level=level,
        confidence=min(1.0, max(0.0, confidence)),
        is_real_data=False,
        time_to_next_10_percent=time_to_next_10_percent(level, rate),
        time_to_critical=time_to_critical(level, rate),
    )


def estimate_profile(
    profile: DeviceProfile, now: datetime
) -> tuple[BatteryEstimate | None, BatteryEstimate | None, BatteryEstimate | None] | None:
    """Estimates for (left, right, case); None until the first update."""
    if profile.last_update is None:
        return None
    return (
        estimate_target(profile, DepletionTarget.left, now),
        estimate_target(profile, DepletionTarget.right, now),
        estimate_target(profile, DepletionTarget.case, now),
    )
