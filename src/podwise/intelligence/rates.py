"""Depletion rate buffer and learner.

Rates are stored as minutes elapsed per 1% of battery drop, one bounded
buffer per target. The learner derives a sample from a new discharge event
and the nearest earlier event that carried a reading for the same target.
"""

import logging
import statistics
from collections import deque
from collections.abc import Iterable

from podwise.intelligence.models import (
    BatteryEvent,
    DepletionRateSample,
    DepletionTarget,
    IntelligenceSettings,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_SAMPLES = 100

# Confidence is count / (count + k): one sample gives 0.25, five give 0.625.
_CONFIDENCE_SMOOTHING = 3.0


class DepletionRateBuffer:
    """Bounded, time-ordered depletion samples for each target."""

    def __init__(self, max_samples: int = DEFAULT_MAX_SAMPLES) -> None:
        self.max_samples = max_samples
        self._samples: dict[DepletionTarget, deque[DepletionRateSample]] = {
            target: deque(maxlen=max_samples) for target in DepletionTarget
        }

    def add_sample(self, sample: DepletionRateSample) -> None:
        """Append a sample, evicting the oldest one for its target when full."""
        self._samples[sample.target].append(sample)

    def get_samples(self, target: DepletionTarget) -> list[DepletionRateSample]:
        return list(self._samples[target])

    def get_sample_count(self, target: DepletionTarget) -> int:
        return len(self._samples[target])

    def get_median_rate(self, target: DepletionTarget) -> float | None:
        samples = self._samples[target]
        if not samples:
            return None
        return statistics.median(s.minutes_per_percent for s in samples)

    def get_mean_rate(self, target: DepletionTarget) -> float | None:
        samples = self._samples[target]
        if not samples:
            return None
        return statistics.fmean(s.minutes_per_percent for s in samples)

    def get_confidence(self, target: DepletionTarget) -> float:
        """Confidence from sample count: 0.0 when empty, approaching 1.0."""
        count = len(self._samples[target])
        if count == 0:
            return 0.0
        return count / (count + _CONFIDENCE_SMOOTHING)


def learn_from_discharge(
    event: BatteryEvent,
    history: Iterable[BatteryEvent],
    buffer: DepletionRateBuffer,
    settings: IntelligenceSettings,
) -> list[DepletionRateSample]:
    """Derive depletion samples from a discharge event.

    Args:
        event: The discharge event that was just recorded
        history: Earlier events, newest first
        buffer: Buffer receiving the new samples
        settings: Learning switch and minimum time gap

    Returns:
        The samples that were added (possibly none)
    """
    if not settings.learning_enabled:
        return []

    previous = list(history)
    added: list[DepletionRateSample] = []

    for target in DepletionTarget:
        end = event.battery_for(target)
        if end is None or event.charging_for(target):
            continue

        prior = next((e for e in previous if e.battery_for(target) is not None), None)
        if prior is None or prior.charging_for(target):
            continue

        start = prior.battery_for(target)
        if start is None or end >= start:
            continue

        elapsed_minutes = (event.timestamp - prior.timestamp).total_seconds() / 60.0
        if elapsed_minutes <= 0 or elapsed_minutes < settings.min_time_gap_minutes:
            logger.debug(
                "Skipping %s rate sample: %.1f min between readings", target, elapsed_minutes
            )
            continue

        sample = DepletionRateSample(
            timestamp=event.timestamp,
            minutes_per_percent=elapsed_minutes / (start - end),
            target=target,
            start_percent=start,
            end_percent=end,
        )
        buffer.add_sample(sample)
        added.append(sample)
        logger.debug(
            "%s depletion sample: %d%% -> %d%% at %.1f min per 1%%",
            target,
            start,
            end,
            sample.minutes_per_percent,
        )

    return added
