"""Battery event, depletion sample and estimate models."""

import enum
from datetime import UTC, datetime, timedelta
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


class DepletionTarget(enum.StrEnum):
    left = "left"
    right = "right"
    case = "case"


class BatteryEventType(enum.StrEnum):
    discharge = "discharge"
    charging_started = "charging_started"
    charging_stopped = "charging_stopped"
    usage_started = "usage_started"
    usage_stopped = "usage_stopped"


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


# Offset-less timestamps (older files, hand edits) are read as UTC
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class BatteryEvent(BaseModel):
    """A significant battery reading worth keeping in the history."""

    model_config = ConfigDict(frozen=True)

    timestamp: UtcDatetime = Field(default_factory=lambda: datetime.now(UTC))
    event_type: BatteryEventType

    left_battery: int | None = Field(default=None, ge=0, le=100)
    right_battery: int | None = Field(default=None, ge=0, le=100)
    case_battery: int | None = Field(default=None, ge=0, le=100)

    left_charging: bool = False
    right_charging: bool = False
    case_charging: bool = False

    left_in_ear: bool = False
    right_in_ear: bool = False

    rssi: int | None = None  # dBm
    session_duration: timedelta | None = None  # time since the in-ear session began

    def battery_for(self, target: DepletionTarget) -> int | None:
        return getattr(self, f"{target.value}_battery")

    def charging_for(self, target: DepletionTarget) -> bool:
        return getattr(self, f"{target.value}_charging")


class DepletionRateSample(BaseModel):
    """One learned depletion rate: minutes elapsed per 1% of battery drop."""

    model_config = ConfigDict(frozen=True)

    timestamp: UtcDatetime
    minutes_per_percent: float = Field(gt=0)
    target: DepletionTarget
    start_percent: int = Field(ge=0, le=100)
    end_percent: int = Field(ge=0, le=100)


class BatteryEstimate(BaseModel):
    """Point estimate for one channel. Derived on demand, never stored."""

    level: float = Field(ge=0, le=100)
    confidence: float = Field(ge=0, le=1)
    is_real_data: bool
    time_to_next_10_percent: timedelta | None = None
    time_to_critical: timedelta | None = None


class IntelligenceSettings(BaseModel):
    """Tunables for significance filtering and rate learning."""

    learning_enabled: bool = True
    min_battery_change: int = Field(default=5, ge=1)  # percentage points
    min_time_gap_minutes: int = Field(default=5, ge=0)
    max_events: int = Field(default=200, ge=1)
    max_depletion_samples: int = Field(default=100, ge=1)
