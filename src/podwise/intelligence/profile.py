"""Device profile: current battery state, event history and learned rates."""

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime

from podwise.intelligence.models import BatteryEvent, DepletionTarget
from podwise.intelligence.rates import DEFAULT_MAX_SAMPLES, DepletionRateBuffer

DEFAULT_MAX_EVENTS = 200


@dataclass(frozen=True)
class ReadingState:
    """Snapshot of every dimension the significance filter looks at."""

    left: int | None = None
    right: int | None = None
    case: int | None = None
    left_charging: bool = False
    right_charging: bool = False
    case_charging: bool = False
    left_in_ear: bool = False
    right_in_ear: bool = False

    def battery_for(self, target: DepletionTarget) -> int | None:
        return getattr(self, target.value)

    def charging_for(self, target: DepletionTarget) -> bool:
        return getattr(self, f"{target.value}_charging")

    @property
    def in_use(self) -> bool:
        return self.left_in_ear or self.right_in_ear


class EventLog:
    """Bounded, insertion-ordered event history. Oldest events drop first."""

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self.max_events = max_events
        self._events: deque[BatteryEvent] = deque(maxlen=max_events)

    def append(self, event: BatteryEvent) -> None:
        self._events.append(event)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[BatteryEvent]:
        return iter(self._events)

    def __getitem__(self, index: int) -> BatteryEvent:
        return self._events[index]

    def latest(self) -> BatteryEvent | None:
        return self._events[-1] if self._events else None

    def history_before_latest(self) -> Iterator[BatteryEvent]:
        """Yield every event except the newest, newest first."""
        newest_first = reversed(self._events)
        next(newest_first, None)
        return newest_first


@dataclass
class DeviceProfile:
    """Battery profile for the single tracked device.

    The address is the identity. The name is fixed at creation and never
    follows later advertised names for the same address.
    """

    device_address: str
    device_name: str

    current_left: int | None = None
    current_right: int | None = None
    current_case: int | None = None

    left_charging: bool = False
    right_charging: bool = False
    case_charging: bool = False

    left_in_ear: bool = False
    right_in_ear: bool = False

    last_update: datetime | None = None
    session_start: datetime | None = None

    events: EventLog = field(default_factory=EventLog)
    depletion_rates: DepletionRateBuffer = field(default_factory=DepletionRateBuffer)

    @classmethod
    def create(
        cls,
        device_address: str,
        device_name: str,
        max_events: int = DEFAULT_MAX_EVENTS,
        max_samples: int = DEFAULT_MAX_SAMPLES,
    ) -> "DeviceProfile":
        return cls(
            device_address=device_address,
            device_name=device_name,
            events=EventLog(max_events),
            depletion_rates=DepletionRateBuffer(max_samples),
        )

    def state(self) -> ReadingState:
        return ReadingState(
            left=self.current_left,
            right=self.current_right,
            case=self.current_case,
            left_charging=self.left_charging,
            right_charging=self.right_charging,
            case_charging=self.case_charging,
            left_in_ear=self.left_in_ear,
            right_in_ear=self.right_in_ear,
        )

    def current_battery(self, target: DepletionTarget) -> int | None:
        return getattr(self, f"current_{target.value}")

    def is_charging(self, target: DepletionTarget) -> bool:
        return getattr(self, f"{target.value}_charging")

    def apply(self, state: ReadingState, timestamp: datetime) -> None:
        """Overwrite the current state and track the in-ear session."""
        self.current_left = state.left
        self.current_right = state.right
        self.current_case = state.case
        self.left_charging = state.left_charging
        self.right_charging = state.right_charging
        self.case_charging = state.case_charging
        self.left_in_ear = state.left_in_ear
        self.right_in_ear = state.right_in_ear
        self.last_update = timestamp

        if state.in_use:
            if self.session_start is None:
                self.session_start = timestamp
        else:
            self.session_start = None
