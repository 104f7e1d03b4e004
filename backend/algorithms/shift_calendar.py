"""
Shift and Window Calendar
Static calendar configuration for the machine shop.

Answers two questions for the scheduler:
- Is operator X allowed to work during [a, b)?
- Is time t inside the setup window / production window?

Default shop pattern:
- Operators A, B: morning shift 06:00 - 14:00
- Operators C, D: afternoon shift 14:00 - 22:00
- Setup window 06:00 - 22:00 (no operator outside it)
- Production window 24x7 (machines may run unattended)
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional
from dataclasses import dataclass, field, replace

from algorithms.models import Interval


DEFAULT_SETUP_START_HOUR = 6
DEFAULT_SETUP_END_HOUR = 22
SHIFT_LENGTH_HOURS = 8
PERSONS_PER_SHIFT = 2
MINUTES_PER_DAY = 24 * 60


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


# =============================================================================
# TIME WINDOWS
# =============================================================================

@dataclass(frozen=True)
class TimeWindow:
    """
    Daily time-of-day window, in minutes since midnight.

    A window of 00:00 - 24:00 is the unconstrained 24x7 window.
    """
    start_minute: int = DEFAULT_SETUP_START_HOUR * 60
    end_minute: int = DEFAULT_SETUP_END_HOUR * 60

    def __post_init__(self):
        if not 0 <= self.start_minute < self.end_minute <= MINUTES_PER_DAY:
            raise ValueError(f"Invalid time window {self.start_minute}-{self.end_minute} minutes")

    @classmethod
    def full_day(cls) -> 'TimeWindow':
        return cls(0, MINUTES_PER_DAY)

    @classmethod
    def from_hours(cls, start_hour: float, end_hour: float) -> 'TimeWindow':
        return cls(int(round(start_hour * 60)), int(round(end_hour * 60)))

    @property
    def is_24x7(self) -> bool:
        return self.start_minute == 0 and self.end_minute >= MINUTES_PER_DAY

    @property
    def length_minutes(self) -> int:
        return self.end_minute - self.start_minute

    def opening(self, day: datetime) -> datetime:
        """Window opening on the calendar day of `day`."""
        return start_of_day(day) + timedelta(minutes=self.start_minute)

    def closing(self, day: datetime) -> datetime:
        """Window closing on the calendar day of `day`."""
        return start_of_day(day) + timedelta(minutes=self.end_minute)

    def contains_time(self, t: datetime) -> bool:
        if self.is_24x7:
            return True
        return self.opening(t) <= t < self.closing(t)

    def contains(self, start: datetime, end: datetime) -> bool:
        """True if [start, end) lies inside a single day's window."""
        if self.is_24x7:
            return True
        return self.opening(start) <= start and end <= self.closing(start)

    def intersection(self, other: 'TimeWindow') -> Optional['TimeWindow']:
        """Overlap of two daily windows, or None when they do not meet."""
        start = max(self.start_minute, other.start_minute)
        end = min(self.end_minute, other.end_minute)
        if start >= end:
            return None
        return TimeWindow(start, end)

    def next_opening(self, t: datetime) -> datetime:
        """First window opening strictly after the window containing or preceding t."""
        opening = self.opening(t)
        if t < opening:
            return opening
        return self.opening(t + timedelta(days=1))

    def __str__(self) -> str:
        if self.is_24x7:
            return '24x7'
        return (f"{self.start_minute // 60:02d}:{self.start_minute % 60:02d}-"
                f"{self.end_minute // 60:02d}:{self.end_minute % 60:02d}")


# =============================================================================
# SHIFTS
# =============================================================================

@dataclass(frozen=True)
class ShiftDefinition:
    """Working hours of one operator."""
    operator: str
    start_hour: int
    end_hour: int
    label: str  # 'morning' or 'afternoon'

    def bounds_on(self, day: datetime) -> Interval:
        """This operator's shift on the calendar day of `day`."""
        midnight = start_of_day(day)
        return Interval(midnight + timedelta(hours=self.start_hour),
                        midnight + timedelta(hours=self.end_hour))

    def contains(self, start: datetime, end: datetime) -> bool:
        """True if the whole interval falls inside one shift occurrence."""
        bounds = self.bounds_on(start)
        return bounds.start <= start and end <= bounds.end


def default_shifts() -> List[ShiftDefinition]:
    """Two 8-hour shifts with two operators each."""
    return [
        ShiftDefinition('A', 6, 14, 'morning'),
        ShiftDefinition('B', 6, 14, 'morning'),
        ShiftDefinition('C', 14, 22, 'afternoon'),
        ShiftDefinition('D', 14, 22, 'afternoon'),
    ]


@dataclass
class ShiftCalendar:
    """Shift, window and holiday lookups used by the selectors and timing."""
    shifts: List[ShiftDefinition] = field(default_factory=default_shifts)
    setup_window: TimeWindow = field(default_factory=TimeWindow)
    production_window: TimeWindow = field(default_factory=TimeWindow.full_day)
    holidays: List[Interval] = field(default_factory=list)

    # Upper bound on window/holiday hops when fitting a setup start
    MAX_FIT_ATTEMPTS = 800

    @property
    def operators(self) -> List[str]:
        """Operators in rotation order."""
        return [s.operator for s in self.shifts]

    def shift_for(self, operator: str) -> ShiftDefinition:
        for shift in self.shifts:
            if shift.operator == operator:
                return shift
        raise ValueError(f"Unknown operator {operator}")

    def rotation_index(self, operator: str) -> int:
        return self.operators.index(operator)

    def is_afternoon(self, operator: str) -> bool:
        return self.shift_for(operator).label == 'afternoon'

    def shift_bounds(self, operator: str, at: datetime) -> Interval:
        return self.shift_for(operator).bounds_on(at)

    def in_setup_window(self, t: datetime) -> bool:
        return self.setup_window.contains_time(t)

    def in_production_window(self, t: datetime) -> bool:
        return self.production_window.contains_time(t)

    def holiday_overlapping(self, start: datetime, end: datetime) -> Optional[Interval]:
        """First holiday touching [start, end); a zero-length span checks the instant."""
        for holiday in self.holidays:
            if end > start:
                if holiday.start < end and start < holiday.end:
                    return holiday
            elif holiday.start <= start < holiday.end:
                return holiday
        return None

    def can_work(self, operator: str, start: datetime, end: datetime) -> bool:
        """Shift containment, setup window and holiday check for one operator."""
        return (self.shift_for(operator).contains(start, end)
                and self.setup_window.contains(start, end)
                and self.holiday_overlapping(start, end) is None)

    def operators_on_shift(self, start: datetime, end: datetime) -> List[str]:
        return [op for op in self.operators if self.can_work(op, start, end)]

    # -------------------------------------------------------------------------
    # Shift boundaries
    # -------------------------------------------------------------------------

    @property
    def shift_labels(self) -> List[str]:
        """Distinct shift labels ordered by start hour."""
        labels = []
        for shift in sorted(self.shifts, key=lambda s: s.start_hour):
            if shift.label not in labels:
                labels.append(shift.label)
        return labels

    def operators_for_shift(self, label: str) -> List[str]:
        return [s.operator for s in self.shifts if s.label == label]

    def shift_containing(self, t: datetime) -> Optional[ShiftDefinition]:
        """First shift definition whose occurrence on t's day contains t."""
        for shift in self.shifts:
            bounds = shift.bounds_on(t)
            if bounds.start <= t < bounds.end:
                return shift
        return None

    def following_shift(self, label: str) -> str:
        """Morning -> afternoon, afternoon -> (next day's) morning."""
        labels = self.shift_labels
        return labels[(labels.index(label) + 1) % len(labels)]

    def following_shift_start(self, label: str, boundary: datetime) -> datetime:
        """Start of the shift after `label`, at or after the boundary."""
        next_label = self.following_shift(label)
        start_hour = min(s.start_hour for s in self.shifts if s.label == next_label)
        candidate = start_of_day(boundary) + timedelta(hours=start_hour)
        if candidate < boundary:
            candidate += timedelta(days=1)
        return candidate

    def next_shift_start(self, t: datetime) -> datetime:
        """Next shift boundary (06:00 or 14:00 by default) strictly after t."""
        start_hours = sorted({s.start_hour for s in self.shifts})
        midnight = start_of_day(t)
        for day_offset in (0, 1):
            for hour in start_hours:
                candidate = midnight + timedelta(days=day_offset, hours=hour)
                if candidate > t:
                    return candidate
        return midnight + timedelta(days=1, hours=start_hours[0])

    def fit_setup_start(self, t: datetime, minutes: float = 0) -> datetime:
        """
        Move a setup start into the setup window and out of holidays.

        A start before the window opening moves to the opening; a start at
        or after the closing moves to the next day's opening. A setup that
        would touch a holiday starts when the holiday ends.
        """
        for _ in range(self.MAX_FIT_ATTEMPTS):
            if not self.setup_window.is_24x7:
                if t < self.setup_window.opening(t):
                    t = self.setup_window.opening(t)
                elif t >= self.setup_window.closing(t):
                    t = self.setup_window.opening(t + timedelta(days=1))
            holiday = self.holiday_overlapping(t, t + timedelta(minutes=minutes))
            if holiday is None:
                return t
            t = holiday.end
        return t

    def with_setup_window(self, window: Optional[TimeWindow]) -> 'ShiftCalendar':
        """
        Copy of this calendar with the setup window narrowed to `window`.

        An order window can only narrow the shop setup window; one that does
        not overlap it at all raises ValueError.
        """
        if window is None:
            return self
        narrowed = self.setup_window.intersection(window)
        if narrowed is None:
            raise ValueError(f"Setup window {window} does not overlap the shop setup window {self.setup_window}")
        return replace(self, setup_window=narrowed)


# =============================================================================
# GLOBAL SETTINGS
# =============================================================================

@dataclass
class GlobalSettings:
    """Run-wide settings parsed from the raw settings object."""
    start_datetime: Optional[datetime] = None
    holidays: List[Interval] = field(default_factory=list)
    breakdown_machines: List[str] = field(default_factory=list)
    breakdown_periods: Dict[str, List[Interval]] = field(default_factory=dict)
    setup_window: TimeWindow = field(default_factory=TimeWindow)
    production_window: TimeWindow = field(default_factory=TimeWindow.full_day)
    # (part_number, operation_seq) -> field overrides for that operation
    operation_overrides: Dict[tuple, Dict] = field(default_factory=dict)

    @property
    def effective_start(self) -> datetime:
        """Configured start, or the current minute when none is set."""
        if self.start_datetime:
            return self.start_datetime
        return datetime.now().replace(second=0, microsecond=0)

    def build_calendar(self, shifts: List[ShiftDefinition] = None) -> ShiftCalendar:
        return ShiftCalendar(
            shifts=shifts or default_shifts(),
            setup_window=self.setup_window,
            production_window=self.production_window,
            holidays=list(self.holidays),
        )
