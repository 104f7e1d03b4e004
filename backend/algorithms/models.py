"""
Scheduling Data Model
Typed records passed between the scheduler components.

Raw master data (comma-separated machine lists, date strings) is parsed into
these types at the boundary by the parsers package; the engine only ever
sees the structures defined here.
"""

from datetime import datetime
from typing import List, Any, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum


class Priority(Enum):
    """Order priority with its sort weight (higher schedules first)."""
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"

    @property
    def weight(self) -> int:
        return {'Low': 1, 'Normal': 2, 'High': 3, 'Urgent': 4}[self.value]

    @property
    def is_rush(self) -> bool:
        """High and Urgent orders get more parallel batches."""
        return self in (Priority.HIGH, Priority.URGENT)

    @classmethod
    def parse(cls, value: Any) -> 'Priority':
        """Parse priority text case-insensitively; blank or unknown -> Normal."""
        if isinstance(value, Priority):
            return value
        text = str(value or '').strip().lower()
        for priority in cls:
            if priority.value.lower() == text:
                return priority
        return cls.NORMAL


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open time interval [start, end)."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if not self.start < self.end:
            raise ValueError(f"Interval start {self.start} must be before end {self.end}")

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60.0

    def overlaps(self, other: 'Interval') -> bool:
        return self.start < other.end and other.start < self.end

    def overlap_minutes(self, other: 'Interval') -> float:
        """Minutes shared with another interval (0 if disjoint)."""
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start >= end:
            return 0.0
        return (end - start).total_seconds() / 60.0


@dataclass(frozen=True)
class Operation:
    """One routing step of a part."""
    seq: int
    name: str
    setup_minutes: float = 0
    cycle_minutes: float = 0
    min_batch_size: Optional[int] = None
    eligible_machines: Tuple[str, ...] = ()  # Empty = any machine

    def __post_init__(self):
        if self.setup_minutes < 0 or self.cycle_minutes < 0:
            raise ValueError(f"Operation {self.seq} has negative setup or cycle time")


@dataclass
class Order:
    """A customer order for one part number."""
    part_number: str
    quantity: int
    due_date: datetime
    priority: Priority = Priority.NORMAL
    operations: List[Operation] = field(default_factory=list)
    start_date: Optional[datetime] = None  # Overrides the global start if later
    breakdown_machine: Optional[str] = None
    breakdown_period: Optional[Interval] = None
    setup_window: Optional[Any] = None  # TimeWindow override
    batch_mode: str = 'auto-split'  # 'auto-split', 'single-batch', 'custom-batch-size'
    custom_batch_size: Optional[int] = None

    def __post_init__(self):
        if not self.part_number:
            raise ValueError("Order is missing a part number")
        if self.quantity is None or int(self.quantity) <= 0:
            raise ValueError(f"Order {self.part_number} quantity must be positive, got {self.quantity}")
        self.quantity = int(self.quantity)
        self.priority = Priority.parse(self.priority)
        self.operations = sorted(self.operations, key=lambda op: op.seq)


@dataclass(frozen=True)
class Batch:
    """A slice of an order's quantity processed through every operation."""
    batch_id: str  # "B01", "B02", ...
    quantity: int
    index: int

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"Batch {self.batch_id} quantity must be positive")


@dataclass
class ScheduledOperation:
    """
    One (batch, operation) placement.

    Created once by the order scheduler. Only the validator's piece-flow
    auto-fix rewrites the timing fields afterwards.
    """
    part_number: str
    batch_id: str
    batch_qty: int
    operation_seq: int
    operation_name: str
    machine: str
    operator: str
    setup_start: datetime
    setup_end: datetime
    run_start: datetime
    run_end: datetime
    first_piece_done: datetime
    piece_start_times: List[datetime] = field(default_factory=list)
    piece_completion_times: List[datetime] = field(default_factory=list)
    setup_minutes: float = 0
    cycle_minutes: float = 0
    work_minutes: float = 0
    paused_minutes: float = 0
    pause_start: Optional[datetime] = None
    pause_end: Optional[datetime] = None
    spillover_operator: Optional[str] = None  # Finishes a setup that crossed a shift end
    order_key: str = ''  # Distinguishes repeat orders of one part
    timing: str = ''
    due_date_warning: Optional[str] = None
    notes: List[str] = field(default_factory=list)

    @property
    def person(self) -> str:
        if self.spillover_operator:
            return f"{self.operator}/{self.spillover_operator}"
        return self.operator

    def chain_key(self) -> Tuple[str, str]:
        """Rows sharing this key form one batch's operation sequence."""
        return (self.order_key or self.part_number, self.batch_id)
