"""
Scheduling Algorithms

Greedy finite-capacity scheduling for the VMC machine shop.

Contents:
- models: Order, Operation, Batch, ScheduledOperation, Interval, Priority
- shift_calendar: operator shifts, setup/production windows, holidays
- resource_ledger: non-overlapping bookings per machine / operator
- batch_planner: batch quantities per order
- machine_selector: 7-tier machine selection
- operator_selector: shift-aware operator assignment with spillover
- timing: piece-flow timing and production-window pauses
- engine: SchedulingEngine (order scheduler and scheduling run)
"""

from algorithms.models import (
    Priority,
    Interval,
    Operation,
    Order,
    Batch,
    ScheduledOperation
)

from algorithms.exceptions import (
    SchedulingError,
    InputDefectError,
    ResourceExhaustedError,
    IntegrityViolationError
)

from algorithms.shift_calendar import (
    TimeWindow,
    ShiftDefinition,
    ShiftCalendar,
    GlobalSettings,
    default_shifts
)

from algorithms.resource_ledger import ResourceLedger
from algorithms.batch_planner import plan_batches
from algorithms.machine_selector import MachineSelector, MachineChoice
from algorithms.operator_selector import OperatorSelector, SetupAssignment
from algorithms.timing import TimingCalculator, TimingResult

from algorithms.engine import (
    SchedulingEngine,
    run_scheduling,
    DEFAULT_MACHINES
)

__all__ = [
    # Data model
    'Priority',
    'Interval',
    'Operation',
    'Order',
    'Batch',
    'ScheduledOperation',
    # Errors
    'SchedulingError',
    'InputDefectError',
    'ResourceExhaustedError',
    'IntegrityViolationError',
    # Calendar and resources
    'TimeWindow',
    'ShiftDefinition',
    'ShiftCalendar',
    'GlobalSettings',
    'default_shifts',
    'ResourceLedger',
    # Allocation components
    'plan_batches',
    'MachineSelector',
    'MachineChoice',
    'OperatorSelector',
    'SetupAssignment',
    'TimingCalculator',
    'TimingResult',
    # Engine
    'SchedulingEngine',
    'run_scheduling',
    'DEFAULT_MACHINES',
]
