"""
Schedule Validator
Post-hoc validation of a finished schedule.

Checks:
- Machine exclusivity and operator overlaps (ledger re-check)
- Operator setups inside the operator's shift and the setup window
- Piece-flow triggers (auto-fixed, with a log-only advisory downstream)
- Run end never earlier than the previous operation's run end
- Concurrent setups within the per-shift operator capacity
- Machine bookings during breakdown periods (warning)
"""

from typing import Dict, List, Tuple
from collections import OrderedDict

from algorithms.models import Interval, ScheduledOperation
from algorithms.resource_ledger import ResourceLedger
from algorithms.shift_calendar import ShiftCalendar
from algorithms.timing import TimingCalculator, format_datetime, format_duration_breakdown


class ValidationReport:
    """Container for schedule validation results."""

    def __init__(self):
        self.errors = []  # Violations
        self.warnings = []  # Non-blocking findings and advisories
        self.info = []  # Informational messages
        self.fixes = []  # Automatic repairs applied to scheduled operations

    @property
    def is_valid(self) -> bool:
        """Returns True if no violations."""
        return len(self.errors) == 0

    @property
    def violations(self) -> List[str]:
        return list(self.errors)

    def add_error(self, message: str):
        """Add a violation."""
        self.errors.append(message)

    def add_warning(self, message: str):
        """Add a warning."""
        self.warnings.append(message)

    def add_info(self, message: str):
        """Add informational message."""
        self.info.append(message)

    def add_fix(self, message: str):
        """Record an automatic repair."""
        self.fixes.append(message)

    def print_report(self):
        """Print formatted validation report."""
        print("\n" + "=" * 70)
        print("SCHEDULE VALIDATION REPORT")
        print("=" * 70)

        if self.is_valid:
            print("\n[OK] VALIDATION PASSED")
        else:
            print("\n[FAIL] VALIDATION FAILED")

        if self.errors:
            print(f"\n[ERROR] VIOLATIONS ({len(self.errors)}):")
            for i, error in enumerate(self.errors[:10], 1):
                print(f"   {i}. {error}")
            if len(self.errors) > 10:
                print(f"   ... and {len(self.errors) - 10} more violations")

        if self.fixes:
            print(f"\n[FIX] AUTO-FIXES ({len(self.fixes)}):")
            for i, fix in enumerate(self.fixes[:10], 1):
                print(f"   {i}. {fix}")

        if self.warnings:
            print(f"\n[WARN] WARNINGS ({len(self.warnings)}):")
            for i, warning in enumerate(self.warnings[:10], 1):
                print(f"   {i}. {warning}")
            if len(self.warnings) > 10:
                print(f"   ... and {len(self.warnings) - 10} more warnings")

        if self.info:
            print(f"\n[INFO] INFO ({len(self.info)}):")
            for i, info in enumerate(self.info[:5], 1):
                print(f"   {i}. {info}")


def validate_schedule(scheduled: List[ScheduledOperation], machine_ledger: ResourceLedger,
                      operator_ledger: ResourceLedger, calendar: ShiftCalendar,
                      breakdown_periods: Dict[str, List[Interval]] = None,
                      max_concurrent_setups: int = 2) -> ValidationReport:
    """
    Validate a complete schedule.

    Piece-flow violations are repaired in place on the ScheduledOperation
    records; the ledgers are not touched and downstream operations only get
    an advisory note.

    Returns:
        ValidationReport with all validation results
    """
    report = ValidationReport()
    report.add_info(f"Validating {len(scheduled)} scheduled operations")

    # 1. Machine exclusivity
    _validate_ledger(machine_ledger, report)

    # 2. Operator overlaps
    _validate_ledger(operator_ledger, report)

    # 3. Operator shifts
    _validate_operator_shifts(operator_ledger, calendar, report)

    # 4. Piece-flow triggers (auto-fix)
    chains = _group_chains(scheduled)
    _validate_piece_flow(chains, calendar, report)

    # 5. Run-end order
    _validate_run_end_order(chains, report)

    # 6. Concurrent setup capacity
    _validate_setup_capacity(operator_ledger, max_concurrent_setups, report)

    # 7. Breakdown periods
    _validate_breakdowns(machine_ledger, breakdown_periods or {}, report)

    return report


def _group_chains(scheduled: List[ScheduledOperation]) -> List[List[ScheduledOperation]]:
    """Operation sequences per (order, batch), in operation order."""
    chains = OrderedDict()
    for op in scheduled:
        chains.setdefault(op.chain_key(), []).append(op)
    return [sorted(chain, key=lambda op: op.operation_seq) for chain in chains.values()]


def _validate_ledger(ledger: ResourceLedger, report: ValidationReport):
    """Re-check every resource for overlapping bookings."""
    for resource_id in ledger.resource_ids():
        for first, second in ledger.find_overlaps(resource_id):
            report.add_error(
                f"{ledger.kind} {resource_id} double-booked: "
                f"{format_datetime(first.start)}-{format_datetime(first.end)} overlaps "
                f"{format_datetime(second.start)}-{format_datetime(second.end)}"
            )


def _validate_operator_shifts(ledger: ResourceLedger, calendar: ShiftCalendar,
                              report: ValidationReport):
    """Every operator interval inside that operator's shift and the setup window."""
    for operator in ledger.resource_ids():
        try:
            shift = calendar.shift_for(operator)
        except ValueError:
            report.add_error(f"Setup booked for unknown operator {operator}")
            continue
        for interval in ledger.bookings(operator):
            if not shift.contains(interval.start, interval.end):
                report.add_error(
                    f"Operator {operator} setup {format_datetime(interval.start)}-{format_datetime(interval.end)} "
                    f"outside {shift.label} shift {shift.start_hour:02d}:00-{shift.end_hour:02d}:00"
                )
            elif not calendar.setup_window.contains(interval.start, interval.end):
                report.add_error(
                    f"Operator {operator} setup {format_datetime(interval.start)}-{format_datetime(interval.end)} "
                    f"outside setup window {calendar.setup_window}"
                )


def _validate_piece_flow(chains: List[List[ScheduledOperation]], calendar: ShiftCalendar,
                         report: ValidationReport):
    """
    A setup may begin before the previous operation's first piece is done
    only if it also ends by then. Violations are repaired by moving the setup
    to the first-piece-done time and recomputing the run with piece flow.
    Later operations in the chain are not re-cascaded.
    """
    timing = TimingCalculator(calendar)
    for chain in chains:
        for index in range(1, len(chain)):
            prev, current = chain[index - 1], chain[index]
            trigger = prev.first_piece_done
            if current.setup_start >= trigger or current.setup_end <= trigger:
                continue

            old_start = current.setup_start
            setup_end = trigger + (current.setup_end - current.setup_start)
            result = timing.calculate(
                trigger, setup_end, current.batch_qty, current.cycle_minutes,
                setup_minutes=current.setup_minutes,
                previous_completions=prev.piece_completion_times,
                previous_run_end=prev.run_end,
            )
            current.setup_start = result.setup_start
            current.setup_end = result.setup_end
            current.run_start = result.run_start
            current.run_end = result.run_end
            current.piece_start_times = result.piece_start_times
            current.piece_completion_times = result.piece_completion_times
            current.first_piece_done = result.first_piece_done
            current.timing = format_duration_breakdown(result.setup_start, result.run_end,
                                                       result.work_minutes, result.window_paused_minutes)
            current.notes.append(f"Setup moved from {format_datetime(old_start)} to the previous "
                                 f"operation's first piece at {format_datetime(trigger)}")
            report.add_fix(
                f"{current.part_number} {current.batch_id} Op{current.operation_seq}: setup started "
                f"{format_datetime(old_start)} before Op{prev.operation_seq} first piece "
                f"{format_datetime(trigger)}; moved to {format_datetime(trigger)}"
            )

            for downstream in chain[index + 1:]:
                advisory = (f"{downstream.part_number} {downstream.batch_id} Op{downstream.operation_seq} "
                            f"may need re-evaluation after Op{current.operation_seq} was adjusted")
                downstream.notes.append(advisory)
                report.add_warning(advisory)


def _validate_run_end_order(chains: List[List[ScheduledOperation]], report: ValidationReport):
    """Run ends must not decrease along an operation sequence."""
    for chain in chains:
        for prev, current in zip(chain, chain[1:]):
            if current.run_end < prev.run_end:
                report.add_error(
                    f"{current.part_number} {current.batch_id} Op{current.operation_seq} ends "
                    f"{format_datetime(current.run_end)} before Op{prev.operation_seq} "
                    f"({format_datetime(prev.run_end)})"
                )


def _validate_setup_capacity(ledger: ResourceLedger, max_concurrent_setups: int,
                             report: ValidationReport):
    """Sweep all operator setups; concurrent count must stay within capacity."""
    events: List[Tuple] = []
    for operator in ledger.resource_ids():
        for interval in ledger.bookings(operator):
            events.append((interval.start, 1))
            events.append((interval.end, -1))
    # Ends sort before starts at the same instant (half-open intervals)
    events.sort(key=lambda e: (e[0], e[1]))

    active = 0
    overloaded = False
    for moment, delta in events:
        active += delta
        if active > max_concurrent_setups and not overloaded:
            report.add_error(
                f"{active} concurrent setups at {format_datetime(moment)} "
                f"(capacity {max_concurrent_setups})"
            )
            overloaded = True
        elif active <= max_concurrent_setups:
            overloaded = False


def _validate_breakdowns(ledger: ResourceLedger, breakdown_periods: Dict[str, List[Interval]],
                         report: ValidationReport):
    for machine, periods in breakdown_periods.items():
        for booking in ledger.bookings(machine):
            for period in periods:
                if booking.overlaps(period):
                    report.add_warning(
                        f"Machine {machine} booked {format_datetime(booking.start)}-"
                        f"{format_datetime(booking.end)} during breakdown "
                        f"{format_datetime(period.start)}-{format_datetime(period.end)}"
                    )
