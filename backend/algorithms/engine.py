"""
Scheduling Engine
Order scheduler and scheduling run for the VMC machine shop.

One engine instance per run owns the machine and operator ledgers. Orders
are processed one at a time in EDD/priority order; each order is scheduled
completely (all batches x all operations) before the next one starts, so
reservations accumulate greedily in that order.

Per (batch, operation):
1. Earliest start = run start / order start / previous op's first piece done
2. Machine selection (7-tier utilization-first priority)
3. Setup start on that machine, fitted into the setup window
4. Operator assignment (shift, load balance, spillover, conflict resolution)
5. Piece-flow timing and production-window pauses
6. Reserve machine [setupStart, runEnd) and operator setup segment(s)
"""

import math
from datetime import datetime, timedelta
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import replace

from algorithms.models import Order, Operation, Batch, Interval, ScheduledOperation
from algorithms.exceptions import SchedulingError, InputDefectError, IntegrityViolationError
from algorithms.shift_calendar import GlobalSettings, ShiftCalendar, ShiftDefinition, PERSONS_PER_SHIFT
from algorithms.resource_ledger import ResourceLedger
from algorithms.batch_planner import plan_batches
from algorithms.machine_selector import MachineSelector
from algorithms.operator_selector import OperatorSelector
from algorithms.timing import TimingCalculator, format_datetime, format_duration_breakdown


DEFAULT_MACHINES = [f"VMC {i}" for i in range(1, 8)]


def empty_result(alert: str) -> Dict[str, Any]:
    """Result object for a run that could not produce any rows."""
    return {
        'rows': [],
        'alerts': [alert],
        'summary': {'totalOrders': 0, 'totalOperations': 0, 'completedSuccessfully': 0},
    }


class SchedulingEngine:
    """
    Greedy allocation engine for one scheduling run.

    Usage:
        engine = SchedulingEngine(settings)
        result = engine.run(orders)   # {'rows', 'alerts', 'summary'}
        engine.print_summary()
    """

    URGENT_HORIZON_DAYS = 2
    MAX_CONCURRENT_SETUPS = PERSONS_PER_SHIFT

    def __init__(self, settings: GlobalSettings = None, machines: List[str] = None,
                 shifts: List[ShiftDefinition] = None):
        """
        Initialize the engine.

        Args:
            settings: Parsed global settings (defaults: start now, 06-22 setup window, 24x7 run)
            machines: Machine names (defaults to VMC 1 - VMC 7)
            shifts: Operator shift definitions (defaults to A/B morning, C/D afternoon)
        """
        self.settings = settings or GlobalSettings()
        self.effective_start = self.settings.effective_start
        self.machines = list(machines or DEFAULT_MACHINES)
        self.calendar: ShiftCalendar = self.settings.build_calendar(shifts)

        self.machine_ledger = ResourceLedger(self.effective_start, 'Machine', self.machines)
        self.operator_ledger = ResourceLedger(self.effective_start, 'Operator', self.calendar.operators)
        self.machine_selector = MachineSelector(self.machine_ledger)

        # Results
        self.scheduled: List[ScheduledOperation] = []
        self.rows: List[Dict[str, Any]] = []
        self.alerts: List[str] = []
        self.decision_log: List[str] = []
        self.failed_orders: List[Tuple[str, str]] = []  # (part_number, reason)
        self.total_orders = 0
        self.completed_orders = 0
        self.validation_report = None
        self._order_counter = 0

    # =========================================================================
    # ORDERING
    # =========================================================================

    def sort_orders(self, orders: List[Order]) -> List[Order]:
        """Earliest due date first, then Urgent > High > Normal > Low (stable)."""
        return sorted(orders, key=lambda o: (o.due_date, -o.priority.weight))

    def urgent_orders(self, orders: List[Order]) -> List[Order]:
        """Orders due within the urgent horizon of the run start."""
        horizon = self.effective_start + timedelta(days=self.URGENT_HORIZON_DAYS)
        return [o for o in orders if o.due_date <= horizon]

    # =========================================================================
    # ORDER SCHEDULER
    # =========================================================================

    def _operations_for(self, order: Order) -> List[Operation]:
        """Order operations with any per-operation overrides applied."""
        overrides = self.settings.operation_overrides
        operations = []
        for operation in order.operations:
            override = overrides.get((order.part_number, operation.seq))
            operations.append(replace(operation, **override) if override else operation)
        return operations

    def _check_machines(self, order: Order, operations: List[Operation]):
        for operation in operations:
            for machine in operation.eligible_machines:
                if machine not in self.machines:
                    raise InputDefectError(
                        f"Unknown machine {machine} for part {order.part_number} operation {operation.seq}"
                    )

    def schedule_order(self, order: Order) -> List[ScheduledOperation]:
        """
        Schedule every batch x operation of one order.

        Raises:
            InputDefectError: no operations or an unknown machine
            ResourceExhaustedError: no operator could take a setup
            ValueError: order setup window outside the shop setup window
            IntegrityViolationError: a ledger overlap (programming defect)
        """
        if not order.operations:
            raise InputDefectError(f"No operations found for part {order.part_number}")

        operations = self._operations_for(order)
        self._check_machines(order, operations)

        calendar = self.calendar.with_setup_window(order.setup_window)
        operator_selector = OperatorSelector(calendar, self.operator_ledger)
        timing = TimingCalculator(calendar)

        batches = plan_batches(
            order.quantity,
            min_batch_size=operations[0].min_batch_size,
            priority=order.priority,
            mode=order.batch_mode,
            custom_size=order.custom_batch_size,
        )

        floor = self.effective_start
        if order.start_date and order.start_date > floor:
            floor = order.start_date
        breakdown = [order.breakdown_machine] if order.breakdown_machine else list(self.settings.breakdown_machines)

        self._order_counter += 1
        order_key = f"{order.part_number}#{self._order_counter}"

        results = []
        try:
            for batch in batches:
                previous = None
                for operation in operations:
                    scheduled = self._schedule_operation(
                        order, operation, batch, floor, previous, breakdown,
                        operator_selector, timing, order_key
                    )
                    results.append(scheduled)
                    previous = scheduled
        finally:
            self.decision_log.extend(operator_selector.log)

        completion = max(s.run_end for s in results)
        if completion > order.due_date:
            late_hours = math.ceil((completion - order.due_date).total_seconds() / 3600)
            warning = f"⚠️ {late_hours}h late"
            for scheduled in results:
                scheduled.due_date_warning = warning
            self.alerts.append(
                f"⚠️ {order.part_number} will be {late_hours}h late (due {format_datetime(order.due_date)}) "
                f"- consider splitting batch or reassigning machines"
            )

        return results

    def _schedule_operation(self, order: Order, operation: Operation, batch: Batch,
                            floor: datetime, previous: Optional[ScheduledOperation],
                            breakdown: List[str], operator_selector: OperatorSelector,
                            timing: TimingCalculator, order_key: str) -> ScheduledOperation:
        """Place one operation of one batch and reserve its resources."""
        setup = operation.setup_minutes
        cycle = operation.cycle_minutes
        notes = []

        earliest = floor
        if previous is not None:
            earliest = max(earliest, previous.first_piece_done)
        requested = timing.calendar.fit_setup_start(earliest, setup)

        eligible = list(operation.eligible_machines) or self.machines
        choice = self.machine_selector.select(
            eligible, requested, setup, cycle * batch.quantity,
            due_date=order.due_date, breakdown_machines=breakdown
        )
        if choice.warning:
            notes.append(choice.warning)
            self.decision_log.append(f"[WARN] {order.part_number} Op{operation.seq}: {choice.warning}")
        if choice.machine not in eligible:
            raise InputDefectError(
                f"Machine {choice.machine} is not eligible for part {order.part_number} operation {operation.seq}"
            )
        machine = choice.machine

        setup_start = timing.resolve_setup_start(
            requested,
            self.machine_ledger.earliest_free(machine),
            setup,
            previous.first_piece_done if previous else None,
        )
        assignment = operator_selector.assign(setup_start, setup)
        notes.extend(assignment.notes)

        result = timing.calculate(
            assignment.setup_start,
            assignment.setup_end,
            batch.quantity,
            cycle,
            setup_minutes=setup,
            previous_completions=previous.piece_completion_times if previous else None,
            previous_run_end=previous.run_end if previous else None,
        )
        if result.paused:
            notes.append(f"Run paused {format_datetime(result.pause_start)} - resumed {format_datetime(result.pause_end)}")

        if result.run_end > result.setup_start:
            self.machine_ledger.reserve(machine, Interval(result.setup_start, result.run_end))
        for segment in assignment.segments:
            self.operator_ledger.reserve(segment.operator, segment.interval)

        scheduled = ScheduledOperation(
            part_number=order.part_number,
            batch_id=batch.batch_id,
            batch_qty=batch.quantity,
            operation_seq=operation.seq,
            operation_name=operation.name,
            machine=machine,
            operator=assignment.operator,
            setup_start=result.setup_start,
            setup_end=result.setup_end,
            run_start=result.run_start,
            run_end=result.run_end,
            first_piece_done=result.first_piece_done,
            piece_start_times=result.piece_start_times,
            piece_completion_times=result.piece_completion_times,
            setup_minutes=setup,
            cycle_minutes=cycle,
            work_minutes=result.work_minutes,
            paused_minutes=result.window_paused_minutes,
            pause_start=result.pause_start,
            pause_end=result.pause_end,
            spillover_operator=assignment.spillover_operator,
            order_key=order_key,
            timing=format_duration_breakdown(result.setup_start, result.run_end,
                                             result.work_minutes, result.window_paused_minutes),
            notes=notes,
        )

        self.decision_log.append(
            f"{order.part_number} {batch.batch_id} Op{operation.seq}: {machine} "
            f"(tier {choice.tier} {choice.reason}), {scheduled.person}, "
            f"setup {format_datetime(scheduled.setup_start)} - {format_datetime(scheduled.setup_end)}, "
            f"run end {format_datetime(scheduled.run_end)}"
        )
        return scheduled

    # =========================================================================
    # SCHEDULING RUN
    # =========================================================================

    def record_failure(self, part_number: str, reason: str):
        """Count an order that could not be scheduled and raise an alert for it."""
        self.failed_orders.append((part_number, reason))
        self.alerts.append(f"❌ Failed to schedule {part_number}: {reason}")
        print(f"[ERROR] Failed to schedule {part_number}: {reason}")

    def _breakdown_periods(self, placed: List[Tuple[Order, List[ScheduledOperation]]]) -> Dict[str, List[Interval]]:
        """Global breakdown periods plus each placed order's own breakdown range."""
        periods = {machine: list(ranges) for machine, ranges in self.settings.breakdown_periods.items()}
        for order, _ in placed:
            if order.breakdown_machine and order.breakdown_period:
                ranges = periods.setdefault(order.breakdown_machine, [])
                if order.breakdown_period not in ranges:
                    ranges.append(order.breakdown_period)
        return periods

    def parse_orders(self, records: List[Any]) -> List[Order]:
        """
        Parse raw order records, recording a failure for each bad record.

        Order objects are passed through unchanged.
        """
        # Import here to avoid circular dependency
        from parsers.order_parser import parse_order_record

        parsed = []
        for record in records or []:
            if isinstance(record, Order):
                parsed.append(record)
                continue
            try:
                parsed.append(parse_order_record(record))
            except ValueError as e:
                self.total_orders += 1
                part = record.get('partNumber') or record.get('PartNumber') or 'UNKNOWN'
                self.record_failure(str(part), str(e))
        return parsed

    def run(self, orders: List[Order]) -> Dict[str, Any]:
        """
        Schedule all orders and validate the result.

        Args:
            orders: Parsed orders

        Returns:
            {'rows': [...], 'alerts': [...], 'summary': {...}}

        Raises:
            IntegrityViolationError: ledger corruption, never contained per order
        """
        # Import here to avoid circular dependency
        from schedule_validator import validate_schedule

        print(f"\n{'='*70}")
        print(f"VMC SCHEDULER: {len(orders)} ORDERS")
        print(f"Start: {format_datetime(self.effective_start)}")
        print(f"Setup window: {self.calendar.setup_window}, production window: {self.calendar.production_window}")
        print(f"{'='*70}")

        self.total_orders += len(orders)
        sorted_orders = self.sort_orders(orders)

        urgent = self.urgent_orders(sorted_orders)
        if urgent:
            self.alerts.append(
                f"🚨 {len(urgent)} urgent orders detected - scheduler will prioritize these for on-time delivery"
            )

        placed = []
        for order in sorted_orders:
            machine_snapshot = self.machine_ledger.snapshot()
            operator_snapshot = self.operator_ledger.snapshot()
            try:
                results = self.schedule_order(order)
            except IntegrityViolationError:
                raise
            except (SchedulingError, ValueError) as e:
                self.machine_ledger.restore(machine_snapshot)
                self.operator_ledger.restore(operator_snapshot)
                self.record_failure(order.part_number, str(e))
                continue
            placed.append((order, results))
            self.scheduled.extend(results)
            self.completed_orders += 1

        self.validation_report = validate_schedule(
            self.scheduled,
            self.machine_ledger,
            self.operator_ledger,
            self.calendar,
            breakdown_periods=self._breakdown_periods(placed),
            max_concurrent_setups=self.MAX_CONCURRENT_SETUPS,
        )
        if not self.validation_report.is_valid:
            print(f"[WARN] Schedule validation found {len(self.validation_report.errors)} violations")
            self.alerts.append(f"❌ Schedule validation failed: {', '.join(self.validation_report.violations)}")

        self.rows = [self._build_row(order, scheduled) for order, results in placed for scheduled in results]

        print(f"\n[OK] Scheduled: {self.completed_orders} orders, {len(self.scheduled)} operations")
        if self.failed_orders:
            print(f"[!!] Failed: {len(self.failed_orders)} orders")

        return {'rows': self.rows, 'alerts': list(self.alerts), 'summary': self.get_summary()}

    def _build_row(self, order: Order, s: ScheduledOperation) -> Dict[str, Any]:
        """Flat output record for one scheduled operation."""
        elapsed = (s.run_end - s.setup_start).total_seconds() / 60.0
        return {
            'PartNumber': order.part_number,
            'Order_Quantity': order.quantity,
            'Priority': order.priority.value,
            'Batch_ID': s.batch_id,
            'Batch_Qty': s.batch_qty,
            'OperationSeq': s.operation_seq,
            'OperationName': s.operation_name,
            'Machine': s.machine,
            'Person': s.person,
            'SetupStart': format_datetime(s.setup_start),
            'SetupEnd': format_datetime(s.setup_end),
            'RunStart': format_datetime(s.run_start),
            'RunEnd': format_datetime(s.run_end),
            'Timing': s.timing,
            'DueDate': format_datetime(order.due_date),
            'SetupTime_Min': s.setup_minutes,
            'CycleTime_Min': s.cycle_minutes,
            'DurationBreakdown': format_duration_breakdown(
                s.setup_start, s.run_end, s.work_minutes, max(0.0, elapsed - s.work_minutes)
            ),
            'DueDateWarning': s.due_date_warning or '',
        }

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def get_summary(self) -> Dict[str, int]:
        """Run summary counts."""
        return {
            'totalOrders': self.total_orders,
            'totalOperations': len(self.scheduled),
            'completedSuccessfully': self.completed_orders,
        }

    def print_summary(self):
        """Print scheduling summary."""
        summary = self.get_summary()

        print(f"\n{'='*70}")
        print("VMC SCHEDULING SUMMARY")
        print(f"{'='*70}")

        print(f"\nORDERS:")
        print(f"   Total: {summary['totalOrders']}")
        print(f"   Completed: {summary['completedSuccessfully']}")
        print(f"   Failed: {len(self.failed_orders)}")
        print(f"   Operations scheduled: {summary['totalOperations']}")

        if self.scheduled:
            horizon_end = max(s.run_end for s in self.scheduled)
            print(f"\nMACHINE UTILIZATION (to {format_datetime(horizon_end)}):")
            utilization = self.machine_ledger.utilization(self.effective_start, horizon_end)
            for machine in self.machines:
                print(f"   {machine}: {utilization.get(machine, 0):.1f}% "
                      f"({self.machine_ledger.booking_count(machine)} bookings)")

            print(f"\nOPERATOR SETUP LOAD:")
            for operator in self.calendar.operators:
                print(f"   {operator}: {self.operator_ledger.total_minutes(operator):.0f} min "
                      f"({self.operator_ledger.booking_count(operator)} setups)")

        if self.alerts:
            print(f"\nALERTS ({len(self.alerts)}):")
            for alert in self.alerts[:10]:
                print(f"   {alert}")
            if len(self.alerts) > 10:
                print(f"   ... and {len(self.alerts) - 10} more")


def run_scheduling(orders: List[Any], settings: Any = None,
                   machines: List[str] = None) -> Dict[str, Any]:
    """
    Run a full schedule from parsed or raw inputs.

    Args:
        orders: Order objects or raw order records (camelCase keys)
        settings: GlobalSettings or the raw settings dict
        machines: Optional machine list (defaults to VMC 1 - VMC 7)

    Returns:
        {'rows', 'alerts', 'summary'}; engine defects come back as a single alert
    """
    # Import here to avoid circular dependency
    from parsers.settings_parser import parse_global_settings

    try:
        if not isinstance(settings, GlobalSettings):
            settings = parse_global_settings(settings or {})
        engine = SchedulingEngine(settings, machines=machines)
        return engine.run(engine.parse_orders(orders))
    except Exception as e:
        print(f"[ERROR] Scheduling engine error: {e}")
        return empty_result(f"❌ Scheduling engine error: {e}")
