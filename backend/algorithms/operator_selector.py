"""
Operator Selector
Assigns a shift operator to each machine setup.

Selection (for a setup interval that fits inside one shift):
1. Operators whose shift fully contains the interval
2. Free ones ranked by priority score (lower wins):
       totalMinutes + 0.5 x currentShiftMinutes - 50 (afternoon) + 10 x rotationIndex
3. Otherwise each operator's earliest free slot later in the same shift,
   ranked by score then delay
4. Otherwise the first eligible operator with an emergency 30-minute delay

Conflict resolution when the chosen slot still collides:
(a) alternate free operator, (b) 1-15 minute delays, (c) alternate operator
with a 1-3 minute delay, (d) 10/20/30 minute delays. Exhaustion raises
ResourceExhaustedError.

Setups crossing a shift end are split: the head stays with an operator of
the current shift, the remainder goes to an operator of the following shift
(morning -> afternoon, afternoon -> next-day morning).
"""

from datetime import datetime, timedelta
from typing import List, Optional
from dataclasses import dataclass, field

from algorithms.models import Interval
from algorithms.exceptions import ResourceExhaustedError
from algorithms.resource_ledger import ResourceLedger
from algorithms.shift_calendar import ShiftCalendar


@dataclass
class OperatorChoice:
    """Operator and (possibly delayed) setup slot."""
    operator: str
    start: datetime
    end: datetime
    delay_minutes: float = 0
    emergency: bool = False
    reason: str = ''


@dataclass
class SetupSegment:
    """Part of a setup attended by one operator."""
    operator: str
    start: datetime
    end: datetime

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)


@dataclass
class SetupAssignment:
    """Final setup slot with one segment, or two for a spilled-over setup."""
    operator: str
    setup_start: datetime
    setup_end: datetime
    segments: List[SetupSegment] = field(default_factory=list)
    delayed: bool = False
    emergency: bool = False
    notes: List[str] = field(default_factory=list)

    @property
    def spillover(self) -> bool:
        return len(self.segments) > 1

    @property
    def spillover_operator(self) -> Optional[str]:
        if self.spillover:
            return self.segments[-1].operator
        return None


class OperatorSelector:
    """Shift-aware operator assignment over an operator ledger."""

    SHIFT_LOAD_WEIGHT = 0.5
    AFTERNOON_PREFERENCE = 50
    ROTATION_WEIGHT = 10
    EMERGENCY_DELAY_MINUTES = 30
    MICRO_DELAYS = range(1, 16)
    ALTERNATE_MICRO_DELAYS = range(1, 4)
    ESCALATING_DELAYS = (10, 20, 30)
    MAX_SETUP_SLOT_ATTEMPTS = 300

    def __init__(self, calendar: ShiftCalendar, ledger: ResourceLedger):
        self.calendar = calendar
        self.ledger = ledger
        self.log: List[str] = []

    # =========================================================================
    # RANKING
    # =========================================================================

    def priority_score(self, operator: str, at: datetime) -> float:
        """Load-balancing score; lower is preferred."""
        total = self.ledger.total_minutes(operator)
        in_shift = self.ledger.minutes_within(operator, self.calendar.shift_bounds(operator, at))
        score = total + self.SHIFT_LOAD_WEIGHT * in_shift
        if self.calendar.is_afternoon(operator):
            score -= self.AFTERNOON_PREFERENCE
        score += self.ROTATION_WEIGHT * self.calendar.rotation_index(operator)
        return score

    def _rank(self, operators: List[str], at: datetime) -> List[str]:
        return sorted(operators, key=lambda op: self.priority_score(op, at))

    def is_free(self, operator: str, start: datetime, end: datetime) -> bool:
        return not self.ledger.has_conflict(operator, Interval(start, end))

    def can_take(self, operator: str, start: datetime, end: datetime) -> bool:
        """On shift for the whole slot and no overlapping setup."""
        return self.calendar.can_work(operator, start, end) and self.is_free(operator, start, end)

    def _earliest_slot_in_shift(self, operator: str, start: datetime,
                                duration: timedelta) -> Optional[datetime]:
        """First conflict-free start at or after `start` inside the same shift occurrence."""
        shift_end = self.calendar.shift_bounds(operator, start).end
        candidates = [start] + sorted(iv.end for iv in self.ledger.bookings(operator) if iv.end > start)
        for candidate in candidates:
            if candidate + duration > shift_end:
                break
            if self.can_take(operator, candidate, candidate + duration):
                return candidate
        return None

    # =========================================================================
    # SELECTION
    # =========================================================================

    def select(self, start: datetime, end: datetime) -> Optional[OperatorChoice]:
        """
        Choose an operator for a setup that fits inside one shift.

        Returns None when no operator's shift contains the interval.
        """
        eligible = self.calendar.operators_on_shift(start, end)
        if not eligible:
            return None

        free = [op for op in eligible if self.is_free(op, start, end)]
        if free:
            best = self._rank(free, start)[0]
            return OperatorChoice(best, start, end, reason='free')

        duration = end - start
        delayed = []
        for op in eligible:
            slot = self._earliest_slot_in_shift(op, start, duration)
            if slot is not None:
                delay = (slot - start).total_seconds() / 60.0
                delayed.append((self.priority_score(op, slot), delay, op, slot))
        if delayed:
            _, delay, op, slot = min(delayed, key=lambda d: (d[0], d[1]))
            return OperatorChoice(op, slot, slot + duration, delay_minutes=delay, reason='delayed')

        op = eligible[0]
        shift = timedelta(minutes=self.EMERGENCY_DELAY_MINUTES)
        self.log.append(f"[WARN] Emergency {self.EMERGENCY_DELAY_MINUTES}-minute delay for operator {op} "
                        f"at {start:%Y-%m-%d %H:%M}")
        return OperatorChoice(op, start + shift, end + shift,
                              delay_minutes=self.EMERGENCY_DELAY_MINUTES,
                              emergency=True, reason='emergency-delay')

    def resolve_conflict(self, choice: OperatorChoice) -> OperatorChoice:
        """
        Make sure the chosen slot can actually be reserved.

        Raises:
            ResourceExhaustedError: every strategy collided
        """
        op, start, end = choice.operator, choice.start, choice.end
        if self.can_take(op, start, end):
            return choice

        def moved(operator: str, minutes: int, reason: str) -> Optional[OperatorChoice]:
            delta = timedelta(minutes=minutes)
            if self.can_take(operator, start + delta, end + delta):
                return OperatorChoice(operator, start + delta, end + delta,
                                      delay_minutes=choice.delay_minutes + minutes,
                                      emergency=choice.emergency, reason=reason)
            return None

        alternates = self._rank([o for o in self.calendar.operators if o != op], start)

        # (a) alternate operator, same slot
        for alt in alternates:
            found = moved(alt, 0, 'alternate-operator')
            if found:
                return found

        # (b) same operator, micro-delay
        for minutes in self.MICRO_DELAYS:
            found = moved(op, minutes, 'micro-delay')
            if found:
                return found

        # (c) alternate operator with a short delay
        for alt in alternates:
            for minutes in self.ALTERNATE_MICRO_DELAYS:
                found = moved(alt, minutes, 'alternate-micro-delay')
                if found:
                    return found

        # (d) escalating delays
        for minutes in self.ESCALATING_DELAYS:
            found = moved(op, minutes, 'escalating-delay')
            if found:
                return found

        status = ', '.join(f"{o}: {self.ledger.booking_count(o)} setups" for o in self.calendar.operators)
        raise ResourceExhaustedError(
            f"Unable to find an available operator for setup {start:%Y-%m-%d %H:%M}-{end:%H:%M} "
            f"after all conflict-resolution strategies. Operator status: {status}"
        )

    # =========================================================================
    # ASSIGNMENT
    # =========================================================================

    def assign(self, start: datetime, setup_minutes: float) -> SetupAssignment:
        """
        Find the setup slot and operator(s) for a setup starting no earlier than `start`.

        Args:
            start: Earliest setup start
            setup_minutes: Setup duration

        Returns:
            SetupAssignment with the operator segments to reserve
        """
        if setup_minutes <= 0:
            return self._assign_without_setup(start)

        requested = start
        duration = timedelta(minutes=setup_minutes)
        last_error = None

        for _ in range(self.MAX_SETUP_SLOT_ATTEMPTS):
            start = self.calendar.fit_setup_start(start, setup_minutes)
            end = start + duration

            if self.calendar.operators_on_shift(start, end):
                try:
                    choice = self.resolve_conflict(self.select(start, end))
                except ResourceExhaustedError as exc:
                    last_error = exc
                    self.log.append(f"[!!] {exc} - escalating to next shift start")
                    start = self.calendar.next_shift_start(start)
                    continue
                assignment = SetupAssignment(
                    operator=choice.operator,
                    setup_start=choice.start,
                    setup_end=choice.end,
                    segments=[SetupSegment(choice.operator, choice.start, choice.end)],
                    delayed=choice.start > requested,
                    emergency=choice.emergency,
                )
                if choice.emergency:
                    assignment.notes.append(
                        f"Emergency {self.EMERGENCY_DELAY_MINUTES}-minute setup delay for operator {choice.operator}")
                return assignment

            spill = self._plan_spillover(start, setup_minutes)
            if spill is not None:
                spill.delayed = spill.setup_start > requested
                return spill

            start = self.calendar.next_shift_start(start)

        message = (f"No operator slot found for a {setup_minutes:g}-minute setup requested at "
                   f"{requested:%Y-%m-%d %H:%M} after {self.MAX_SETUP_SLOT_ATTEMPTS} attempts")
        if last_error is not None:
            message += f" ({last_error})"
        raise ResourceExhaustedError(message)

    def _assign_without_setup(self, start: datetime) -> SetupAssignment:
        """Zero-minute setups need no reservation; name the operator on shift."""
        on_shift = [op for op in self.calendar.operators
                    if self.calendar.shift_for(op).contains(start, start)]
        operator = self._rank(on_shift, start)[0] if on_shift else ''
        return SetupAssignment(operator=operator, setup_start=start, setup_end=start)

    def _plan_spillover(self, start: datetime, setup_minutes: float) -> Optional[SetupAssignment]:
        """Split a setup crossing the shift end between two shifts, or None."""
        shift = self.calendar.shift_containing(start)
        if shift is None:
            return None

        boundary = shift.bounds_on(start).end
        window = self.calendar.setup_window
        if not window.is_24x7:
            boundary = min(boundary, window.closing(start))
        if boundary <= start:
            return None

        head_minutes = (boundary - start).total_seconds() / 60.0
        if head_minutes >= setup_minutes:
            return None

        head_ops = [op for op in self.calendar.operators_for_shift(shift.label)
                    if self.can_take(op, start, boundary)]
        if not head_ops:
            return None
        head_op = self._rank(head_ops, start)[0]

        remainder = setup_minutes - head_minutes
        tail_start = self.calendar.following_shift_start(shift.label, boundary)
        tail_start = self.calendar.fit_setup_start(tail_start, remainder)
        tail_end = tail_start + timedelta(minutes=remainder)
        next_label = self.calendar.following_shift(shift.label)
        tail_ops = [op for op in self.calendar.operators_for_shift(next_label)
                    if self.can_take(op, tail_start, tail_end)]
        if not tail_ops:
            self.log.append(f"[!!] No {next_label} operator for setup spillover at {tail_start:%Y-%m-%d %H:%M}, "
                            f"delaying to next shift start")
            return None
        tail_op = self._rank(tail_ops, tail_start)[0]

        self.log.append(f"[SPILLOVER] {head_op} {start:%H:%M}-{boundary:%H:%M}, "
                        f"{tail_op} {tail_start:%Y-%m-%d %H:%M}-{tail_end:%H:%M}")
        return SetupAssignment(
            operator=head_op,
            setup_start=start,
            setup_end=tail_end,
            segments=[SetupSegment(head_op, start, boundary),
                      SetupSegment(tail_op, tail_start, tail_end)],
            notes=[f"Setup spilled over from {head_op} to {tail_op} at {boundary:%H:%M}"],
        )
