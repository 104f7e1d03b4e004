"""
Timing Calculator
Piece-level flow timing for one operation of one batch.

Pieces are processed strictly one after another on the selected machine.
A piece can start once the machine is free and the same piece has finished
the previous operation, so sequential operations overlap (pipelined flow):

    pieceStart[i] = max(previousCompletion[i] or setupEnd, machineAvailable)
    pieceCompletion[i] = pieceStart[i] + cycleTime

Under a bounded production window each piece is placed inside the window: a
piece ready outside it starts at the next opening and a piece still running
at the closing finishes after the next opening.

Also holds the date/duration formatting used in schedule rows.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from dataclasses import dataclass, field

from algorithms.shift_calendar import ShiftCalendar


MAX_WINDOW_DAYS = 3660


# =============================================================================
# FORMATTING
# =============================================================================

def format_datetime(dt: Optional[datetime]) -> str:
    """Local date-time as 'YYYY-MM-DD HH:MM'."""
    if dt is None:
        return ''
    return dt.strftime('%Y-%m-%d %H:%M')


def format_minutes(total_minutes: float) -> str:
    """Minutes as 'XD YH ZM' with zero parts left out ('' for zero)."""
    total = int(round(total_minutes))
    if total <= 0:
        return ''
    days, rest = divmod(total, 1440)
    hours, minutes = divmod(rest, 60)
    parts = []
    if days:
        parts.append(f"{days}D")
    if hours:
        parts.append(f"{hours}H")
    if minutes:
        parts.append(f"{minutes}M")
    return ' '.join(parts)


def format_duration_breakdown(start: datetime, end: datetime,
                              work_minutes: float = 0, holiday_minutes: float = 0) -> str:
    """
    Elapsed time between two timestamps with an optional work/holiday split.

    Example: '1D 2H 5M (20H 5M Work, 6H Holiday)'
    """
    elapsed = max(0, int((end - start).total_seconds() // 60))
    result = format_minutes(elapsed) or '0M'

    work = format_minutes(work_minutes)
    holiday = format_minutes(holiday_minutes)
    if work and holiday:
        result += f" ({work} Work, {holiday} Holiday)"
    elif work:
        result += f" ({work} Work)"
    elif holiday:
        result += f" ({holiday} Holiday)"
    return result


# =============================================================================
# TIMING RESULT
# =============================================================================

@dataclass
class TimingResult:
    """Setup/run timestamps and per-piece times for one operation."""
    setup_start: datetime
    setup_end: datetime
    run_start: datetime
    run_end: datetime
    piece_start_times: List[datetime] = field(default_factory=list)
    piece_completion_times: List[datetime] = field(default_factory=list)
    work_minutes: float = 0  # setup + cycle x qty
    monotonic_shift_minutes: float = 0  # run pushed behind the previous op's run end

    # Production window handling
    paused: bool = False
    pause_start: Optional[datetime] = None
    pause_end: Optional[datetime] = None
    window_paused_minutes: float = 0

    @property
    def first_piece_done(self) -> datetime:
        if self.piece_completion_times:
            return self.piece_completion_times[0]
        return self.run_end


# =============================================================================
# TIMING CALCULATOR
# =============================================================================

class TimingCalculator:
    """Computes setup and run intervals with piece-level flow."""

    def __init__(self, calendar: ShiftCalendar):
        self.calendar = calendar

    def resolve_setup_start(self, earliest: datetime, machine_free: datetime,
                            setup_minutes: float,
                            previous_first_piece_done: Optional[datetime] = None) -> datetime:
        """
        Earliest setup start for the selected machine.

        A setup may run in parallel with the previous operation only if it
        finishes before that operation's first piece is ready; otherwise it
        waits for the first piece. The result is fitted into the setup window.
        """
        start = max(earliest, machine_free)
        if previous_first_piece_done is not None and start < previous_first_piece_done:
            if start + timedelta(minutes=setup_minutes) > previous_first_piece_done:
                start = previous_first_piece_done
        return self.calendar.fit_setup_start(start, setup_minutes)

    def calculate(self, setup_start: datetime, setup_end: datetime, batch_qty: int,
                  cycle_minutes: float, setup_minutes: float = 0,
                  previous_completions: Optional[List[datetime]] = None,
                  previous_run_end: Optional[datetime] = None) -> TimingResult:
        """
        Piece flow, run-end floor and production window for one operation.

        Args:
            setup_start: Final setup start (after operator assignment)
            setup_end: Final setup end (later than start + setup for a spilled setup)
            batch_qty: Pieces in the batch
            cycle_minutes: Machine time per piece
            setup_minutes: Setup duration, counted in work minutes
            previous_completions: Previous operation's per-piece completion times
            previous_run_end: Previous operation's run end (monotonic floor)

        Returns:
            TimingResult with piece arrays and run interval
        """
        previous_completions = previous_completions or []
        earliest = [previous_completions[i] if i < len(previous_completions) else setup_end
                    for i in range(batch_qty)]

        starts, completions, pauses = self._flow(setup_end, earliest, cycle_minutes)
        monotonic_shift = 0.0
        run_end = completions[-1] if completions else setup_end
        if previous_run_end is not None and previous_run_end > run_end:
            delta = previous_run_end + timedelta(minutes=cycle_minutes) - run_end
            monotonic_shift = delta.total_seconds() / 60.0
            starts, completions, pauses = self._flow(setup_end, [t + delta for t in starts], cycle_minutes)

        result = TimingResult(
            setup_start=setup_start,
            setup_end=setup_end,
            run_start=setup_end,
            run_end=completions[-1] if completions else setup_end,
            piece_start_times=starts,
            piece_completion_times=completions,
            work_minutes=setup_minutes + cycle_minutes * batch_qty,
            monotonic_shift_minutes=monotonic_shift,
        )
        for pause_at, resume_at in pauses:
            self._record_pause(result, pause_at, resume_at)
        return result

    def _flow(self, setup_end: datetime, earliest: List[datetime], cycle_minutes: float):
        """One machine, pieces in order; each piece starts no earlier than its ready time."""
        starts = []
        completions = []
        pauses = []
        machine_available = setup_end
        for ready in earliest:
            piece_start, piece_done = self.place_piece(max(ready, machine_available), cycle_minutes, pauses)
            starts.append(piece_start)
            completions.append(piece_done)
            machine_available = piece_done
        return starts, completions, pauses

    def place_piece(self, start: datetime, cycle_minutes: float,
                    pauses: Optional[List] = None) -> Tuple[datetime, datetime]:
        """
        Start and completion of one piece inside the production window.

        A piece ready outside the window starts at the next opening. A piece
        still running at the closing is paused and finishes after the next
        opening. Each pause is appended to `pauses` as (pause_at, resume_at).
        """
        remaining = timedelta(minutes=cycle_minutes)
        window = self.calendar.production_window
        if window.is_24x7:
            return start, start + remaining
        if pauses is None:
            pauses = []

        if not window.contains_time(start):
            resume = window.next_opening(start)
            pauses.append((start, resume))
            start = resume

        cursor = start
        for _ in range(MAX_WINDOW_DAYS):
            closing = window.closing(cursor)
            if cursor + remaining <= closing:
                return start, cursor + remaining
            remaining -= closing - cursor
            resume = window.next_opening(closing)
            pauses.append((closing, resume))
            cursor = resume
        return start, cursor + remaining

    def _record_pause(self, result: TimingResult, pause_at: datetime, resume_at: datetime):
        if not result.paused:
            result.paused = True
            result.pause_start = pause_at
            result.pause_end = resume_at
        result.window_paused_minutes += (resume_at - pause_at).total_seconds() / 60.0
