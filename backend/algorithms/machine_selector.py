"""
Machine Selector
Chooses a machine for an operation among its eligible machines.

Breakdown machines are removed first. The remaining machines are ranked by
a 7-tier priority (first match wins):

1. Unused machine that can start within 5 minutes
2. Unused machine that can start within 30 minutes
3. Any unused machine (spread load across idle machines)
4. Start within 5 minutes and meets the due date (fewest bookings)
5. Start within 5 minutes (fewest bookings)
6. Meets the due date (fewest bookings, then earliest start)
7. Least reserved workload hours, then fewest bookings, then earliest start
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence
from dataclasses import dataclass

from algorithms.resource_ledger import ResourceLedger


@dataclass
class MachineCandidate:
    """One eligible machine evaluated for a requested start."""
    machine: str
    free_at: datetime
    start: datetime
    end: datetime
    wait_minutes: float
    meets_due_date: bool
    bookings: int
    workload_hours: float

    @property
    def unused(self) -> bool:
        return self.bookings == 0


@dataclass
class MachineChoice:
    """Selected machine and why it won."""
    machine: str
    start: datetime
    tier: int  # 1-7, 0 = breakdown fallback
    reason: str
    warning: Optional[str] = None


class MachineSelector:
    """Utilization-first machine selection over a machine ledger."""

    QUICK_START_MINUTES = 5
    SHORT_WAIT_MINUTES = 30

    def __init__(self, ledger: ResourceLedger):
        self.ledger = ledger

    def evaluate(self, machine: str, requested_start: datetime, setup_minutes: float,
                 run_minutes: float, due_date: Optional[datetime]) -> MachineCandidate:
        free_at = self.ledger.earliest_free(machine)
        start = max(requested_start, free_at)
        end = start + timedelta(minutes=setup_minutes + run_minutes)
        return MachineCandidate(
            machine=machine,
            free_at=free_at,
            start=start,
            end=end,
            wait_minutes=(start - requested_start).total_seconds() / 60.0,
            meets_due_date=due_date is None or end <= due_date,
            bookings=self.ledger.booking_count(machine),
            workload_hours=self.ledger.workload_hours(machine),
        )

    def select(self, eligible: Sequence[str], requested_start: datetime,
               setup_minutes: float, run_minutes: float,
               due_date: Optional[datetime] = None,
               breakdown_machines: Sequence[str] = ()) -> MachineChoice:
        """
        Pick the machine for an operation.

        Args:
            eligible: Eligible machines in master-data order
            requested_start: When the setup would like to start
            setup_minutes: Setup duration
            run_minutes: Estimated run duration (cycle x qty)
            due_date: Order due date for feasibility checks
            breakdown_machines: Machines to exclude

        Returns:
            MachineChoice with the winning tier
        """
        if not eligible:
            raise ValueError("Operation has no eligible machines")

        excluded = set(breakdown_machines)
        available = [m for m in eligible if m not in excluded]
        if not available:
            fallback = eligible[0]
            return MachineChoice(
                machine=fallback,
                start=max(requested_start, self.ledger.earliest_free(fallback)),
                tier=0,
                reason='breakdown-fallback',
                warning=f"All eligible machines are in breakdown, using {fallback} as last resort",
            )

        candidates = [self.evaluate(m, requested_start, setup_minutes, run_minutes, due_date)
                      for m in available]
        quick = [c for c in candidates if c.wait_minutes <= self.QUICK_START_MINUTES]
        unused = [c for c in candidates if c.unused]

        tiers = [
            (1, 'unused-immediate', [c for c in unused if c.wait_minutes <= self.QUICK_START_MINUTES],
             lambda c: 0),
            (2, 'unused-short-wait', [c for c in unused if c.wait_minutes <= self.SHORT_WAIT_MINUTES],
             lambda c: c.wait_minutes),
            (3, 'unused', unused, lambda c: c.start),
            (4, 'quick-start-on-time', [c for c in quick if c.meets_due_date], lambda c: c.bookings),
            (5, 'quick-start', quick, lambda c: c.bookings),
            (6, 'on-time', [c for c in candidates if c.meets_due_date],
             lambda c: (c.bookings, c.start)),
        ]

        for tier, reason, pool, key in tiers:
            if pool:
                best = min(pool, key=key)
                return MachineChoice(machine=best.machine, start=best.start, tier=tier, reason=reason)

        best = min(candidates, key=lambda c: (c.workload_hours, c.bookings, c.start))
        return MachineChoice(machine=best.machine, start=best.start, tier=7, reason='least-loaded')
