"""
Resource Ledger
Per-resource bookkeeping of reserved, non-overlapping time intervals.

One ledger is kept for machines and one for operators. Every reservation
re-validates the resource's full interval list; an overlap means the
allocation logic itself is broken and raises IntegrityViolationError.
"""

from datetime import datetime
from typing import Dict, List, Tuple

from algorithms.models import Interval
from algorithms.exceptions import IntegrityViolationError


class ResourceLedger:
    """Ordered interval lists keyed by resource id (machine name or operator)."""

    def __init__(self, effective_start: datetime, kind: str = 'Resource',
                 resource_ids: List[str] = None):
        self.effective_start = effective_start
        self.kind = kind  # 'Machine' or 'Operator', used in messages
        self.intervals: Dict[str, List[Interval]] = {}
        for resource_id in resource_ids or []:
            self.intervals[resource_id] = []

    def reserve(self, resource_id: str, interval: Interval):
        """Book an interval, keep the list sorted by start, then re-validate."""
        schedule = self.intervals.setdefault(resource_id, [])
        schedule.append(interval)
        schedule.sort(key=lambda iv: iv.start)
        self._validate(resource_id)

    def _validate(self, resource_id: str):
        if self.find_overlaps(resource_id):
            raise IntegrityViolationError(
                f"{self.kind} {resource_id} has overlapping bookings - scheduling integrity violated"
            )

    def find_overlaps(self, resource_id: str) -> List[Tuple[Interval, Interval]]:
        """All overlapping interval pairs for a resource."""
        schedule = self.intervals.get(resource_id, [])
        overlaps = []
        for i in range(len(schedule)):
            for j in range(i + 1, len(schedule)):
                if schedule[j].start >= schedule[i].end:
                    break  # Sorted by start: nothing later can overlap i
                overlaps.append((schedule[i], schedule[j]))
        return overlaps

    def has_conflict(self, resource_id: str, candidate: Interval) -> bool:
        """Half-open overlap test against every stored interval."""
        for existing in self.intervals.get(resource_id, []):
            if candidate.start < existing.end and existing.start < candidate.end:
                return True
        return False

    def earliest_free(self, resource_id: str) -> datetime:
        """Effective start if never booked, else the latest booked end."""
        schedule = self.intervals.get(resource_id)
        if not schedule:
            return self.effective_start
        return max(iv.end for iv in schedule)

    def earliest_free_after(self, resource_id: str, after: datetime) -> datetime:
        """Latest booked end, but never before `after`."""
        schedule = self.intervals.get(resource_id)
        if not schedule:
            return after
        return max(after, max(iv.end for iv in schedule))

    def bookings(self, resource_id: str) -> List[Interval]:
        return list(self.intervals.get(resource_id, []))

    def booking_count(self, resource_id: str) -> int:
        return len(self.intervals.get(resource_id, []))

    def total_minutes(self, resource_id: str) -> float:
        return sum(iv.duration_minutes for iv in self.intervals.get(resource_id, []))

    def workload_hours(self, resource_id: str) -> float:
        return self.total_minutes(resource_id) / 60.0

    def minutes_within(self, resource_id: str, window: Interval) -> float:
        """Booked minutes falling inside a window (e.g. the current shift)."""
        return sum(iv.overlap_minutes(window) for iv in self.intervals.get(resource_id, []))

    def resource_ids(self) -> List[str]:
        return list(self.intervals.keys())

    def utilization(self, horizon_start: datetime, horizon_end: datetime) -> Dict[str, float]:
        """Percent of the horizon each resource is booked."""
        if horizon_end <= horizon_start:
            return {rid: 0.0 for rid in self.intervals}
        window = Interval(horizon_start, horizon_end)
        span = window.duration_minutes
        return {rid: self.minutes_within(rid, window) / span * 100 for rid in self.intervals}

    def snapshot(self) -> Dict[str, List[Interval]]:
        """Copy of all bookings, for rolling back a failed order."""
        return {rid: list(ivs) for rid, ivs in self.intervals.items()}

    def restore(self, snapshot: Dict[str, List[Interval]]):
        self.intervals = {rid: list(ivs) for rid, ivs in snapshot.items()}
