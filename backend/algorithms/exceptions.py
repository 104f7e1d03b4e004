"""
Scheduling Errors
Exception types raised by the scheduling engine.

- InputDefectError: bad order/operation data (no operations, unknown machine)
- ResourceExhaustedError: no operator could be found for a setup
- IntegrityViolationError: overlapping reservations in a resource ledger

Input defects and resource exhaustion are contained at the order level.
Integrity violations are programming defects and propagate out of the run.
"""


class SchedulingError(Exception):
    """Base class for scheduling failures."""


class InputDefectError(SchedulingError):
    """Order or operation data that cannot be scheduled."""


class ResourceExhaustedError(SchedulingError):
    """All operator conflict-resolution strategies failed."""


class IntegrityViolationError(SchedulingError):
    """A resource ledger holds overlapping intervals."""
