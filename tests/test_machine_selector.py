"""Tests for 7-tier machine selection."""

import pytest
from datetime import datetime

from algorithms.models import Interval
from algorithms.resource_ledger import ResourceLedger
from algorithms.machine_selector import MachineSelector


def at(hour, minute=0, day=5):
    return datetime(2025, 9, day, hour, minute)


MACHINES = ['VMC 1', 'VMC 2', 'VMC 3']
FAR_DUE = at(8, day=20)


def selector_for(effective_start=None):
    ledger = ResourceLedger(effective_start or at(6), 'Machine', MACHINES)
    return MachineSelector(ledger), ledger


class TestTiers:

    def test_unused_immediate(self):
        selector, _ = selector_for()
        choice = selector.select(MACHINES, at(7), 60, 120, FAR_DUE)
        assert choice.tier == 1
        assert choice.machine == 'VMC 1'
        assert choice.start == at(7)

    def test_used_machine_skipped_for_unused(self):
        selector, ledger = selector_for()
        ledger.reserve('VMC 1', Interval(at(6), at(7)))
        choice = selector.select(MACHINES, at(7), 60, 120, FAR_DUE)
        assert choice.tier == 1
        assert choice.machine == 'VMC 2'

    def test_unused_short_wait(self):
        selector, _ = selector_for(at(7, 20))
        choice = selector.select(MACHINES, at(7), 60, 120, FAR_DUE)
        assert choice.tier == 2
        assert choice.start == at(7, 20)

    def test_any_unused(self):
        selector, _ = selector_for(at(9))
        choice = selector.select(MACHINES, at(7), 60, 120, FAR_DUE)
        assert choice.tier == 3
        assert choice.reason == 'unused'

    def test_quick_start_on_time(self):
        selector, ledger = selector_for()
        ledger.reserve('VMC 1', Interval(at(6), at(7)))
        ledger.reserve('VMC 2', Interval(at(6), at(9)))
        choice = selector.select(['VMC 1', 'VMC 2'], at(7), 60, 120, FAR_DUE)
        assert choice.tier == 4
        assert choice.machine == 'VMC 1'

    def test_quick_start_late(self):
        selector, ledger = selector_for()
        ledger.reserve('VMC 1', Interval(at(6), at(7)))
        ledger.reserve('VMC 2', Interval(at(6), at(9)))
        choice = selector.select(['VMC 1', 'VMC 2'], at(7), 60, 120, due_date=at(8))
        assert choice.tier == 5
        assert choice.machine == 'VMC 1'

    def test_on_time_fewest_bookings(self):
        selector, ledger = selector_for()
        ledger.reserve('VMC 1', Interval(at(6), at(7)))
        ledger.reserve('VMC 1', Interval(at(7), at(10)))
        ledger.reserve('VMC 2', Interval(at(6), at(11)))
        choice = selector.select(['VMC 1', 'VMC 2'], at(7), 60, 120, FAR_DUE)
        assert choice.tier == 6
        assert choice.machine == 'VMC 2'

    def test_least_loaded_fallback(self):
        selector, ledger = selector_for()
        ledger.reserve('VMC 1', Interval(at(6), at(12)))
        ledger.reserve('VMC 2', Interval(at(6), at(8)))
        ledger.reserve('VMC 2', Interval(at(8), at(10)))
        choice = selector.select(['VMC 1', 'VMC 2'], at(7), 60, 120, due_date=at(9))
        assert choice.tier == 7
        assert choice.machine == 'VMC 2'


class TestBreakdowns:

    def test_breakdown_machine_excluded(self):
        selector, _ = selector_for()
        choice = selector.select(MACHINES, at(7), 60, 120, FAR_DUE, breakdown_machines=['VMC 1'])
        assert choice.machine == 'VMC 2'

    def test_all_broken_falls_back_with_warning(self):
        selector, _ = selector_for()
        choice = selector.select(['VMC 1'], at(7), 60, 120, FAR_DUE, breakdown_machines=['VMC 1'])
        assert choice.tier == 0
        assert choice.machine == 'VMC 1'
        assert 'breakdown' in choice.warning

    def test_no_eligible_machines(self):
        selector, _ = selector_for()
        with pytest.raises(ValueError):
            selector.select([], at(7), 60, 120)
