"""Tests for post-hoc schedule validation."""

import pytest
from datetime import datetime, timedelta

from algorithms.models import Interval, ScheduledOperation
from algorithms.resource_ledger import ResourceLedger
from schedule_validator import ValidationReport, validate_schedule


def at(hour, minute=0, day=5):
    return datetime(2025, 9, day, hour, minute)


def scheduled_op(seq, setup_start, setup_end, completions, cycle=10, qty=None, machine='VMC 1'):
    return ScheduledOperation(
        part_number='PN1001',
        batch_id='B01',
        batch_qty=qty or len(completions),
        operation_seq=seq,
        operation_name='Facing',
        machine=machine,
        operator='A',
        setup_start=setup_start,
        setup_end=setup_end,
        run_start=setup_end,
        run_end=completions[-1],
        first_piece_done=completions[0],
        piece_start_times=[c - timedelta(minutes=cycle) for c in completions],
        piece_completion_times=list(completions),
        setup_minutes=(setup_end - setup_start).total_seconds() / 60.0,
        cycle_minutes=cycle,
        order_key='PN1001#1',
    )


@pytest.fixture
def ledgers():
    return ResourceLedger(at(6), 'Machine'), ResourceLedger(at(6), 'Operator')


class TestValidationReport:

    def test_empty_report_is_valid(self):
        report = ValidationReport()
        assert report.is_valid
        assert report.violations == []

    def test_errors_make_report_invalid(self):
        report = ValidationReport()
        report.add_error("Machine VMC 1 double-booked")
        report.add_warning("advisory")
        assert not report.is_valid
        assert report.violations == ["Machine VMC 1 double-booked"]


class TestPieceFlowFix:

    def test_setup_moved_to_first_piece(self, calendar, ledgers):
        first = scheduled_op(1, at(7), at(8), [at(9), at(9, 10)])
        second = scheduled_op(2, at(8, 30), at(9, 30), [at(9, 40), at(9, 50)])
        report = validate_schedule([first, second], *ledgers, calendar)

        assert len(report.fixes) == 1
        assert second.setup_start == at(9)
        assert second.setup_end == at(10)
        assert second.piece_completion_times == [at(10, 10), at(10, 20)]
        assert second.first_piece_done == at(10, 10)
        assert second.run_end == at(10, 20)
        assert any('moved' in note for note in second.notes)
        assert report.is_valid

    def test_downstream_gets_advisory_only(self, calendar, ledgers):
        first = scheduled_op(1, at(7), at(8), [at(9), at(9, 10)])
        second = scheduled_op(2, at(8, 30), at(9, 30), [at(9, 40), at(9, 50)])
        third = scheduled_op(3, at(11), at(11, 30), [at(11, 40), at(12)])
        report = validate_schedule([first, second, third], *ledgers, calendar)

        assert third.setup_start == at(11)
        assert any('may need re-evaluation after Op2 was adjusted' in w for w in report.warnings)
        assert third.notes

    def test_parallel_setup_finishing_before_first_piece_kept(self, calendar, ledgers):
        first = scheduled_op(1, at(7), at(8), [at(9), at(9, 10)])
        second = scheduled_op(2, at(8, 30), at(8, 55), [at(9, 10), at(9, 20)])
        report = validate_schedule([first, second], *ledgers, calendar)
        assert report.fixes == []
        assert second.setup_start == at(8, 30)

    def test_separate_orders_not_chained(self, calendar, ledgers):
        first = scheduled_op(1, at(7), at(8), [at(9), at(9, 10)])
        other = scheduled_op(2, at(8, 30), at(9, 30), [at(9, 40), at(9, 50)])
        other.order_key = 'PN1001#2'
        report = validate_schedule([first, other], *ledgers, calendar)
        assert report.fixes == []


class TestViolations:

    def test_double_booking(self, calendar, ledgers):
        machine_ledger, operator_ledger = ledgers
        machine_ledger.intervals['VMC 1'] = [Interval(at(8), at(10)), Interval(at(9), at(11))]
        report = validate_schedule([], machine_ledger, operator_ledger, calendar)
        assert not report.is_valid
        assert 'Machine VMC 1 double-booked' in report.errors[0]

    def test_run_end_regression(self, calendar, ledgers):
        first = scheduled_op(1, at(7), at(8), [at(8, 10), at(12)])
        second = scheduled_op(2, at(8, 10), at(8, 20), [at(8, 30), at(9)])
        report = validate_schedule([first, second], *ledgers, calendar)
        assert any('before Op1' in e for e in report.errors)

    def test_setup_outside_shift(self, calendar, ledgers):
        machine_ledger, operator_ledger = ledgers
        operator_ledger.reserve('C', Interval(at(8), at(9)))
        report = validate_schedule([], machine_ledger, operator_ledger, calendar)
        assert any('Operator C' in e and 'afternoon' in e for e in report.errors)

    def test_concurrent_setup_capacity(self, calendar, ledgers):
        machine_ledger, operator_ledger = ledgers
        for operator in ('A', 'B', 'C'):
            operator_ledger.reserve(operator, Interval(at(14), at(15)))
        report = validate_schedule([], machine_ledger, operator_ledger, calendar, max_concurrent_setups=2)
        assert any('3 concurrent setups' in e for e in report.errors)

    def test_back_to_back_setups_within_capacity(self, calendar, ledgers):
        machine_ledger, operator_ledger = ledgers
        operator_ledger.reserve('A', Interval(at(7), at(8)))
        operator_ledger.reserve('B', Interval(at(7), at(8)))
        operator_ledger.reserve('A', Interval(at(8), at(9)))
        report = validate_schedule([], machine_ledger, operator_ledger, calendar, max_concurrent_setups=2)
        assert report.is_valid

    def test_breakdown_booking_warns(self, calendar, ledgers):
        machine_ledger, operator_ledger = ledgers
        machine_ledger.reserve('VMC 1', Interval(at(8), at(10)))
        report = validate_schedule([], machine_ledger, operator_ledger, calendar,
                                   breakdown_periods={'VMC 1': [Interval(at(9), at(12))]})
        assert report.is_valid
        assert any('during breakdown' in w for w in report.warnings)
