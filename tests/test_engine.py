"""Tests for the scheduling engine (order scheduler and scheduling run)."""

import math
import pytest
from datetime import datetime

from algorithms.engine import SchedulingEngine, run_scheduling
from algorithms.resource_ledger import ResourceLedger
from algorithms.shift_calendar import GlobalSettings, TimeWindow


def at(hour, minute=0, day=5):
    return datetime(2025, 9, day, hour, minute)


def fmt(dt):
    return dt.strftime('%Y-%m-%d %H:%M')


class TestSingleOrderScenario:
    """PN1001 x 4 through four operations."""

    @pytest.fixture
    def engine(self, settings):
        return SchedulingEngine(settings)

    @pytest.fixture
    def result(self, engine, make_order):
        return engine.run([make_order('PN1001', 4, due_date=at(17, day=10))])

    def test_rows_and_summary(self, result):
        assert len(result['rows']) == 4
        assert result['summary'] == {'totalOrders': 1, 'totalOperations': 4, 'completedSuccessfully': 1}
        assert result['alerts'] == []

    def test_first_operation(self, result):
        row = result['rows'][0]
        assert row['Machine'] == 'VMC 1'
        assert row['Person'] == 'A'
        assert row['SetupStart'] == '2025-09-05 07:00'
        assert row['SetupEnd'] == '2025-09-05 08:10'
        assert row['RunEnd'] == '2025-09-05 09:22'

    def test_pipelined_operations(self, engine, result):
        scheduled = engine.scheduled
        assert [s.machine for s in scheduled] == ['VMC 1', 'VMC 2', 'VMC 3', 'VMC 4']
        assert [s.operator for s in scheduled] == ['A', 'B', 'A', 'B']
        assert [s.first_piece_done for s in scheduled] == [at(8, 28), at(9, 48), at(10, 59), at(12, 10)]
        # Each setup starts at the previous operation's first piece
        for prev, current in zip(scheduled, scheduled[1:]):
            assert current.setup_start == prev.first_piece_done
            assert current.run_end >= prev.run_end

    def test_row_fields(self, result):
        row = result['rows'][1]
        assert row['PartNumber'] == 'PN1001'
        assert row['Batch_ID'] == 'B01'
        assert row['Batch_Qty'] == 4
        assert row['OperationSeq'] == 2
        assert row['OperationName'] == 'Facing'
        assert row['Priority'] == 'Normal'
        assert row['SetupTime_Min'] == 70
        assert row['CycleTime_Min'] == 10
        assert row['DueDate'] == '2025-09-10 17:00'
        assert row['DueDateWarning'] == ''
        assert row['Timing'].endswith('Work)')

    def test_validation_passes(self, engine, result):
        assert engine.validation_report.is_valid


class TestResourceInvariants:
    """Several orders competing for machines and operators."""

    @pytest.fixture
    def engine(self, settings, make_order):
        engine = SchedulingEngine(settings)
        engine.run([
            make_order('PN1001', 600, due_date=at(17, day=12)),
            make_order('PN2001', 300, due_date=at(17, day=9), priority='High'),
            make_order('PN3001', 120, due_date=at(17, day=8)),
            make_order('PN2001', 40, due_date=at(17, day=9)),
        ])
        return engine

    def test_all_orders_scheduled(self, engine):
        assert engine.completed_orders == 4
        assert not engine.failed_orders

    def test_no_double_booking(self, engine):
        for ledger in (engine.machine_ledger, engine.operator_ledger):
            for resource in ledger.resource_ids():
                assert ledger.find_overlaps(resource) == []

    def test_setups_inside_operator_shift(self, engine):
        for operator in engine.operator_ledger.resource_ids():
            shift = engine.calendar.shift_for(operator)
            for interval in engine.operator_ledger.bookings(operator):
                assert shift.contains(interval.start, interval.end)

    def test_piece_flow_and_run_end_order(self, engine):
        chains = {}
        for scheduled in engine.scheduled:
            chains.setdefault(scheduled.chain_key(), []).append(scheduled)
        for chain in chains.values():
            chain.sort(key=lambda s: s.operation_seq)
            for prev, current in zip(chain, chain[1:]):
                assert current.setup_start >= prev.first_piece_done
                assert current.run_end >= prev.run_end
                for i, started in enumerate(current.piece_start_times):
                    assert started >= prev.piece_completion_times[i]

    def test_validation_passes(self, engine):
        assert engine.validation_report.is_valid

    def test_repeat_part_orders_kept_apart(self, engine):
        keys = {s.order_key for s in engine.scheduled if s.part_number == 'PN2001'}
        assert len(keys) == 2


class TestAlerts:

    def test_late_order_alert(self, settings, make_order):
        engine = SchedulingEngine(settings)
        due = at(12)
        result = engine.run([make_order('PN3001', 100, due_date=due)])

        completion = max(s.run_end for s in engine.scheduled)
        hours = math.ceil((completion - due).total_seconds() / 3600)
        late = [a for a in result['alerts'] if 'late' in a]
        assert late == [f"⚠️ PN3001 will be {hours}h late (due 2025-09-05 12:00) "
                        f"- consider splitting batch or reassigning machines"]
        assert all(row['DueDateWarning'] == f"⚠️ {hours}h late" for row in result['rows'])

    def test_urgent_alert(self, settings, make_order):
        result = SchedulingEngine(settings).run([make_order('PN1001', 4, due_date=at(18, day=6))])
        assert any(a.startswith('🚨 1 urgent orders detected') for a in result['alerts'])

    def test_missing_operations_contained(self, settings, make_order):
        engine = SchedulingEngine(settings)
        result = engine.run([make_order('PN9999', 10), make_order('PN1001', 4)])
        assert "❌ Failed to schedule PN9999: No operations found for part PN9999" in result['alerts']
        assert result['summary'] == {'totalOrders': 2, 'totalOperations': 4, 'completedSuccessfully': 1}
        assert {row['PartNumber'] for row in result['rows']} == {'PN1001'}

    def test_unknown_machine(self, settings, make_order_record):
        record = make_order_record('PNX', 10)
        record['operations'] = [{'OperationSeq': 1, 'OperationName': 'Drill', 'SetupTime_Min': 30,
                                 'CycleTime_Min': 2, 'EligibleMachines': 'VMC 9'}]
        result = run_scheduling([record], GlobalSettings(start_datetime=at(7)))
        assert any('Unknown machine VMC 9' in a for a in result['alerts'])
        assert result['rows'] == []

    def test_failed_order_releases_reservations(self, settings, make_order_record):
        record = make_order_record('PNX', 10)
        record['operations'] = [
            {'OperationSeq': 1, 'SetupTime_Min': 30, 'CycleTime_Min': 2, 'EligibleMachines': 'VMC 1'},
            {'OperationSeq': 2, 'SetupTime_Min': 1000, 'CycleTime_Min': 2, 'EligibleMachines': 'VMC 2'},
        ]
        engine = SchedulingEngine(settings)
        result = engine.run(engine.parse_orders([record]))
        assert any(a.startswith('❌ Failed to schedule PNX') for a in result['alerts'])
        assert engine.machine_ledger.booking_count('VMC 1') == 0
        assert all(engine.operator_ledger.booking_count(op) == 0 for op in 'ABCD')

    def test_unparseable_record_counted(self, settings, make_order_record):
        record = make_order_record('PN1001', 4)
        del record['dueDate']
        engine = SchedulingEngine(settings)
        result = engine.run(engine.parse_orders([record]))
        assert result['summary']['totalOrders'] == 1
        assert result['summary']['completedSuccessfully'] == 0
        assert "❌ Failed to schedule PN1001: Order PN1001 has no due date" in result['alerts']

    def test_integrity_violation_aborts_run(self, make_order_record, monkeypatch):
        # Ledger that never reports bookings lets the engine double-book VMC 1
        monkeypatch.setattr(ResourceLedger, 'earliest_free', lambda self, resource_id: self.effective_start)
        record = make_order_record('PNX', 4)
        record['operations'] = [
            {'OperationSeq': 1, 'SetupTime_Min': 70, 'CycleTime_Min': 18, 'EligibleMachines': 'VMC 1'},
            {'OperationSeq': 2, 'SetupTime_Min': 70, 'CycleTime_Min': 10, 'EligibleMachines': 'VMC 1'},
        ]
        result = run_scheduling([record], {'startDateTime': '2025-09-05 07:00'})
        assert result['rows'] == []
        assert len(result['alerts']) == 1
        assert result['alerts'][0].startswith('❌ Scheduling engine error')
        assert 'overlapping bookings' in result['alerts'][0]


class TestOrdering:

    def test_edd_then_priority(self, settings, make_order):
        engine = SchedulingEngine(settings)
        normal_late = make_order('PN1001', 4, due_date=at(8, day=10))
        low = make_order('PN2001', 4, due_date=at(8, day=8), priority='Low')
        urgent = make_order('PN3001', 4, due_date=at(8, day=8), priority='Urgent')
        assert engine.sort_orders([normal_late, low, urgent]) == [urgent, low, normal_late]

    def test_earlier_due_date_gets_first_machine(self, settings, make_order):
        engine = SchedulingEngine(settings)
        engine.run([make_order('PN1001', 4, due_date=at(8, day=12)),
                    make_order('PN1001', 4, due_date=at(8, day=9))])
        first = engine.scheduled[0]
        assert first.setup_start == at(7)
        assert first.order_key == 'PN1001#1'
        assert engine.rows[0]['DueDate'] == '2025-09-09 08:00'


class TestOrderOptions:

    def test_operation_override(self, make_order):
        settings = GlobalSettings(start_datetime=at(7),
                                  operation_overrides={('PN1001', 1): {'setup_minutes': 30}})
        engine = SchedulingEngine(settings)
        engine.run([make_order('PN1001', 4)])
        assert engine.scheduled[0].setup_end == at(7, 30)

    def test_order_breakdown_machine_avoided(self, settings, make_order):
        engine = SchedulingEngine(settings)
        engine.run([make_order('PN1001', 4, breakdownMachine='VMC 1')])
        assert engine.scheduled[0].machine == 'VMC 2'

    def test_order_setup_window(self, settings, make_order):
        engine = SchedulingEngine(settings)
        engine.run([make_order('PN1001', 4, setupWindow='08:00-20:00')])
        assert engine.scheduled[0].setup_start == at(8)

    def test_order_setup_window_stays_inside_shop_window(self, make_order):
        settings = GlobalSettings(start_datetime=at(6), setup_window=TimeWindow.from_hours(8, 20))
        engine = SchedulingEngine(settings)
        result = engine.run([make_order('PN1001', 4, setupWindow='06:00-22:00')])
        assert engine.scheduled[0].setup_start == at(8)
        assert all(s.setup_start >= at(8) for s in engine.scheduled)
        assert engine.validation_report.is_valid
        assert not any(a.startswith('❌') for a in result['alerts'])

    def test_order_window_outside_shop_window_fails_order(self, make_order):
        settings = GlobalSettings(start_datetime=at(7), setup_window=TimeWindow.from_hours(8, 12))
        result = SchedulingEngine(settings).run([make_order('PN1001', 4, setupWindow='14:00-18:00')])
        assert result['rows'] == []
        assert any(a.startswith('❌ Failed to schedule PN1001: Setup window 14:00-18:00') for a in result['alerts'])

    def test_order_breakdown_range_checked(self, settings, make_order_record):
        record = make_order_record('PNX', 10, breakdownMachine='VMC 1',
                                   breakdownDateTime='2025-09-05 07:00 → 2025-09-05 12:00')
        record['operations'] = [{'OperationSeq': 1, 'SetupTime_Min': 30, 'CycleTime_Min': 2,
                                 'EligibleMachines': 'VMC 1'}]
        engine = SchedulingEngine(settings)
        engine.run(engine.parse_orders([record]))
        assert engine.scheduled[0].machine == 'VMC 1'
        assert any('Machine VMC 1 booked 2025-09-05 07:00-2025-09-05 07:50 during breakdown' in w
                   for w in engine.validation_report.warnings)

    def test_order_start_date(self, settings, make_order):
        engine = SchedulingEngine(settings)
        engine.run([make_order('PN1001', 4, startDateTime='2025-09-06 09:00')])
        assert engine.scheduled[0].setup_start == at(9, day=6)

    def test_custom_batches(self, settings, make_order):
        engine = SchedulingEngine(settings)
        result = engine.run([make_order('PN3001', 5, batchMode='custom-batch-size', customBatchSize=2)])
        assert [row['Batch_ID'] for row in result['rows']] == ['B01', 'B01', 'B02', 'B02', 'B03', 'B03']
        assert [row['Batch_Qty'] for row in result['rows'][::2]] == [2, 2, 1]

    def test_spillover_person(self, make_order_record):
        record = make_order_record('PNX', 2)
        record['operations'] = [{'OperationSeq': 1, 'SetupTime_Min': 120, 'CycleTime_Min': 5,
                                 'EligibleMachines': 'VMC 1'}]
        result = run_scheduling([record], {'startDateTime': '2025-09-05 13:00'})
        row = result['rows'][0]
        assert row['Person'] == 'A/C'
        assert row['SetupStart'] == '2025-09-05 13:00'
        assert row['SetupEnd'] == '2025-09-05 15:00'


class TestProductionWindowChain:
    """Two operations under an 08:00-17:00 production window, starting 15:00."""

    @pytest.fixture
    def engine(self, make_order_record):
        record = make_order_record('PNX', 4)
        record['operations'] = [
            {'OperationSeq': 1, 'SetupTime_Min': 60, 'CycleTime_Min': 20, 'EligibleMachines': 'VMC 1'},
            {'OperationSeq': 2, 'SetupTime_Min': 10, 'CycleTime_Min': 1, 'EligibleMachines': 'VMC 2'},
        ]
        settings = GlobalSettings(start_datetime=at(15), production_window=TimeWindow.from_hours(8, 17))
        engine = SchedulingEngine(settings)
        engine.run(engine.parse_orders([record]))
        return engine

    def test_first_operation_resumes_next_morning(self, engine):
        first = engine.scheduled[0]
        assert first.setup_start == at(15)
        assert first.piece_completion_times[-1] == at(8, 20, day=6)
        assert first.run_end == at(8, 20, day=6)
        assert first.pause_start == at(17)
        assert first.pause_end == at(8, day=6)

    def test_second_operation_follows_paused_pieces(self, engine):
        second = engine.scheduled[1]
        assert second.setup_start == at(16, 20)
        assert second.piece_completion_times == [at(16, 31), at(16, 41), at(8, 1, day=6), at(8, 21, day=6)]
        assert second.run_end == at(8, 21, day=6)
        assert second.timing == '16H 1M (14M Work, 15H Holiday)'

    def test_schedule_valid(self, engine):
        assert engine.validation_report.is_valid
        assert len(engine.rows) == 2


class TestSummary:

    def test_print_summary(self, settings, make_order, capsys):
        engine = SchedulingEngine(settings)
        engine.run([make_order('PN1001', 4)])
        engine.print_summary()
        output = capsys.readouterr().out
        assert 'VMC SCHEDULING SUMMARY' in output
        assert 'VMC 1' in output

    def test_empty_run(self, settings):
        result = SchedulingEngine(settings).run([])
        assert result == {'rows': [], 'alerts': [],
                          'summary': {'totalOrders': 0, 'totalOperations': 0, 'completedSuccessfully': 0}}
