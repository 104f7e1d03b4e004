"""Shared test fixtures for scheduler tests."""

import os
import sys
import pytest
from datetime import datetime, timedelta

# Add backend to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))


RUN_START = datetime(2025, 9, 5, 7, 0)


def _op(part, seq, setup, cycle, min_batch, machines):
    return {
        'PartNumber': part,
        'OperationSeq': seq,
        'OperationName': 'Facing ',
        'SetupTime_Min': setup,
        'Operater': '',
        'CycleTime_Min': cycle,
        'Minimum_BatchSize': min_batch,
        'EligibleMachines': machines,
    }


@pytest.fixture
def op_master_records():
    """Operation Master rows in the shop's export shape."""
    all_machines = 'VMC 1,VMC 2,VMC 3,VMC 4,VMC 5,VMC 6, VMC 7'
    return [
        _op('PN1001', 1, 70, 18, 175, 'VMC 1,VMC 2,VMC 3,VMC 4'),
        _op('PN1001', 2, 70, 10, 175, 'VMC 1,VMC 2,VMC 7,VMC 4'),
        _op('PN1001', 3, 70, 1, 175, all_machines),
        _op('PN1001', 4, 70, 1, 175, all_machines),
        _op('PN2001', 1, 80, 16, 50, all_machines),
        _op('PN2001', 2, 80, 7, 50, 'VMC 1,VMC 2,VMC 7,VMC 4'),
        _op('PN2001', 3, 80, 4, 50, 'VMC 2,VMC 7,VMC 4,VMC 5,VMC 6'),
        _op('PN3001', 1, 60, 20, '', 'VMC 2,VMC 7,VMC 4,VMC 5,VMC 6'),
        _op('PN3001', 2, 60, 25, '', all_machines),
    ]


@pytest.fixture
def operation_master(op_master_records):
    """Operation Master grouped by part number."""
    from parsers.operation_master_parser import operation_master_from_records
    return operation_master_from_records(op_master_records)


@pytest.fixture
def settings():
    """Run settings starting Friday 2025-09-05 07:00 with default windows."""
    from algorithms.shift_calendar import GlobalSettings
    return GlobalSettings(start_datetime=RUN_START)


@pytest.fixture
def calendar():
    """Default shop calendar (A/B morning, C/D afternoon, 06-22 setups, 24x7 run)."""
    from algorithms.shift_calendar import ShiftCalendar
    return ShiftCalendar()


@pytest.fixture
def make_order_record(operation_master):
    """Factory for raw order records with the part's routing attached."""
    def _make(part_number, quantity, due_date=None, priority='Normal', **extra):
        record = {
            'partNumber': part_number,
            'quantity': quantity,
            'priority': priority,
            'dueDate': due_date or RUN_START + timedelta(days=5),
            'operations': [dict(op) for op in operation_master.get(part_number, [])],
        }
        record.update(extra)
        return record
    return _make


@pytest.fixture
def make_order(make_order_record):
    """Factory for parsed Order objects."""
    from parsers.order_parser import parse_order_record

    def _make(part_number, quantity, due_date=None, priority='Normal', **extra):
        return parse_order_record(make_order_record(part_number, quantity, due_date, priority, **extra))
    return _make
