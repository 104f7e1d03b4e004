"""
Order Parser
Converts raw order and operation records into Order / Operation objects.

Record keys follow the Operation Master column names (OperationSeq,
SetupTime_Min, CycleTime_Min, Minimum_BatchSize, EligibleMachines) and the
order form names (partNumber, quantity, priority, dueDate, ...).
"""

import pandas as pd
from typing import Any, Dict, List, Optional, Tuple

from algorithms.models import Order, Operation


def _get(record: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First non-blank value among the given keys."""
    for key in keys:
        if key in record:
            value = record[key]
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if not isinstance(value, (str, list, tuple, dict)) and pd.isna(value):
                continue
            return value
    return default


def _to_float(value: Any, label: str, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number, got '{value}'")


def _to_int(value: Any, label: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a whole number, got '{value}'")


def parse_machine_list(value: Any) -> Tuple[str, ...]:
    """
    Machine ids from a comma-separated string or a list.

    'VMC 1,VMC 2, VMC 7' -> ('VMC 1', 'VMC 2', 'VMC 7')
    """
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(',')
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    elif pd.isna(value):
        return ()
    else:
        items = [value]
    return tuple(str(item).strip() for item in items if str(item).strip())


def parse_operation_record(record: Dict[str, Any]) -> Operation:
    """Build an Operation from an Operation Master record."""
    seq = _to_int(_get(record, 'OperationSeq', 'operationSeq', 'seq'), 'OperationSeq')
    if seq is None:
        raise ValueError(f"Operation record has no OperationSeq: {record}")

    name = _get(record, 'OperationName', 'operationName', 'name', default='')
    return Operation(
        seq=seq,
        name=str(name).strip() or f"Op{seq}",
        setup_minutes=_to_float(_get(record, 'SetupTime_Min', 'setupTime'), 'SetupTime_Min'),
        cycle_minutes=_to_float(_get(record, 'CycleTime_Min', 'cycleTime'), 'CycleTime_Min'),
        min_batch_size=_to_int(_get(record, 'Minimum_BatchSize', 'minBatchSize'), 'Minimum_BatchSize'),
        eligible_machines=parse_machine_list(_get(record, 'EligibleMachines', 'eligibleMachines')),
    )


def parse_operation_override(record: Dict[str, Any]) -> Tuple[Tuple[str, int], Dict[str, Any]]:
    """
    Parse one operation override.

    Returns:
        ((part_number, seq), {Operation field: value}) with only the
        fields present in the record
    """
    part_number = _get(record, 'partNumber', 'PartNumber')
    seq = _to_int(_get(record, 'OperationSeq', 'operationSeq'), 'OperationSeq')
    if part_number is None or seq is None:
        raise ValueError(f"Operation override needs a part number and OperationSeq: {record}")

    fields = {}
    setup = _get(record, 'SetupTime_Min', 'setupTime')
    if setup is not None:
        fields['setup_minutes'] = _to_float(setup, 'SetupTime_Min')
    cycle = _get(record, 'CycleTime_Min', 'cycleTime')
    if cycle is not None:
        fields['cycle_minutes'] = _to_float(cycle, 'CycleTime_Min')
    min_batch = _get(record, 'Minimum_BatchSize', 'minBatchSize')
    if min_batch is not None:
        fields['min_batch_size'] = _to_int(min_batch, 'Minimum_BatchSize')
    machines = _get(record, 'EligibleMachines', 'eligibleMachines')
    if machines is not None:
        fields['eligible_machines'] = parse_machine_list(machines)
    name = _get(record, 'OperationName', 'operationName')
    if name is not None:
        fields['name'] = str(name).strip()

    return (str(part_number).strip(), seq), fields


def parse_order_record(record: Dict[str, Any]) -> Order:
    """
    Build an Order from a raw order record.

    Raises ValueError when required fields are missing or malformed.
    """
    # Import here to avoid circular dependency
    from .settings_parser import parse_datetime, parse_range, parse_window

    part_number = _get(record, 'partNumber', 'PartNumber')
    if part_number is None:
        raise ValueError("Order record has no part number")
    part_number = str(part_number).strip()

    quantity = _to_int(_get(record, 'quantity', 'Quantity', 'Order_Quantity'), f"Order {part_number} quantity")
    if quantity is None:
        raise ValueError(f"Order {part_number} has no quantity")

    due_date = parse_datetime(_get(record, 'dueDate', 'DueDate'))
    if due_date is None:
        raise ValueError(f"Order {part_number} has no due date")

    operations = [parse_operation_record(op) for op in (record.get('operations') or [])]

    breakdown_period = None
    breakdown_text = _get(record, 'breakdownDateTime')
    if breakdown_text is not None:
        breakdown_period = parse_range(breakdown_text)

    breakdown_machine = _get(record, 'breakdownMachine')

    return Order(
        part_number=part_number,
        quantity=quantity,
        due_date=due_date,
        priority=_get(record, 'priority', 'Priority', default='Normal'),
        operations=operations,
        start_date=parse_datetime(_get(record, 'startDateTime', 'startDate')),
        breakdown_machine=str(breakdown_machine).strip() if breakdown_machine is not None else None,
        breakdown_period=breakdown_period,
        setup_window=parse_window(_get(record, 'setupWindow')),
        batch_mode=str(_get(record, 'batchMode', default='auto-split')).strip(),
        custom_batch_size=_to_int(_get(record, 'customBatchSize'), 'customBatchSize'),
    )


def parse_order_records(records: List[Dict[str, Any]]) -> Tuple[List[Order], List[str]]:
    """
    Parse many order records, collecting errors instead of stopping.

    Returns:
        (orders, errors)
    """
    orders = []
    errors = []
    for i, record in enumerate(records, 1):
        try:
            orders.append(parse_order_record(record))
        except ValueError as e:
            errors.append(f"Order {i}: {e}")
    return orders, errors
