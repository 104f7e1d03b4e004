"""
Operation Master Parser
Parses the Operation Master workbook (per-part routings) and order books.

Operation Master columns:
    PartNumber, OperationSeq, OperationName, SetupTime_Min, CycleTime_Min,
    Minimum_BatchSize, EligibleMachines (comma-separated machine ids)

Order book columns:
    PartNumber, Quantity, Priority, DueDate, and optionally StartDateTime,
    BreakdownMachine, BreakdownDateTime, BatchMode, CustomBatchSize
"""

import os
import pandas as pd
from typing import List, Dict, Any, Tuple

from .order_parser import parse_machine_list
from .settings_parser import parse_datetime


MASTER_REQUIRED_COLUMNS = ['PartNumber', 'OperationSeq', 'SetupTime_Min', 'CycleTime_Min']

# Order book column -> order record key
ORDER_COLUMNS = {
    'PartNumber': 'partNumber',
    'Quantity': 'quantity',
    'Priority': 'priority',
    'DueDate': 'dueDate',
    'StartDateTime': 'startDateTime',
    'BreakdownMachine': 'breakdownMachine',
    'BreakdownDateTime': 'breakdownDateTime',
    'BatchMode': 'batchMode',
    'CustomBatchSize': 'customBatchSize',
}


def _read_table(filepath: str, sheet_name=0) -> pd.DataFrame:
    """Excel or CSV by file extension, with stripped column names."""
    if os.path.splitext(filepath)[1].lower() == '.csv':
        df = pd.read_csv(filepath)
    else:
        df = pd.read_excel(filepath, sheet_name=sheet_name)
    df.columns = [str(col).strip() for col in df.columns]
    return df


def _clean(value: Any) -> Any:
    """NaN -> None, whole floats -> int, stripped strings."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if pd.isna(value):
        return None
    return value


def operation_master_from_dataframe(df: pd.DataFrame) -> Dict[str, List[Dict[str, Any]]]:
    """
    Group Operation Master rows by part number.

    Returns:
        {part_number: [operation record, ...]} sorted by OperationSeq
    """
    missing = [col for col in MASTER_REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Operation Master is missing columns: {missing}")

    master = {}
    errors = []

    for index, row in df.iterrows():
        try:
            part_number = _clean(row.get('PartNumber'))
            seq = _clean(row.get('OperationSeq'))
            if part_number is None or seq is None:
                errors.append(f"Row {index + 2}: Missing PartNumber or OperationSeq")
                continue

            min_batch = _clean(row.get('Minimum_BatchSize'))
            record = {
                'PartNumber': str(part_number),
                'OperationSeq': int(float(seq)),
                'OperationName': str(_clean(row.get('OperationName')) or ''),
                'SetupTime_Min': float(_clean(row.get('SetupTime_Min')) or 0),
                'CycleTime_Min': float(_clean(row.get('CycleTime_Min')) or 0),
                'Minimum_BatchSize': int(float(min_batch)) if min_batch is not None else None,
                'EligibleMachines': list(parse_machine_list(_clean(row.get('EligibleMachines')))),
            }
            master.setdefault(record['PartNumber'], []).append(record)

        except (TypeError, ValueError) as e:
            errors.append(f"Row {index + 2}: Error parsing - {str(e)}")
            continue

    for operations in master.values():
        operations.sort(key=lambda op: op['OperationSeq'])

    print(f"  - Parts in Operation Master: {len(master)}")
    if errors:
        print(f"  - Errors: {len(errors)}")
        for error in errors[:10]:
            print(f"    - {error}")

    return master


def operation_master_from_records(records: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Same as parse_operation_master for in-memory records."""
    if not records:
        return {}
    df = pd.DataFrame(records)
    df.columns = [str(col).strip() for col in df.columns]
    return operation_master_from_dataframe(df)


def parse_operation_master(filepath: str, sheet_name=0) -> Dict[str, List[Dict[str, Any]]]:
    """
    Parse the Operation Master file (.xlsx or .csv).

    Args:
        filepath: Path to the file
        sheet_name: Sheet to read for Excel files (default: first sheet)

    Returns:
        {part_number: [operation record, ...]}
    """
    try:
        df = _read_table(filepath, sheet_name)
        print(f"Loaded {len(df)} rows from Operation Master")
        return operation_master_from_dataframe(df)

    except Exception as e:
        print(f"Error reading Operation Master: {str(e)}")
        raise


def parse_order_book(filepath: str, sheet_name=0) -> List[Dict[str, Any]]:
    """
    Parse an order book file (.xlsx or .csv) into raw order records.

    Rows without a part number are skipped. Dates are normalized to
    datetimes; other values are passed through for parse_order_record.
    """
    try:
        df = _read_table(filepath, sheet_name)
        print(f"Loaded {len(df)} rows from order book")

        orders = []
        skipped = 0
        for _, row in df.iterrows():
            record = {}
            for column, key in ORDER_COLUMNS.items():
                value = _clean(row.get(column))
                if value is None:
                    continue
                if key in ('dueDate', 'startDateTime'):
                    value = parse_datetime(value)
                elif key == 'partNumber':
                    value = str(value)
                record[key] = value

            if 'partNumber' not in record:
                skipped += 1
                continue
            orders.append(record)

        print(f"  - Orders: {len(orders)}")
        if skipped:
            print(f"  - Skipped rows without PartNumber: {skipped}")
        return orders

    except Exception as e:
        print(f"Error reading order book: {str(e)}")
        raise


def build_order_records(order_rows: List[Dict[str, Any]],
                        master: Dict[str, List[Dict[str, Any]]]) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Attach Operation Master routings to order rows.

    Orders for unknown parts are kept with an empty operation list so the
    scheduler reports them; their part numbers are returned as warnings.

    Returns:
        (order records, warnings)
    """
    records = []
    warnings = []
    for row in order_rows:
        record = dict(row)
        operations = master.get(str(record.get('partNumber')), [])
        if not operations:
            warnings.append(f"No Operation Master routing for part {record.get('partNumber')}")
        record['operations'] = [dict(op) for op in operations]
        records.append(record)
    return records, warnings


if __name__ == "__main__":
    import sys

    test_file = sys.argv[1] if len(sys.argv) > 1 else "../../data/Operation Master.xlsx"
    master = parse_operation_master(test_file)
    for part, operations in list(master.items())[:5]:
        print(f"\n{part}:")
        for op in operations:
            print(f"  Op{op['OperationSeq']} {op['OperationName']}: setup {op['SetupTime_Min']} min, "
                  f"cycle {op['CycleTime_Min']} min, machines {', '.join(op['EligibleMachines'])}")
