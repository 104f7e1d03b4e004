"""
Data parsers package initialization.

Contents:
- settings_parser: dates, ranges, windows and global settings
- order_parser: order and operation records
- operation_master_parser: Operation Master and order book files (pandas)
"""

from .order_parser import (
    parse_machine_list, parse_operation_record, parse_operation_override,
    parse_order_record, parse_order_records,
)
from .settings_parser import (
    parse_datetime, parse_range, parse_holidays, parse_breakdown_periods,
    parse_window, parse_global_settings,
)
from .operation_master_parser import (
    parse_operation_master, operation_master_from_records, parse_order_book, build_order_records,
)

__all__ = [
    'parse_machine_list',
    'parse_operation_record',
    'parse_operation_override',
    'parse_order_record',
    'parse_order_records',
    'parse_datetime',
    'parse_range',
    'parse_holidays',
    'parse_breakdown_periods',
    'parse_window',
    'parse_global_settings',
    'parse_operation_master',
    'operation_master_from_records',
    'parse_order_book',
    'build_order_records'
]
