"""
Settings Parser
Parses raw scheduler settings into typed values.

Supported date formats: DD/MM/YYYY[ HH:MM], YYYY-MM-DD[ HH:MM] and ISO
timestamps (YYYY-MM-DDTHH:MM[:SS][Z]). Ranges use the '→' separator.
Windows are 'HH:MM-HH:MM', {'start': ..., 'end': ...} or '24x7'.
"""

import re
import pandas as pd
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from algorithms.models import Interval
from algorithms.shift_calendar import GlobalSettings, TimeWindow

from .order_parser import parse_machine_list, parse_operation_override


RANGE_SEPARATOR = '→'

DATE_FORMATS = [
    '%d/%m/%Y %H:%M',
    '%d/%m/%Y',
    '%Y-%m-%d %H:%M',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d',
    '%Y-%m-%dT%H:%M',
    '%Y-%m-%dT%H:%M:%S',
]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a date/time value into a naive datetime.

    Returns None for blank values; raises ValueError for text that matches
    no supported format.
    """
    if _is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        if value.tzinfo is not None:
            value = value.tz_convert(None)
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    # ISO variants with zone designators ('2025-09-05T07:00Z') are left to pandas
    try:
        stamp = pd.to_datetime(text, dayfirst='/' in text)
    except (ValueError, TypeError, OverflowError):
        raise ValueError(f"Unrecognized date/time '{value}'")
    if pd.isna(stamp):
        raise ValueError(f"Unrecognized date/time '{value}'")
    if stamp.tzinfo is not None:
        stamp = stamp.tz_convert(None)
    return stamp.to_pydatetime()


def parse_range(text: str) -> Interval:
    """Parse 'start → end' into an Interval."""
    if RANGE_SEPARATOR not in str(text):
        raise ValueError(f"Range '{text}' is missing the '{RANGE_SEPARATOR}' separator")
    start_text, end_text = [part.strip() for part in str(text).split(RANGE_SEPARATOR, 1)]
    start = parse_datetime(start_text)
    end = parse_datetime(end_text)
    if start is None or end is None:
        raise ValueError(f"Range '{text}' needs both a start and an end")
    return Interval(start, end)


def parse_holidays(holidays: Any) -> List[Interval]:
    """
    Parse holiday entries.

    Each entry is a 'start → end' range, a single date (whole day,
    00:00 - 23:59:59) or a {'start': ..., 'end': ...} mapping.
    """
    if not holidays:
        return []
    if isinstance(holidays, str):
        holidays = [h for h in re.split(r'[;\n]', holidays) if h.strip()]

    periods = []
    for entry in holidays:
        try:
            if isinstance(entry, dict):
                periods.append(Interval(parse_datetime(entry.get('start')), parse_datetime(entry.get('end'))))
            elif isinstance(entry, str) and RANGE_SEPARATOR in entry:
                periods.append(parse_range(entry))
            else:
                day = parse_datetime(entry)
                if day is None:
                    continue
                day = day.replace(hour=0, minute=0, second=0, microsecond=0)
                periods.append(Interval(day, day + timedelta(hours=23, minutes=59, seconds=59)))
        except (ValueError, TypeError) as e:
            print(f"[WARN] Skipping holiday '{entry}': {e}")
    return periods


def parse_breakdown_periods(machines: Any, date_time_range: Any) -> Dict[str, List[Interval]]:
    """One shared breakdown range applied to each listed machine."""
    machine_list = parse_machine_list(machines)
    if not machine_list or _is_blank(date_time_range):
        return {}
    try:
        period = parse_range(date_time_range)
    except ValueError as e:
        print(f"[WARN] Ignoring breakdown range '{date_time_range}': {e}")
        return {}
    return {machine: [period] for machine in machine_list}


def parse_time_of_day(value: Any) -> int:
    """'HH:MM' text or a number of hours -> minutes since midnight."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(round(float(value) * 60))
    match = re.fullmatch(r'\s*(\d{1,2})(?::(\d{2}))?\s*', str(value))
    if not match:
        raise ValueError(f"Invalid time of day '{value}'")
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    if hours > 24 or minutes > 59 or (hours == 24 and minutes):
        raise ValueError(f"Invalid time of day '{value}'")
    return hours * 60 + minutes


def parse_window(value: Any, default: Optional[TimeWindow] = None) -> Optional[TimeWindow]:
    """
    Parse a daily window.

    Accepts '24x7', 'HH:MM-HH:MM', {'start': 'HH:MM', 'end': 'HH:MM'} or
    {'type': '24x7'}. Blank values give `default`; invalid ones print a
    warning and give `default`.
    """
    if isinstance(value, TimeWindow):
        return value
    if not isinstance(value, dict) and _is_blank(value):
        return default

    try:
        if isinstance(value, dict):
            if str(value.get('type', '')).lower() == '24x7':
                return TimeWindow.full_day()
            return TimeWindow(parse_time_of_day(value['start']), parse_time_of_day(value['end']))

        text = str(value).strip()
        if text.lower() in ('24x7', '24/7', '24x7x365'):
            return TimeWindow.full_day()
        start_text, end_text = text.split('-', 1)
        return TimeWindow(parse_time_of_day(start_text), parse_time_of_day(end_text))
    except (KeyError, ValueError) as e:
        print(f"[WARN] Invalid window '{value}' ({e}), using {default}")
        return default


def parse_global_settings(raw: Dict[str, Any]) -> GlobalSettings:
    """
    Build GlobalSettings from the raw settings object.

    Args:
        raw: {'startDateTime' | 'startDate' + 'startTime', 'holidays',
              'breakdownMachines', 'breakdownDateTime', 'setupWindow',
              'productionWindow', 'operationOverrides'}

    Returns:
        GlobalSettings
    """
    raw = raw or {}

    start = parse_datetime(raw.get('startDateTime'))
    if start is None and raw.get('startDate'):
        start = parse_datetime(f"{str(raw['startDate']).strip()} {str(raw.get('startTime') or '00:00').strip()}")

    breakdown_machines = list(parse_machine_list(raw.get('breakdownMachines')))

    overrides = {}
    for entry in raw.get('operationOverrides') or []:
        key, fields = parse_operation_override(entry)
        overrides[key] = fields

    return GlobalSettings(
        start_datetime=start,
        holidays=parse_holidays(raw.get('holidays') or []),
        breakdown_machines=breakdown_machines,
        breakdown_periods=parse_breakdown_periods(breakdown_machines, raw.get('breakdownDateTime')),
        setup_window=parse_window(raw.get('setupWindow'), TimeWindow()),
        production_window=parse_window(raw.get('productionWindow'), TimeWindow.full_day()),
        operation_overrides=overrides,
    )
