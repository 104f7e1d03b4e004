"""
Scheduler Configuration
Environment-driven settings for command-line runs (.env supported).

Environment Variables:
    - SCHEDULER_DATA_DIR: Folder holding Operation Master / order book files (default: data)
    - SCHEDULE_START: Run start, e.g. '2025-09-05 07:00' (default: now)
    - SETUP_WINDOW: Daily setup window 'HH:MM-HH:MM' (default: 06:00-22:00)
    - PRODUCTION_WINDOW: '24x7' or 'HH:MM-HH:MM' (default: 24x7)
    - HOLIDAYS: ';'-separated dates or 'start → end' ranges
    - BREAKDOWN_MACHINES: ','-separated machine ids
    - BREAKDOWN_WINDOW: 'start → end' range for the breakdown machines
    - MACHINES: ','-separated machine ids (default: VMC 1 - VMC 7)
    - SCHEDULE_OUTPUT: CSV path for the schedule rows (optional)
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional

from dotenv import load_dotenv


def _split(value: Optional[str], separator: str) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(separator) if item.strip()]


@dataclass
class SchedulerConfig:
    """Settings for one command-line scheduling run."""
    data_dir: str = 'data'
    start: Optional[str] = None
    setup_window: Optional[str] = None
    production_window: Optional[str] = None
    holidays: List[str] = field(default_factory=list)
    breakdown_machines: List[str] = field(default_factory=list)
    breakdown_window: Optional[str] = None
    machines: List[str] = field(default_factory=list)  # Empty = default machine list
    output_path: Optional[str] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> 'SchedulerConfig':
        """Load .env (if present) and read the SCHEDULE* variables."""
        load_dotenv(dotenv_path)
        return cls(
            data_dir=os.environ.get('SCHEDULER_DATA_DIR', 'data'),
            start=os.environ.get('SCHEDULE_START') or None,
            setup_window=os.environ.get('SETUP_WINDOW') or None,
            production_window=os.environ.get('PRODUCTION_WINDOW') or None,
            holidays=_split(os.environ.get('HOLIDAYS'), ';'),
            breakdown_machines=_split(os.environ.get('BREAKDOWN_MACHINES'), ','),
            breakdown_window=os.environ.get('BREAKDOWN_WINDOW') or None,
            machines=_split(os.environ.get('MACHINES'), ','),
            output_path=os.environ.get('SCHEDULE_OUTPUT') or None,
        )

    def to_settings(self) -> Dict[str, Any]:
        """Raw settings object for parse_global_settings."""
        settings = {
            'holidays': list(self.holidays),
            'breakdownMachines': list(self.breakdown_machines),
        }
        if self.start:
            settings['startDateTime'] = self.start
        if self.setup_window:
            settings['setupWindow'] = self.setup_window
        if self.production_window:
            settings['productionWindow'] = self.production_window
        if self.breakdown_window:
            settings['breakdownDateTime'] = self.breakdown_window
        return settings
