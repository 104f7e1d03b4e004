#!/usr/bin/env python
"""
VMC Scheduler - Command-line Launcher

Loads the Operation Master and order book from the data folder, schedules
all orders and prints the summary, alerts and validation report.

Usage:
    python run_scheduler.py

Environment Variables (set in .env file):
    See backend/scheduler_config.py. Set SCHEDULE_OUTPUT to write the
    schedule rows to CSV.
"""

import os
import sys

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'backend'))

import pandas as pd

from scheduler_config import SchedulerConfig
from data_loader import DataLoader
from algorithms.engine import SchedulingEngine
from parsers.settings_parser import parse_global_settings


def main() -> int:
    config = SchedulerConfig.from_env()

    loader = DataLoader(config.data_dir)
    if not loader.load_all():
        print("=" * 60)
        print(f"ERROR: Could not load input files from {config.data_dir}")
        print("Set SCHEDULER_DATA_DIR in your .env file.")
        print("=" * 60)
        return 1

    settings = parse_global_settings(config.to_settings())
    engine = SchedulingEngine(settings, machines=config.machines or None)
    result = engine.run(engine.parse_orders(loader.order_records))

    engine.print_summary()
    if engine.validation_report is not None:
        engine.validation_report.print_report()

    if config.output_path:
        pd.DataFrame(result['rows']).to_csv(config.output_path, index=False)
        print(f"\n[OK] Schedule written to {config.output_path} ({len(result['rows'])} rows)")

    return 0


if __name__ == '__main__':
    sys.exit(main())
