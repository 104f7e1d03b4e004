"""
Data Loader
Loads and cross-checks the Operation Master and order book files.
"""

import os
import glob
from pathlib import Path
from typing import Dict, List, Any, Optional

from parsers import parse_operation_master, parse_order_book, build_order_records


MASTER_PATTERNS = ["Operation Master*.xlsx", "Operation Master*.csv", "OP_MASTER*.xlsx", "OP_MASTER*.csv"]
ORDER_PATTERNS = ["Orders*.xlsx", "Orders*.csv", "Order Book*.xlsx", "Order Book*.csv"]


class DataLoader:
    """Manages loading and validation of the scheduler input files."""

    def __init__(self, data_dir: str = "data"):
        self.data_dir = Path(data_dir)
        self.operation_master = {}  # part_number -> [operation record, ...]
        self.order_rows = []  # Raw order book rows
        self.order_records = []  # Order rows with routings attached
        self.warnings = []
        self.validation_results = {}

    def _find_first(self, patterns: List[str]) -> Optional[Path]:
        """
        Newest file for the first pattern that matches anything.

        Spaces and underscores in a pattern are interchangeable, so
        "Operation Master*.xlsx" also finds "Operation_Master_0905.xlsx".
        """
        for pattern in patterns:
            variants = {pattern, pattern.replace(' ', '_'), pattern.replace('_', ' ')}
            matches = [m for variant in variants for m in glob.glob(str(self.data_dir / variant))]
            if matches:
                return Path(max(matches, key=os.path.getmtime))
        return None

    def load_operation_master(self, filepath: Optional[str] = None) -> bool:
        """
        Load the Operation Master.

        Args:
            filepath: Optional explicit filepath. If None, finds most recent file.

        Returns:
            True if loaded successfully, False otherwise
        """
        master_file = Path(filepath) if filepath else self._find_first(MASTER_PATTERNS)
        if not master_file or not master_file.exists():
            print("[ERROR] No Operation Master file found!")
            return False

        print(f"  Loading: {master_file.name}")
        self.operation_master = parse_operation_master(str(master_file))
        print(f"  [OK] Loaded routings for {len(self.operation_master)} parts")
        return bool(self.operation_master)

    def load_orders(self, filepath: Optional[str] = None) -> bool:
        """
        Load the order book.

        Args:
            filepath: Optional explicit filepath. If None, finds most recent file.

        Returns:
            True if loaded successfully, False otherwise
        """
        order_file = Path(filepath) if filepath else self._find_first(ORDER_PATTERNS)
        if not order_file or not order_file.exists():
            print("[ERROR] No order book file found!")
            return False

        print(f"  Loading: {order_file.name}")
        self.order_rows = parse_order_book(str(order_file))
        print(f"  [OK] Loaded {len(self.order_rows)} orders")
        return True

    def load_all(self, master_file: Optional[str] = None, order_file: Optional[str] = None) -> bool:
        """
        Load all data files and attach routings to orders.

        Returns:
            True if successful, False if errors
        """
        print("=" * 70)
        print("LOADING ALL DATA FILES")
        print("=" * 70)

        try:
            print("\n[1/3] Loading Operation Master...")
            if not self.load_operation_master(master_file):
                return False

            print("\n[2/3] Loading order book...")
            if not self.load_orders(order_file):
                return False

            print("\n[3/3] Cross-validating data...")
            self.order_records, self.warnings = build_order_records(self.order_rows, self.operation_master)
            self._cross_validate()
            return True

        except Exception as e:
            print(f"\n[ERROR] ERROR loading data: {str(e)}")
            import traceback
            traceback.print_exc()
            return False

    def _cross_validate(self):
        """Report orders whose part has no routing."""
        unmapped = sorted({str(r.get('partNumber')) for r in self.order_records if not r['operations']})
        self.validation_results['unmapped_parts'] = unmapped
        if unmapped:
            print(f"\n[WARN]  WARNING: {len(unmapped)} part numbers in orders not found in Operation Master")
            print(f"   Examples: {unmapped[:5]}")
        else:
            print("\n[OK] All order part numbers found in Operation Master")

    def get_summary(self) -> Dict[str, Any]:
        """Get summary of loaded data."""
        operation_count = sum(len(ops) for ops in self.operation_master.values())
        return {
            'orders': {
                'total': len(self.order_records),
                'unmapped': len(self.validation_results.get('unmapped_parts', [])),
            },
            'parts': {
                'total': len(self.operation_master),
                'operations': operation_count,
            },
        }
