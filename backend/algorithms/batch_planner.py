"""
Batch Planner
Splits an order quantity into batches.

Modes:
- single-batch: the whole quantity in one batch
- custom-batch-size: fixed-size batches (default 300) plus a remainder batch
- auto-split (default): batch count driven by quantity and priority

Auto-split rules by total quantity Q:
- Q <= 250: one batch
- 250 < Q <= 500: ceil(Q/2) and the rest
- 500 < Q <= 1000: 3 batches for High/Urgent, else 2 or 3 by smaller remainder
- Q > 1000: ceil(Q/334) batches for High/Urgent, else ceil(Q/500)
"""

import math
from typing import List, Optional

from algorithms.models import Batch, Priority


SINGLE_BATCH = 'single-batch'
CUSTOM_BATCH_SIZE = 'custom-batch-size'
AUTO_SPLIT = 'auto-split'

DEFAULT_CUSTOM_BATCH_SIZE = 300


def _batch_id(index: int) -> str:
    return f"B{index + 1:02d}"


def _make_batches(sizes: List[int]) -> List[Batch]:
    return [Batch(_batch_id(i), size, i) for i, size in enumerate(sizes)]


def balanced_sizes(quantity: int, count: int) -> List[int]:
    """Near-equal sizes; remainder pieces go one per batch to the first batches."""
    count = max(1, min(count, quantity))
    base, remainder = divmod(quantity, count)
    return [base + (1 if i < remainder else 0) for i in range(count)]


def auto_split_count(quantity: int, priority: Priority) -> int:
    """Number of batches the auto-split rules give for a quantity."""
    if quantity <= 250:
        return 1
    if quantity <= 500:
        return 2
    if quantity <= 1000:
        if priority.is_rush:
            return 3
        # Smaller remainder wins; a tie keeps 2 batches
        return 3 if quantity % 3 < quantity % 2 else 2
    if priority.is_rush:
        return math.ceil(quantity / 334)
    return math.ceil(quantity / 500)


def _custom_size(custom_size, min_batch_size: Optional[int]) -> int:
    try:
        size = int(custom_size)
    except (TypeError, ValueError):
        size = DEFAULT_CUSTOM_BATCH_SIZE
    if size <= 0:
        size = DEFAULT_CUSTOM_BATCH_SIZE
    if min_batch_size and size < min_batch_size:
        size = int(min_batch_size)
    return size


def plan_batches(quantity: int, min_batch_size: Optional[int] = None,
                 priority: Priority = Priority.NORMAL, mode: str = AUTO_SPLIT,
                 custom_size: Optional[int] = None) -> List[Batch]:
    """
    Split an order quantity into batches.

    Args:
        quantity: Total order quantity (> 0)
        min_batch_size: Operation minimum batch size, floors the custom size
        priority: Order priority (High/Urgent split wider)
        mode: 'auto-split', 'single-batch' or 'custom-batch-size'
        custom_size: Batch size for custom mode (default 300)

    Returns:
        Batches B01, B02, ... whose quantities sum to `quantity`
    """
    quantity = int(quantity)
    if quantity <= 0:
        raise ValueError(f"Cannot plan batches for quantity {quantity}")
    priority = Priority.parse(priority)
    mode = (mode or AUTO_SPLIT).strip().lower()

    if mode == SINGLE_BATCH:
        return _make_batches([quantity])

    if mode == CUSTOM_BATCH_SIZE:
        size = _custom_size(custom_size, min_batch_size)
        sizes = []
        remaining = quantity
        while remaining > 0:
            take = min(size, remaining)
            sizes.append(take)
            remaining -= take
        return _make_batches(sizes)

    # Unknown modes fall through to auto-split
    if quantity <= 250:
        return _make_batches([quantity])
    if quantity <= 500:
        first = math.ceil(quantity / 2)
        return _make_batches([first, quantity - first])

    return _make_batches(balanced_sizes(quantity, auto_split_count(quantity, priority)))
