"""
Batch splitting utilities for distributed processing.

Splits work (files or event ranges) across multiple batch jobs.
Uses 1-indexed batch jobs to match the $PBS_ARRAY_INDEX convention.
"""

import logging

logger = logging.getLogger(__name__)


def _check_batch(batch_index: int, total_batches: int) -> tuple[int, int]:
    batch_index = int(batch_index)
    total_batches = int(total_batches)
    if total_batches < 1:
        raise ValueError(f"total_batches must be positive, got {total_batches}")
    if batch_index < 1 or batch_index > total_batches:
        raise ValueError(f"batch_index must be 1..{total_batches}, got {batch_index}")
    return batch_index, total_batches


def get_batch_range(total_items: int, batch_index: int, total_batches: int) -> tuple[int, int]:
    """
    Half-open [start, stop) range of items for a specific batch job.

    Uses even distribution with the last batch absorbing the remainder.

    Args:
        total_items: Number of items to split
        batch_index: This job's index (1-based)
        total_batches: Total number of batch jobs

    Returns:
        Tuple of (start, stop)
    """
    batch_index, total_batches = _check_batch(batch_index, total_batches)

    items_per_batch = total_items // total_batches
    start_idx = (batch_index - 1) * items_per_batch

    if batch_index == total_batches:
        end_idx = total_items  # Last batch gets remainder
    else:
        end_idx = start_idx + items_per_batch

    logger.debug(
        f"Batch {batch_index}/{total_batches}: items[{start_idx}:{end_idx}] "
        f"({end_idx - start_idx} of {total_items})"
    )
    return start_idx, end_idx


def get_batch_slice(items: list, batch_index: int, total_batches: int) -> list:
    """
    Extract the slice of items for a specific batch job.

    Args:
        items: Full list of items to split
        batch_index: This job's index (1-based)
        total_batches: Total number of batch jobs

    Returns:
        Slice of items for this batch job
    """
    if not items:
        _check_batch(batch_index, total_batches)
        return []
    start_idx, end_idx = get_batch_range(len(items), batch_index, total_batches)
    return items[start_idx:end_idx]
