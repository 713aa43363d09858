"""Sequence-range selection for the most recent messages."""

from typing import Optional

from rutt.core.models import FetchRange


def compute_range(total_count: int, window_size: int) -> Optional[FetchRange]:
    """Pick the sequence range covering the newest ``window_size`` messages.

    Args:
        total_count: Number of messages the server reported for the mailbox
        window_size: Maximum number of messages to fetch

    Returns:
        FetchRange ending at ``total_count``, or None for an empty mailbox

    Raises:
        ValueError: If ``total_count`` is negative or ``window_size`` is below 1
    """
    if total_count < 0:
        raise ValueError(f"Message count cannot be negative: {total_count}")
    if window_size < 1:
        raise ValueError(f"Window size must be at least 1: {window_size}")

    if total_count == 0:
        return None

    return FetchRange(low=max(1, total_count - window_size + 1), high=total_count)
