"""Mailbox state - the ordered messages and the current selection."""

import threading
from typing import Iterable, List, Optional, Tuple

from rutt.core.models import MessageRecord
from rutt.utils.logging import get_logger

logger = get_logger(__name__)


class MailboxState:
    """Messages newest first plus a clamped selection index.

    This is what the terminal UI renders from. ``load``, ``move_selection``
    and ``mark_selected_read`` share one lock, so a loader running on a
    worker thread never interleaves with navigation.
    """

    def __init__(self):
        self._records: List[MessageRecord] = []
        self._selected: Optional[int] = None
        self._lock = threading.Lock()

    ## Read-only view

    @property
    def records(self) -> Tuple[MessageRecord, ...]:
        return tuple(self._records)

    @property
    def selected_index(self) -> Optional[int]:
        return self._selected

    @property
    def unread_count(self) -> int:
        return sum(1 for record in self._records if not record.is_read)

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    def current_selection(self) -> Optional[MessageRecord]:
        if self._selected is None:
            return None
        return self._records[self._selected]

    ## Mutations

    def load(self, records: Iterable[MessageRecord]) -> None:
        """Replace the contents with ``records``, newest first.

        Sorting is stable, so messages with equal timestamps keep their
        fetch order. The batch is sorted before the lock is taken; readers
        see either the old list or the new one.
        """
        ordered = sorted(records, key=lambda record: record.timestamp, reverse=True)

        with self._lock:
            self._records = ordered
            self._selected = 0 if ordered else None

        logger.debug(
            "Mailbox state loaded",
            extra={"messages": len(ordered), "unread": self.unread_count},
        )

    def move_selection(self, delta: int) -> Optional[int]:
        """Move the selection one step up (-1) or down (+1).

        Stops at either end without wrapping; does nothing on an empty
        mailbox.

        Returns:
            The selected index after the move
        """
        if delta not in (-1, 1):
            raise ValueError(f"Selection can only move by -1 or +1, got {delta}")

        with self._lock:
            if self._selected is None:
                return None
            self._selected = min(max(self._selected + delta, 0), len(self._records) - 1)
            return self._selected

    def mark_selected_read(self) -> Optional[MessageRecord]:
        """Mark the selected message read.

        Returns:
            The record if its flag changed, None if it was already read or
            nothing is selected
        """
        with self._lock:
            record = self.current_selection()
            if record is None or not record.mark_as_read():
                return None
            return record
