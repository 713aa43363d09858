"""Text helpers for the message list and detail view."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from rich.text import Text

from rutt.core.mailbox import format_date
from rutt.core.models import MessageRecord

ELLIPSIS = "..."
DATE_WIDTH = 10


def truncate(text: str, width: int) -> str:
    """Cut ``text`` to ``width`` characters, ending in "..." when shortened."""
    if width < len(ELLIPSIS):
        raise ValueError(f"width must be at least {len(ELLIPSIS)}, got {width}")
    if len(text) <= width:
        return text
    return text[: width - len(ELLIPSIS)] + ELLIPSIS


def status_marker(record: MessageRecord) -> str:
    return "R" if record.is_read else "N"


def format_row(
    record: MessageRecord,
    now: datetime,
    sender_width: int,
    subject_width: int,
    selected: bool = False,
) -> Text:
    """One list line: ``[N]   08:00 | sender | subject``."""
    row = Text(no_wrap=True, overflow="ellipsis")
    row.append("> " if selected else "  ")
    row.append("[")
    if record.is_read:
        row.append(status_marker(record), style="dim")
    else:
        row.append(status_marker(record), style="bold yellow")
    row.append("] ")
    row.append(format_date(record.timestamp, now).rjust(DATE_WIDTH), style="blue")
    row.append(" │ ")
    row.append(truncate(record.sender, sender_width).ljust(sender_width), style="green")
    row.append(" │ ")
    row.append(
        truncate(record.subject, subject_width),
        style=None if record.is_read else "yellow",
    )
    if selected:
        row.stylize("bold reverse")
    return row


def format_details(record: MessageRecord) -> Text:
    """Header block and body for the detail view."""
    details = Text()
    fields = [
        ("From", record.sender),
        ("To", record.to),
        ("Cc", record.cc),
        ("Bcc", record.bcc),
        ("Subject", record.subject),
        ("Date", record.timestamp.astimezone().strftime("%Y/%m/%d %H:%M")),
        ("Status", "Read" if record.is_read else "Unread"),
    ]
    for label, value in fields:
        # recipient lines only when present
        if value is None:
            continue
        details.append(f"{label}: ", style="bold cyan")
        details.append(f"{value}\n")

    details.append("\n")
    details.append(record.body)
    return details


@dataclass
class Viewport:
    """The window of list rows currently on screen.

    ``top`` follows the selection so it always stays visible.
    """

    height: int = 20
    top: int = 0

    def follow(self, selected: Optional[int], total: int) -> None:
        if selected is None or total == 0:
            self.top = 0
            return
        if selected < self.top:
            self.top = selected
        elif selected >= self.top + self.height:
            self.top = selected - self.height + 1
        self.top = max(0, min(self.top, max(0, total - self.height)))

    def scroll(self, delta: int, total: int) -> None:
        """Shift the window by ``delta`` rows, independent of the selection."""
        self.top = max(0, min(self.top + delta, max(0, total - self.height)))

    def clamp(self, selected: int) -> int:
        """Nearest row to ``selected`` that is on screen."""
        return max(self.top, min(selected, self.top + self.height - 1))

    def visible_count(self, total: int) -> int:
        return max(0, min(self.height, total - self.top))

    def page_top(self) -> int:
        return self.top

    def page_middle(self, total: int) -> int:
        return self.top + max(0, self.visible_count(total) - 1) // 2

    def page_bottom(self, total: int) -> int:
        return self.top + max(0, self.visible_count(total) - 1)
