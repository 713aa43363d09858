from datetime import datetime
from typing import List, Optional

from rich.text import Text
from textual import events
from textual.widgets import Static

from rutt.core.mailbox import MailboxState
from rutt.tui.formatting import Viewport, format_row
from rutt.utils.config import UIConfig


class MessageList(Static):
    """Renders the visible slice of the mailbox, newest first.

    Only the rows inside the viewport are drawn; the viewport follows the
    selection held by the mailbox state.
    """

    def __init__(self, state: MailboxState, ui: UIConfig):
        super().__init__(id="message-list")
        self.state = state
        self.ui = ui
        self.viewport = Viewport()
        self.rows: List[Text] = []

    @property
    def page_size(self) -> int:
        return self.viewport.height

    def on_resize(self, event: events.Resize) -> None:
        self.viewport.height = max(1, event.size.height)
        self.refresh_view()

    def refresh_view(self, now: Optional[datetime] = None) -> None:
        """Redraw from the current state."""
        records = self.state.records
        selected = self.state.selected_index
        self.viewport.follow(selected, len(records))

        if not records:
            self.rows = []
            self.update(Text("No messages.", style="dim"))
            return

        now = now or datetime.now().astimezone()
        top = self.viewport.top
        self.rows = [
            format_row(
                record,
                now,
                self.ui.sender_width,
                self.ui.subject_width,
                selected=(top + offset == selected),
            )
            for offset, record in enumerate(records[top : top + self.viewport.height])
        ]
        self.update(Text("\n").join(self.rows))
