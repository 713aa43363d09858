from textual.containers import VerticalScroll
from textual.widgets import Static

from rutt.core.models import MessageRecord
from rutt.tui.formatting import format_details


class MessageViewer(VerticalScroll):
    """Displays full content of the selected message."""

    # keys are routed through the app bindings
    can_focus = False

    def __init__(self):
        super().__init__(id="message-viewer")
        self.content = Static("No message selected.", classes="message-body")

    def compose(self):
        yield self.content

    def show_message(self, message: MessageRecord):
        """Render the full selected message, scrolled to the top."""
        if message is None:
            self.content.update("No message selected.")
        else:
            self.content.update(format_details(message))
        self.scroll_home(animate=False)
