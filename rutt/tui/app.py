from typing import Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Header

from rutt.core.mail.fetch import MailboxService
from rutt.utils.config import UIConfig
from rutt.utils.errors import FetchError, MailboxError, SessionError, format_error_message
from rutt.utils.logging import get_logger

from .widgets.hint_bar import HintBar
from .widgets.message_list import MessageList
from .widgets.message_viewer import MessageViewer

logger = get_logger(__name__)


class RuttApp(App):
    CSS_PATH = "styles.tcss"
    TITLE = "rutt"

    BINDINGS = [
        Binding("j,down,ctrl+n", "cursor_down", "Down", show=False),
        Binding("k,up,ctrl+p", "cursor_up", "Up", show=False),
        Binding("ctrl+f", "page_down", "Page down", show=False),
        Binding("ctrl+b", "page_up", "Page up", show=False),
        Binding("ctrl+d", "half_page_down", "Half page down", show=False),
        Binding("ctrl+u", "half_page_up", "Half page up", show=False),
        Binding("ctrl+e", "line_down", "Scroll down", show=False),
        Binding("ctrl+y", "line_up", "Scroll up", show=False),
        Binding("H", "screen_top", "Top of screen", show=False),
        Binding("M", "screen_middle", "Middle of screen", show=False),
        Binding("L", "screen_bottom", "Bottom of screen", show=False),
        Binding("g", "first", "First", show=False),
        Binding("G", "last", "Last", show=False),
        Binding("enter", "open", "Open"),
        Binding("r", "reload", "Reload"),
        Binding("q,escape", "back_or_quit", "Back/Quit"),
        Binding("backspace", "back", "Back", show=False),
    ]

    def __init__(self, service: MailboxService, ui: Optional[UIConfig] = None):
        super().__init__()
        self.service = service
        self.state = service.state
        self.ui = ui or service.config.ui
        self.message_list = MessageList(self.state, self.ui)
        self.message_viewer = MessageViewer()
        self.hint_bar = HintBar()
        self.showing_detail = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield self.message_list
        yield self.message_viewer
        yield self.hint_bar

    # --- Event Handlers ---
    def on_mount(self) -> None:
        if self.ui.theme in self.available_themes:
            self.theme = self.ui.theme
        else:
            logger.warning(f"Unknown theme '{self.ui.theme}', keeping default")
        self.message_viewer.display = False
        self._refresh_list()

    def _refresh_list(self) -> None:
        self.sub_title = (
            f"{self.service.mailbox} - {len(self.state)} emails, "
            f"{self.state.unread_count} unread"
        )
        self.message_list.refresh_view()

    def _move(self, delta: int) -> None:
        """Step the selection ``delta`` rows, one move at a time."""
        step = 1 if delta > 0 else -1
        for _ in range(abs(delta)):
            before = self.state.selected_index
            if self.state.move_selection(step) == before:
                break
        self._refresh_list()

    def _jump_to(self, index: int) -> None:
        selected = self.state.selected_index
        if selected is None:
            return
        self._move(index - selected)

    ## List navigation, scrolling in the detail view

    def action_cursor_down(self) -> None:
        if self.showing_detail:
            self.message_viewer.scroll_down()
        else:
            self._move(1)

    def action_cursor_up(self) -> None:
        if self.showing_detail:
            self.message_viewer.scroll_up()
        else:
            self._move(-1)

    def action_page_down(self) -> None:
        if self.showing_detail:
            self.message_viewer.scroll_page_down()
        else:
            self._move(self.message_list.page_size)

    def action_page_up(self) -> None:
        if self.showing_detail:
            self.message_viewer.scroll_page_up()
        else:
            self._move(-self.message_list.page_size)

    def action_half_page_down(self) -> None:
        if not self.showing_detail:
            self._move(max(1, self.message_list.page_size // 2))

    def action_half_page_up(self) -> None:
        if not self.showing_detail:
            self._move(-max(1, self.message_list.page_size // 2))

    def _scroll_list(self, delta: int) -> None:
        """Move the window one line; the selection moves only if it left the screen."""
        selected = self.state.selected_index
        if selected is None:
            return
        viewport = self.message_list.viewport
        viewport.scroll(delta, len(self.state))
        self._move(viewport.clamp(selected) - selected)

    def action_line_down(self) -> None:
        if self.showing_detail:
            self.message_viewer.scroll_down()
        else:
            self._scroll_list(1)

    def action_line_up(self) -> None:
        if self.showing_detail:
            self.message_viewer.scroll_up()
        else:
            self._scroll_list(-1)

    def action_screen_top(self) -> None:
        if not self.showing_detail:
            self._jump_to(self.message_list.viewport.page_top())

    def action_screen_middle(self) -> None:
        if not self.showing_detail:
            self._jump_to(self.message_list.viewport.page_middle(len(self.state)))

    def action_screen_bottom(self) -> None:
        if not self.showing_detail:
            self._jump_to(self.message_list.viewport.page_bottom(len(self.state)))

    def action_first(self) -> None:
        if not self.showing_detail:
            self._jump_to(0)

    def action_last(self) -> None:
        if not self.showing_detail:
            self._jump_to(len(self.state) - 1)

    ## View switching

    async def action_open(self) -> None:
        if self.showing_detail:
            return
        record = self.state.current_selection()
        if record is None:
            return

        await self.service.mark_selected_read()
        self.message_viewer.show_message(record)
        self.message_list.display = False
        self.message_viewer.display = True
        self.hint_bar.show_detail_hints()
        self.showing_detail = True

    def action_back(self) -> None:
        if not self.showing_detail:
            return
        self.message_viewer.display = False
        self.message_list.display = True
        self.hint_bar.show_list_hints()
        self.showing_detail = False
        self._refresh_list()

    def action_back_or_quit(self) -> None:
        if self.showing_detail:
            self.action_back()
        else:
            self.exit()

    async def action_reload(self) -> None:
        if self.showing_detail:
            return
        self.notify("Reloading...", timeout=2)
        try:
            loaded = await self.service.reload()
        except (FetchError, MailboxError, SessionError) as e:
            # the previous list stays on screen
            logger.warning(f"Reload failed: {type(e).__name__}")
            self.notify(format_error_message(e), severity="error")
        else:
            self.notify(f"Loaded {loaded} emails", timeout=2)
        self._refresh_list()
