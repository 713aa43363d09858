from textual.widgets import Static

LIST_HINTS = (
    "[b]j/k[/b] move · [b]^f/^b[/b] page · [b]^d/^u[/b] half · [b]^e/^y[/b] line · [b]H/M/L[/b] screen · "
    "[b]g/G[/b] first/last · [b]Enter[/b] open · [b]r[/b] reload · [b]q[/b] quit"
)
DETAIL_HINTS = "[b]j/k ^e/^y[/b] scroll · [b]q/Esc/Backspace[/b] back"


class HintBar(Static):
    """Displays keyboard shortcuts for the current view."""

    def __init__(self):
        super().__init__(LIST_HINTS, id="hint-bar")

    def show_list_hints(self):
        self.update(LIST_HINTS)

    def show_detail_hints(self):
        self.update(DETAIL_HINTS)
