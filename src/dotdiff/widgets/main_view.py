"""Main view: search bar stacked above the diff table and a status line."""

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Input, Static

from dotdiff.widgets.diff_table import DiffTable


class MainView(Vertical):
    """Composes the search input, the diff table and the summary line into a single panel."""

    def compose(self) -> ComposeResult:
        yield Input(placeholder="Search keys…", id="search")
        yield DiffTable(id="diff-table")
        yield Static("", id="status-line")
