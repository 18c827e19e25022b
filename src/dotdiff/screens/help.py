"""Help overlay: key bindings plus a legend for the table's colours."""

from collections.abc import Sequence

from rich.markup import escape
from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Label, Static

from dotdiff.constants import APP_TITLE, HELP_TEXT
from dotdiff.models import RowStatus
from dotdiff.widgets.diff_table import CONFLICT_MARK, PENDING_STYLE, STATUS_STYLES

_STATUS_MEANING = {
    RowStatus.IDENTICAL: "same value in every file",
    RowStatus.DIFFERENT: "present everywhere, values differ",
    RowStatus.MISSING: "absent from at least one file",
}


def build_legend() -> Text:
    legend = Text()
    for status, style in STATUS_STYLES.items():
        legend.append(f" {status.name.lower():<10}", style=style)
        legend.append(f" {_STATUS_MEANING[status]}\n")
    legend.append(f" {'unsaved':<10}", style=PENDING_STYLE)
    legend.append(" staged in this session, not yet written\n")
    legend.append(f" {CONFLICT_MARK.strip():<10}", style="bold red")
    legend.append(" file changed on disk after the edit was staged")
    return legend


class HelpScreen(ModalScreen):
    """Key binding reference.  Escape, ? or q closes it, as does a click."""

    BINDINGS = [
        Binding("escape", "dismiss", show=False),
        Binding("?", "dismiss", show=False),
        Binding("q", "dismiss", show=False),
    ]

    def __init__(self, filenames: Sequence[str] = ()) -> None:
        super().__init__()
        self._filenames = filenames

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="help-container"):
            yield Label(f"{APP_TITLE} key bindings", id="help-title")
            if self._filenames:
                columns = "  |  ".join(escape(name) for name in self._filenames)
                yield Label(f"[dim]columns:[/] {columns}", id="help-files")
            yield Static(HELP_TEXT, id="help-text")
            yield Static(build_legend(), id="help-legend")

    def on_click(self) -> None:
        self.dismiss()
