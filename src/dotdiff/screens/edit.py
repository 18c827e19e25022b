"""Edit screen: change one file's value of a key, with the other files for reference."""

from collections.abc import Sequence

from rich.markup import escape
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Input, Label, Static

from dotdiff.constants import MISSING_CELL
from dotdiff.models import Value
from dotdiff.session import parse_input


def describe_input(text: str, original: Value) -> str:
    """One-line read-out of what submitting *text* would stage."""
    value = parse_input(text)
    if value is None:
        return "[red]will delete the key from this file[/]"
    if value == original:
        return "[dim]matches the file on disk (no pending change)[/]"
    if value == "":
        return "[blue]will set an empty value[/]"
    return "[blue]will update the value[/]"


class EditScreen(ModalScreen[str | None]):
    """Modal for one cell of the diff table.

    Shows the value every other file holds for the same key, and warns
    when the cell's pending change conflicts with an edit made on disk.
    Dismisses with the raw input text, or None on cancel; the session
    interprets the ``<unset>`` and ``""`` tokens.
    """

    BINDINGS = [
        Binding("escape", "cancel", show=False),
    ]

    def __init__(
        self,
        key: str,
        filename: str,
        current_value: str,
        original_value: Value = None,
        others: Sequence[tuple[str, Value]] = (),
        conflicted: bool = False,
    ) -> None:
        super().__init__()
        self._key = key
        self._filename = filename
        self._current_value = current_value
        self._original_value = original_value
        self._others = others
        self._conflicted = conflicted

    def compose(self) -> ComposeResult:
        with Vertical(id="edit-container"):
            yield Label(f"{escape(self._key)}  in  {escape(self._filename)}", id="edit-title")
            if self._conflicted:
                yield Label(
                    "[bold red]⚠ changed on disk since this edit was staged[/]",
                    id="edit-conflict",
                )
            for filename, value in self._others:
                shown = MISSING_CELL if value is None else escape(value)
                yield Static(f"[dim]{escape(filename)}:[/] {shown}", classes="edit-other")
            yield Input(value=self._current_value, id="edit-value")
            yield Label(describe_input(self._current_value, self._original_value), id="edit-preview")
            yield Label(
                'Enter to stage · Escape to cancel · <unset> deletes · "" for empty',
                id="edit-hint",
            )

    def on_mount(self) -> None:
        field = self.query_one("#edit-value", Input)
        field.focus()
        field.cursor_position = len(self._current_value)

    def on_input_changed(self, event: Input.Changed) -> None:
        event.stop()
        self.query_one("#edit-preview", Label).update(
            describe_input(event.value, self._original_value)
        )

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(event.value)

    def action_cancel(self) -> None:
        self.dismiss(None)
