"""Yes/no modal with an optional per-file breakdown."""

from collections.abc import Sequence

from rich.markup import escape
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Static


class ConfirmScreen(ModalScreen[bool]):
    """Ask before an action that loses work or touches every file.

    ``lines`` are shown under the question, one per file (unsaved counts
    before quitting, current values before deleting a key everywhere).
    The safe button has focus on open.
    """

    BINDINGS = [
        Binding("escape", "cancel", show=False),
        Binding("n", "cancel", show=False),
        Binding("y", "confirm", show=False),
        Binding("h", "focus_cancel", show=False),
        Binding("l", "focus_confirm", show=False),
    ]

    def __init__(
        self,
        title: str,
        question: str,
        lines: Sequence[str] = (),
        confirm_label: str = "Yes",
    ) -> None:
        super().__init__()
        self._title = title
        self._question = question
        self._lines = lines
        self._confirm_label = confirm_label

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-container"):
            yield Label(escape(self._title), id="confirm-title")
            for line in self._lines:
                yield Static(f"  {escape(line)}", classes="confirm-line")
            yield Label(escape(self._question), id="confirm-message")
            with Horizontal(id="confirm-buttons"):
                yield Button("Cancel", variant="primary", id="confirm-no")
                yield Button(self._confirm_label, variant="error", id="confirm-yes")
            yield Label("y confirm · n cancel", id="confirm-hint")

    def on_mount(self) -> None:
        self.action_focus_cancel()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm-yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)

    def action_focus_confirm(self) -> None:
        self.query_one("#confirm-yes", Button).focus()

    def action_focus_cancel(self) -> None:
        self.query_one("#confirm-no", Button).focus()
