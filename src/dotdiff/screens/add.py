"""Add screen: stage a new variable in one or more files."""

from collections.abc import Sequence

from rich.markup import escape
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Checkbox, Input, Label

from dotdiff.domain.envformat import is_valid_key

AddResult = tuple[str, str, list[int]]


class AddScreen(ModalScreen[AddResult | None]):
    """Modal for a new key/value pair.

    One checkbox per file picks where the key goes; the file under the
    cursor starts ticked.  The key is checked as it is typed: it must be
    a valid name and absent from every ticked file.

    Dismisses with ``(key, value, file_indexes)``, or None on cancel.
    """

    BINDINGS = [
        Binding("escape", "cancel", show=False),
    ]

    def __init__(
        self,
        filenames: Sequence[str],
        existing_keys: Sequence[set[str]],
        selected: int = 0,
    ) -> None:
        super().__init__()
        self._filenames = filenames
        self._existing_keys = existing_keys
        self._selected = selected

    def compose(self) -> ComposeResult:
        with Vertical(id="add-container"):
            yield Label("New variable", id="add-title")
            yield Input(placeholder="KEY", id="add-key")
            yield Input(placeholder="value", id="add-value")
            for i, filename in enumerate(self._filenames):
                yield Checkbox(filename, value=i == self._selected, id=f"add-file-{i}")
            yield Label("", id="add-error")
            yield Label("Tab moves · Enter in value to stage · Escape to cancel", id="add-hint")

    def on_mount(self) -> None:
        self.query_one("#add-key", Input).focus()

    def _targets(self) -> list[int]:
        return [
            i
            for i in range(len(self._filenames))
            if self.query_one(f"#add-file-{i}", Checkbox).value
        ]

    def check_key(self, key: str, targets: Sequence[int]) -> str | None:
        """Return an error message, or None when *key* can go into *targets*."""
        if not key:
            return "Key cannot be blank"
        if not is_valid_key(key):
            return f"'{key}' is not a valid variable name"
        if not targets:
            return "Tick at least one file"
        clashes = [self._filenames[i] for i in targets if key in self._existing_keys[i]]
        if clashes:
            return f"'{key}' already exists in {', '.join(clashes)}"
        return None

    def _show_error(self, message: str | None) -> None:
        self.query_one("#add-error", Label).update(escape(message or ""))

    def on_input_changed(self, event: Input.Changed) -> None:
        event.stop()
        if event.input.id == "add-key" and event.value.strip():
            self._show_error(self.check_key(event.value.strip(), self._targets()))

    def on_checkbox_changed(self, event: Checkbox.Changed) -> None:
        key = self.query_one("#add-key", Input).value.strip()
        if key:
            self._show_error(self.check_key(key, self._targets()))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        if event.input.id == "add-key":
            self.query_one("#add-value", Input).focus()
        elif event.input.id == "add-value":
            self._try_save()

    def _try_save(self) -> None:
        key = self.query_one("#add-key", Input).value.strip()
        targets = self._targets()
        error = self.check_key(key, targets)
        if error is not None:
            self._show_error(error)
            self.query_one("#add-key", Input).focus()
            return
        self.dismiss((key, self.query_one("#add-value", Input).value, targets))

    def action_cancel(self) -> None:
        self.dismiss(None)
