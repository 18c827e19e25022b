"""Save preview: every staged change, grouped by file, before anything is written."""

from collections.abc import Sequence

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import Horizontal, ScrollableContainer, Vertical
from textual.widgets import Button, Label, Static

from dotdiff.constants import MISSING_CELL, SAVE_PREVIEW_MAX_ITEMS
from dotdiff.models import ChangeId, EnvFile, PendingChange, Value
from dotdiff.screens.confirm import ConfirmScreen


def _shown(value: Value) -> str:
    if value is None:
        return MISSING_CELL
    return escape(value) if value else '""'


def describe_change(change: PendingChange, conflicted: bool = False) -> str:
    """Markup line for one change: sign, key and the old → new values."""
    key = escape(change.key)
    if change.is_deletion:
        line = f"[red]  -  {key}[/] [dim]{_shown(change.old_value)}[/]"
    elif change.is_addition:
        line = f"[green]  +  {key}[/] = {_shown(change.new_value)}"
    else:
        line = f"[blue]  *  {key}[/] [dim]{_shown(change.old_value)} →[/] {_shown(change.new_value)}"
    if conflicted:
        line += "  [bold red]⚠ changed on disk[/]"
    return line


class SaveConfirmScreen(ConfirmScreen):
    """Lists staged changes per file, at most ``max_items`` under each.

    Additions are green, deletions red and edits blue; a change whose
    file was edited externally after it was staged carries a warning.
    Dismisses True to write, False to go back.
    """

    def __init__(
        self,
        files: Sequence[EnvFile],
        changes_by_file: dict[int, list[PendingChange]],
        conflicts: frozenset[ChangeId] = frozenset(),
        max_items: int = SAVE_PREVIEW_MAX_ITEMS,
    ) -> None:
        total = sum(len(changes) for changes in changes_by_file.values())
        noun = "change" if total == 1 else "changes"
        super().__init__(f"Save {total} {noun}?", "", confirm_label="Save")
        self._files = files
        self._changes_by_file = changes_by_file
        self._conflicts = conflicts
        self._max_items = max_items

    def compose(self) -> ComposeResult:
        with Vertical(id="save-confirm-container"):
            yield Label(escape(self._title), id="save-confirm-title")
            with ScrollableContainer(id="save-confirm-diff"):
                for line in self.preview_lines():
                    yield Static(line)
            with Horizontal(id="confirm-buttons"):
                yield Button("Cancel", variant="primary", id="confirm-no")
                yield Button(self._confirm_label, variant="success", id="confirm-yes")
            yield Label("y save · n back", id="confirm-hint")

    def preview_lines(self) -> list[str]:
        lines: list[str] = []
        for index in sorted(self._changes_by_file):
            changes = self._changes_by_file[index]
            lines.append(f"[bold]{escape(self._files[index].filename)}[/]")
            lines.extend(
                describe_change(change, change.id in self._conflicts)
                for change in changes[: self._max_items]
            )
            hidden = len(changes) - self._max_items
            if hidden > 0:
                lines.append(f"[dim]     … and {hidden} more[/]")
        return lines or ["[dim](no changes)[/]"]

    def has_change(self, key: str) -> bool:
        """Return True if *key* is staged in any file."""
        return any(c.key == key for changes in self._changes_by_file.values() for c in changes)
