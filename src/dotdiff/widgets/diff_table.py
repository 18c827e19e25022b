"""Side-by-side diff table widget."""

from collections.abc import Sequence

from rich.text import Text
from textual.binding import Binding
from textual.widgets import DataTable

from dotdiff.constants import KEY_COLUMN, MISSING_CELL
from dotdiff.models import ChangeId, DiffRow, EnvFile, RowStatus, Value

STATUS_STYLES = {
    RowStatus.IDENTICAL: "green",
    RowStatus.DIFFERENT: "yellow",
    RowStatus.MISSING: "red",
}
PENDING_STYLE = "bold dark_orange"
CONFLICT_MARK = "⚠ "


class DiffTable(DataTable):
    """One row per key, one column per file, plus the key column on the left.

    Rows are keyed by the variable name so the cursor can follow a key
    across reloads.  Cells with a pending change are highlighted; cells
    whose pending change conflicts with an external edit get a warning
    marker.
    """

    BINDINGS = [
        Binding("j", "cursor_down", show=False),
        Binding("k", "cursor_up", show=False),
        Binding("h", "cursor_left", show=False),
        Binding("l", "cursor_right", show=False),
    ]

    def __init__(self, *, id: str | None = None, classes: str | None = None) -> None:
        super().__init__(id=id, classes=classes)
        self._keys: list[str] = []

    def on_mount(self) -> None:
        self.cursor_type = "cell"
        self.zebra_stripes = True

    def load(
        self,
        rows: Sequence[DiffRow],
        files: Sequence[EnvFile],
        pending: set[ChangeId],
        conflicts: frozenset[ChangeId],
    ) -> None:
        """Replace the table contents, keeping the cursor on the same key if it survives."""
        previous_key = self.selected_key()
        previous_row, previous_column = self.cursor_coordinate
        if self.columns:
            previous_column = max(previous_column, 1)
        else:
            previous_column = 1

        self.clear(columns=True)
        self.add_column(KEY_COLUMN, key="key")
        for i, file in enumerate(files):
            label = file.filename if file.available else f"{file.filename} (unavailable)"
            self.add_column(Text(label), key=f"file-{i}")

        self._keys = [row.key for row in rows]
        for row in rows:
            cells: list[Text] = [Text(row.key, style=STATUS_STYLES[row.status])]
            for i, value in enumerate(row.values):
                change_id = ChangeId(row.key, i)
                cells.append(_value_cell(value, change_id in pending, change_id in conflicts))
            self.add_row(*cells, key=row.key)

        if not rows:
            return
        if previous_key in self._keys:
            target_row = self._keys.index(previous_key)
        else:
            target_row = min(previous_row, len(rows) - 1)
        self.move_cursor(row=target_row, column=min(previous_column, len(files)))

    def selected_key(self) -> str | None:
        """Return the key of the highlighted row, or None for an empty table."""
        if self.row_count == 0 or not self._keys:
            return None
        row = self.cursor_coordinate.row
        if 0 <= row < len(self._keys):
            return self._keys[row]
        return None

    def selected_file_index(self) -> int:
        """Return the file index of the highlighted column (the key column maps to file 0)."""
        return max(self.cursor_coordinate.column - 1, 0)

    def move_to_key(self, key: str) -> None:
        if key in self._keys:
            self.move_cursor(row=self._keys.index(key))


def _value_cell(value: Value, pending: bool, conflicted: bool) -> Text:
    if value is None:
        text = Text(MISSING_CELL, style="dim")
        if pending:
            text = Text(f"{MISSING_CELL} (deleted)", style=PENDING_STYLE)
    else:
        text = Text(value, style=PENDING_STYLE if pending else "")
    if conflicted:
        text = Text.assemble((CONFLICT_MARK, "bold red"), text)
    return text
