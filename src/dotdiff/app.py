"""Main application: the interactive side-by-side diff of env files."""

import logging
from collections.abc import Sequence

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.reactive import reactive
from textual.widgets import DataTable, Footer, Header, Input, Static

from dotdiff.config import ConfigError, Settings, load_settings, save_theme
from dotdiff.constants import APP_TITLE, TRUNCATE_CLIPBOARD
from dotdiff.domain.differ import next_difference
from dotdiff.models import DiffRow, FileChangeEvent, RowStatus
from dotdiff.screens.add import AddResult, AddScreen
from dotdiff.screens.confirm import ConfirmScreen
from dotdiff.screens.edit import EditScreen
from dotdiff.screens.help import HelpScreen
from dotdiff.screens.save_confirm import SaveConfirmScreen
from dotdiff.session import InvalidKeyError, Outcome, Session
from dotdiff.storage.files import ReadError, WriteError
from dotdiff.storage.watcher import FileWatcher
from dotdiff.widgets.diff_table import DiffTable
from dotdiff.widgets.main_view import MainView

logger = logging.getLogger(__name__)


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


class DotdiffApp(App):
    """dotdiff: compare and sync .env files."""

    CSS_PATH = "app.tcss"
    TITLE = APP_TITLE

    dirty: reactive[bool] = reactive(False)

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("?", "toggle_help", "Help"),
        Binding("/", "focus_search", "Search"),
        Binding("escape", "clear_search", show=False),
        Binding("e", "edit_value", "Edit"),
        Binding("a", "add_var", "Add"),
        Binding("d", "delete_value", "dd Delete"),
        Binding("D", "delete_row", show=False),
        Binding("c", "copy_value", "Copy"),
        Binding("v", "paste", "Paste"),
        Binding("V", "paste_row", show=False),
        Binding("greater_than_sign", "sync_right", show=False),
        Binding("less_than_sign", "sync_left", show=False),
        Binding("r", "revert", "Revert"),
        Binding("R", "revert_row", show=False),
        Binding("u", "undo", "Undo"),
        Binding("ctrl+r", "redo", "Redo"),
        Binding("U", "undo_all", show=False),
        Binding("n", "next_diff", show=False),
        Binding("N", "prev_diff", show=False),
        Binding("s", "save", "Save"),
    ]

    def __init__(
        self,
        paths: Sequence[str],
        settings: Settings | None = None,
        _use_config: bool = False,
    ) -> None:
        super().__init__()
        self._paths = list(paths)
        self._use_config = _use_config
        self._config_error: str | None = None
        if settings is None and _use_config:
            try:
                settings = load_settings()
            except ConfigError as exc:
                self._config_error = str(exc)
        self._settings = settings or Settings()
        self.session = Session([])
        self._watcher: FileWatcher | None = None
        self._filter: str = ""
        self._d_pressed: bool = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield MainView(id="main")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#search", Input).display = False
        if self._settings.theme:
            self.theme = self._settings.theme
        if self._config_error:
            self.notify(escape(self._config_error), severity="error", timeout=8)
        self._load_initial()

    @work
    async def _load_initial(self) -> None:
        """Read every file, then start watching them."""
        try:
            self.session = Session.load(self._paths)
        except ReadError as exc:
            logger.warning("Initial load failed: %s", exc)
            self.notify(f"Load failed: {escape(str(exc))}", severity="error", timeout=8)
            self.session = Session([])
        self._refresh_table()
        self._get_table().focus()
        if self._settings.watch and self.session.files:
            self._start_watcher()

    # ------------------------------------------------------------------
    # File watching
    # ------------------------------------------------------------------

    def _start_watcher(self) -> None:
        self._watcher = FileWatcher(
            [f.path for f in self.session.files],
            self._on_watch_event,
            debounce_ms=self._settings.debounce_ms,
        )
        self._watcher.start()

    def stop_watcher(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    def _on_watch_event(self, event: FileChangeEvent) -> None:
        """Called on the watcher thread; hand over to the app's own thread."""
        self.call_from_thread(self.apply_file_event, event)

    def apply_file_event(self, event: FileChangeEvent) -> None:
        outcome = self.session.handle_event(event)
        if outcome is None:
            return
        severity = "warning" if not outcome.changed or "conflict" in outcome.message else "information"
        self.notify(escape(outcome.message), severity=severity, timeout=3)
        self._refresh_table()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _get_table(self) -> DiffTable:
        return self.query_one("#diff-table", DiffTable)

    def _visible_rows(self) -> list[DiffRow]:
        rows = self.session.rows
        if self._filter:
            rows = [row for row in rows if row.matches(self._filter)]
        return rows

    def _refresh_table(self) -> None:
        """Repopulate the table from the session, applying the current filter if any."""
        overlay = self.session.overlay
        self._get_table().load(
            self._visible_rows(),
            self.session.files,
            {change.id for change in overlay.changes},
            overlay.conflicts,
        )
        self.dirty = self.session.has_changes
        self._update_status()

    def _update_status(self) -> None:
        stats = self.session.stats()
        parts = [
            f"{stats[RowStatus.IDENTICAL]} identical",
            f"{stats[RowStatus.DIFFERENT]} different",
            f"{stats[RowStatus.MISSING]} missing",
        ]
        pending = len(self.session.overlay)
        if pending:
            parts.append(f"{pending} unsaved")
        conflicts = len(self.session.overlay.conflicts)
        if conflicts:
            parts.append(f"[bold red]{conflicts} conflict(s)[/]")
        clipboard = self.session.clipboard
        if clipboard is not None:
            parts.append(f"clipboard: {clipboard.key}={escape(_truncate(clipboard.value, TRUNCATE_CLIPBOARD))}")
        self.query_one("#status-line", Static).update(" · ".join(parts))

        names = " ↔ ".join(f.filename for f in self.session.files)
        self.sub_title = f"{names}  ({pending} unsaved)" if pending else names

    def _report(self, outcome: Outcome) -> None:
        self.notify(escape(outcome.message), timeout=2)
        if outcome.changed:
            self._refresh_table()
        else:
            self._update_status()

    def _selection(self) -> tuple[str, int] | None:
        table = self._get_table()
        key = table.selected_key()
        if key is None or not self.session.files:
            return None
        return key, table.selected_file_index()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def action_toggle_help(self) -> None:
        self.push_screen(HelpScreen([file.filename for file in self.session.files]))

    def action_focus_search(self) -> None:
        search = self.query_one("#search", Input)
        search.display = True
        search.focus()

    def action_clear_search(self) -> None:
        search = self.query_one("#search", Input)
        if search.value:
            search.value = ""
            self._filter = ""
            self._refresh_table()
        search.display = False
        self._get_table().focus()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search":
            self._filter = event.value
            self._refresh_table()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "search":
            self._get_table().focus()

    def on_data_table_cell_selected(self, event: DataTable.CellSelected) -> None:
        """Enter (or a click on the highlighted cell) opens the editor."""
        event.stop()
        self.action_edit_value()

    def action_edit_value(self) -> None:
        selection = self._selection()
        if selection is None:
            return
        key, file_index = selection
        current = self.session.effective_value(key, file_index) or ""

        def on_save(text: str | None) -> None:
            if text is not None:
                self._report(self.session.commit_edit(key, file_index, text))
            self._get_table().focus()

        others = [
            (file.filename, self.session.effective_value(key, i))
            for i, file in enumerate(self.session.files)
            if i != file_index
        ]
        screen = EditScreen(
            key,
            self.session.files[file_index].filename,
            current,
            original_value=self.session.original_value(key, file_index),
            others=others,
            conflicted=self.session.overlay.is_conflicted(key, file_index),
        )
        self.push_screen(screen, on_save)

    def action_add_var(self) -> None:
        if not self.session.files:
            return
        file_index = self._get_table().selected_file_index()
        rows = self.session.rows
        existing = [
            {row.key for row in rows if row.value(i) is not None} for i in range(self.session.file_count)
        ]

        def on_save(result: AddResult | None) -> None:
            if result is not None:
                key, value, targets = result
                try:
                    outcome = self.session.add_to_files(key, value, targets)
                except InvalidKeyError as exc:
                    self.notify(escape(str(exc)), severity="error", timeout=4)
                else:
                    self._report(outcome)
                    self._get_table().move_to_key(key)
            self._get_table().focus()

        filenames = [file.filename for file in self.session.files]
        self.push_screen(AddScreen(filenames, existing, selected=file_index), on_save)

    def action_delete_value(self) -> None:
        """Implement vim-style dd: stage a deletion on the second d press."""
        if self._d_pressed:
            self._d_pressed = False
            selection = self._selection()
            if selection is not None:
                self._report(self.session.delete_value(*selection))
        else:
            self._d_pressed = True
            self.set_timer(0.5, self._reset_d)

    def _reset_d(self) -> None:
        self._d_pressed = False

    def action_delete_row(self) -> None:
        selection = self._selection()
        if selection is None:
            return
        key, _ = selection

        def on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self._report(self.session.delete_row(key))
            self._get_table().focus()

        lines = []
        for i, file in enumerate(self.session.files):
            value = self.session.effective_value(key, i)
            if value is not None:
                lines.append(f"{file.filename}: {value}")
        self.push_screen(
            ConfirmScreen(f"Delete {key}", "Remove it from every file?", lines, confirm_label="Delete"),
            on_confirm,
        )

    def action_copy_value(self) -> None:
        selection = self._selection()
        if selection is None:
            return
        outcome = self.session.copy(*selection)
        if self.session.clipboard is not None:
            self.copy_to_clipboard(self.session.clipboard.value)
        self._report(outcome)

    def action_paste(self) -> None:
        selection = self._selection()
        if selection is not None:
            self._report(self.session.paste(*selection))

    def action_paste_row(self) -> None:
        selection = self._selection()
        if selection is not None:
            self._report(self.session.paste_row(selection[0]))

    def _sync(self, step: int) -> None:
        selection = self._selection()
        if selection is None:
            return
        key, source = selection
        target = source + step
        if not 0 <= target < self.session.file_count:
            self.notify("No file in that direction", timeout=2)
            return
        self._report(self.session.sync(key, source, target))

    def action_sync_right(self) -> None:
        self._sync(1)

    def action_sync_left(self) -> None:
        self._sync(-1)

    def action_revert(self) -> None:
        selection = self._selection()
        if selection is not None:
            self._report(self.session.revert(*selection))

    def action_revert_row(self) -> None:
        selection = self._selection()
        if selection is not None:
            self._report(self.session.revert_row(selection[0]))

    def action_undo(self) -> None:
        self._report(self.session.undo())

    def action_redo(self) -> None:
        self._report(self.session.redo())

    def action_undo_all(self) -> None:
        self._report(self.session.undo_all())

    def _jump_to_difference(self, step: int) -> None:
        table = self._get_table()
        rows = self._visible_rows()
        if not rows:
            return
        index = next_difference(rows, table.cursor_coordinate.row, step)
        if index is None:
            self.notify("No differences", timeout=2)
            return
        table.move_cursor(row=index)

    def action_next_diff(self) -> None:
        self._jump_to_difference(1)

    def action_prev_diff(self) -> None:
        self._jump_to_difference(-1)

    def action_save(self) -> None:
        if not self.session.has_changes:
            self.notify("No changes to save", timeout=2)
            return

        def on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self._write_changes()
            self._get_table().focus()

        self.push_screen(
            SaveConfirmScreen(
                self.session.files,
                self.session.changes_by_file(),
                self.session.overlay.conflicts,
            ),
            on_confirm,
        )

    def _write_changes(self) -> None:
        try:
            outcome = self.session.save()
        except WriteError as exc:
            logger.warning("Save failed: %s", exc)
            self.notify(f"Save failed: {escape(str(exc))}", severity="error", timeout=8)
            self._refresh_table()
            return
        self._report(outcome)

    async def action_quit(self) -> None:
        """Quit, asking first when there are unsaved changes."""
        if not self.session.has_changes or not self._settings.confirm_quit:
            self.stop_watcher()
            self.exit()
            return

        n = len(self.session.overlay)
        noun = "change" if n == 1 else "changes"
        lines = [
            f"{self.session.files[index].filename}: {len(changes)} unsaved"
            for index, changes in sorted(self.session.changes_by_file().items())
        ]

        def on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self.stop_watcher()
                self.exit()
            else:
                self._get_table().focus()

        self.push_screen(
            ConfirmScreen(f"You have {n} unsaved {noun}", "Quit without saving?", lines, confirm_label="Quit"),
            on_confirm,
        )

    def watch_theme(self, theme: str) -> None:
        """Persist theme changes when running against the user's config."""
        if self._use_config:
            save_theme(theme)
