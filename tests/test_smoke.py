"""Headless TUI smoke tests covering critical user journeys."""

from pathlib import Path
from typing import cast

import pytest
from textual.widgets import Checkbox, Input, Static

from dotdiff.app import DotdiffApp
from dotdiff.config import Settings
from dotdiff.models import ChangeId, FileChangeEvent, FileChangeKind, PendingChange
from dotdiff.screens.add import AddScreen
from dotdiff.screens.confirm import ConfirmScreen
from dotdiff.screens.edit import EditScreen
from dotdiff.screens.help import HelpScreen, build_legend
from dotdiff.screens.save_confirm import SaveConfirmScreen, describe_change
from dotdiff.widgets.diff_table import DiffTable

LEFT = "FOO=1\nSHARED=x\n"
RIGHT = "# right side\nFOO=2\nSHARED=x\nONLY_B=y\n"


@pytest.fixture
def env_pair(tmp_path: Path) -> tuple[Path, Path]:
    left = tmp_path / ".env"
    right = tmp_path / ".env.prod"
    left.write_text(LEFT)
    right.write_text(RIGHT)
    return left, right


def _app(paths: tuple[Path, Path], **overrides) -> DotdiffApp:
    settings = Settings(watch=False, **overrides)
    return DotdiffApp([str(p) for p in paths], settings=settings)


async def wait_loaded(pilot) -> None:
    """Wait for the initial load worker to finish."""
    await pilot.app.workers.wait_for_complete()
    await pilot.pause()


async def edit_selected(pilot, text: str) -> None:
    await pilot.press("e")
    await pilot.pause()
    assert isinstance(pilot.app.screen, EditScreen)
    pilot.app.screen.query_one("#edit-value", Input).value = text
    await pilot.press("enter")
    await pilot.pause()


class TestMount:
    async def test_table_populated_on_mount(self, env_pair):
        """
        Given two env files sharing some keys
        When the UI mounts
        Then there is one row per distinct key and one column per file plus the key column
        """
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            table = pilot.app.query_one("#diff-table", DiffTable)
            assert table.row_count == 3
            assert len(table.columns) == 3

    async def test_rows_sorted_and_cursor_on_first_file(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            table = pilot.app.query_one("#diff-table", DiffTable)
            assert table.selected_key() == "FOO"
            assert table.selected_file_index() == 0

    async def test_table_focused_and_search_hidden(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            assert isinstance(pilot.app.focused, DiffTable)
            assert pilot.app.query_one("#search", Input).display is False

    async def test_status_line_counts(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            status = str(pilot.app.query_one("#status-line", Static).render())
            assert "1 identical" in status
            assert "1 different" in status
            assert "1 missing" in status

    async def test_unreadable_file_shows_empty_table(self, tmp_path: Path):
        """
        Given a path that vanished before launch
        When the UI mounts
        Then the app stays up with an empty table
        """
        present = tmp_path / ".env"
        present.write_text("A=1\n")
        app = _app((present, tmp_path / "gone.env"))
        async with app.run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            assert pilot.app.query_one("#diff-table", DiffTable).row_count == 0
            assert cast(DotdiffApp, pilot.app).session.files == []


class TestNavigation:
    async def test_jk_moves_rows(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            table = pilot.app.query_one("#diff-table", DiffTable)
            await pilot.press("j")
            assert table.selected_key() == "ONLY_B"
            await pilot.press("k")
            assert table.selected_key() == "FOO"

    async def test_l_moves_to_next_file(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            table = pilot.app.query_one("#diff-table", DiffTable)
            await pilot.press("l")
            assert table.selected_file_index() == 1

    async def test_n_jumps_to_next_difference(self, env_pair):
        """
        Given rows FOO (different), ONLY_B (missing), SHARED (identical)
        When n is pressed from ONLY_B
        Then the cursor wraps around to FOO, skipping the identical row
        """
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            table = pilot.app.query_one("#diff-table", DiffTable)
            await pilot.press("n")
            assert table.selected_key() == "ONLY_B"
            await pilot.press("n")
            assert table.selected_key() == "FOO"

    async def test_search_filters_rows(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("/")
            for ch in "only":
                await pilot.press(ch)
            await pilot.pause()
            table = pilot.app.query_one("#diff-table", DiffTable)
            assert table.row_count == 1
            assert table.selected_key() == "ONLY_B"

            await pilot.press("escape")
            await pilot.pause()
            assert table.row_count == 3

    async def test_help_screen(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("?")
            await pilot.pause()
            assert isinstance(pilot.app.screen, HelpScreen)
            await pilot.press("escape")
            await pilot.pause()
            assert not isinstance(pilot.app.screen, HelpScreen)

    def test_help_legend_names_every_status(self):
        legend = build_legend().plain
        for word in ("identical", "different", "missing", "unsaved"):
            assert word in legend


class TestEditing:
    async def test_edit_stages_change_without_writing(self, env_pair):
        """
        Given a clean app
        When the user edits FOO in the first file
        Then the change is pending, dirty is True and the file on disk is untouched
        """
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            app = cast(DotdiffApp, pilot.app)
            assert app.dirty is False

            await edit_selected(pilot, "9")

            assert app.dirty is True
            assert app.session.effective_value("FOO", 0) == "9"
            assert env_pair[0].read_text() == LEFT

    async def test_enter_opens_editor(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("enter")
            await pilot.pause()
            assert isinstance(pilot.app.screen, EditScreen)

    async def test_escape_cancels_edit(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("e")
            await pilot.pause()
            await pilot.press("escape")
            await pilot.pause()
            assert cast(DotdiffApp, pilot.app).session.has_changes is False

    async def test_dd_marks_deletion(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("d", "d")
            await pilot.pause()
            change = cast(DotdiffApp, pilot.app).session.overlay.get("FOO", 0)
            assert change is not None and change.is_deletion

    async def test_single_d_does_nothing(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("d")
            await pilot.pause()
            assert cast(DotdiffApp, pilot.app).session.has_changes is False

    async def test_sync_right(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press(">")
            await pilot.pause()
            assert cast(DotdiffApp, pilot.app).session.effective_value("FOO", 1) == "1"

    async def test_copy_then_paste(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("c", "l", "v")
            await pilot.pause()
            app = cast(DotdiffApp, pilot.app)
            assert app.session.effective_value("FOO", 1) == "1"
            assert "clipboard: FOO=1" in str(app.query_one("#status-line", Static).render())

    async def test_add_variable(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("a")
            await pilot.pause()
            screen = pilot.app.screen
            assert isinstance(screen, AddScreen)
            screen.query_one("#add-key", Input).value = "NEW_KEY"
            screen.query_one("#add-value", Input).value = "hello"
            screen.query_one("#add-value", Input).focus()
            await pilot.press("enter")
            await pilot.pause()

            app = cast(DotdiffApp, pilot.app)
            assert app.session.effective_value("NEW_KEY", 0) == "hello"
            assert app.query_one("#diff-table", DiffTable).selected_key() == "NEW_KEY"

    async def test_add_variable_to_both_files(self, env_pair):
        """
        Given the add screen opened on the left column
        When the right file is ticked as well and the form is submitted
        Then the key is staged in both files
        """
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("a")
            await pilot.pause()
            screen = pilot.app.screen
            assert isinstance(screen, AddScreen)
            screen.query_one("#add-file-1", Checkbox).value = True
            screen.query_one("#add-key", Input).value = "NEW_KEY"
            screen.query_one("#add-value", Input).value = "v"
            screen.query_one("#add-value", Input).focus()
            await pilot.press("enter")
            await pilot.pause()

            app = cast(DotdiffApp, pilot.app)
            assert app.session.effective_value("NEW_KEY", 0) == "v"
            assert app.session.effective_value("NEW_KEY", 1) == "v"

    async def test_undo_and_redo(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            app = cast(DotdiffApp, pilot.app)
            await edit_selected(pilot, "9")

            await pilot.press("u")
            await pilot.pause()
            assert app.session.has_changes is False

            await pilot.press("ctrl+r")
            await pilot.pause()
            assert app.session.effective_value("FOO", 0) == "9"

    async def test_cursor_stays_on_key_after_edit(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            table = pilot.app.query_one("#diff-table", DiffTable)
            await pilot.press("j", "j")
            assert table.selected_key() == "SHARED"
            await edit_selected(pilot, "changed")
            assert table.selected_key() == "SHARED"


class TestSave:
    def test_preview_line_shows_old_and_new_values(self):
        line = describe_change(PendingChange("FOO", 0, "1", "[b]"))
        assert "FOO" in line and "1 →" in line and r"\[b]" in line

    def test_preview_line_flags_conflicts(self):
        line = describe_change(PendingChange("FOO", 0, "1", None), conflicted=True)
        assert line.startswith("[red]") and "changed on disk" in line

    async def test_s_opens_preview(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await edit_selected(pilot, "9")
            await pilot.press("s")
            await pilot.pause()
            screen = pilot.app.screen
            assert isinstance(screen, SaveConfirmScreen)
            assert screen.has_change("FOO")
            assert any("FOO" in line for line in screen.preview_lines())

    async def test_s_when_clean_does_nothing(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("s")
            await pilot.pause()
            assert not isinstance(pilot.app.screen, SaveConfirmScreen)

    async def test_confirm_writes_files(self, env_pair):
        """
        Given a staged edit in the first file and a sync into the second
        When the user saves and confirms
        Then both files are patched in place and nothing is pending
        """
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await edit_selected(pilot, "9")
            await pilot.press(">")
            await pilot.press("s")
            await pilot.pause()
            await pilot.press("y")
            await pilot.pause()

            app = cast(DotdiffApp, pilot.app)
            assert app.dirty is False
            assert env_pair[0].read_text() == "FOO=9\nSHARED=x\n"
            assert env_pair[1].read_text() == "# right side\nFOO=9\nSHARED=x\nONLY_B=y\n"

    async def test_cancel_keeps_changes(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await edit_selected(pilot, "9")
            await pilot.press("s")
            await pilot.pause()
            await pilot.press("n")
            await pilot.pause()

            app = cast(DotdiffApp, pilot.app)
            assert app.dirty is True
            assert env_pair[0].read_text() == LEFT

    async def test_save_failure_keeps_app_running(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await edit_selected(pilot, "9")
            env_pair[0].unlink()
            await pilot.press("s")
            await pilot.pause()
            await pilot.press("y")
            await pilot.pause()

            assert cast(DotdiffApp, pilot.app).session.has_changes is True


class TestFileEvents:
    async def test_external_edit_raises_conflict(self, env_pair):
        """
        Given a pending edit of FOO in the first file
        When the file changes on disk underneath it
        Then the change is kept and flagged as conflicting
        """
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await edit_selected(pilot, "9")
            env_pair[0].write_text("FOO=external\nSHARED=x\n")

            app = cast(DotdiffApp, pilot.app)
            app.apply_file_event(FileChangeEvent(str(env_pair[0]), FileChangeKind.UPDATED))
            await pilot.pause()

            assert ChangeId("FOO", 0) in app.session.overlay.conflicts
            assert app.session.effective_value("FOO", 0) == "9"
            assert "conflict" in str(app.query_one("#status-line", Static).render())

    async def test_external_edit_refreshes_table(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            env_pair[1].write_text("FOO=1\nSHARED=x\n")

            app = cast(DotdiffApp, pilot.app)
            app.apply_file_event(FileChangeEvent(str(env_pair[1]), FileChangeKind.UPDATED))
            await pilot.pause()

            assert app.query_one("#diff-table", DiffTable).row_count == 2

    async def test_removed_file_column_unavailable(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            env_pair[1].unlink()

            app = cast(DotdiffApp, pilot.app)
            app.apply_file_event(FileChangeEvent(str(env_pair[1]), FileChangeKind.REMOVED))
            await pilot.pause()

            assert app.session.files[1].available is False
            table = app.query_one("#diff-table", DiffTable)
            labels = [str(column.label) for column in table.columns.values()]
            assert any("unavailable" in label for label in labels)


class TestQuit:
    async def test_quit_when_clean_exits(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await pilot.press("q")
            assert pilot.app.return_code == 0

    async def test_quit_with_changes_asks(self, env_pair):
        async with _app(env_pair).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await edit_selected(pilot, "9")
            await pilot.press("q")
            await pilot.pause()
            assert isinstance(pilot.app.screen, ConfirmScreen)

    async def test_quit_without_confirmation_when_disabled(self, env_pair):
        async with _app(env_pair, confirm_quit=False).run_test(headless=True) as pilot:
            await wait_loaded(pilot)
            await edit_selected(pilot, "9")
            await pilot.press("q")
            assert not isinstance(pilot.app.screen, ConfirmScreen)
            assert pilot.app.return_code == 0
