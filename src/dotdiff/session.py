"""The single owner of reconciliation state.

A ``Session`` holds the loaded files (ground truth), the pending-change
overlay with its conflict set, the undo history and the clipboard.  Every
user action and every disk refresh is a method call on the session; it
runs to completion before the next one starts, so callers only need to
make sure all calls happen on one thread.

Every mutating action follows the same shape: check preconditions and
return early without touching history if the action would be a no-op,
otherwise capture a snapshot, push it, mutate, and record the new live
state as the history's present.
"""

import contextlib
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from dotdiff.constants import EMPTY_TOKENS, UNSET_TOKENS
from dotdiff.domain.conflicts import Reconciliation
from dotdiff.domain.differ import count_statuses
from dotdiff.domain.envformat import is_valid_key
from dotdiff.domain.history import HistoryEntry, HistoryManager
from dotdiff.domain.overlay import ChangeOverlay
from dotdiff.models import (
    Clipboard,
    DiffRow,
    EnvFile,
    FileChangeEvent,
    FileChangeKind,
    PendingChange,
    RowStatus,
    Value,
)
from dotdiff.storage import writer
from dotdiff.storage.files import ReadError, WriteError, find_file_index, load_files, read_variables

logger = logging.getLogger(__name__)


class InvalidKeyError(ValueError):
    """Raised when a new variable name is malformed or already present."""


@dataclass(frozen=True)
class Outcome:
    """Result of a session action: a status line and whether state changed."""

    message: str
    changed: bool = True


def parse_input(text: str) -> Value:
    """Interpret raw edit-box input.

    ``<null>`` / ``<unset>`` mean "remove the key", ``""`` / ``''`` mean
    the empty string; anything else is taken literally.
    """
    token = text.strip()
    if token in UNSET_TOKENS:
        return None
    if token in EMPTY_TOKENS:
        return ""
    return text


class Session:
    def __init__(self, files: Sequence[EnvFile]) -> None:
        self.files: list[EnvFile] = list(files)
        self.overlay = ChangeOverlay()
        self.history = HistoryManager()
        self.clipboard: Clipboard | None = None

    @classmethod
    def load(cls, paths: Sequence[str]) -> "Session":
        """Read every path from disk.  Raises ``ReadError`` if any is unreadable."""
        return cls(load_files(paths))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def has_changes(self) -> bool:
        return bool(self.overlay)

    @property
    def changes(self) -> tuple[PendingChange, ...]:
        return self.overlay.changes

    @property
    def rows(self) -> list[DiffRow]:
        return self.overlay.effective_rows(self.files)

    def stats(self) -> dict[RowStatus, int]:
        return count_statuses(self.rows)

    def original_value(self, key: str, file_index: int) -> Value:
        if 0 <= file_index < len(self.files):
            return self.files[file_index].value(key)
        return None

    def effective_value(self, key: str, file_index: int) -> Value:
        return self.overlay.effective_value(self.files, key, file_index)

    def changes_by_file(self) -> dict[int, list[PendingChange]]:
        return writer.group_by_file(self.overlay.changes)

    # ------------------------------------------------------------------
    # History plumbing
    # ------------------------------------------------------------------

    def _snapshot(self) -> HistoryEntry:
        return HistoryEntry.of(self.overlay.changes, self.overlay.conflicts)

    @contextlib.contextmanager
    def _mutation(self) -> Iterator[None]:
        self.history.push(self._snapshot())
        yield
        self.history.record(self._snapshot())

    def _stage(self, key: str, file_index: int, new_value: Value) -> None:
        """Stage *new_value*; staging the on-disk value drops the pending change instead."""
        original = self.original_value(key, file_index)
        if new_value == original:
            self.overlay.remove(key, file_index)
            return
        self.overlay.upsert(PendingChange(key, file_index, original, new_value))
        # Re-staging against the current disk value resolves an earlier conflict.
        self.overlay.clear_conflict(key, file_index)

    def _filename(self, file_index: int) -> str:
        return self.files[file_index].filename

    def _check_index(self, file_index: int) -> None:
        if not 0 <= file_index < len(self.files):
            raise IndexError(f"file index {file_index} out of range")

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def commit_edit(self, key: str, file_index: int, text: str) -> Outcome:
        self._check_index(file_index)
        new_value = parse_input(text)
        if new_value == self.effective_value(key, file_index):
            return Outcome("No change", changed=False)
        with self._mutation():
            self._stage(key, file_index, new_value)
        if new_value == self.original_value(key, file_index):
            return Outcome(f"Reverted {key} to original")
        if new_value is None:
            return Outcome(f"Marked {key} for deletion")
        return Outcome(f"Updated {key}")

    def add_variable(self, key: str, value: str, file_index: int) -> Outcome:
        """Stage a brand-new variable in one file.

        Raises ``InvalidKeyError`` for malformed names or when the key
        already has a value in that file.
        """
        return self.add_to_files(key, value, [file_index])

    def add_to_files(self, key: str, value: str, file_indexes: Sequence[int]) -> Outcome:
        """Stage a new variable in several files as a single undoable step."""
        key = key.strip()
        if not is_valid_key(key):
            raise InvalidKeyError(f"Invalid variable name: {key!r}")
        if not file_indexes:
            return Outcome("No file selected", changed=False)
        for i in file_indexes:
            self._check_index(i)
            if self.effective_value(key, i) is not None:
                raise InvalidKeyError(f"{key} already exists in {self._filename(i)}")
        with self._mutation():
            for i in file_indexes:
                self._stage(key, i, value)
        if len(file_indexes) == 1:
            return Outcome(f"Added {key}")
        return Outcome(f"Added {key} to {len(file_indexes)} files")

    def delete_value(self, key: str, file_index: int) -> Outcome:
        self._check_index(file_index)
        if self.effective_value(key, file_index) is None:
            return Outcome("Already missing in this file", changed=False)
        with self._mutation():
            self._stage(key, file_index, None)
        if self.original_value(key, file_index) is None:
            return Outcome(f"Reverted {key} to missing")
        return Outcome(f"Marked {key} for deletion")

    def delete_row(self, key: str) -> Outcome:
        targets = [i for i in range(self.file_count) if self.effective_value(key, i) is not None]
        if not targets:
            return Outcome("Already missing in all files", changed=False)
        with self._mutation():
            for i in targets:
                self._stage(key, i, None)
        deleted = sum(1 for i in targets if self.original_value(key, i) is not None)
        if not deleted:
            return Outcome(f"Reverted pending values for {key}")
        return Outcome(f"Marked {key} for deletion in {deleted} file(s)")

    # ------------------------------------------------------------------
    # Clipboard and sync
    # ------------------------------------------------------------------

    def copy(self, key: str, file_index: int) -> Outcome:
        value = self.effective_value(key, file_index)
        if value is None:
            return Outcome("Nothing to copy", changed=False)
        self.clipboard = Clipboard(key, value)
        return Outcome(f"Copied {key}", changed=False)

    def paste(self, key: str, file_index: int) -> Outcome:
        self._check_index(file_index)
        if self.clipboard is None:
            return Outcome("Clipboard empty", changed=False)
        value = self.clipboard.value
        if value == self.effective_value(key, file_index):
            return Outcome("Same value", changed=False)
        with self._mutation():
            self._stage(key, file_index, value)
        return Outcome(f"Pasted to {key}")

    def paste_row(self, key: str) -> Outcome:
        if self.clipboard is None:
            return Outcome("Clipboard empty", changed=False)
        value = self.clipboard.value
        targets = [i for i in range(self.file_count) if self.effective_value(key, i) != value]
        if not targets:
            return Outcome("All files already have this value", changed=False)
        with self._mutation():
            for i in targets:
                self._stage(key, i, value)
        return Outcome(f"Pasted to {len(targets)} file(s)")

    def sync(self, key: str, source_index: int, target_index: int) -> Outcome:
        """Copy the effective value of one column onto another."""
        self._check_index(source_index)
        self._check_index(target_index)
        value = self.effective_value(key, source_index)
        if value is None:
            return Outcome(f"{key} is missing in {self._filename(source_index)}", changed=False)
        if value == self.effective_value(key, target_index):
            return Outcome("Values already match", changed=False)
        with self._mutation():
            self._stage(key, target_index, value)
        return Outcome(f"Synced {key} to {self._filename(target_index)}")

    # ------------------------------------------------------------------
    # Reverting and history
    # ------------------------------------------------------------------

    def revert(self, key: str, file_index: int) -> Outcome:
        if self.overlay.get(key, file_index) is None:
            return Outcome("No pending change to revert", changed=False)
        with self._mutation():
            self.overlay.remove(key, file_index)
        return Outcome("Reverted to original")

    def revert_row(self, key: str) -> Outcome:
        if not self.overlay.for_key(key):
            return Outcome(f"No pending changes for {key}", changed=False)
        with self._mutation():
            self.overlay.remove_all_for_key(key)
        return Outcome(f"Reverted {key} in all files")

    def undo_last(self) -> Outcome:
        """Drop the most recently added pending change."""
        if not self.overlay:
            return Outcome("Nothing to undo", changed=False)
        with self._mutation():
            self.overlay.undo_last()
        return Outcome("Undone")

    def undo(self) -> Outcome:
        entry = self.history.undo()
        if entry is None:
            return Outcome("Nothing to undo", changed=False)
        self._restore(entry)
        return Outcome("Undone")

    def redo(self) -> Outcome:
        entry = self.history.redo()
        if entry is None:
            return Outcome("Nothing to redo", changed=False)
        self._restore(entry)
        return Outcome("Redone")

    def undo_all(self) -> Outcome:
        if self.history.undo_all() is None:
            return Outcome("Nothing to undo", changed=False)
        self.overlay.clear()
        return Outcome("All changes undone")

    def _restore(self, entry: HistoryEntry) -> None:
        """Load a snapshot, then re-check it against the files as they are now.

        The snapshot's conflict flags date from when it was taken; disk
        contents may have moved since.
        """
        self.overlay.restore(entry.changes, entry.conflicts)
        for index, file in enumerate(self.files):
            self.overlay.reconcile(index, file.variables)
        self.history.record(self._snapshot())

    # ------------------------------------------------------------------
    # Disk synchronisation
    # ------------------------------------------------------------------

    def update_file_from_disk(self, file_index: int, variables: dict[str, str]) -> Reconciliation:
        """Replace one file's ground truth and reconcile its pending changes."""
        self._check_index(file_index)
        self.files[file_index] = self.files[file_index].with_variables(variables)
        return self._reconcile(file_index)

    def mark_file_unavailable(self, file_index: int) -> Reconciliation:
        """Degrade a vanished file to an empty, unavailable column."""
        self._check_index(file_index)
        self.files[file_index] = self.files[file_index].with_variables({}, available=False)
        return self._reconcile(file_index)

    def _reconcile(self, file_index: int) -> Reconciliation:
        result = self.overlay.reconcile(file_index, self.files[file_index].variables)
        if result.changed:
            logger.debug(
                "Reconciled %s: %d new conflict(s), %d cleared",
                self._filename(file_index),
                len(result.added),
                len(result.cleared),
            )
        self.history.record(self._snapshot())
        return result

    def handle_event(self, event: FileChangeEvent) -> Outcome | None:
        """Apply one watcher event.  Returns None for paths that are not loaded."""
        file_index = find_file_index(self.files, event.path)
        if file_index is None:
            return None
        filename = self._filename(file_index)

        if event.kind is FileChangeKind.REMOVED:
            result = self.mark_file_unavailable(file_index)
            return Outcome(f"{filename} was removed" + _conflict_suffix(result))

        try:
            variables = read_variables(self.files[file_index].path)
        except ReadError as exc:
            logger.warning("Could not re-read %s: %s", filename, exc)
            return Outcome(f"Failed to read {filename}: {exc}", changed=False)
        result = self.update_file_from_disk(file_index, variables)
        return Outcome(f"{filename} updated" + _conflict_suffix(result))

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def save(self) -> Outcome:
        """Write every pending change to disk.

        On a partial failure the files that were written are adopted and
        their pending changes dropped; changes for the remaining files stay
        pending and the ``WriteError`` propagates.
        """
        if not self.overlay:
            return Outcome("No changes to save", changed=False)
        count = len(self.overlay)
        try:
            files = writer.apply_changes(self.files, self.overlay.changes)
        except WriteError as exc:
            self._adopt_partial(exc.files)
            raise
        self.on_save_complete(files)
        return Outcome(f"Saved {count} change(s)")

    def on_save_complete(self, files: Sequence[EnvFile]) -> None:
        self.files = list(files)
        self.overlay.clear()
        self.history.reset()

    def _adopt_partial(self, files: Sequence[EnvFile]) -> None:
        written = [i for i, file in enumerate(files) if file is not self.files[i]]
        if not written:
            return
        logger.warning("Partial save: %d file(s) written before the failure", len(written))
        for index in written:
            self.files[index] = files[index]
            for change in self.overlay.changes:
                if change.file_index == index:
                    self.overlay.remove(change.key, index)
        # Snapshots still hold the written changes; they can no longer be undone.
        self.history.reset()
        self.history.record(self._snapshot())


def _conflict_suffix(result: Reconciliation) -> str:
    if not result.added:
        return ""
    return f" ({len(result.added)} conflicting change(s))"
