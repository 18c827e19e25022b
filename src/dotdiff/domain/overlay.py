"""Pending-change overlay on top of the files' ground truth."""

from collections.abc import Iterable, Mapping, Sequence

from dotdiff.domain.conflicts import Reconciliation, reconcile
from dotdiff.domain.differ import all_keys, build_rows
from dotdiff.models import ChangeId, DiffRow, EnvFile, PendingChange, Value


class ChangeOverlay:
    """Unsaved edits keyed by ``ChangeId``, plus the ids currently in conflict.

    Holds at most one change per (key, file) and remembers insertion
    order: re-upserting an existing id keeps its original slot, and
    ``undo_last`` removes the most recently inserted id.  Ground truth is
    never touched; ``effective_rows`` computes what the files would look
    like with every pending change applied.
    """

    def __init__(self) -> None:
        self._changes: dict[ChangeId, PendingChange] = {}
        self._conflicts: set[ChangeId] = set()

    def __len__(self) -> int:
        return len(self._changes)

    def __bool__(self) -> bool:
        return bool(self._changes)

    def __contains__(self, change_id: object) -> bool:
        return change_id in self._changes

    def __iter__(self):
        return iter(list(self._changes.values()))

    @property
    def changes(self) -> tuple[PendingChange, ...]:
        return tuple(self._changes.values())

    @property
    def conflicts(self) -> frozenset[ChangeId]:
        return frozenset(self._conflicts)

    def get(self, key: str, file_index: int) -> PendingChange | None:
        return self._changes.get(ChangeId(key, file_index))

    def is_conflicted(self, key: str, file_index: int) -> bool:
        return ChangeId(key, file_index) in self._conflicts

    def for_key(self, key: str) -> list[PendingChange]:
        return [c for c in self._changes.values() if c.key == key]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert(self, change: PendingChange) -> None:
        self._changes[change.id] = change

    def remove(self, key: str, file_index: int) -> bool:
        """Drop one change and its conflict flag.  Returns False if absent."""
        change_id = ChangeId(key, file_index)
        self._conflicts.discard(change_id)
        return self._changes.pop(change_id, None) is not None

    def remove_all_for_key(self, key: str, exclude_file_index: int | None = None) -> int:
        """Drop every change for *key*, except the one in *exclude_file_index*."""
        doomed = [
            change_id
            for change_id in self._changes
            if change_id.key == key and change_id.file_index != exclude_file_index
        ]
        for change_id in doomed:
            del self._changes[change_id]
            self._conflicts.discard(change_id)
        return len(doomed)

    def undo_last(self) -> bool:
        """Remove the most recently inserted change (LIFO)."""
        if not self._changes:
            return False
        change_id = next(reversed(self._changes))
        del self._changes[change_id]
        self._conflicts.discard(change_id)
        return True

    def clear_conflict(self, key: str, file_index: int) -> None:
        self._conflicts.discard(ChangeId(key, file_index))

    def clear(self) -> None:
        self._changes.clear()
        self._conflicts.clear()

    def restore(self, changes: Iterable[PendingChange], conflicts: Iterable[ChangeId]) -> None:
        """Replace the whole state, e.g. from a history snapshot."""
        self._changes = {change.id: change for change in changes}
        self._conflicts = {c for c in conflicts if c in self._changes}

    def reconcile(self, file_index: int, new_variables: Mapping[str, str]) -> Reconciliation:
        """Flag or clear conflicts for *file_index* against fresh disk contents."""
        result = reconcile(self._changes.values(), self._conflicts, file_index, new_variables)
        self._conflicts = set(result.conflicts)
        return result

    # ------------------------------------------------------------------
    # Effective view
    # ------------------------------------------------------------------

    def effective_value(self, files: Sequence[EnvFile], key: str, file_index: int) -> Value:
        change = self._changes.get(ChangeId(key, file_index))
        if change is not None:
            return change.new_value
        if 0 <= file_index < len(files):
            return files[file_index].value(key)
        return None

    def effective_rows(self, files: Sequence[EnvFile]) -> list[DiffRow]:
        """Diff rows with pending values laid over ground truth.

        Keys come from every file plus every pending non-deletion, so a
        pending add shows up as a row and a row disappears once neither
        source has it.
        """
        if not files:
            return []
        keys = all_keys(files)
        keys.update(c.key for c in self._changes.values() if c.new_value is not None)
        return build_rows(
            keys,
            len(files),
            lambda key, i: self.effective_value(files, key, i),
        )
