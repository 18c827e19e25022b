"""Snapshot-based undo/redo over the pending-change overlay.

Each ``HistoryEntry`` is an immutable snapshot of the overlay: its pending
changes in insertion order and its conflict set.  ``HistoryState`` is the
classic linear past / present / future model.

Callers follow one protocol for every mutation::

    before = overlay_snapshot()
    ... decide the mutation is not a no-op ...
    history.push(before)        # capture pre-mutation state, clear future
    ... mutate the overlay ...
    history.record(overlay_snapshot())

``record`` keeps ``present`` equal to the live overlay.  It is also called
after state changes that are not undoable on their own (conflict flags
raised by a disk refresh), so undo never resurrects a stale conflict set.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from dotdiff.models import ChangeId, PendingChange


@dataclass(frozen=True)
class HistoryEntry:
    changes: tuple[PendingChange, ...] = ()
    conflicts: frozenset[ChangeId] = frozenset()

    @classmethod
    def of(cls, changes: Iterable[PendingChange], conflicts: Iterable[ChangeId]) -> "HistoryEntry":
        return cls(tuple(changes), frozenset(conflicts))

    @property
    def is_empty(self) -> bool:
        return not self.changes


@dataclass(frozen=True)
class HistoryState:
    past: tuple[HistoryEntry, ...] = ()
    present: HistoryEntry = field(default_factory=HistoryEntry)
    future: tuple[HistoryEntry, ...] = ()


class HistoryManager:
    """Owns a ``HistoryState`` and moves through it.

    Undo and redo return the entry the caller must restore into the
    overlay, or None when there is nothing to move to.
    """

    def __init__(self) -> None:
        self._state = HistoryState()

    @property
    def state(self) -> HistoryState:
        return self._state

    @property
    def present(self) -> HistoryEntry:
        return self._state.present

    @property
    def can_undo(self) -> bool:
        return bool(self._state.past)

    @property
    def can_redo(self) -> bool:
        return bool(self._state.future)

    def push(self, before: HistoryEntry) -> None:
        """Record *before* as the state to return to; any redo branch is dropped.

        *before* must be captured at the start of the mutating operation,
        not re-read after it has mutated.
        """
        self._state = HistoryState(
            past=(*self._state.past, before),
            present=before,
            future=(),
        )

    def record(self, live: HistoryEntry) -> None:
        """Make ``present`` match the live overlay without adding a step."""
        self._state = HistoryState(self._state.past, live, self._state.future)

    def undo(self) -> HistoryEntry | None:
        past = self._state.past
        if not past:
            return None
        self._state = HistoryState(
            past=past[:-1],
            present=past[-1],
            future=(self._state.present, *self._state.future),
        )
        return self._state.present

    def redo(self) -> HistoryEntry | None:
        future = self._state.future
        if not future:
            return None
        self._state = HistoryState(
            past=(*self._state.past, self._state.present),
            present=future[0],
            future=future[1:],
        )
        return self._state.present

    def undo_all(self) -> HistoryEntry | None:
        """Jump straight back to an empty overlay in one step.

        The whole past is discarded and the current state becomes the head
        of ``future``, so a single redo brings every change back.  The
        individual steps that led here are not recoverable.
        """
        if self._state.present.is_empty and not self._state.past:
            return None
        future = self._state.future
        if not self._state.present.is_empty:
            future = (self._state.present, *future)
        self._state = HistoryState(past=(), present=HistoryEntry(), future=future)
        return self._state.present

    def reset(self) -> None:
        self._state = HistoryState()
