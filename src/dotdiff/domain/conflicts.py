"""Conflict detection between pending changes and fresh disk contents.

A pending change records the on-disk value it was made against
(``old_value``).  When a file is re-read after an external edit, every
pending change for that file is checked against the new disk value:

- disk value differs from ``old_value`` -> the change is in conflict
- disk value matches ``old_value`` again -> any earlier conflict clears

Reconciliation only flags.  It never rewrites ``old_value`` or
``new_value``; the user resolves a conflict by reverting the change or by
saving over the external edit.
"""

from collections.abc import Iterable, Mapping, Set
from dataclasses import dataclass

from dotdiff.models import ChangeId, PendingChange


@dataclass(frozen=True)
class Reconciliation:
    """Outcome of reconciling one file: the new conflict set and its delta."""

    conflicts: frozenset[ChangeId]
    added: frozenset[ChangeId]
    cleared: frozenset[ChangeId]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.cleared)


def reconcile(
    changes: Iterable[PendingChange],
    conflicts: Set[ChangeId],
    file_index: int,
    new_variables: Mapping[str, str],
) -> Reconciliation:
    added: set[ChangeId] = set()
    cleared: set[ChangeId] = set()
    for change in changes:
        if change.file_index != file_index:
            continue
        disk_value = new_variables.get(change.key)
        flagged = change.id in conflicts
        if disk_value != change.old_value and not flagged:
            added.add(change.id)
        elif disk_value == change.old_value and flagged:
            cleared.add(change.id)
    updated = (set(conflicts) | added) - cleared
    return Reconciliation(frozenset(updated), frozenset(added), frozenset(cleared))
