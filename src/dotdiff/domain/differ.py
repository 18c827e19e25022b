"""Pure functions for comparing key/value maps across files."""

from collections.abc import Callable, Iterable, Sequence

from dotdiff.models import DiffRow, EnvFile, RowStatus, Value


def row_status(values: Sequence[Value]) -> RowStatus:
    """Classify one key's values across files.

    MISSING if any file lacks the key, DIFFERENT if the present values
    disagree, IDENTICAL otherwise (including the single-file case).
    """
    if any(v is None for v in values):
        return RowStatus.MISSING
    if len(set(values)) > 1:
        return RowStatus.DIFFERENT
    return RowStatus.IDENTICAL


def sort_rows(rows: Iterable[DiffRow]) -> list[DiffRow]:
    """Order rows alphabetically by key, ignoring case.

    Status never affects the order, so a row keeps its position while it
    is being edited.
    """
    return sorted(rows, key=lambda row: (row.key.lower(), row.key))


def build_rows(
    keys: Iterable[str],
    file_count: int,
    value_of: Callable[[str, int], Value],
) -> list[DiffRow]:
    """Build one sorted row per key using *value_of(key, file_index)*."""
    rows = []
    for key in keys:
        values = tuple(value_of(key, i) for i in range(file_count))
        rows.append(DiffRow(key=key, values=values, status=row_status(values)))
    return sort_rows(rows)


def all_keys(files: Sequence[EnvFile]) -> set[str]:
    keys: set[str] = set()
    for file in files:
        keys.update(file.variables)
    return keys


def compute_diff(files: Sequence[EnvFile]) -> list[DiffRow]:
    """Return one row per distinct key across *files*, ground truth only."""
    return build_rows(all_keys(files), len(files), lambda key, i: files[i].value(key))


def count_statuses(rows: Iterable[DiffRow]) -> dict[RowStatus, int]:
    counts = {status: 0 for status in RowStatus}
    for row in rows:
        counts[row.status] += 1
    return counts


def next_difference(rows: Sequence[DiffRow], start: int, step: int = 1) -> int | None:
    """Return the index of the next non-identical row after *start*, wrapping.

    Pass ``step=-1`` to search backwards.  Returns None when every row is
    identical.
    """
    n = len(rows)
    for offset in range(1, n + 1):
        idx = (start + offset * step) % n
        if rows[idx].status is not RowStatus.IDENTICAL:
            return idx
    return None
