"""Write pending changes back to disk without disturbing file layout.

Each touched file is re-read, patched with ``envformat.apply_changes``
and written back whole.  Files without changes are not read or written.
"""

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from dotdiff.domain.envformat import apply_changes as patch_lines
from dotdiff.domain.envformat import assignment_keys, parse_lines, parse_to_map
from dotdiff.models import EnvFile, PendingChange, Value
from dotdiff.storage.files import ReadError, WriteError, read_text

logger = logging.getLogger(__name__)


def group_by_file(changes: Iterable[PendingChange]) -> dict[int, list[PendingChange]]:
    """Bucket changes by file index, keeping their order within each file."""
    grouped: dict[int, list[PendingChange]] = {}
    for change in changes:
        grouped.setdefault(change.file_index, []).append(change)
    return grouped


def split_changes(
    changes: Iterable[PendingChange], existing_keys: set[str]
) -> tuple[dict[str, Value], dict[str, str]]:
    """Split one file's changes into in-place modifications and appended additions.

    A deletion of a key the file does not have is kept as a modification;
    it matches no line and so changes nothing.
    """
    modifications: dict[str, Value] = {}
    additions: dict[str, str] = {}
    for change in changes:
        if change.new_value is None or change.key in existing_keys:
            modifications[change.key] = change.new_value
        else:
            additions[change.key] = change.new_value
    return modifications, additions


def apply_changes(files: Sequence[EnvFile], changes: Iterable[PendingChange]) -> list[EnvFile]:
    """Write *changes* into *files* and return the refreshed file list.

    Raises ``WriteError`` on the first file that cannot be read or written.
    Earlier files in the batch stay written; the error's ``files`` holds
    the list reflecting exactly that.
    """
    by_file = group_by_file(changes)
    updated = list(files)
    for index, file in enumerate(files):
        file_changes = by_file.get(index)
        if not file_changes:
            continue
        try:
            lines = parse_lines(read_text(file.path))
        except ReadError as exc:
            raise WriteError(file.path, f"cannot read before patching: {exc}", updated) from exc

        modifications, additions = split_changes(file_changes, assignment_keys(lines))
        content = patch_lines(lines, modifications, additions)
        try:
            Path(file.path).write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.warning("Write failed for %s: %s", file.path, exc)
            raise WriteError(file.path, f"cannot write file: {exc}", updated) from exc

        logger.debug("Wrote %d change(s) to %s", len(file_changes), file.path)
        updated[index] = file.with_variables(parse_to_map(content))
    return updated
