"""Reading env files from disk.

Raises ``ReadError`` for any file that cannot be read or decoded.
"""

import logging
from collections.abc import Sequence
from pathlib import Path

from dotdiff.domain.envformat import parse_to_map
from dotdiff.models import EnvFile

logger = logging.getLogger(__name__)


class EnvFileError(Exception):
    """Base class for I/O failures on one env file."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class ReadError(EnvFileError):
    """Raised when a file is missing, unreadable, or not valid UTF-8."""


class WriteError(EnvFileError):
    """Raised when a patched file cannot be written back.

    Writes are not transactional across files.  ``files`` is the file
    list as it stands after the failure: files written earlier in the
    batch already hold their new contents, the failed file and the ones
    after it are unchanged.
    """

    def __init__(self, path: str, message: str, files: Sequence[EnvFile] = ()) -> None:
        super().__init__(path, message)
        self.files: list[EnvFile] = list(files)


def read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ReadError(path, f"cannot read file: {exc}") from exc


def read_variables(path: str) -> dict[str, str]:
    """Re-read *path* and return its key/value map."""
    return parse_to_map(read_text(path))


def load_file(path: str) -> EnvFile:
    variables = read_variables(path)
    logger.debug("Loaded %d variables from %s", len(variables), path)
    return EnvFile(path=path, filename=Path(path).name, variables=variables)


def load_files(paths: Sequence[str]) -> list[EnvFile]:
    """Load every path, in order.  The first unreadable file aborts the load."""
    return [load_file(path) for path in paths]


def find_file_index(files: Sequence[EnvFile], path: str) -> int | None:
    """Map a watcher path back to a file index.

    Exact matches win; otherwise either path may be a suffix of the other
    (watchers can report absolute paths for files opened relatively).
    """
    for i, file in enumerate(files):
        if file.path == path:
            return i
    resolved = _resolve(path)
    for i, file in enumerate(files):
        if _resolve(file.path) == resolved:
            return i
    for i, file in enumerate(files):
        if file.path.endswith(path) or path.endswith(file.path):
            return i
    return None


def _resolve(path: str) -> str:
    try:
        return str(Path(path).resolve())
    except OSError:
        return path
