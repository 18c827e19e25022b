"""Domain models."""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from types import MappingProxyType

# A value as seen in one file: the string, or None when the key is missing.
Value = str | None


@dataclass(frozen=True)
class EnvFile:
    """Ground truth for one file, as last read from disk.

    Never mutated in place: a reload or disk refresh produces a new
    instance via ``with_variables``.  ``available`` is False once the file
    has vanished from disk; its column then reads as empty.
    """

    path: str
    filename: str
    variables: Mapping[str, str] = field(default_factory=dict)
    available: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    def value(self, key: str) -> Value:
        return self.variables.get(key)

    def with_variables(self, variables: Mapping[str, str], available: bool = True) -> "EnvFile":
        return replace(self, variables=variables, available=available)


class LineKind(Enum):
    ASSIGNMENT = auto()
    COMMENT = auto()
    BLANK = auto()
    UNKNOWN = auto()


@dataclass(frozen=True)
class EnvLine:
    """One physical line of an env file.

    ``raw`` always holds the exact original text so untouched lines can be
    written back byte-for-byte.  ``key`` and ``value`` are only set for
    assignments.
    """

    kind: LineKind
    raw: str
    key: str | None = None
    value: str | None = None


class RowStatus(Enum):
    IDENTICAL = auto()
    DIFFERENT = auto()
    MISSING = auto()


@dataclass(frozen=True)
class DiffRow:
    key: str
    values: tuple[Value, ...]
    status: RowStatus

    def value(self, file_index: int) -> Value:
        if 0 <= file_index < len(self.values):
            return self.values[file_index]
        return None

    def matches(self, query: str) -> bool:
        """Return True if the key contains the query (case-insensitive)."""
        return query.lower() in self.key.lower()


@dataclass(frozen=True)
class ChangeId:
    """Identity of a pending change: one key in one file."""

    key: str
    file_index: int


@dataclass(frozen=True)
class PendingChange:
    """An unsaved edit to one key in one file.

    ``old_value`` is the on-disk value the edit was made against; a
    ``new_value`` of None marks the key for deletion.
    """

    key: str
    file_index: int
    old_value: Value
    new_value: Value

    @property
    def id(self) -> ChangeId:
        return ChangeId(self.key, self.file_index)

    @property
    def is_deletion(self) -> bool:
        return self.new_value is None

    @property
    def is_addition(self) -> bool:
        return self.old_value is None and self.new_value is not None


@dataclass(frozen=True)
class Clipboard:
    key: str
    value: str


class FileChangeKind(Enum):
    UPDATED = auto()
    REMOVED = auto()


@dataclass(frozen=True)
class FileChangeEvent:
    """A debounced notification that a watched file changed on disk."""

    path: str
    kind: FileChangeKind
