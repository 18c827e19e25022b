"""Format-preserving parsing and patching of ``.env`` files.

A file is parsed into one ``EnvLine`` per physical line.  Patching walks
those records and rewrites only the assignment lines whose keys changed;
every other line (comments, blank padding, odd spacing, lines that are
not valid assignments) is emitted exactly as it was read.

Supported syntax per line::

    KEY=value
    KEY=value # trailing comment (unquoted values only)
    KEY="double quoted, with \\" \\\\ and \\n escapes"
    KEY='single quoted, literal'
    export KEY=value
    # comment

Anything else is kept as an ``UNKNOWN`` line and never touched.
"""

import re
from collections.abc import Iterable, Mapping

from dotdiff.models import EnvLine, LineKind, Value

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_NEEDS_QUOTES_RE = re.compile(r"[\s#\"'\\]")
_EXPORT_PREFIX = "export "
_UNESCAPES = {"\\": "\\", '"': '"', "n": "\n"}


def is_valid_key(key: str) -> bool:
    """Return True if *key* is a legal variable name."""
    return bool(_KEY_RE.match(key))


def parse_lines(content: str) -> list[EnvLine]:
    """Parse file content into line records, one per physical line.

    A final newline terminates the last line; it does not start an extra
    blank one, so patching never grows phantom blank lines.
    """
    if not content:
        return []
    raw_lines = content.split("\n")
    if content.endswith("\n"):
        raw_lines.pop()

    lines: list[EnvLine] = []
    for raw in raw_lines:
        stripped = raw.strip()
        if not stripped:
            lines.append(EnvLine(LineKind.BLANK, raw))
        elif stripped.startswith("#"):
            lines.append(EnvLine(LineKind.COMMENT, raw))
        else:
            assignment = _parse_assignment(stripped)
            if assignment is None:
                lines.append(EnvLine(LineKind.UNKNOWN, raw))
            else:
                key, value = assignment
                lines.append(EnvLine(LineKind.ASSIGNMENT, raw, key=key, value=value))
    return lines


def _parse_assignment(line: str) -> tuple[str, str] | None:
    if line.startswith(_EXPORT_PREFIX):
        line = line[len(_EXPORT_PREFIX) :].strip()

    key, sep, rest = line.partition("=")
    if not sep:
        return None
    key = key.strip()
    if not is_valid_key(key):
        return None

    value = rest.strip()
    if value[:1] == '"':
        unquoted = _unquote_double(value)
        if unquoted is not None:
            return key, unquoted
    elif value[:1] == "'":
        end = value.find("'", 1)
        if end != -1:
            return key, value[1:end]

    # Inline comments are only recognised on unquoted values.
    comment = rest.find(" #")
    if comment != -1:
        rest = rest[:comment]
    return key, rest.strip()


def _unquote_double(value: str) -> str | None:
    """Return the unescaped body of a double-quoted value, or None if unterminated."""
    chars: list[str] = []
    i = 1
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value) and value[i + 1] in _UNESCAPES:
            chars.append(_UNESCAPES[value[i + 1]])
            i += 2
            continue
        if ch == '"':
            return "".join(chars)
        chars.append(ch)
        i += 1
    return None


def parse_to_map(content: str) -> dict[str, str]:
    """Extract the key/value map.  With duplicate keys the last one wins."""
    return {
        line.key: line.value
        for line in parse_lines(content)
        if line.kind is LineKind.ASSIGNMENT and line.key is not None and line.value is not None
    }


def assignment_keys(lines: Iterable[EnvLine]) -> set[str]:
    return {line.key for line in lines if line.kind is LineKind.ASSIGNMENT and line.key}


def build_assignment_line(key: str, value: str) -> str:
    """Serialise one assignment, quoting whenever a bare value would not re-parse.

    Values that are empty or contain whitespace, ``#``, a quote or a
    backslash are double-quoted with ``\\``, ``"`` and newlines escaped.
    """
    if value and not _NEEDS_QUOTES_RE.search(value):
        return f"{key}={value}"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'{key}="{escaped}"'


def apply_changes(
    lines: list[EnvLine],
    modifications: Mapping[str, Value],
    additions: Mapping[str, str] | None = None,
) -> str:
    """Render *lines* back to text with the given changes applied.

    - ``modifications`` maps a key to its new value, or to None to delete
      it.  A new value rewrites the last assignment of that key in place
      (the one ``parse_to_map`` reports); a deletion drops every assignment
      of the key so no earlier duplicate resurfaces.
    - ``additions`` are appended as new lines, ahead of any trailing blank
      lines.  Keys already handled by ``modifications`` are skipped.

    Non-empty output always ends with exactly one newline.
    """
    last_index: dict[str, int] = {}
    for i, line in enumerate(lines):
        if line.kind is LineKind.ASSIGNMENT and line.key is not None:
            last_index[line.key] = i

    out: list[str] = []
    handled: set[str] = set()
    for i, line in enumerate(lines):
        key = line.key
        if line.kind is LineKind.ASSIGNMENT and key is not None and key in modifications:
            new_value = modifications[key]
            handled.add(key)
            if new_value is None:
                continue
            if i == last_index[key]:
                out.append(build_assignment_line(key, new_value))
                continue
        out.append(line.raw)

    insert_at = len(out)
    while insert_at > 0 and not out[insert_at - 1].strip():
        insert_at -= 1
    added = [
        build_assignment_line(key, value)
        for key, value in (additions or {}).items()
        if key not in handled
    ]
    out[insert_at:insert_at] = added

    if not out:
        return ""
    return "\n".join(out) + "\n"


def patch_content(
    content: str,
    modifications: Mapping[str, Value],
    additions: Mapping[str, str] | None = None,
) -> str:
    """Parse *content*, apply the changes, and return the new text."""
    return apply_changes(parse_lines(content), modifications, additions)
