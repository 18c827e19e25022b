"""Application-wide constants."""

APP_TITLE = "dotdiff"
APP_SUBTITLE = "compare and sync .env files"

# Quiet period before a burst of filesystem events is reported.
FILE_WATCHER_DEBOUNCE_MS = 150

# Changes listed per file in the save preview before collapsing into "… and N more".
SAVE_PREVIEW_MAX_ITEMS = 3

# Clipboard preview length in the footer.
TRUNCATE_CLIPBOARD = 30

# Edit-input tokens.  Typing one of these instead of a value means "delete"
# or "empty string" respectively.
UNSET_TOKENS = frozenset({"<null>", "<unset>"})
EMPTY_TOKENS = frozenset({'""', "''"})

MISSING_CELL = "—"
KEY_COLUMN = "Key"

HELP_TEXT = """\
 Navigation
 ──────────────────────────────
 j / ↓  k / ↑   Move down / up
 h / ←  l / →   Move left / right
 n / N          Next / previous difference
 /              Search keys

 Edit
 ──────────────────────────────
 e / Enter      Edit selected value
 a              Add new variable (tick target files)
 d d            Delete value in this file
 D              Delete variable in all files
 c              Copy value
 v / V          Paste into cell / whole row
 > / <          Sync value to right / left file
 r / R          Revert cell / whole row

 History
 ──────────────────────────────
 u              Undo
 ctrl+r         Redo
 U              Undo all

 General
 ──────────────────────────────
 s              Save changes
 ?              Toggle this help
 q              Quit\
"""
