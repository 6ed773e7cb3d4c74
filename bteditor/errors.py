# FILE: bteditor/errors.py
"""Error taxonomy of the editor core.

- FormatError: malformed import file; the whole load is rejected.
- SemanticError: whole-tree invariant violated; blocks export/save.
- EditorIOError: file-system or clipboard failure around save/load/export.

Rejected connections are not errors: the validator returns a ValidationResult.
"""


class EditorError(Exception):
    """Base class for recoverable editor failures."""


class FormatError(EditorError, ValueError):
    """Import data does not have the expected structure."""


class SemanticError(EditorError, ValueError):
    """Tree fails the semantic check; message is user facing."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EditorIOError(EditorError, OSError):
    """Reading or writing an editor file failed."""
