from __future__ import annotations

from typing import Optional


class PartIntError(Exception):
    """Base class for partint-specific exceptions."""


class ConfigurationError(PartIntError, ValueError):
    pass


class SpecParseError(PartIntError, ValueError):
    """A malformed argument list or integral specification string.

    ``kind`` names the string being parsed (``"argument list"`` or
    ``"integral specification"``). The message marks the failing position
    with ``>>`` inside the offending line.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        line_text: Optional[str] = None,
    ):
        super().__init__(message + _describe_position(kind, line, column, line_text))
        self.kind = kind
        self.line = line
        self.column = column
        self.line_text = line_text


class GroupingError(PartIntError, RuntimeError):
    pass


class IntegrationError(PartIntError, RuntimeError):
    pass


class CacheError(PartIntError, RuntimeError):
    pass


def _describe_position(
    kind: Optional[str],
    line: Optional[int],
    column: Optional[int],
    text: Optional[str],
) -> str:
    where = f" in {kind}" if kind else ""
    if column is None or column < 1:
        return where
    where += f" at {line or 1}:{column}"
    if text:
        where += f": '{text[:column - 1]}>>{text[column - 1:]}'"
    return where
