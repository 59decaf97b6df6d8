# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""Exceptions raised by the TOON codec."""

from enum import Enum


class ErrorCause(Enum):
    """Why a TOON operation failed."""

    INVALID_INDENT_SIZE = "invalid indent size"
    TAB_INDENTATION = "tab used for indentation"
    INDENT_NOT_MULTIPLE = "indentation is not a multiple of the indent size"
    INVALID_ARRAY_HEADER = "invalid array header"
    INVALID_ARRAY_COUNT = "invalid array count"
    DELIMITER_MISMATCH = "delimiter mismatch"
    COUNT_MISMATCH = "array count mismatch"
    ROW_WIDTH_MISMATCH = "tabular row width mismatch"
    BLANK_LINE_IN_ARRAY = "blank line inside array"
    UNTERMINATED_STRING = "unterminated string"
    INVALID_ESCAPE = "invalid escape sequence"
    MISSING_COLON = "missing colon"
    INVALID_VALUE = "invalid value"


class ToonError(Exception):
    """Base class for TOON errors.

    Attributes:
        cause: The `ErrorCause` callers can branch on.
        line: 1-based line number of the offending input line, when known.
    """

    def __init__(self, cause: ErrorCause, message: str, line: int | None = None) -> None:
        self.cause = cause
        self.message = message
        self.line = line
        super().__init__(self._format())

    def _format(self) -> str:
        if self.line is None:
            return self.message
        return f"Line {self.line}: {self.message}"


class ToonDecodeError(ToonError):
    """Malformed TOON input."""

    def _format(self) -> str:
        return f"Malformed TOON: {super()._format()}"


class ToonIndentSizeError(ToonError, ValueError):
    """Indent size argument is not a positive integer."""

    def __init__(self, indent_size: int) -> None:
        self.indent_size = indent_size
        super().__init__(
            ErrorCause.INVALID_INDENT_SIZE,
            f"Indent size must be greater than zero, got {indent_size}",
        )
