# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""Encoding and decoding options."""

from dataclasses import dataclass

from .constants import DEFAULT_INDENT_SIZE
from .errors import ToonIndentSizeError


def validate_indent_size(indent: int) -> None:
    """Reject indent sizes that are not positive integers."""
    if isinstance(indent, bool) or not isinstance(indent, int) or indent <= 0:
        raise ToonIndentSizeError(indent)


@dataclass(frozen=True)
class EncodeOptions:
    """Options for TOON encoding."""

    indent: int = DEFAULT_INDENT_SIZE

    def __post_init__(self) -> None:
        validate_indent_size(self.indent)


@dataclass(frozen=True)
class DecodeOptions:
    """Options for TOON decoding.

    With ``strict=False`` the decoder tolerates count and row width mismatches,
    blank lines inside arrays, key lines without a colon, and indentation that
    is not a multiple of ``indent``.
    """

    indent: int = DEFAULT_INDENT_SIZE
    strict: bool = True

    def __post_init__(self) -> None:
        validate_indent_size(self.indent)
