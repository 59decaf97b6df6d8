# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""Quote-aware scanning, escaping and quoting rules for TOON text."""

import math
from decimal import Decimal

from .constants import (
    BACKSLASH,
    CARRIAGE_RETURN,
    COMMA,
    DOUBLE_QUOTE,
    FALSE_LITERAL,
    LEADING_ZERO_PATTERN,
    LIST_ITEM_MARKER,
    NEWLINE,
    NULL_LITERAL,
    NUMERIC_PATTERN,
    PIPE,
    TAB,
    TRUE_LITERAL,
    UNQUOTED_KEY_PATTERN,
)
from .errors import ErrorCause, ToonDecodeError

_ESCAPES = {
    BACKSLASH: BACKSLASH + BACKSLASH,
    DOUBLE_QUOTE: BACKSLASH + DOUBLE_QUOTE,
    NEWLINE: BACKSLASH + "n",
    CARRIAGE_RETURN: BACKSLASH + "r",
    TAB: BACKSLASH + "t",
}

_UNESCAPES = {
    "n": NEWLINE,
    "r": CARRIAGE_RETURN,
    "t": TAB,
    BACKSLASH: BACKSLASH,
    DOUBLE_QUOTE: DOUBLE_QUOTE,
}

_STRUCTURAL_CHARS = frozenset(':"\\[]{}')
_CONTROL_CHARS = frozenset("\n\r\t")


def escape_string(value: str) -> str:
    """Escape backslash, double quote, newline, carriage return and tab."""
    return "".join(_ESCAPES.get(char, char) for char in value)


def unescape_string(value: str) -> str:
    """Unescape a string by processing escape sequences.

    Raises:
        ToonDecodeError: On an unknown escape or a trailing lone backslash.
    """
    result: list[str] = []
    i = 0
    while i < len(value):
        char = value[i]
        if char != BACKSLASH:
            result.append(char)
            i += 1
            continue
        if i + 1 >= len(value):
            raise ToonDecodeError(ErrorCause.INVALID_ESCAPE, "Unterminated escape sequence: backslash at end of string")
        next_char = value[i + 1]
        if next_char not in _UNESCAPES:
            raise ToonDecodeError(ErrorCause.INVALID_ESCAPE, f"Invalid escape sequence: \\{next_char}")
        result.append(_UNESCAPES[next_char])
        i += 2
    return "".join(result)


def is_reserved_literal(value: str) -> bool:
    """Check if value is one of the reserved literals ``true``, ``false``, ``null``."""
    return value in (TRUE_LITERAL, FALSE_LITERAL, NULL_LITERAL)


def is_numeric_like(value: str) -> bool:
    """Check if a string would read back as a number (or a leading-zero number)."""
    return bool(NUMERIC_PATTERN.match(value) or LEADING_ZERO_PATTERN.match(value))


def requires_quoting(value: str, delimiter: str = COMMA) -> bool:
    """Determine whether a string value must be quoted to survive decoding."""
    if not value:
        return True
    if value[0].isspace() or value[-1].isspace():
        return True
    if is_reserved_literal(value) or is_numeric_like(value):
        return True
    if any(char in _STRUCTURAL_CHARS or char in _CONTROL_CHARS for char in value):
        return True
    if delimiter in value:
        return True
    return value.startswith(LIST_ITEM_MARKER)


def quote_string(value: str) -> str:
    """Wrap value in double quotes, escaping its content."""
    return f"{DOUBLE_QUOTE}{escape_string(value)}{DOUBLE_QUOTE}"


def format_number(value: int | float | Decimal) -> str:
    """Render a number in canonical decimal form.

    Never uses exponent notation, drops trailing fractional zeros, collapses
    negative zero to ``0`` and renders NaN or infinity as ``null``.

    Example:
        >>> format_number(1e6), format_number(1.50), format_number(-0.0)
        ('1000000', '1.5', '0')
    """
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return NULL_LITERAL
        if value.is_zero():
            return "0"
        text = str(value)
    else:
        if not math.isfinite(value):
            return NULL_LITERAL
        if value == 0:
            return "0"
        # repr is the shortest round-tripping form
        text = repr(float(value))
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def encode_key(key: str) -> str:
    """Encode an object key, quoting it unless it is a bare identifier."""
    if UNQUOTED_KEY_PATTERN.match(key):
        return key
    return quote_string(key)


def parse_key(key_str: str) -> str:
    """Parse a key (quoted or unquoted)."""
    key_str = key_str.strip()
    if key_str.startswith(DOUBLE_QUOTE):
        if len(key_str) < 2 or not key_str.endswith(DOUBLE_QUOTE):
            raise ToonDecodeError(ErrorCause.UNTERMINATED_STRING, f"Unterminated quoted key: {key_str}")
        return unescape_string(key_str[1:-1])
    return key_str


def find_unquoted_char(content: str, char: str, start: int = 0) -> int:
    """Find the index of a character outside of quoted sections, or -1."""
    index, _ = find_first_unquoted(content, (char,), start)
    return index


def find_first_unquoted(content: str, chars: tuple[str, ...], start: int = 0) -> tuple[int, str | None]:
    """Find the first occurrence of any of ``chars`` outside quotes."""
    in_quotes = False
    i = start
    while i < len(content):
        char = content[i]
        if in_quotes and char == BACKSLASH and i + 1 < len(content):
            i += 2
            continue
        if char == DOUBLE_QUOTE:
            in_quotes = not in_quotes
        elif not in_quotes and char in chars:
            return (i, char)
        i += 1
    return (-1, None)


def split_delimited(content: str, delimiter: str) -> list[str]:
    """Split on ``delimiter`` outside quoted spans, stripping each field.

    Escapes inside quoted spans are copied verbatim; they are interpreted later
    when the token is parsed. The last field is always emitted, so an empty
    input yields ``[""]``.
    """
    values: list[str] = []
    current: list[str] = []
    in_quotes = False
    escaped = False
    for char in content:
        if escaped:
            current.append(char)
            escaped = False
            continue
        if in_quotes and char == BACKSLASH:
            current.append(char)
            escaped = True
            continue
        if char == DOUBLE_QUOTE:
            current.append(char)
            in_quotes = not in_quotes
            continue
        if char == delimiter and not in_quotes:
            values.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    values.append("".join(current).strip())
    return values


def detect_delimiter(content: str) -> str:
    """Return the first unquoted pipe, tab or comma in content, defaulting to comma."""
    _, found = find_first_unquoted(content, (PIPE, TAB, COMMA))
    return found or COMMA
