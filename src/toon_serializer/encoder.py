# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""TOON encoder.

Walks a value with the classifier and writes one TOON line per scalar field,
inline array, table row or list item.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from .classify import Classification, ValueKind, as_sequence, classify
from .constants import (
    CLOSE_BRACE,
    CLOSE_BRACKET,
    COLON,
    COMMA,
    DEFAULT_INDENT_SIZE,
    FALSE_LITERAL,
    LIST_ITEM_MARKER,
    LIST_ITEM_PREFIX,
    NULL_LITERAL,
    OPEN_BRACE,
    OPEN_BRACKET,
    SPACE,
    TRUE_LITERAL,
    Delimiter,
    Depth,
)
from .options import EncodeOptions
from .schema import record_items
from .string_utils import encode_key, format_number, quote_string, requires_quoting

logger = logging.getLogger(__name__)


class LineWriter:
    """Manages indented text output with optimized indent caching.

    `begin_list_item` marks the next pushed line as the first line of a list
    item: it is written at the item's depth with a ``- `` prefix, whatever
    depth the caller pushes it at.
    """

    def __init__(self, indent_size: int) -> None:
        self._lines: list[str] = []
        self._indentation_string = SPACE * indent_size
        self._indent_cache: dict[int, str] = {0: ""}
        self._item_depth: Depth | None = None

    def push(self, depth: Depth, content: str) -> None:
        if self._item_depth is not None:
            depth, content = self._item_depth, LIST_ITEM_PREFIX + content
            self._item_depth = None
        if depth not in self._indent_cache:
            self._indent_cache[depth] = self._indentation_string * depth
        self._lines.append(self._indent_cache[depth] + content)

    def begin_list_item(self, depth: Depth) -> None:
        self._item_depth = depth

    def line_count(self) -> int:
        return len(self._lines)

    def to_string(self) -> str:
        return "\n".join(self._lines)


def encode_string(value: str, delimiter: Delimiter = COMMA) -> str:
    if requires_quoting(value, delimiter):
        return quote_string(value)
    return value


def encode_scalar(value: Any, delimiter: Delimiter = COMMA) -> str:
    """Encode a scalar value."""
    if value is None:
        return NULL_LITERAL
    if isinstance(value, bool):
        return TRUE_LITERAL if value else FALSE_LITERAL
    if isinstance(value, Enum):
        return encode_string(value.name, delimiter)
    if isinstance(value, (int, float, Decimal)):
        return format_number(value)
    if isinstance(value, str):
        return encode_string(value, delimiter)
    if isinstance(value, (date, datetime, time)):
        return encode_string(value.isoformat(), delimiter)
    raise TypeError(f"Object of type {type(value).__name__} is not a TOON scalar")


def format_header(key: str | None, length: int, fields: tuple[str, ...] | None = None) -> str:
    """Format array/table header."""
    fields_str = ""
    if fields:
        fields_str = f"{OPEN_BRACE}{COMMA.join(encode_key(field) for field in fields)}{CLOSE_BRACE}"
    prefix = encode_key(key) if key is not None else ""
    return f"{prefix}{OPEN_BRACKET}{length}{CLOSE_BRACKET}{fields_str}{COLON}"


def _encode_value(value: Any, writer: LineWriter, depth: Depth) -> None:
    classification = classify(value)
    if classification.is_scalar:
        writer.push(depth, encode_scalar(value))
    elif classification.is_sequence:
        _encode_array(as_sequence(value), classification, writer, depth, None)
    else:
        _encode_record(value, writer, depth)


def _encode_record(value: Any, writer: LineWriter, depth: Depth) -> None:
    for key, field_value in record_items(value):
        _encode_key_value_pair(key, field_value, writer, depth)


def _encode_key_value_pair(key: str, value: Any, writer: LineWriter, depth: Depth) -> None:
    classification = classify(value)
    if classification.is_scalar:
        writer.push(depth, f"{encode_key(key)}{COLON}{SPACE}{encode_scalar(value)}")
    elif classification.is_sequence:
        _encode_array(as_sequence(value), classification, writer, depth, key)
    else:
        writer.push(depth, f"{encode_key(key)}{COLON}")
        _encode_record(value, writer, depth + 1)


def _encode_array(
    items: list[Any],
    classification: Classification,
    writer: LineWriter,
    depth: Depth,
    key: str | None,
) -> None:
    """Encode an array under ``key`` (or keyless) in the layout chosen by the classifier."""
    if classification.kind is ValueKind.INLINE_SEQUENCE:
        _encode_inline_array(items, writer, depth, key)
    elif classification.kind is ValueKind.TABULAR_SEQUENCE:
        _encode_tabular_array(items, classification.fields, writer, depth, key)
    else:
        _encode_expanded_array(items, writer, depth, key)


def _encode_inline_array(items: list[Any], writer: LineWriter, depth: Depth, key: str | None) -> None:
    header = format_header(key, len(items))
    if not items:
        writer.push(depth, header)
        return
    joined = COMMA.join(encode_scalar(item) for item in items)
    writer.push(depth, f"{header}{SPACE}{joined}")


def _encode_tabular_array(
    items: list[Any],
    fields: tuple[str, ...],
    writer: LineWriter,
    depth: Depth,
    key: str | None,
) -> None:
    writer.push(depth, format_header(key, len(items), fields))
    for item in items:
        values = dict(record_items(item))
        writer.push(depth + 1, COMMA.join(encode_scalar(values.get(field)) for field in fields))


def _encode_expanded_array(items: list[Any], writer: LineWriter, depth: Depth, key: str | None) -> None:
    writer.push(depth, format_header(key, len(items)))
    for item in items:
        _encode_list_item(item, writer, depth + 1)


def _encode_list_item(item: Any, writer: LineWriter, depth: Depth) -> None:
    """Encode one ``- `` item of an expanded array.

    Nested arrays and record fields are written one level below the item's
    logical scope at ``depth + 1``, with the first line hoisted onto the
    hyphen line.
    """
    classification = classify(item)
    if classification.is_scalar:
        writer.push(depth, f"{LIST_ITEM_PREFIX}{encode_scalar(item)}")
    elif classification.is_sequence:
        writer.begin_list_item(depth)
        _encode_array(as_sequence(item), classification, writer, depth + 1, None)
    else:
        pairs = record_items(item)
        if not pairs:
            writer.push(depth, LIST_ITEM_MARKER)
            return
        writer.begin_list_item(depth)
        for key, field_value in pairs:
            _encode_key_value_pair(key, field_value, writer, depth + 1)


def encode(value: Any, options: EncodeOptions | None = None) -> str:
    """Encode a Python value to TOON format.

    Args:
        value: Scalar, sequence, mapping, pydantic model, dataclass or plain object.
        options: Encoding options. Defaults to a 2-space indent.

    Returns:
        TOON string without a trailing newline. An empty record encodes to ``""``.

    Raises:
        TypeError: If a value has no TOON representation.

    Example:
        >>> encode({"tags": ["a", "b"], "user": {"id": 1}})
        'tags[2]: a,b\\nuser:\\n  id: 1'
    """
    resolved = options or EncodeOptions()
    writer = LineWriter(resolved.indent)
    _encode_value(value, writer, 0)
    logger.debug(f"Encoded {type(value).__name__} to {writer.line_count()} TOON lines")
    return writer.to_string()


def serialize(value: Any, indent_size: int = DEFAULT_INDENT_SIZE) -> str:
    """Encode value with the given indent size."""
    return encode(value, EncodeOptions(indent=indent_size))
