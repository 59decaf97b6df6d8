# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""TOON decoder.

A single forward pass over the input lines. Indentation depth decides nesting;
the requested target type decides what each value becomes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .coerce import (
    TargetKind,
    build_sequence,
    coerce,
    element_type,
    number_from_token,
    record_schema,
    target_kind,
)
from .constants import (
    CLOSE_BRACE,
    CLOSE_BRACKET,
    COLON,
    COMMA,
    COUNT_PATTERN,
    DEFAULT_INDENT_SIZE,
    DOUBLE_QUOTE,
    FALSE_LITERAL,
    LEADING_ZERO_PATTERN,
    LIST_ITEM_MARKER,
    LIST_ITEM_PREFIX,
    NEWLINE,
    NULL_LITERAL,
    NUMERIC_PATTERN,
    OPEN_BRACE,
    OPEN_BRACKET,
    PIPE,
    SPACE,
    TAB,
    TRUE_LITERAL,
    Delimiter,
    Depth,
)
from .errors import ErrorCause, ToonDecodeError
from .options import DecodeOptions
from .schema import RecordSchema
from .string_utils import (
    detect_delimiter,
    find_first_unquoted,
    find_unquoted_char,
    parse_key,
    split_delimited,
    unescape_string,
)

logger = logging.getLogger(__name__)

# Targets that read empty input as their zero value instead of None
_ZERO_VALUE_TYPES = (int, float, bool, Decimal)


@dataclass
class ParsedLine:
    """Represents a parsed line with indentation info."""

    raw: str
    depth: Depth
    content: str
    line_num: int

    @property
    def is_blank(self) -> bool:
        return not self.content


@dataclass
class ArrayHeader:
    """Parsed ``[N<delim?>]{fields}:`` header. ``inline`` is the text after the colon."""

    length: int
    delimiter: Delimiter
    fields: list[str] | None
    inline: str


class _LineCursor:
    """Forward-only reader over input lines. Depth is measured when a line is looked at."""

    def __init__(self, input_str: str, options: DecodeOptions) -> None:
        self._lines = input_str.split(NEWLINE)
        self._pos = 0
        self.indent_size = options.indent
        self.strict = options.strict

    def peek(self) -> ParsedLine | None:
        if self._pos >= len(self._lines):
            return None
        return self._parse_line(self._pos)

    def advance(self) -> None:
        self._pos += 1

    def peek_content(self) -> ParsedLine | None:
        """Return the next non-blank line without consuming anything."""
        for index in range(self._pos, len(self._lines)):
            if self._lines[index].strip():
                return self._parse_line(index)
        return None

    def skip_blank_lines(self) -> None:
        while self._pos < len(self._lines) and not self._lines[self._pos].strip():
            self._pos += 1

    def _parse_line(self, index: int) -> ParsedLine:
        raw = self._lines[index]
        content = raw.strip()
        if not content:
            return ParsedLine(raw=raw, depth=0, content="", line_num=index + 1)
        return ParsedLine(raw=raw, depth=self._depth_of(raw, index + 1), content=content, line_num=index + 1)

    def _depth_of(self, raw: str, line_num: int) -> Depth:
        spaces = 0
        tabs = 0
        for char in raw:
            if char == SPACE:
                spaces += 1
            elif char == TAB:
                if self.strict:
                    raise ToonDecodeError(
                        ErrorCause.TAB_INDENTATION, "Tab characters are not allowed in indentation", line_num
                    )
                tabs += 1
            else:
                break
        if self.strict and spaces % self.indent_size != 0:
            raise ToonDecodeError(
                ErrorCause.INDENT_NOT_MULTIPLE,
                f"Indentation must be a multiple of {self.indent_size} spaces, got {spaces}",
                line_num,
            )
        return spaces // self.indent_size + tabs


# =============================================================================
# Primitives
# =============================================================================


def parse_primitive(token: str, target_type: Any = Any, line_num: int | None = None) -> Any:
    """Parse a primitive token and convert it to ``target_type``.

    An empty token is None. Quoted tokens are always strings before
    conversion; unquoted tokens are read as ``null``, ``true``/``false``, a
    number, or a bare string, in that order.
    """
    try:
        return _parse_token(token.strip(), target_type)
    except ToonDecodeError as e:
        if e.line is not None or line_num is None:
            raise
        raise ToonDecodeError(e.cause, e.message, line_num) from e


def _parse_token(token: str, target_type: Any) -> Any:
    if not token:
        return None
    if token.startswith(DOUBLE_QUOTE):
        if len(token) < 2 or not token.endswith(DOUBLE_QUOTE):
            raise ToonDecodeError(ErrorCause.UNTERMINATED_STRING, f"Unterminated string: {token}")
        return coerce(unescape_string(token[1:-1]), target_type)
    if token == NULL_LITERAL:
        return None
    if token == TRUE_LITERAL:
        return coerce(True, target_type)
    if token == FALSE_LITERAL:
        return coerce(False, target_type)
    if NUMERIC_PATTERN.match(token) and not LEADING_ZERO_PATTERN.match(token):
        return number_from_token(token, target_type)
    return coerce(token, target_type)


# =============================================================================
# Arrays
# =============================================================================


def parse_array_header(text: str, line_num: int | None = None) -> ArrayHeader:
    """Parse an array header that starts at ``[``."""
    bracket_end = text.find(CLOSE_BRACKET)
    if bracket_end == -1:
        raise ToonDecodeError(ErrorCause.INVALID_ARRAY_HEADER, f"Missing closing bracket: {text}", line_num)
    bracket_content = text[1:bracket_end]
    delimiter = COMMA
    length_str = bracket_content
    if bracket_content.endswith((TAB, PIPE)):
        delimiter = bracket_content[-1]
        length_str = bracket_content[:-1]
    if not COUNT_PATTERN.match(length_str):
        raise ToonDecodeError(ErrorCause.INVALID_ARRAY_COUNT, f"Invalid array count: {length_str!r}", line_num)

    rest = text[bracket_end + 1 :]
    fields = None
    if rest.startswith(OPEN_BRACE):
        brace_end = find_unquoted_char(rest, CLOSE_BRACE)
        if brace_end == -1:
            raise ToonDecodeError(ErrorCause.INVALID_ARRAY_HEADER, f"Unterminated fields segment: {text}", line_num)
        fields_content = rest[1:brace_end]
        fields_delimiter = detect_delimiter(fields_content)
        if fields_delimiter != delimiter and fields_delimiter != COMMA:
            raise ToonDecodeError(
                ErrorCause.DELIMITER_MISMATCH,
                f"Field list uses {fields_delimiter!r} but the header declares {delimiter!r}",
                line_num,
            )
        try:
            fields = [parse_key(field) for field in split_delimited(fields_content, delimiter)]
        except ToonDecodeError as e:
            raise ToonDecodeError(e.cause, e.message, line_num) from e
        rest = rest[brace_end + 1 :]
    if not rest.startswith(COLON):
        raise ToonDecodeError(ErrorCause.INVALID_ARRAY_HEADER, f"Missing colon after array header: {text}", line_num)
    return ArrayHeader(length=int(length_str), delimiter=delimiter, fields=fields, inline=rest[1:].strip())


def _parse_array(cursor: _LineCursor, text: str, target_type: Any, header_depth: Depth, line_num: int) -> Any:
    """Decode the array whose header line (already consumed) is ``text``."""
    if target_kind(target_type) not in (TargetKind.ANY, TargetKind.SEQUENCE):
        raise ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot decode an array into {target_type!r}", line_num)
    header = parse_array_header(text, line_num)
    item_type = element_type(target_type)
    if header.inline:
        items = _decode_inline_array(header, item_type, cursor.strict, line_num)
    elif header.fields is not None:
        items = _decode_tabular_array(cursor, header, item_type, header_depth)
    else:
        items = _decode_list_array(cursor, header, item_type, header_depth, line_num)
    return build_sequence(target_type, items)


def _decode_inline_array(header: ArrayHeader, item_type: Any, strict: bool, line_num: int) -> list[Any]:
    tokens = split_delimited(header.inline, header.delimiter)
    if strict and len(tokens) != header.length:
        raise ToonDecodeError(
            ErrorCause.COUNT_MISMATCH, f"Expected {header.length} values, but got {len(tokens)}", line_num
        )
    return [parse_primitive(token, item_type, line_num) for token in tokens]


def _stops_at_blank(cursor: _LineCursor, line: ParsedLine, header_depth: Depth) -> bool:
    """Decide what a blank line inside an array body means.

    Returns True when the array ends here. A blank line followed by more
    array content is an error in strict mode and skipped otherwise.
    """
    following = cursor.peek_content()
    if following is None or following.depth <= header_depth:
        return True
    if cursor.strict:
        raise ToonDecodeError(ErrorCause.BLANK_LINE_IN_ARRAY, "Blank lines are not allowed inside arrays", line.line_num)
    cursor.advance()
    return False


def _is_key_value_line(content: str, delimiter: Delimiter) -> bool:
    """A colon before any delimiter means the line is a key, not a row."""
    _, char = find_first_unquoted(content, (delimiter, COLON))
    return char == COLON


def _decode_tabular_array(
    cursor: _LineCursor,
    header: ArrayHeader,
    item_type: Any,
    header_depth: Depth,
) -> list[Any]:
    """Decode a tabular array.

    Rows are read until the declared count is reached, indentation returns to
    the header's depth, or a line reads as a ``key: value`` pair.
    """
    if target_kind(item_type) not in (TargetKind.ANY, TargetKind.RECORD):
        raise ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot decode tabular rows into {item_type!r}")
    schema = record_schema(item_type)
    fields = header.fields or []
    rows: list[Any] = []
    while len(rows) < header.length:
        line = cursor.peek()
        if line is None:
            break
        if line.is_blank:
            if _stops_at_blank(cursor, line, header_depth):
                break
            continue
        if line.depth <= header_depth or _is_key_value_line(line.content, header.delimiter):
            break
        cursor.advance()
        tokens = split_delimited(line.content, header.delimiter)
        if len(tokens) != len(fields):
            if cursor.strict:
                raise ToonDecodeError(
                    ErrorCause.ROW_WIDTH_MISMATCH,
                    f"Expected {len(fields)} values in row, but got {len(tokens)}",
                    line.line_num,
                )
            logger.debug(f"Row width mismatch at line {line.line_num}: {len(fields)} fields, {len(tokens)} values")
        values: dict[str, Any] = {}
        for index, field_name in enumerate(fields):
            token = tokens[index] if index < len(tokens) else ""
            _assign(schema, values, field_name, token, line.line_num)
        rows.append(schema.build(values))
    if len(rows) < header.length:
        logger.debug(f"Tabular array declared {header.length} rows, read {len(rows)}")
    return rows


def _assign(schema: RecordSchema, values: dict[str, Any], key: str, token: str, line_num: int) -> None:
    spec = schema.find(key)
    if spec is None:
        logger.debug(f"Ignoring unknown field {key!r} at line {line_num}")
        return
    values[spec.attr] = parse_primitive(token, spec.annotation, line_num)


def _decode_list_array(
    cursor: _LineCursor,
    header: ArrayHeader,
    item_type: Any,
    header_depth: Depth,
    line_num: int,
) -> list[Any]:
    """Decode a list-format array (mixed/non-uniform)."""
    items: list[Any] = []
    while len(items) < header.length:
        line = cursor.peek()
        if line is None:
            break
        if line.is_blank:
            if _stops_at_blank(cursor, line, header_depth):
                break
            continue
        if line.depth <= header_depth:
            break
        cursor.advance()
        items.append(_parse_list_item(cursor, line, item_type))
    if cursor.strict and len(items) != header.length:
        raise ToonDecodeError(
            ErrorCause.COUNT_MISMATCH, f"Expected {header.length} list items, but got {len(items)}", line_num
        )
    return items


def _parse_list_item(cursor: _LineCursor, line: ParsedLine, item_type: Any) -> Any:
    """Decode one list item.

    Content after ``- `` lives in a logical scope one level below the hyphen
    line: a hoisted array header has its body two levels down, and a hoisted
    record field has its sibling fields one level down.
    """
    content = line.content
    kind = target_kind(item_type)
    if content == LIST_ITEM_MARKER and kind in (TargetKind.ANY, TargetKind.RECORD):
        return record_schema(item_type).build({})
    if not content.startswith(LIST_ITEM_PREFIX):
        return parse_primitive(content, item_type, line.line_num)

    item_content = content[len(LIST_ITEM_PREFIX) :].strip()
    scope_depth = line.depth + 1
    if item_content.startswith(OPEN_BRACKET):
        return _parse_array(cursor, item_content, item_type, scope_depth, line.line_num)
    if find_unquoted_char(item_content, COLON) > 0:
        if kind not in (TargetKind.ANY, TargetKind.RECORD):
            raise ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot decode a record into {item_type!r}", line.line_num)
        return _parse_object(cursor, item_type, scope_depth, first=(item_content, line.line_num))
    return parse_primitive(item_content, item_type, line.line_num)


# =============================================================================
# Objects
# =============================================================================


def _parse_object(
    cursor: _LineCursor,
    target_type: Any,
    depth: Depth,
    first: tuple[str, int] | None = None,
) -> Any:
    """Decode ``key: value`` lines at ``depth`` into a record.

    ``first`` carries a field that was hoisted onto a list item's hyphen line.
    Lines deeper than ``depth`` that no field claims are skipped.
    """
    schema = record_schema(target_type)
    values: dict[str, Any] = {}
    if first is not None:
        _parse_field(cursor, schema, values, first[0], depth, first[1])
    while True:
        line = cursor.peek()
        if line is None:
            break
        if line.is_blank:
            following = cursor.peek_content()
            if following is None or following.depth < depth:
                break
            cursor.advance()
            continue
        if line.depth < depth:
            break
        cursor.advance()
        if line.depth > depth:
            logger.debug(f"Skipping over-indented line {line.line_num}")
            continue
        _parse_field(cursor, schema, values, line.content, depth, line.line_num)
    return schema.build(values)


def _parse_field(
    cursor: _LineCursor,
    schema: RecordSchema,
    values: dict[str, Any],
    content: str,
    depth: Depth,
    line_num: int,
) -> None:
    bracket_idx = find_unquoted_char(content, OPEN_BRACKET)
    colon_idx = find_unquoted_char(content, COLON)

    if bracket_idx > 0 and (colon_idx == -1 or bracket_idx < colon_idx):
        key = _parse_key_at(content[:bracket_idx], line_num)
        spec = schema.find(key)
        if spec is None:
            logger.debug(f"Ignoring unknown array field {key!r} at line {line_num}")
            return
        values[spec.attr] = _parse_array(cursor, content[bracket_idx:], spec.annotation, depth, line_num)
        return

    if colon_idx == -1:
        if cursor.strict and SPACE in content and not content.startswith((LIST_ITEM_MARKER, OPEN_BRACKET)):
            raise ToonDecodeError(ErrorCause.MISSING_COLON, f"Missing colon after key: {content}", line_num)
        logger.debug(f"Skipping line {line_num} without a key")
        return

    key = _parse_key_at(content[:colon_idx], line_num)
    raw_value = content[colon_idx + 1 :].strip()
    spec = schema.find(key)
    if spec is None:
        logger.debug(f"Ignoring unknown field {key!r} at line {line_num}")
        return
    if raw_value:
        values[spec.attr] = parse_primitive(raw_value, spec.annotation, line_num)
    elif target_kind(spec.annotation) in (TargetKind.ANY, TargetKind.RECORD):
        values[spec.attr] = _parse_object(cursor, spec.annotation, depth + 1)
    else:
        values[spec.attr] = None


def _parse_key_at(key_str: str, line_num: int) -> str:
    try:
        return parse_key(key_str)
    except ToonDecodeError as e:
        raise ToonDecodeError(e.cause, e.message, line_num) from e


# =============================================================================
# Entry points
# =============================================================================


def decode(input_str: str, target_type: Any = Any, options: DecodeOptions | None = None) -> Any:
    """Decode a TOON-formatted string into ``target_type``.

    Args:
        input_str: TOON-formatted string.
        target_type: Type to build. ``Any`` infers dicts, lists and scalars
            from the text; ``dict``/``object`` always read a record.
        options: Decoding options. Defaults to strict mode with a 2-space indent.

    Returns:
        The decoded value. Empty or whitespace-only input gives None, or the
        zero value of an ``int``, ``float``, ``bool`` or ``Decimal`` target.

    Raises:
        ToonDecodeError: If the input is malformed or cannot become ``target_type``.

    Example:
        >>> decode("name: Alice\\nage: 30")
        {'name': 'Alice', 'age': 30}
        >>> decode("[3]: 1,2,3", list[int])
        [1, 2, 3]
    """
    resolved = options or DecodeOptions()
    cursor = _LineCursor(input_str, resolved)
    cursor.skip_blank_lines()
    first = cursor.peek()
    if first is None:
        return target_type() if target_type in _ZERO_VALUE_TYPES else None

    content = first.content
    kind = target_kind(target_type)
    has_colon = find_unquoted_char(content, COLON) != -1

    if kind is TargetKind.SCALAR or (kind is TargetKind.ANY and not has_colon and not content.startswith(OPEN_BRACKET)):
        if has_colon:
            raise ToonDecodeError(
                ErrorCause.INVALID_VALUE, f"Expected a single value for {target_type!r}", first.line_num
            )
        cursor.advance()
        return parse_primitive(content, target_type, first.line_num)

    if content.startswith(OPEN_BRACKET):
        if kind is TargetKind.RECORD:
            raise ToonDecodeError(
                ErrorCause.INVALID_VALUE, f"Cannot decode an array into {target_type!r}", first.line_num
            )
        cursor.advance()
        result = _parse_array(cursor, content, target_type, first.depth, first.line_num)
    elif kind is TargetKind.SEQUENCE:
        bracket_idx = find_unquoted_char(content, OPEN_BRACKET)
        if bracket_idx == -1:
            raise ToonDecodeError(
                ErrorCause.INVALID_ARRAY_HEADER, f"Expected an array header: {content}", first.line_num
            )
        cursor.advance()
        result = _parse_array(cursor, content[bracket_idx:], target_type, first.depth, first.line_num)
    else:
        result = _parse_object(cursor, target_type, first.depth)
    logger.debug(f"Decoded TOON input into {type(result).__name__}")
    return result


def deserialize(
    toon: str,
    target_type: Any = Any,
    indent_size: int = DEFAULT_INDENT_SIZE,
    strict: bool = True,
) -> Any:
    """Decode TOON text with the given indent size and strictness."""
    return decode(toon, target_type, DecodeOptions(indent=indent_size, strict=strict))
