# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""Decide how a runtime value is laid out in TOON."""

from collections.abc import Mapping, Sequence, Set
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from .schema import record_items


class ValueKind(Enum):
    """Layout kinds a value can take in TOON output."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    INLINE_SEQUENCE = "inline"
    TABULAR_SEQUENCE = "tabular"
    EXPANDED_SEQUENCE = "expanded"
    RECORD = "record"


SCALAR_KINDS = frozenset({ValueKind.NULL, ValueKind.BOOLEAN, ValueKind.NUMBER, ValueKind.STRING})
SEQUENCE_KINDS = frozenset({ValueKind.INLINE_SEQUENCE, ValueKind.TABULAR_SEQUENCE, ValueKind.EXPANDED_SEQUENCE})


@dataclass(frozen=True)
class Classification:
    """Layout decision for a value. ``fields`` holds the tabular columns."""

    kind: ValueKind
    fields: tuple[str, ...] = ()

    @property
    def is_scalar(self) -> bool:
        return self.kind in SCALAR_KINDS

    @property
    def is_sequence(self) -> bool:
        return self.kind in SEQUENCE_KINDS


def scalar_kind(value: Any) -> ValueKind | None:
    """Return the scalar kind of value, or None for sequences and records."""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    # Enums render by member name, even int-valued ones
    if isinstance(value, (Enum, str, date, datetime, time)):
        return ValueKind.STRING
    if isinstance(value, (int, float, Decimal)):
        return ValueKind.NUMBER
    return None


def is_scalar(value: Any) -> bool:
    """Check if value encodes as a single TOON token."""
    return scalar_kind(value) is not None


def as_sequence(value: Any) -> list[Any] | None:
    """Return the elements of a sequence-like value, or None if it is not one.

    Sets are emitted in sorted order so output is stable.
    """
    if isinstance(value, (str, bytes, bytearray, Mapping)):
        return None
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Set):
        try:
            return sorted(value)
        except TypeError:
            return sorted(value, key=repr)
    if isinstance(value, Sequence):
        return list(value)
    return None


def classify(value: Any) -> Classification:
    """Classify value as a scalar, a sequence layout or a record."""
    kind = scalar_kind(value)
    if kind is not None:
        return Classification(kind)
    items = as_sequence(value)
    if items is not None:
        return classify_sequence(items)
    return Classification(ValueKind.RECORD)


def classify_sequence(items: list[Any]) -> Classification:
    """Pick the inline, tabular or expanded layout for a sequence.

    Empty and all-scalar sequences are inline. A non-empty sequence of records
    that share one non-empty field set and hold only scalar values is tabular,
    with columns in the first record's order. Anything else is expanded.
    """
    if all(is_scalar(item) for item in items):
        return Classification(ValueKind.INLINE_SEQUENCE)
    fields = _tabular_fields(items)
    if fields:
        return Classification(ValueKind.TABULAR_SEQUENCE, fields)
    return Classification(ValueKind.EXPANDED_SEQUENCE)


def _tabular_fields(items: list[Any]) -> tuple[str, ...]:
    columns: tuple[str, ...] = ()
    column_set: set[str] = set()
    for index, item in enumerate(items):
        if is_scalar(item) or as_sequence(item) is not None:
            return ()
        pairs = record_items(item)
        names = [name for name, _ in pairs]
        if index == 0:
            columns = tuple(names)
            column_set = set(names)
            if not column_set:
                return ()
        elif set(names) != column_set:
            return ()
        if not all(is_scalar(field_value) for _, field_value in pairs):
            return ()
    return columns
