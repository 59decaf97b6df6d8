# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""Convert decoded scalars and sequences to the requested target types."""

import collections.abc
import inspect
import types
from collections.abc import Mapping
from dataclasses import is_dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel

from .constants import FALSE_LITERAL, INTEGER_PATTERN, TRUE_LITERAL
from .errors import ErrorCause, ToonDecodeError
from .schema import RecordSchema, is_registered, mapping_schema, schema_for

_SCALAR_TYPES = (str, bool, int, float, Decimal, date, datetime, time, Enum, type(None))
_SEQUENCE_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Collection,
    collections.abc.Iterable,
)


class TargetKind(Enum):
    ANY = "any"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    RECORD = "record"


def unwrap_optional(target: Any) -> Any:
    """Strip ``Annotated`` and pick the first non-None member of a union."""
    if get_origin(target) is Annotated:
        target = get_args(target)[0]
    if get_origin(target) in (Union, types.UnionType):
        non_none_args = [arg for arg in get_args(target) if arg is not type(None)]
        if non_none_args:
            return unwrap_optional(non_none_args[0])
    return target


def target_kind(target: Any) -> TargetKind:
    target = unwrap_optional(target)
    if target is Any:
        return TargetKind.ANY
    origin = get_origin(target) or target
    if origin is Literal:
        return TargetKind.SCALAR
    if not inspect.isclass(origin):
        return TargetKind.ANY
    if issubclass(origin, _SCALAR_TYPES):
        return TargetKind.SCALAR
    if is_registered(origin) or issubclass(origin, (BaseModel, Mapping)) or is_dataclass(origin) or origin is object:
        return TargetKind.RECORD
    if origin in _SEQUENCE_ORIGINS or issubclass(origin, (list, tuple, set, frozenset)):
        return TargetKind.SEQUENCE
    return TargetKind.RECORD


def element_type(target: Any) -> Any:
    """Element type of a sequence target; Any when unknown or mixed."""
    target = unwrap_optional(target)
    args = get_args(target)
    if not args:
        return Any
    if get_origin(target) is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        if len(set(args)) == 1:
            return args[0]
        return Any
    return args[0]


def build_sequence(target: Any, items: list[Any]) -> Any:
    """Materialize decoded items as the container the target asks for."""
    target = unwrap_optional(target)
    origin = get_origin(target) or target
    if not inspect.isclass(origin):
        return items
    if issubclass(origin, tuple):
        return tuple(items)
    if issubclass(origin, frozenset):
        return frozenset(items)
    if origin in (set, collections.abc.Set, collections.abc.MutableSet) or issubclass(origin, set):
        try:
            return set(items)
        except TypeError as e:
            raise ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot build a set from unhashable items: {e}") from e
    return items


def record_schema(target: Any) -> RecordSchema:
    """Schema used to decode a record into target."""
    target = unwrap_optional(target)
    if target is Any or target is object:
        return mapping_schema()
    origin = get_origin(target) or target
    if not inspect.isclass(origin) or target_kind(target) is not TargetKind.RECORD:
        raise ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot decode a record into {target!r}")
    if issubclass(origin, Mapping) and not is_registered(origin):
        args = get_args(target)
        value_type = args[1] if len(args) == 2 else Any
        return mapping_schema(value_type, origin)
    return schema_for(origin)


def number_from_token(token: str, target: Any) -> Any:
    """Parse an unquoted numeric token directly as the target type.

    Integer targets truncate fractional tokens toward zero, string targets
    keep the token text and dynamic targets get an int or a float.
    """
    target = unwrap_optional(target)
    if target is str:
        return token
    if target is Decimal:
        return Decimal(token)
    if target is float:
        return float(token)
    if target is int:
        return int(Decimal(token))
    natural = int(token) if INTEGER_PATTERN.match(token) else float(token)
    if target is Any or target is object:
        return natural
    return coerce(natural, target)


def coerce(value: Any, target: Any) -> Any:
    """Convert a decoded value to target, raising INVALID_VALUE when impossible."""
    target = unwrap_optional(target)
    if value is None or target is Any or target is object:
        return value
    origin = get_origin(target)
    if origin is Literal:
        return _coerce_literal(value, target)
    kind = target_kind(target)
    if kind is TargetKind.SEQUENCE:
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise _invalid(value, target)
        item_type = element_type(target)
        return build_sequence(target, [coerce(item, item_type) for item in value])
    if kind is TargetKind.RECORD:
        record_type = origin or target
        if isinstance(record_type, type) and isinstance(value, record_type):
            return value
        raise _invalid(value, target)
    return _coerce_scalar(value, target)


def _coerce_literal(value: Any, target: Any) -> Any:
    for member in get_args(target):
        if value == member and type(value) is type(member):
            return member
        if isinstance(member, str) and isinstance(value, str) and member.casefold() == value.casefold():
            return member
    raise _invalid(value, target)


def _coerce_scalar(value: Any, target: type) -> Any:
    if isinstance(value, target) and not (target is int and isinstance(value, bool)):
        return value
    if issubclass(target, Enum):
        return _coerce_enum(value, target)
    if target is bool:
        return _coerce_bool(value)
    if target is str:
        if isinstance(value, bool):
            return TRUE_LITERAL if value else FALSE_LITERAL
        return str(value)
    if issubclass(target, datetime) or issubclass(target, date) or issubclass(target, time):
        if isinstance(value, str):
            try:
                return target.fromisoformat(value)
            except ValueError as e:
                raise _invalid(value, target) from e
        raise _invalid(value, target)
    if target is type(None):
        raise _invalid(value, target)
    try:
        if target is Decimal and isinstance(value, float):
            return Decimal(repr(value))
        if target is Decimal and isinstance(value, bool):
            return Decimal(int(value))
        if isinstance(value, str):
            return target(value.strip())
        return target(value)
    except (ValueError, TypeError, OverflowError, InvalidOperation) as e:
        raise _invalid(value, target) from e


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, (int, float, Decimal)):
        return bool(value)
    if isinstance(value, str):
        folded = value.strip().casefold()
        if folded == TRUE_LITERAL:
            return True
        if folded == FALSE_LITERAL:
            return False
    raise _invalid(value, bool)


def _coerce_enum(value: Any, target: type[Enum]) -> Enum:
    if isinstance(value, str):
        folded = value.casefold()
        for member in target:
            if member.name.casefold() == folded:
                return member
    try:
        return target(value)
    except ValueError as e:
        raise _invalid(value, target) from e


def _invalid(value: Any, target: Any) -> ToonDecodeError:
    name = getattr(target, "__name__", repr(target))
    return ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot convert {value!r} to {name}")
