# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""Record field enumeration for the TOON encoder and decoder.

A `RecordSchema` lists a record type's fields in declared order together with
their serialized names, type annotations and getters, and knows how to build an
instance from decoded values. Schemas are resolved once per type and cached.

Supported record types:
    - Pydantic models (``alias``/``serialization_alias`` rename a field,
      ``Field(exclude=True)`` ignores it)
    - Dataclasses
    - Mappings
    - Types registered with `register_schema`
    - Plain classes (annotated public attributes)

Per-field overrides for pydantic models and dataclasses come from `toon_field`:

    >>> from pydantic import BaseModel, Field
    >>> class Person(BaseModel):
    ...     name: str = Field(json_schema_extra=toon_field(name="full_name"))
    ...     internal_id: str = Field(default="", json_schema_extra=toon_field(ignore=True))
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
import typing
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, get_origin

from pydantic import BaseModel, ValidationError

from .errors import ErrorCause, ToonDecodeError

logger = logging.getLogger(__name__)

TOON_NAME = "toon_name"
TOON_IGNORE = "toon_ignore"


def toon_field(name: str | None = None, ignore: bool = False) -> dict[str, Any]:
    """Build per-field TOON metadata.

    Pass the result as ``metadata=`` to `dataclasses.field` or as
    ``json_schema_extra=`` to `pydantic.Field`. A TOON name takes precedence
    over a pydantic alias.

    Args:
        name: Serialized name used in both directions.
        ignore: Exclude the field from encoding and decoding.
    """
    metadata: dict[str, Any] = {}
    if name is not None:
        metadata[TOON_NAME] = name
    if ignore:
        metadata[TOON_IGNORE] = True
    return metadata


@dataclass(frozen=True)
class FieldSpec:
    """One serializable field of a record type."""

    name: str
    attr: str
    annotation: Any = Any
    getter: Callable[[Any], Any] | None = None

    def get(self, obj: Any) -> Any:
        if self.getter is not None:
            return self.getter(obj)
        return getattr(obj, self.attr, None)


@dataclass(frozen=True)
class RecordSchema:
    """Ordered field list plus factory for a record type.

    ``kind`` is ``"fields"`` for types with a fixed field list, ``"mapping"``
    for dict-like records whose keys are data, and ``"attributes"`` for plain
    objects enumerated through their instance ``__dict__``.
    """

    record_type: type
    fields: tuple[FieldSpec, ...]
    factory: Callable[[dict[str, Any]], Any]
    kind: str = "fields"
    value_type: Any = Any

    def find(self, name: str) -> FieldSpec | None:
        """Look up a field by serialized name, case-insensitively, first declared match wins."""
        if self.kind != "fields":
            return FieldSpec(name=name, attr=name, annotation=self.value_type)
        folded = name.casefold()
        for spec in self.fields:
            if spec.name.casefold() == folded:
                return spec
        return None

    def items(self, obj: Any) -> list[tuple[str, Any]]:
        """Return ``(serialized name, value)`` pairs in declared order."""
        if self.kind == "mapping":
            return [(str(key), value) for key, value in obj.items()]
        if self.kind == "attributes":
            if not hasattr(obj, "__dict__"):
                raise TypeError(f"Object of type {type(obj).__name__} is not TOON serializable")
            return [(key, value) for key, value in vars(obj).items() if not key.startswith("_")]
        return [(spec.name, spec.get(obj)) for spec in self.fields]

    def build(self, values: dict[str, Any]) -> Any:
        """Instantiate the record from values keyed by attribute name."""
        return self.factory(values)


_registry: dict[type, RecordSchema] = {}
_cache: dict[type, RecordSchema] = {}


def register_schema(
    record_type: type,
    fields: Sequence[FieldSpec | str],
    factory: Callable[[dict[str, Any]], Any] | None = None,
) -> RecordSchema:
    """Register an explicit schema for ``record_type``.

    Args:
        record_type: The class being described.
        fields: Field specs, or attribute names serialized under the same name.
        factory: Builds an instance from a dict keyed by attribute name.
            Defaults to calling ``record_type(**values)``.

    Returns:
        The registered schema.
    """
    specs = tuple(FieldSpec(name=f, attr=f) if isinstance(f, str) else f for f in fields)
    schema = RecordSchema(
        record_type=record_type,
        fields=specs,
        factory=factory or _constructor_factory(record_type),
    )
    _registry[record_type] = schema
    _cache.pop(record_type, None)
    return schema


def is_registered(record_type: Any) -> bool:
    return record_type in _registry


def schema_for(record_type: type) -> RecordSchema:
    """Return the (cached) schema for a record type."""
    if record_type in _registry:
        return _registry[record_type]
    schema = _cache.get(record_type)
    if schema is None:
        schema = _build_schema(record_type)
        _cache[record_type] = schema
        logger.debug(f"Resolved TOON schema for {record_type.__name__}: {[spec.name for spec in schema.fields]}")
    return schema


def mapping_schema(value_type: Any = Any, mapping_type: type = dict) -> RecordSchema:
    """Schema for dict-like records: every key is accepted and values decode as ``value_type``."""
    factory = dict if inspect.isabstract(mapping_type) else mapping_type
    return RecordSchema(record_type=mapping_type, fields=(), factory=factory, kind="mapping", value_type=value_type)


def record_items(value: Any) -> list[tuple[str, Any]]:
    """Enumerate a record value as ``(serialized name, value)`` pairs."""
    if isinstance(value, Mapping):
        return [(str(key), item) for key, item in value.items()]
    return schema_for(type(value)).items(value)


def _build_schema(record_type: type) -> RecordSchema:
    if inspect.isclass(record_type) and issubclass(record_type, BaseModel):
        return _pydantic_schema(record_type)
    if dataclasses.is_dataclass(record_type):
        return _dataclass_schema(record_type)
    if inspect.isclass(record_type) and issubclass(record_type, Mapping):
        return mapping_schema(mapping_type=record_type)
    return _class_schema(record_type)


def _pydantic_schema(model: type[BaseModel]) -> RecordSchema:
    specs = []
    input_keys: dict[str, str] = {}
    for attr, field in model.model_fields.items():
        extra = field.json_schema_extra if isinstance(field.json_schema_extra, dict) else {}
        if field.exclude or extra.get(TOON_IGNORE):
            continue
        name = extra.get(TOON_NAME) or field.serialization_alias or field.alias or attr
        specs.append(FieldSpec(name=str(name), attr=attr, annotation=field.annotation))
        if isinstance(field.validation_alias, str):
            input_keys[attr] = field.validation_alias
        else:
            input_keys[attr] = field.alias or attr

    def build(values: dict[str, Any]) -> BaseModel:
        data = {input_keys.get(attr, attr): value for attr, value in values.items()}
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot build {model.__name__}: {e}") from e

    return RecordSchema(record_type=model, fields=tuple(specs), factory=build)


def _dataclass_schema(record_type: type) -> RecordSchema:
    hints = _type_hints(record_type)
    specs = []
    init_attrs = set()
    for field in dataclasses.fields(record_type):
        if field.metadata.get(TOON_IGNORE):
            continue
        name = field.metadata.get(TOON_NAME) or field.name
        specs.append(FieldSpec(name=name, attr=field.name, annotation=hints.get(field.name, Any)))
        if field.init:
            init_attrs.add(field.name)

    def build(values: dict[str, Any]) -> Any:
        skipped = set(values) - init_attrs
        if skipped:
            logger.debug(f"Not passing non-init fields {sorted(skipped)} to {record_type.__name__}")
        kwargs = {attr: value for attr, value in values.items() if attr in init_attrs}
        try:
            return record_type(**kwargs)
        except TypeError as e:
            raise ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot build {record_type.__name__}: {e}") from e

    return RecordSchema(record_type=record_type, fields=tuple(specs), factory=build)


def _class_schema(record_type: type) -> RecordSchema:
    hints = {
        attr: annotation
        for attr, annotation in _type_hints(record_type).items()
        if not attr.startswith("_") and get_origin(annotation) is not ClassVar
    }
    if not hints:
        return RecordSchema(record_type=record_type, fields=(), factory=_setattr_factory(record_type), kind="attributes")
    specs = tuple(FieldSpec(name=attr, attr=attr, annotation=annotation) for attr, annotation in hints.items())
    return RecordSchema(record_type=record_type, fields=specs, factory=_setattr_factory(record_type))


def _type_hints(record_type: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError):
        # Unresolvable forward references: fall back to the raw annotations
        hints: dict[str, Any] = {}
        for klass in reversed(record_type.__mro__):
            hints.update(getattr(klass, "__annotations__", {}))
        return hints


def _constructor_factory(record_type: type) -> Callable[[dict[str, Any]], Any]:
    def build(values: dict[str, Any]) -> Any:
        try:
            return record_type(**values)
        except TypeError as e:
            raise ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot build {record_type.__name__}: {e}") from e

    return build


def _setattr_factory(record_type: type) -> Callable[[dict[str, Any]], Any]:
    def build(values: dict[str, Any]) -> Any:
        try:
            obj = record_type()
        except TypeError as e:
            raise ToonDecodeError(ErrorCause.INVALID_VALUE, f"Cannot build {record_type.__name__}: {e}") from e
        for attr, value in values.items():
            setattr(obj, attr, value)
        return obj

    return build
