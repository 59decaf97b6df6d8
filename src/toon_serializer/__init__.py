# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""TOON (Token-Oriented Object Notation) serializer.

A compact, indentation-based text notation for the JSON data model, with
inline and tabular array forms that keep uniform data to one line per record.

Example:
    >>> from toon_serializer import serialize, deserialize
    >>> print(serialize([{"sku": "A1", "qty": 2}, {"sku": "B2", "qty": 1}]))
    [2]{sku,qty}:
      A1,2
      B2,1
    >>> deserialize("[2|]: a|b", list[str])
    ['a', 'b']
"""

from .decoder import decode, deserialize, parse_primitive
from .encoder import encode, serialize
from .errors import ErrorCause, ToonDecodeError, ToonError, ToonIndentSizeError
from .options import DecodeOptions, EncodeOptions
from .schema import FieldSpec, RecordSchema, register_schema, toon_field

__version__ = "0.1.0"

__all__ = [
    "DecodeOptions",
    "EncodeOptions",
    "ErrorCause",
    "FieldSpec",
    "RecordSchema",
    "ToonDecodeError",
    "ToonError",
    "ToonIndentSizeError",
    "decode",
    "deserialize",
    "encode",
    "parse_primitive",
    "register_schema",
    "serialize",
    "toon_field",
]
