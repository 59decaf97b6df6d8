"""Unit tests for the TOON decoder."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Literal, Optional

import pytest
from pydantic import BaseModel, Field

from toon_serializer import DecodeOptions, ToonDecodeError, ToonIndentSizeError, decode, deserialize, toon_field
from toon_serializer.errors import ErrorCause


@dataclass
class AddressInfo:
    City: str
    Street: str


@dataclass
class SimpleObject:
    Id: int
    Name: Optional[str]
    Active: bool


@dataclass
class NestedObject:
    Id: int
    Address: AddressInfo


class TabularItem(BaseModel):
    Sku: str
    Qty: int
    Price: Decimal


class TagHolder(BaseModel):
    Tags: list[str]


class User(BaseModel):
    id: int
    name: str


class ListWrapper(BaseModel):
    users: list[User]
    status: str


class ItemsContainer(BaseModel):
    items: list[ListWrapper]


class RootWithData(BaseModel):
    data: list[User]
    key: str


class AttributeObject(BaseModel):
    person_name: str = Field(json_schema_extra=toon_field(name="name"))
    Age: int


class QuotedKeyObject(BaseModel):
    order_id: int = Field(alias="order:id")
    full_name: str = Field(alias="full name")


class Color(Enum):
    RED = "r"
    GREEN = "g"


class Priority(IntEnum):
    LOW = 1
    HIGH = 3


class Settings(BaseModel):
    color: Color
    priority: Priority
    mode: Literal["fast", "slow"]
    when: datetime
    nick: Optional[str] = None


class Defaults(BaseModel):
    name: str = "anon"


def _cause(exc_info):
    return exc_info.value.cause


# =============================================================================
# Primitives
# =============================================================================


class TestDecodePrimitives:
    """Root scalar values."""

    @pytest.mark.parametrize("toon,expected", [("hello", "hello"), ("Ada_99", "Ada_99"), ('""', ""), ('"true"', "true"),
                                               ('"42"', "42"), ("42", "42")])
    def test_strings(self, toon, expected):
        assert deserialize(toon, str) == expected

    @pytest.mark.parametrize("toon,expected", [("42", 42), ("-7", -7), ("0", 0), ("3.7", 3), ("-3.7", -3)])
    def test_integers(self, toon, expected):
        assert deserialize(toon, int) == expected

    @pytest.mark.parametrize("toon,expected", [("3.14", 3.14), ("-3.14", -3.14), ("1e-6", 0.000001),
                                               ("-1E+9", -1000000000.0)])
    def test_floats(self, toon, expected):
        assert deserialize(toon, float) == expected

    def test_decimal(self):
        assert deserialize("9.99", Decimal) == Decimal("9.99")

    @pytest.mark.parametrize("toon", ["05", "0001", "007"])
    def test_leading_zero_tokens_stay_strings(self, toon):
        assert deserialize(toon, str) == toon
        assert deserialize(toon) == toon

    def test_booleans(self):
        assert deserialize("true", bool) is True
        assert deserialize("false", bool) is False

    @pytest.mark.parametrize("toon,expected", [("42", 42), ("3.5", 3.5), ("null", None), ("true", True),
                                               ("hello world", "hello world"), ('"a:b"', "a:b")])
    def test_dynamic(self, toon, expected):
        assert deserialize(toon) == expected

    @pytest.mark.parametrize("toon", ["", "   ", "\n\n  \n"])
    def test_empty_input(self, toon):
        assert deserialize(toon) is None
        assert deserialize(toon, SimpleObject) is None

    @pytest.mark.parametrize("target,expected", [(int, 0), (float, 0.0), (bool, False), (Decimal, Decimal(0))])
    def test_empty_input_gives_zero_value(self, target, expected):
        result = deserialize("", target)
        assert result == expected
        assert type(result) is target

    def test_empty_input_optional_target_is_none(self):
        assert deserialize("  ", Optional[int]) is None
        assert deserialize("", str) is None

    def test_unconvertible_scalar(self):
        with pytest.raises(ToonDecodeError) as exc_info:
            deserialize("abc", int)
        assert _cause(exc_info) is ErrorCause.INVALID_VALUE
        assert exc_info.value.line == 1

    def test_scalar_target_with_key_line(self):
        with pytest.raises(ToonDecodeError) as exc_info:
            deserialize("a: 1", int)
        assert _cause(exc_info) is ErrorCause.INVALID_VALUE


# =============================================================================
# Records
# =============================================================================


class TestDecodeRecords:
    """Key/value bodies decoded into typed and dynamic records."""

    def test_simple_object(self):
        result = deserialize("Id: 123\nName: Ada\nActive: true", SimpleObject)
        assert result == SimpleObject(Id=123, Name="Ada", Active=True)

    def test_nested_object(self):
        result = deserialize("Id: 1\nAddress:\n  City: Boulder\n  Street: Main St", NestedObject)
        assert result.Address == AddressInfo(City="Boulder", Street="Main St")

    def test_dynamic_object(self):
        toon = "a: 1\nb:\n  c: x\n  d: null\nlist[2]: 1,2"
        assert deserialize(toon) == {"a": 1, "b": {"c": "x", "d": None}, "list": [1, 2]}

    def test_dict_and_object_targets(self):
        assert deserialize("a: 1", dict) == {"a": 1}
        assert deserialize("a: 1", object) == {"a": 1}
        assert deserialize("a: 1\nb: 2", dict[str, str]) == {"a": "1", "b": "2"}

    def test_case_insensitive_keys(self):
        result = deserialize("id: 1\nNAME: Ada\nactive: true", SimpleObject)
        assert result == SimpleObject(Id=1, Name="Ada", Active=True)

    def test_unknown_keys_are_skipped(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="toon_serializer.decoder"):
            result = deserialize("Id: 1\nExtra: 5\nName: A\nActive: false", SimpleObject)
        assert result == SimpleObject(Id=1, Name="A", Active=False)
        assert "Ignoring unknown field 'Extra'" in caplog.text

    def test_toon_field_name(self):
        result = deserialize("name: Ada\nAge: 30", AttributeObject)
        assert result.person_name == "Ada"
        assert result.Age == 30

    def test_quoted_keys(self):
        result = deserialize('"order:id": 1\n"full name": Ada', QuotedKeyObject)
        assert result.order_id == 1
        assert result.full_name == "Ada"

    def test_escaped_strings(self):
        result = deserialize('City: "C:\\\\Users\\\\test"\nStreet: "line1\\nline2"', AddressInfo)
        assert result.City == "C:\\Users\\test"
        assert result.Street == "line1\nline2"

    def test_typed_scalars(self):
        toon = 'color: red\npriority: 3\nmode: FAST\nwhen: "2024-01-15T10:30:00"\nnick: null'
        result = deserialize(toon, Settings)
        assert result.color is Color.RED
        assert result.priority is Priority.HIGH
        assert result.mode == "fast"
        assert result.when == datetime(2024, 1, 15, 10, 30)
        assert result.nick is None

    def test_invalid_enum(self):
        with pytest.raises(ToonDecodeError) as exc_info:
            deserialize('color: purple\npriority: 1\nmode: fast\nwhen: "2024-01-15"', Settings)
        assert _cause(exc_info) is ErrorCause.INVALID_VALUE
        assert exc_info.value.line == 1

    def test_string_field_keeps_numeric_text(self):
        result = deserialize("Sku: 007\nQty: 2\nPrice: 1.50", TabularItem)
        assert result.Sku == "007"
        assert result.Price == Decimal("1.50")

    def test_numeric_token_into_string_field(self):
        assert deserialize("City: 12.50\nStreet: 1e3", AddressInfo) == AddressInfo(City="12.50", Street="1e3")

    def test_error_carries_line_number(self):
        with pytest.raises(ToonDecodeError, match="Line 2") as exc_info:
            deserialize('Id: 1\nName: "oops', SimpleObject)
        assert exc_info.value.line == 2
        assert _cause(exc_info) is ErrorCause.UNTERMINATED_STRING

    def test_missing_required_field(self):
        with pytest.raises(ToonDecodeError) as exc_info:
            deserialize("Id: 1", SimpleObject)
        assert _cause(exc_info) is ErrorCause.INVALID_VALUE

    def test_over_indented_lines_are_skipped(self):
        assert deserialize("a: 1\n    stray: 2\nb: 3") == {"a": 1, "b": 3}

    def test_record_target_rejects_root_array(self):
        with pytest.raises(ToonDecodeError) as exc_info:
            deserialize("[1]: a", SimpleObject)
        assert _cause(exc_info) is ErrorCause.INVALID_VALUE


# =============================================================================
# Arrays
# =============================================================================


class TestDecodeArrays:
    """Inline, tabular and list arrays."""

    def test_inline(self):
        assert deserialize("[3]: a,b,c", list[str]) == ["a", "b", "c"]
        assert deserialize("[3]: 1,2,3", list[int]) == [1, 2, 3]

    def test_inline_containers(self):
        assert deserialize("[3]: 1,2,3", tuple[int, ...]) == (1, 2, 3)
        assert deserialize("[3]: 1,2,2", set[int]) == {1, 2}
        assert deserialize("[2]: a,b", frozenset[str]) == frozenset({"a", "b"})

    def test_empty(self):
        assert deserialize("[0]:", list[int]) == []
        assert deserialize("Tags[0]:", TagHolder).Tags == []

    def test_quoted_numeric_remains_string(self):
        assert deserialize('[1]: "42"', list[str]) == ["42"]
        assert deserialize('[1]: "42"') == ["42"]

    def test_field_array(self):
        assert deserialize("Tags[3]: admin,ops,dev", TagHolder).Tags == ["admin", "ops", "dev"]

    def test_pipe_delimiter(self):
        assert deserialize("[2|]: a|b", list[str]) == ["a", "b"]

    def test_tab_delimiter(self):
        assert deserialize("[2\t]: x\ty", list[str]) == ["x", "y"]

    def test_tabular(self):
        result = deserialize("[2]{Sku,Qty,Price}:\n  A1,2,9.99\n  B2,1,14.5", list[TabularItem])
        assert result == [
            TabularItem(Sku="A1", Qty=2, Price=Decimal("9.99")),
            TabularItem(Sku="B2", Qty=1, Price=Decimal("14.5")),
        ]

    def test_tabular_dynamic(self):
        result = deserialize("[2]{id,name}:\n  1,Ada\n  2,Bob")
        assert result == [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Bob"}]

    def test_tabular_pipe_rows(self):
        result = deserialize("[2|]{id|name}:\n  1|Ada, Lovelace\n  2|Bob")
        assert result == [{"id": 1, "name": "Ada, Lovelace"}, {"id": 2, "name": "Bob"}]

    def test_tabular_quoted_fields(self):
        result = deserialize('[1]{"full name","a,b"}:\n  Ada,1')
        assert result == [{"full name": "Ada", "a,b": 1}]

    def test_list_items(self):
        assert deserialize("[3]:\n  - 1\n  - a: x\n  - text") == [1, {"a": "x"}, "text"]

    def test_arrays_of_arrays(self):
        assert deserialize("[2]:\n  - [2]: 1,2\n  - [2]: 3,4", list[list[int]]) == [[1, 2], [3, 4]]

    def test_nested_expanded_array_in_list(self):
        assert deserialize("[1]:\n  - [2]:\n      - a: 1\n      - b: 2") == [[{"a": 1}, {"b": 2}]]

    def test_list_item_records(self):
        toon = "[2]:\n  - id: 1\n    name: Ada\n  - id: 2\n    name: Bob"
        assert deserialize(toon, list[User]) == [User(id=1, name="Ada"), User(id=2, name="Bob")]

    def test_list_item_with_tabular_first_field(self):
        toon = "items[1]:\n  - users[2]{id,name}:\n      1,Ada\n      2,Bob\n    status: active"
        root = deserialize(toon, ItemsContainer)
        assert len(root.items) == 1
        item = root.items[0]
        assert item.users == [User(id=1, name="Ada"), User(id=2, name="Bob")]
        assert item.status == "active"

    def test_list_item_with_nested_record_first_field(self):
        toon = "[1]:\n  - user:\n      name: Ada\n    role: admin"
        assert deserialize(toon) == [{"user": {"name": "Ada"}, "role": "admin"}]

    def test_bare_hyphen_is_empty_record(self):
        assert deserialize("[2]:\n  -\n  - a: 1") == [{}, {"a": 1}]
        assert deserialize("[1]:\n  -", list[Defaults]) == [Defaults()]

    def test_bare_primitive_lines(self):
        assert deserialize("[2]:\n  a\n  b", list[str]) == ["a", "b"]

    def test_tabular_row_vs_key_ends_rows(self):
        toon = "data[2]{id,name}:\n  1,Alice\n  note: Something else\nkey: value"
        doc = deserialize(toon, RootWithData)
        assert doc.data == [User(id=1, name="Alice")]
        assert doc.key == "value"

    def test_tabular_quoted_colon_is_a_row(self):
        result = deserialize('[2]{id,note}:\n  1,"a: b"\n  2,c')
        assert result == [{"id": 1, "note": "a: b"}, {"id": 2, "note": "c"}]

    def test_tabular_colon_after_delimiter_is_a_row(self):
        result = deserialize("[1]{id,note}:\n  1,time 10:30")
        assert result == [{"id": 1, "note": "time 10:30"}]

    def test_tabular_ends_at_sibling_key(self):
        toon = "rows[1]{a}:\n  1\nname: y"
        assert deserialize(toon) == {"rows": [{"a": 1}], "name": "y"}

    def test_blank_line_after_array(self):
        assert deserialize("rows[1]{a}:\n  1\n\nname: y") == {"rows": [{"a": 1}], "name": "y"}
        assert deserialize("items[1]:\n  - a\n\nname: y") == {"items": ["a"], "name": "y"}

    def test_sequence_target_reads_keyed_header(self):
        assert deserialize("items[2]: a,b", list[str]) == ["a", "b"]
        assert deserialize("rows[2]{id,name}:\n  1,Ada\n  2,Bob", list[dict]) == [
            {"id": 1, "name": "Ada"},
            {"id": 2, "name": "Bob"},
        ]
        assert deserialize('"my items"[1|]: x', tuple[str, ...]) == ("x",)

    def test_sequence_target_rejects_record(self):
        with pytest.raises(ToonDecodeError) as exc_info:
            deserialize("a: 1", list[int])
        assert _cause(exc_info) is ErrorCause.INVALID_ARRAY_HEADER


# =============================================================================
# Strict mode errors
# =============================================================================


class TestDecodeErrors:
    """Structural violations rejected in strict mode."""

    @pytest.mark.parametrize(
        "toon,target,cause",
        [
            ("[2]: a", list[str], ErrorCause.COUNT_MISMATCH),
            ("[2]:\n  - 1", list[int], ErrorCause.COUNT_MISMATCH),
            ("[2]{id,name}:\n  1\n  2,Bob", list[User], ErrorCause.ROW_WIDTH_MISMATCH),
            ("[1|]{a,b}:\n  x|y", list[Any], ErrorCause.ROW_WIDTH_MISMATCH),
            ("[1]{a|b}:\n  x", list[Any], ErrorCause.DELIMITER_MISMATCH),
            ("[1\t]{a|b}:\n  x", list[Any], ErrorCause.DELIMITER_MISMATCH),
            ("key value", SimpleObject, ErrorCause.MISSING_COLON),
            ("key value", dict, ErrorCause.MISSING_COLON),
            ('Name: "bad\\x"', SimpleObject, ErrorCause.INVALID_ESCAPE),
            ('Name: "unterminated', SimpleObject, ErrorCause.UNTERMINATED_STRING),
            ("A:\n a: 1", dict, ErrorCause.INDENT_NOT_MULTIPLE),
            ("A:\n\tB: 1", object, ErrorCause.TAB_INDENTATION),
            ("[2]:\n  a\n\n  b", list[str], ErrorCause.BLANK_LINE_IN_ARRAY),
            ("[2]{a}:\n  1\n\n  2", list[Any], ErrorCause.BLANK_LINE_IN_ARRAY),
            ("[abc]: x", list[str], ErrorCause.INVALID_ARRAY_COUNT),
            ("[-1]: x", list[str], ErrorCause.INVALID_ARRAY_COUNT),
            ("[2,]: a,b", list[str], ErrorCause.INVALID_ARRAY_COUNT),
            ("items: a,b", list[str], ErrorCause.INVALID_ARRAY_HEADER),
            ("[2: a,b", list[str], ErrorCause.INVALID_ARRAY_HEADER),
            ("[2] a,b", list[str], ErrorCause.INVALID_ARRAY_HEADER),
            ("[1]{a,b:\n  1,2", list[Any], ErrorCause.INVALID_ARRAY_HEADER),
        ],
    )
    def test_error_causes(self, toon, target, cause):
        with pytest.raises(ToonDecodeError, match="Malformed TOON") as exc_info:
            deserialize(toon, target)
        assert _cause(exc_info) is cause

    def test_tab_indentation_line_number(self):
        with pytest.raises(ToonDecodeError) as exc_info:
            deserialize("A:\n\tB: 1", object)
        assert exc_info.value.line == 2

    @pytest.mark.parametrize("indent_size", [0, -1])
    def test_invalid_indent_size(self, indent_size):
        with pytest.raises(ToonIndentSizeError):
            deserialize("Name: Test", indent_size=indent_size)
        with pytest.raises(ToonIndentSizeError):
            deserialize("Name: Test", SimpleObject, indent_size=indent_size)


class TestDecodeOptions:
    """Indent size and non-strict decoding."""

    def test_custom_indent(self):
        assert deserialize("a:\n    b: 1", indent_size=4) == {"a": {"b": 1}}
        assert decode("a:\n   b: 1", options=DecodeOptions(indent=3)) == {"a": {"b": 1}}

    def test_lenient_count(self):
        assert deserialize("[3]: a,b", list[str], strict=False) == ["a", "b"]
        assert deserialize("[2]:\n  - 1", list[int], strict=False) == [1]

    def test_lenient_row_width(self):
        result = deserialize("[2]{id,name}:\n  1\n  2,Bob", strict=False)
        assert result == [{"id": 1, "name": None}, {"id": 2, "name": "Bob"}]

    def test_lenient_blank_lines(self):
        assert deserialize("[2]:\n  - a\n\n  - b", list[str], strict=False) == ["a", "b"]

    def test_lenient_missing_colon(self):
        assert deserialize("key value\nb: 1", dict, strict=False) == {"b": 1}

    def test_lenient_tabs(self):
        assert deserialize("A:\n\tB: 1", strict=False) == {"A": {"B": 1}}
