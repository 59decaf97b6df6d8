# Copyright (c) 2025 dspy-toon
# SPDX-License-Identifier: MIT
"""Literal tokens and compiled lexical patterns shared by the encoder and decoder."""

import re

Delimiter = str
Depth = int

DEFAULT_INDENT_SIZE = 2

COMMA: Delimiter = ","
COLON = ":"
SPACE = " "
PIPE: Delimiter = "|"
TAB: Delimiter = "\t"

OPEN_BRACKET = "["
CLOSE_BRACKET = "]"
OPEN_BRACE = "{"
CLOSE_BRACE = "}"

NULL_LITERAL = "null"
TRUE_LITERAL = "true"
FALSE_LITERAL = "false"

BACKSLASH = "\\"
DOUBLE_QUOTE = '"'
NEWLINE = "\n"
CARRIAGE_RETURN = "\r"

LIST_ITEM_MARKER = "-"
LIST_ITEM_PREFIX = "- "

DEFAULT_DELIMITER: Delimiter = COMMA

# Regex patterns
NUMERIC_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?(?:e[+-]?\d+)?$", re.IGNORECASE)
INTEGER_PATTERN = re.compile(r"^-?\d+$")
LEADING_ZERO_PATTERN = re.compile(r"^0\d+$")
UNQUOTED_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
COUNT_PATTERN = re.compile(r"^\d+$")
