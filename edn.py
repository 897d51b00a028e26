"""
Reader for EDN, the structured text notation pREPL servers answer in.

Reading happens in two steps:
- tokenize(): turns source text into a flat token list
- Reader: turns tokens into Python values

Mapping:
- maps -> dict, vectors and lists -> list, sets -> frozenset
- nil/true/false -> None/True/False
- :keyword -> Keyword, symbol -> Symbol, #tag value -> Tagged
- 42 / 42N -> int, 1.5 -> float, 1.5M -> Decimal, 1/3 -> Fraction
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import Any

WHITESPACE = " \t\r\n,"
DELIMITERS = set("()[]{}")
CLOSING = {"(": ")", "[": "]", "{": "}", "#{": "}"}

STRING_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
}

NAMED_CHARS = {
    "newline": "\n",
    "space": " ",
    "tab": "\t",
    "return": "\r",
    "backspace": "\b",
    "formfeed": "\f",
}

INT_RE = re.compile(r"^[+-]?\d+N?$")
HEX_RE = re.compile(r"^([+-]?)0[xX]([0-9a-fA-F]+)N?$")
RATIO_RE = re.compile(r"^[+-]?\d+/\d+$")
FLOAT_RE = re.compile(r"^[+-]?\d+(\.\d*)?([eE][+-]?\d+)?M?$")

SYMBOLIC_VALUES = {
    "##Inf": float("inf"),
    "##-Inf": float("-inf"),
    "##NaN": float("nan"),
}


class EdnError(ValueError):
    """Raised when text is not valid EDN."""


@dataclass(frozen=True)
class Keyword:
    """A keyword such as :tag or :repl/quit. Compares by name."""

    name: str

    def __str__(self):
        return f":{self.name}"


@dataclass(frozen=True)
class Symbol:
    """A bare symbol such as clojure.lang.Numbers."""

    name: str

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class Tagged:
    """A tagged literal we have no reader for, e.g. #object[...]."""

    tag: str
    value: Any


# Returned by #_ so collections can drop the discarded form
_DISCARD = object()


# =============================================================================
# Tokenizer
# =============================================================================


def _scan_atom(src: str, i: int) -> int:
    """Returns the index right after the atom starting at i."""
    n = len(src)
    while (
        i < n
        and src[i] not in WHITESPACE
        and src[i] not in DELIMITERS
        and src[i] not in '";'
    ):
        i += 1
    return i


def _read_string(src: str, i: int) -> tuple[str, int]:
    """Reads a string body starting after the opening quote."""
    buf = []
    n = len(src)
    while i < n:
        c = src[i]
        if c == '"':
            return "".join(buf), i + 1
        if c == "\\":
            if i + 1 >= n:
                break
            esc = src[i + 1]
            if esc == "u":
                code = src[i + 2 : i + 6]
                if len(code) != 4:
                    raise EdnError(f"Invalid unicode escape '\\u{code}'")
                try:
                    buf.append(chr(int(code, 16)))
                except ValueError:
                    raise EdnError(f"Invalid unicode escape '\\u{code}'") from None
                i += 6
                continue
            buf.append(STRING_ESCAPES.get(esc, esc))
            i += 2
            continue
        buf.append(c)
        i += 1
    raise EdnError("Unterminated string")


def _char_value(name: str) -> str:
    if len(name) == 1:
        return name
    if name in NAMED_CHARS:
        return NAMED_CHARS[name]
    if name.startswith("u") and len(name) == 5:
        try:
            return chr(int(name[1:], 16))
        except ValueError:
            pass
    raise EdnError(f"Unsupported character literal '\\{name}'")


def tokenize(src: str) -> list:
    """
    Tokenize EDN text.
    Delimiters come back as plain strings ("(", "#{", "#_", ...), everything
    else as (KIND, value) tuples with KIND one of STRING, CHAR, ATOM, TAG, NSMAP.
    """
    tokens = []
    i = 0
    n = len(src)

    while i < n:
        c = src[i]
        if c in WHITESPACE:
            i += 1
            continue
        if c == ";":
            # comment to end of line
            while i < n and src[i] != "\n":
                i += 1
            continue
        if c in DELIMITERS:
            tokens.append(c)
            i += 1
            continue
        if c == '"':
            value, i = _read_string(src, i + 1)
            tokens.append(("STRING", value))
            continue
        if c == "\\":
            if i + 1 >= n:
                raise EdnError("Character literal at end of input")
            # First character is always part of the literal, so \( and \, work
            end = _scan_atom(src, i + 2)
            tokens.append(("CHAR", _char_value(src[i + 1 : end])))
            i = end
            continue
        if c == "#":
            nxt = src[i + 1] if i + 1 < n else ""
            if nxt == "{":
                tokens.append("#{")
                i += 2
            elif nxt == "_":
                tokens.append("#_")
                i += 2
            elif nxt == "#":
                end = _scan_atom(src, i + 2)
                tokens.append(("ATOM", src[i:end]))
                i = end
            elif nxt == ":":
                end = _scan_atom(src, i + 2)
                tokens.append(("NSMAP", src[i + 2 : end]))
                i = end
            else:
                end = _scan_atom(src, i + 1)
                if end == i + 1:
                    raise EdnError("Dispatch character '#' without a tag")
                tokens.append(("TAG", src[i + 1 : end]))
                i = end
            continue

        end = _scan_atom(src, i)
        tokens.append(("ATOM", src[i:end]))
        i = end

    return tokens


def parse_atom(text: str):
    """Turns a bare token into nil/boolean/number/keyword/symbol."""
    if text == "nil":
        return None
    if text == "true":
        return True
    if text == "false":
        return False
    if text in SYMBOLIC_VALUES:
        return SYMBOLIC_VALUES[text]
    if text.startswith(":"):
        name = text.lstrip(":")
        if not name:
            raise EdnError(f"Invalid keyword '{text}'")
        return Keyword(name)

    if INT_RE.match(text):
        return int(text.rstrip("N"))
    match = HEX_RE.match(text)
    if match:
        sign = -1 if match.group(1) == "-" else 1
        return sign * int(match.group(2), 16)
    if RATIO_RE.match(text):
        return Fraction(text)
    if FLOAT_RE.match(text):
        if text.endswith("M"):
            return Decimal(text[:-1])
        return float(text)
    if text[0].isdigit():
        raise EdnError(f"Invalid number '{text}'")

    return Symbol(text)


# =============================================================================
# Reader
# =============================================================================


def _hashable(value):
    """
    Freezes a value so it can be a map key or set member.
    Vectors become tuples, maps become frozensets of key/value pairs.
    """
    if isinstance(value, list):
        return tuple(_hashable(v) for v in value)
    if isinstance(value, dict):
        return frozenset((_hashable(k), _hashable(v)) for k, v in value.items())
    if isinstance(value, Tagged):
        return Tagged(value.tag, _hashable(value.value))
    return value


class Reader:
    """Parses a token list into Python values."""

    def __init__(self, tokens: list):
        self.tokens = tokens
        self.i = 0

    def eof(self):
        return self.i >= len(self.tokens)

    def next(self):
        if self.eof():
            return None
        tok = self.tokens[self.i]
        self.i += 1
        return tok

    def read(self):
        """Read the next value, skipping discarded forms."""
        form = self.read_form()
        while form is _DISCARD:
            form = self.read_form()
        return form

    def read_form(self):
        tok = self.next()
        if tok is None:
            raise EdnError("Unexpected end of input")

        if tok in ("(", "["):
            return self._read_seq(CLOSING[tok])
        if tok == "{":
            return self._read_map()
        if tok == "#{":
            items = [_hashable(v) for v in self._read_seq("}")]
            try:
                return frozenset(items)
            except TypeError as e:
                raise EdnError(f"Unhashable set member: {e}") from None
        if tok == "#_":
            self.read()
            return _DISCARD
        if isinstance(tok, str):
            raise EdnError(f"Unmatched delimiter '{tok}'")

        kind, value = tok
        if kind in ("STRING", "CHAR"):
            return value
        if kind == "ATOM":
            return parse_atom(value)
        if kind == "TAG":
            return Tagged(value, self.read())
        if kind == "NSMAP":
            if self.next() != "{":
                raise EdnError(f"Expected '{{' after '#:{value}'")
            return {
                self._qualify(value, k): v for k, v in self._read_map().items()
            }
        raise EdnError(f"Unknown token {tok!r}")

    def _read_seq(self, closing: str) -> list:
        items = []
        while True:
            tok = self.tokens[self.i] if not self.eof() else None
            if tok is None:
                raise EdnError(f"Expected '{closing}' before end of input")
            if tok == closing:
                self.i += 1
                return items
            form = self.read_form()
            if form is not _DISCARD:
                items.append(form)

    def _read_map(self) -> dict:
        items = self._read_seq("}")
        if len(items) % 2:
            raise EdnError("Map literal must contain an even number of forms")
        try:
            return {_hashable(k): v for k, v in zip(items[::2], items[1::2])}
        except TypeError as e:
            raise EdnError(f"Unhashable map key: {e}") from None

    @staticmethod
    def _qualify(ns, key):
        if isinstance(key, Keyword) and "/" not in key.name:
            return Keyword(f"{ns}/{key.name}")
        if isinstance(key, Symbol) and "/" not in key.name:
            return Symbol(f"{ns}/{key.name}")
        return key


def loads(text: str):
    """Read the first value from EDN text."""
    reader = Reader(tokenize(text))
    if reader.eof():
        raise EdnError("No value to read")
    return reader.read()
