"""TOML format.

Parsing is lenient where TOML is strict about value spelling: a value
that is not a string, number, boolean, date, array or inline table is
read as a bare string. It is strict about structure: redefining a key
or a table, or extending a non-table value, is an error. One structural
leniency remains: a ``[a.b]`` header may add keys to a table that was
first written inline or through dotted keys, which TOML forbids. Dates
and times are kept as their original text.
"""

import math
import re

from fileview.errors import FormatError, ParseError
from fileview.formats.base import FormatPlugin
from fileview.formatter import ValidationResult
from fileview.highlight import Token, TokenKind
from fileview.value import sort_keys

_BARE_KEY_RE = re.compile(r"[A-Za-z0-9_-]+")
_DATETIME_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}(?:[Tt ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)?(?:[Zz]|[+-]\d{2}:\d{2})?"
    r"|\d{2}:\d{2}:\d{2}(?:\.\d+)?"
)
_NUMBER_RE = re.compile(
    r"(?P<radix>0x[0-9a-fA-F_]+|0o[0-7_]+|0b[01_]+)"
    r"|(?P<special>[+-]?(?:inf|nan))"
    r"|(?P<decimal>[+-]?\d[\d_]*(?P<fraction>\.\d[\d_]*)?(?P<exponent>[eE][+-]?\d[\d_]*)?)"
)
_ESCAPES = {
    "b": "\b",
    "t": "\t",
    "n": "\n",
    "f": "\f",
    "r": "\r",
    "e": "\x1b",
    '"': '"',
    "\\": "\\",
}
_VALUE_END = " \t\r\n,]}#"
_LINE_CONTINUATION_RE = re.compile(r"\\[ \t]*\r?\n")

_MATCH_SECTION_RE = re.compile(r"^\[[\w.]+\]$", re.MULTILINE)
_MATCH_PAIR_RE = re.compile(r"^[\w-]+\s*=\s*.+$", re.MULTILINE)


class _Parser:
    """Single pass recursive descent over the document text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.root: dict = {}
        self.current = self.root
        self.defined: set[int] = set()

    # -- helpers -------------------------------------------------------

    def error(self, message: str):
        line = self.text.count("\n", 0, self.pos) + 1
        raise ParseError(f"Invalid TOML: {message} at line {line}", line=line)

    def peek(self, s: str) -> bool:
        return self.text.startswith(s, self.pos)

    def skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in " \t":
            self.pos += 1

    def skip_comment(self) -> None:
        if self.peek("#"):
            end = self.text.find("\n", self.pos)
            self.pos = len(self.text) if end == -1 else end

    def skip_blank(self) -> None:
        """Skip whitespace, newlines and comments."""
        while True:
            self.skip_space()
            self.skip_comment()
            if self.peek("\r\n"):
                self.pos += 2
            elif self.peek("\n"):
                self.pos += 1
            else:
                return

    def end_of_line(self) -> None:
        self.skip_space()
        self.skip_comment()
        if self.pos >= len(self.text):
            return
        if self.peek("\r\n"):
            self.pos += 2
        elif self.peek("\n"):
            self.pos += 1
        else:
            self.error(f"unexpected {self.text[self.pos]!r}")

    # -- document ------------------------------------------------------

    def parse(self) -> dict:
        while True:
            self.skip_blank()
            if self.pos >= len(self.text):
                return self.root
            if self.peek("[["):
                self.array_table()
            elif self.peek("["):
                self.table()
            else:
                self.key_value(self.current)
            self.end_of_line()

    def table(self) -> None:
        self.pos += 1
        path = self.key()
        self.skip_space()
        if not self.peek("]"):
            self.error("expected ']'")
        self.pos += 1

        table = self.descend(self.root, path[:-1])
        name = path[-1]
        existing = table.get(name)
        if existing is None:
            table[name] = existing = {}
        elif not isinstance(existing, dict):
            self.error(f"cannot redefine {'.'.join(path)!r} as a table")
        elif id(existing) in self.defined:
            self.error(f"table [{'.'.join(path)}] defined twice")
        self.defined.add(id(existing))
        self.current = existing

    def array_table(self) -> None:
        self.pos += 2
        path = self.key()
        self.skip_space()
        if not self.peek("]]"):
            self.error("expected ']]'")
        self.pos += 2

        table = self.descend(self.root, path[:-1])
        name = path[-1]
        existing = table.setdefault(name, [])
        if not isinstance(existing, list) or any(
            not isinstance(item, dict) for item in existing
        ):
            self.error(f"cannot redefine {'.'.join(path)!r} as an array of tables")
        entry: dict = {}
        existing.append(entry)
        self.current = entry

    def descend(self, table: dict, path: list[str]) -> dict:
        """Walk (creating as needed) the tables along path."""
        for part in path:
            value = table.setdefault(part, {})
            if isinstance(value, list) and value and isinstance(value[-1], dict):
                value = value[-1]
            if not isinstance(value, dict):
                self.error(f"key {part!r} is not a table")
            table = value
        return table

    def key_value(self, table: dict, in_container: bool = False) -> None:
        path = self.key()
        self.skip_space()
        if not self.peek("="):
            self.error("expected '=' after key")
        self.pos += 1
        self.skip_space()
        target = self.descend(table, path[:-1])
        name = path[-1]
        if name in target:
            self.error(f"duplicate key {'.'.join(path)!r}")
        target[name] = self.value(in_container)

    def key(self) -> list[str]:
        parts = []
        while True:
            self.skip_space()
            if self.peek('"'):
                parts.append(self.basic_string())
            elif self.peek("'"):
                parts.append(self.literal_string())
            else:
                m = _BARE_KEY_RE.match(self.text, self.pos)
                if not m:
                    self.error("expected a key")
                parts.append(m.group())
                self.pos = m.end()
            self.skip_space()
            if not self.peek("."):
                return parts
            self.pos += 1

    # -- values --------------------------------------------------------

    def value(self, in_container: bool = False):
        if self.peek('"""'):
            return self.multiline_string('"""')
        if self.peek("'''"):
            return self.multiline_string("'''")
        if self.peek('"'):
            return self.basic_string()
        if self.peek("'"):
            return self.literal_string()
        if self.peek("["):
            return self.array()
        if self.peek("{"):
            return self.inline_table()

        for word, result in (("true", True), ("false", False)):
            if self.peek(word) and self.at_value_end(self.pos + len(word)):
                self.pos += len(word)
                return result

        m = _DATETIME_RE.match(self.text, self.pos)
        if m and self.at_value_end(m.end()):
            self.pos = m.end()
            return m.group()

        m = _NUMBER_RE.match(self.text, self.pos)
        if m and self.at_value_end(m.end()):
            self.pos = m.end()
            return _number(m)

        return self.bare_string(in_container)

    def at_value_end(self, pos: int) -> bool:
        return pos >= len(self.text) or self.text[pos] in _VALUE_END

    def bare_string(self, in_container: bool) -> str:
        stops = "\n,]}" if in_container else "\n"
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in stops:
            if self.text[self.pos] == "#" and self.text[self.pos - 1] in " \t":
                break
            self.pos += 1
        value = self.text[start : self.pos].rstrip(" \t\r")
        self.pos = start + len(value)
        if not value:
            self.error("expected a value")
        return value

    def basic_string(self) -> str:
        self.pos += 1
        out = []
        while True:
            if self.pos >= len(self.text) or self.text[self.pos] == "\n":
                self.error("unterminated string")
            ch = self.text[self.pos]
            if ch == '"':
                self.pos += 1
                return "".join(out)
            if ch == "\\":
                out.append(self.escape())
            else:
                out.append(ch)
                self.pos += 1

    def literal_string(self) -> str:
        end = self.text.find("'", self.pos + 1)
        newline = self.text.find("\n", self.pos + 1)
        if end == -1 or (newline != -1 and newline < end):
            self.error("unterminated string")
        value = self.text[self.pos + 1 : end]
        self.pos = end + 1
        return value

    def multiline_string(self, delimiter: str) -> str:
        self.pos += 3
        if self.peek("\r\n"):
            self.pos += 2
        elif self.peek("\n"):
            self.pos += 1
        out = []
        while True:
            if self.pos >= len(self.text):
                self.error("unterminated multi-line string")
            if self.peek(delimiter):
                self.pos += 3
                # Up to two quotes may sit right before the closing delimiter.
                extra = 0
                while extra < 2 and self.peek(delimiter[0]):
                    out.append(delimiter[0])
                    self.pos += 1
                    extra += 1
                return "".join(out)
            ch = self.text[self.pos]
            if delimiter == '"""' and ch == "\\":
                if _LINE_CONTINUATION_RE.match(self.text, self.pos):
                    # Line-ending backslash: drop the newline and following whitespace.
                    self.pos += 1
                    while self.pos < len(self.text) and self.text[self.pos] in " \t\r\n":
                        self.pos += 1
                    continue
                out.append(self.escape())
            else:
                out.append(ch)
                self.pos += 1

    def escape(self) -> str:
        code = self.text[self.pos + 1 : self.pos + 2]
        if code in _ESCAPES:
            self.pos += 2
            return _ESCAPES[code]
        if code in ("u", "U"):
            width = 4 if code == "u" else 8
            digits = self.text[self.pos + 2 : self.pos + 2 + width]
            if len(digits) != width or not all(c in "0123456789abcdefABCDEF" for c in digits):
                self.error("invalid unicode escape")
            self.pos += 2 + width
            try:
                return chr(int(digits, 16))
            except ValueError:
                self.error("invalid unicode escape")
        self.error(f"invalid escape '\\{code}'")

    def array(self) -> list:
        self.pos += 1
        items = []
        while True:
            self.skip_blank()
            if self.peek("]"):
                self.pos += 1
                return items
            items.append(self.value(in_container=True))
            self.skip_blank()
            if self.peek(","):
                self.pos += 1
            elif not self.peek("]"):
                self.error("expected ',' or ']' in array")

    def inline_table(self) -> dict:
        self.pos += 1
        table: dict = {}
        self.skip_space()
        if self.peek("}"):
            self.pos += 1
            return table
        while True:
            self.key_value(table, in_container=True)
            self.skip_space()
            if self.peek(","):
                self.pos += 1
            elif self.peek("}"):
                self.pos += 1
                return table
            else:
                self.error("expected ',' or '}' in inline table")


def _number(m: re.Match):
    text = m.group().replace("_", "")
    if m.group("radix"):
        return int(text, 0)
    if m.group("special"):
        return float(text)
    if m.group("fraction") or m.group("exponent"):
        return float(text)
    return int(text)


def parse_toml(text: str) -> dict:
    """Parse a TOML document into nested mappings."""
    return _Parser(text).parse()


# -- writing -----------------------------------------------------------


def _format_key(key: str) -> str:
    if _BARE_KEY_RE.fullmatch(key):
        return key
    return _format_string(key)


def _format_string(s: str) -> str:
    out = ['"']
    for ch in s:
        if ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def _format_value(value, path: str) -> str:
    if value is None:
        raise FormatError(f"TOML has no null value (at {path or 'root'})")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        return repr(value)
    if isinstance(value, str):
        return _format_string(value)
    if isinstance(value, list):
        return "[" + ", ".join(_format_value(v, path) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        pairs = (
            f"{_format_key(k)} = {_format_value(v, f'{path}.{k}')}"
            for k, v in value.items()
        )
        return "{ " + ", ".join(pairs) + " }"
    raise FormatError(f"Cannot write {type(value).__name__} as TOML")


def _is_table_array(value) -> bool:
    return (
        isinstance(value, list)
        and bool(value)
        and all(isinstance(v, dict) for v in value)
    )


def format_toml(data: dict) -> str:
    """Write a mapping as TOML: root pairs first, then sections."""
    if not isinstance(data, dict):
        raise FormatError("TOML document must be a mapping")

    sections: list[list[str]] = []
    # (header path, table, is array-of-tables element)
    stack: list[tuple[list[str], dict, bool]] = [([], data, False)]
    while stack:
        path, table, in_array = stack.pop()
        dotted = ".".join(_format_key(p) for p in path)
        lines = []
        nested = []
        for key, value in table.items():
            if isinstance(value, dict):
                nested.append((path + [key], value, False))
            elif _is_table_array(value):
                nested.extend((path + [key], item, True) for item in value)
            else:
                lines.append(f"{_format_key(key)} = {_format_value(value, dotted)}")

        if in_array:
            sections.append([f"[[{dotted}]]"] + lines)
        elif path and (lines or not nested):
            sections.append([f"[{dotted}]"] + lines)
        elif lines:
            sections.append(lines)
        stack.extend(reversed(nested))

    return "\n\n".join("\n".join(section) for section in sections) + "\n"


# -- highlighting ------------------------------------------------------

_HEADER_RE = re.compile(
    r"[ \t]*(\[\[?)[ \t]*([^\[\]\n]+?)[ \t]*(\]\]?)[ \t]*(#[^\r\n]*)?\r?$"
)
_KEY_RE = re.compile(
    r"""[ \t]*((?:[\w-]+|"(?:[^"\\\n]|\\.)*"|'[^'\n]*')"""
    r"""(?:[ \t]*\.[ \t]*(?:[\w-]+|"(?:[^"\\\n]|\\.)*"|'[^'\n]*'))*)[ \t]*(=)"""
)
_VALUE_TOKEN_RE = re.compile(
    r'(?P<string>"""[\s\S]*?"""|\'\'\'[\s\S]*?\'\'\'|"(?:[^"\\\n]|\\.)*"|\'[^\'\n]*\')'
    r"|(?P<comment>#[^\n]*)"
    r"|(?P<key>[\w-]+(?=[ \t]*=))"
    r"|(?P<datetime>" + _DATETIME_RE.pattern + r")(?![\w:.-])"
    r"|(?P<number>[+-]?(?:0x[0-9a-fA-F_]+|0o[0-7_]+|0b[01_]+|inf|nan"
    r"|\d[\d_]*(?:\.\d[\d_]*)?(?:[eE][+-]?\d[\d_]*)?))(?![\w.])"
    r"|(?P<boolean>(?:true|false))(?![\w-])"
    r"|(?P<punctuation>[\[\]{},])"
    r"|(?P<operator>=)"
)
_BARE_VALUE_RE = re.compile(r"[^,\]}#\n]*[^,\]}#\s]")
_KINDS = {
    "string": TokenKind.STRING,
    "comment": TokenKind.COMMENT,
    "key": TokenKind.KEY,
    "datetime": TokenKind.STRING,
    "number": TokenKind.NUMBER,
    "boolean": TokenKind.BOOLEAN,
    "punctuation": TokenKind.PUNCTUATION,
    "operator": TokenKind.OPERATOR,
}


def tokenize_toml(text: str) -> list[Token]:
    """Tokenize TOML line by line.

    A multi-line string is a single token; scanning resumes on the line
    where it closes.
    """
    tokens: list[Token] = []
    pos = 0
    n = len(text)
    while pos < n:
        line_end = text.find("\n", pos)
        if line_end == -1:
            line_end = n

        header = _HEADER_RE.match(text, pos, line_end)
        key = None if header else _KEY_RE.match(text, pos, line_end)
        if header:
            for group, kind in (
                (1, TokenKind.OPERATOR),
                (2, TokenKind.CLASS),
                (3, TokenKind.OPERATOR),
            ):
                tokens.append(Token(kind, header.start(group), header.end(group)))
            if header.group(4):
                tokens.append(Token(TokenKind.COMMENT, header.start(4), header.end(4)))
        elif key:
            tokens.append(Token(TokenKind.KEY, key.start(1), key.end(1)))
            tokens.append(Token(TokenKind.OPERATOR, key.start(2), key.end(2)))
            line_end = _value_tokens(text, key.end(), tokens)
        else:
            stripped = text[pos:line_end].lstrip(" \t")
            if stripped.startswith("#"):
                start = line_end - len(stripped)
                tokens.append(
                    Token(TokenKind.COMMENT, start, start + len(stripped.rstrip("\r")))
                )
        pos = line_end + 1
    return tokens


def _value_tokens(text: str, pos: int, tokens: list[Token]) -> int:
    """Tokenize a value starting at pos; return the end of its last line."""
    n = len(text)
    depth = 0
    while pos < n:
        ch = text[pos]
        if ch in " \t\r" or (ch == "\n" and depth > 0):
            pos += 1
            continue
        if ch == "\n":
            return pos
        m = _VALUE_TOKEN_RE.match(text, pos)
        if m:
            kind = m.lastgroup
            if kind == "punctuation":
                if m.group() in "[{":
                    depth += 1
                elif m.group() in "]}" and depth:
                    depth -= 1
            tokens.append(Token(_KINDS[kind], m.start(), m.end()))
            pos = m.end()
            continue
        m = _BARE_VALUE_RE.match(text, pos)
        if m:
            tokens.append(Token(TokenKind.STRING, m.start(), m.end()))
            pos = m.end()
        else:
            pos += 1
    return n


class TomlFormat(FormatPlugin):
    name = "toml"
    mime_types = ["application/toml", "text/toml"]
    extensions = ["toml"]
    priority = 7

    def matches(self, text: str) -> bool:
        trimmed = text.strip()
        return bool(_MATCH_SECTION_RE.search(trimmed) or _MATCH_PAIR_RE.search(trimmed))

    def parse(self, text: str):
        return parse_toml(text)

    def validate(self, value) -> ValidationResult:
        if not value:
            return ValidationResult(False, "TOML document is empty")
        return ValidationResult(True)

    def format(self, value, options) -> str:
        if options.sort_keys:
            value = sort_keys(value)
        return format_toml(value)

    def tokenize(self, text: str) -> list[Token]:
        return tokenize_toml(text)
