"""YAML format backed by PyYAML."""

import re

import yaml

from fileview.errors import ParseError
from fileview.formats.base import FormatPlugin
from fileview.formatter import ValidationResult
from fileview.highlight import Token, TokenKind, iter_lines
from fileview.value import to_value

_STRONG_PREFIXES = ("---", "version:", "apiVersion:", "spring:", "server:")
_KEY_LINE_RE = re.compile(r"^\s*[a-zA-Z0-9_-]+\s*:")
_LIST_LINE_RE = re.compile(r"^\s*-\s+")

# Upper bound on a document with its aliases expanded.
MAX_EXPANDED_NODES = 100_000

_INDENT_RE = re.compile(r"[ \t]*")
_DASH_RE = re.compile(r"-(?:[ \t]+|$)")
_KEY_RE = re.compile(
    r"""(?:"(?:[^"\\]|\\.)*"|'(?:[^']|'')*'|[\w$][\w.$/ -]*?)[ \t]*:(?=[ \t]|$)"""
)
_PROPERTY_RE = re.compile(r"[&*!][^\s,\[\]{}]*")
_BLOCK_RE = re.compile(r"[|>][-+0-9]*$")
_NUMBER_RE = re.compile(
    r"[-+]?(?:\d[\d_]*\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$"
    r"|[-+]?\.(?:inf|Inf|INF)$"
    r"|\.(?:nan|NaN|NAN)$"
    r"|0x[0-9a-fA-F]+$"
    r"|0o[0-7]+$"
)
_BOOLEAN_RE = re.compile(r"(?:true|false|yes|no|on|off)$", re.IGNORECASE)
_NULL_RE = re.compile(r"(?:null|~)$", re.IGNORECASE)
_FLOW_RE = re.compile(
    r"""(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^']|'')*')"""
    r"""|(?P<punctuation>[\[\]{},:])"""
    r"""|(?P<scalar>[^\s\[\]{},:"'][^\[\]{},:]*?)(?=\s*(?:[\[\]{},:]|$))"""
)


class _NoAliasDumper(yaml.SafeDumper):
    """SafeDumper that writes repeated objects out in full."""

    def ignore_aliases(self, data):
        return True


def _comment_start(line: str, start: int) -> int:
    """Index of a ``#`` comment in line at or after start, or -1."""
    quote = None
    for i in range(start, len(line)):
        ch = line[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "#" and (i == 0 or line[i - 1] in " \t"):
            return i
    return -1


def _scalar_kind(text: str) -> TokenKind:
    if text[0] in "\"'":
        return TokenKind.STRING
    if _NULL_RE.match(text):
        return TokenKind.NULL
    if _BOOLEAN_RE.match(text):
        return TokenKind.BOOLEAN
    if _NUMBER_RE.match(text):
        return TokenKind.NUMBER
    return TokenKind.STRING


def _value_tokens(line: str, pos: int, offset: int, tokens: list[Token]) -> bool:
    """Tokenize a value that runs from pos to the end of line.

    Returns True when the value opens a block scalar.
    """
    end = len(line)
    comment = _comment_start(line, pos)
    if comment != -1:
        tokens.append(Token(TokenKind.COMMENT, offset + comment, offset + end))
        end = comment

    while True:
        while pos < end and line[pos] in " \t":
            pos += 1
        match = _PROPERTY_RE.match(line, pos, end)
        if not match:
            break
        kind = TokenKind.KEYWORD if line[pos] == "!" else TokenKind.VARIABLE
        tokens.append(Token(kind, offset + pos, offset + match.end()))
        pos = match.end()

    value = line[pos:end].rstrip()
    if not value:
        return False

    if _BLOCK_RE.match(value):
        tokens.append(Token(TokenKind.OPERATOR, offset + pos, offset + pos + len(value)))
        return True

    if value[0] in "[{":
        for m in _FLOW_RE.finditer(line, pos, pos + len(value)):
            kind = m.lastgroup
            if kind == "scalar":
                token_kind = _scalar_kind(m.group())
            else:
                token_kind = TokenKind(kind)
            tokens.append(Token(token_kind, offset + m.start(), offset + m.end()))
        return False

    tokens.append(Token(_scalar_kind(value), offset + pos, offset + pos + len(value)))
    return False


def tokenize_yaml(text: str) -> list[Token]:
    """Line-based YAML tokenizer.

    Block scalar bodies (after ``|`` or ``>``) are consumed as a single
    string token spanning all of their lines.
    """
    tokens: list[Token] = []
    block_indent = None
    block_start = block_end = 0

    for offset, line in iter_lines(text):
        indent = _INDENT_RE.match(line).end()
        stripped = line[indent:]

        if block_indent is not None:
            if not stripped or indent > block_indent:
                if stripped:
                    if block_start == block_end:
                        block_start = offset + indent
                    block_end = offset + len(line)
                continue
            if block_end > block_start:
                tokens.append(Token(TokenKind.STRING, block_start, block_end))
            block_indent = None

        if not stripped:
            continue
        if stripped.startswith("#"):
            tokens.append(Token(TokenKind.COMMENT, offset + indent, offset + len(line)))
            continue
        if stripped.startswith("%"):
            tokens.append(Token(TokenKind.KEYWORD, offset + indent, offset + len(line)))
            continue
        if stripped.rstrip() in ("---", "...") or stripped.startswith("--- "):
            tokens.append(Token(TokenKind.OPERATOR, offset + indent, offset + indent + 3))
            if len(stripped) > 3:
                _value_tokens(line, indent + 3, offset, tokens)
            continue

        pos = indent
        dash = _DASH_RE.match(line, pos)
        while dash:
            tokens.append(Token(TokenKind.OPERATOR, offset + pos, offset + pos + 1))
            pos = dash.end()
            dash = _DASH_RE.match(line, pos)

        key = _KEY_RE.match(line, pos)
        if key:
            colon = key.end() - 1
            name_end = len(line[:colon].rstrip())
            tokens.append(Token(TokenKind.KEY, offset + pos, offset + name_end))
            tokens.append(Token(TokenKind.PUNCTUATION, offset + colon, offset + colon + 1))
            pos = key.end()

        if _value_tokens(line, pos, offset, tokens):
            block_indent = indent
            block_start = block_end = 0

    if block_indent is not None and block_end > block_start:
        tokens.append(Token(TokenKind.STRING, block_start, block_end))

    return tokens


def _child_nodes(node) -> list:
    if isinstance(node, yaml.MappingNode):
        return [n for pair in node.value for n in pair]
    if isinstance(node, yaml.SequenceNode):
        return list(node.value)
    return []


def expanded_size(root, limit: int = MAX_EXPANDED_NODES) -> int:
    """Count the nodes of a composed document with every alias written out.

    Shared (aliased) nodes are sized once and reused, so this is linear
    in the document even when the expansion is not.

    Raises:
        ParseError: If the expansion exceeds limit or an alias refers to
            one of its own ancestors.
    """
    sizes: dict[int, int] = {}
    active: set[int] = set()
    stack = [(root, False)]
    while stack:
        node, finished = stack.pop()
        key = id(node)
        if finished:
            active.discard(key)
            sizes[key] = 1 + sum(sizes[id(c)] for c in _child_nodes(node))
            if sizes[key] > limit:
                raise ParseError(
                    f"YAML aliases expand to more than {limit:,} nodes",
                    line=node.start_mark.line + 1,
                )
            continue
        if key in sizes:
            continue
        if key in active:
            raise ParseError(
                "Recursive YAML aliases are not supported",
                line=node.start_mark.line + 1,
            )
        active.add(key)
        stack.append((node, True))
        stack.extend((c, False) for c in _child_nodes(node) if id(c) not in sizes)
    return sizes[id(root)]


def load_yaml(text: str):
    """``yaml.safe_load`` with the alias expansion checked before construction."""
    loader = yaml.SafeLoader(text)
    try:
        node = loader.get_single_node()
        if node is None:
            return None
        expanded_size(node)
        return loader.construct_document(node)
    finally:
        loader.dispose()


class YamlFormat(FormatPlugin):
    name = "yaml"
    mime_types = [
        "application/x-yaml",
        "text/yaml",
        "text/x-yaml",
        "application/yaml",
    ]
    extensions = ["yaml", "yml"]
    priority = 9

    def matches(self, text: str) -> bool:
        trimmed = text.strip()
        if trimmed.startswith(_STRONG_PREFIXES):
            return True

        lines = trimmed.split("\n")
        if any(_KEY_LINE_RE.match(line) for line in lines):
            non_empty = [line for line in lines[:10] if line.strip()]
            yaml_like = [
                line
                for line in non_empty
                if _KEY_LINE_RE.match(line)
                or _LIST_LINE_RE.match(line)
                or line.strip() == "---"
            ]
            return len(yaml_like) > len(non_empty) * 0.5

        return "\n- " in trimmed or any(line.startswith("- ") for line in lines)

    def parse(self, text: str):
        try:
            data = load_yaml(text)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            line = mark.line + 1 if mark is not None else None
            raise ParseError(f"Invalid YAML: {e}", line=line) from e
        return to_value(data)

    def validate(self, value) -> ValidationResult:
        if value is None:
            return ValidationResult(False, "YAML document is empty")
        return ValidationResult(True)

    def format(self, value, options) -> str:
        return yaml.dump(
            value,
            Dumper=_NoAliasDumper,
            indent=options.indent,
            sort_keys=options.sort_keys,
            default_flow_style=False,
            allow_unicode=True,
            width=float("inf"),
        )

    def tokenize(self, text: str) -> list[Token]:
        return tokenize_yaml(text)
