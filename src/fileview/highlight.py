"""Syntax highlighting engine.

Each format registers either a tokenizer (a function yielding typed,
non-overlapping offsets into the raw text) or an ordered mapping of
token kind to regular expression. Both strategies end in the same token
walker, which is the only place highlighted markup is produced: every
character, inside a token or between tokens, goes through
:func:`fileview.markup.escape_html` exactly once.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from .errors import HighlightError, RegistrationError
from .markup import escape_html

logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    """Token types for consistent styling (``fv-<kind>`` CSS classes)."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    KEY = "key"
    KEYWORD = "keyword"
    COMMENT = "comment"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    VARIABLE = "variable"
    FUNCTION = "function"
    CLASS = "class"
    TAG = "tag"
    ATTRIBUTE = "attribute"
    ERROR = "error"


@dataclass(frozen=True)
class Token:
    """Half-open ``[start, end)`` span of the highlighted source."""

    type: TokenKind
    start: int
    end: int


Tokenizer = Callable[[str], Iterable[Token]]
Patterns = Mapping[TokenKind, "re.Pattern[str]"]


@dataclass(frozen=True)
class HighlighterEntry:
    tokenize: Tokenizer | None = None
    patterns: Patterns | None = None


class HighlighterRegistry:
    """Registry of highlighters keyed by format id."""

    def __init__(self) -> None:
        self._entries: dict[str, HighlighterEntry] = {}

    def register(
        self,
        id: str,
        tokenize: Tokenizer | None = None,
        patterns: Patterns | None = None,
    ) -> None:
        """Register a tokenizer or pattern table (tokenizer wins if both)."""
        if tokenize is None and not patterns:
            raise RegistrationError(f"Highlighter for {id} needs a tokenizer or patterns")
        compiled = None
        if patterns:
            compiled = {
                TokenKind(kind): re.compile(p) if isinstance(p, str) else p
                for kind, p in patterns.items()
            }
        self._entries[id] = HighlighterEntry(tokenize=tokenize, patterns=compiled)

    def has_highlighter(self, id: str) -> bool:
        return id in self._entries

    def tokens(self, text: str, id: str) -> list[Token]:
        """Return the normalized token list for text (empty if unknown id).

        Raises:
            HighlightError: If the tokenizer or a pattern fails.
        """
        entry = self._entries.get(id)
        if entry is None:
            return []
        try:
            if entry.tokenize is not None:
                raw = list(entry.tokenize(text))
            else:
                raw = pattern_tokens(text, entry.patterns or {})
            return normalize_tokens(raw, len(text))
        except HighlightError:
            raise
        except Exception as e:
            raise HighlightError(f"Highlighter for {id} failed: {e}") from e

    def highlight(self, text: str, id: str) -> str:
        """Return text as escaped markup with token spans.

        Raises:
            HighlightError: If the tokenizer or a pattern fails, or yields
                something that is not a token.
        """
        if id not in self._entries:
            return escape_html(text)
        tokens = self.tokens(text, id)
        try:
            return render_tokens(text, tokens)
        except Exception as e:
            raise HighlightError(f"Highlighter for {id} failed: {e}") from e


def pattern_tokens(text: str, patterns: Patterns) -> list[Token]:
    """Turn an ordered pattern table into tokens.

    Patterns run in order. A match overlapping characters claimed by an
    earlier pattern is skipped, so e.g. a quoted string classified first
    is never re-wrapped as a number or keyword.
    """
    claimed = bytearray(len(text))
    tokens: list[Token] = []
    for kind, pattern in patterns.items():
        for match in pattern.finditer(text):
            start, end = match.span()
            if start == end or claimed.find(1, start, end) != -1:
                continue
            claimed[start:end] = b"\x01" * (end - start)
            tokens.append(Token(kind, start, end))
    tokens.sort(key=lambda t: t.start)
    return tokens


def normalize_tokens(tokens: Iterable[Token], length: int) -> list[Token]:
    """Sort tokens and drop empty, out-of-range or overlapping ones.

    Raises:
        ValueError: If a token's type is not a :class:`TokenKind`.
    """
    result: list[Token] = []
    last_end = 0
    for token in sorted(tokens, key=lambda t: (t.start, -t.end)):
        TokenKind(token.type)
        if token.start < 0 or token.end > length or token.start >= token.end:
            logger.debug("Dropping out-of-range token %r", token)
            continue
        if token.start < last_end:
            logger.debug("Dropping overlapping token %r", token)
            continue
        result.append(token)
        last_end = token.end
    return result


def render_tokens(text: str, tokens: Iterable[Token]) -> str:
    """Walk text, wrapping token ranges in spans and escaping everything."""
    parts: list[str] = []
    last = 0
    for token in tokens:
        if token.start > last:
            parts.append(escape_html(text[last : token.start]))
        kind = TokenKind(token.type).value
        parts.append(
            f'<span class="fv-{kind}">{escape_html(text[token.start : token.end])}</span>'
        )
        last = token.end
    if last < len(text):
        parts.append(escape_html(text[last:]))
    return "".join(parts)


def iter_lines(text: str):
    """Yield ``(offset, line)`` for each line, without line terminators."""
    offset = 0
    for line in text.split("\n"):
        yield offset, line[:-1] if line.endswith("\r") else line
        offset += len(line) + 1


_SPAN_RE = re.compile(r'</?span(?: class="fv-[a-z]+")?>')


def strip_spans(markup: str) -> str:
    """Remove highlighter span wrappers, leaving the escaped text."""
    return _SPAN_RE.sub("", markup)
