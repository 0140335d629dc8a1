"""Base class for fileview format plugins."""

import re
from abc import ABC, abstractmethod
from typing import Any

from ..formatter import FormatOptions, ValidationResult
from ..highlight import Token
from ..value import Value, summarize

# Format names double as CSS class suffixes and config keys.
_SAFE_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")

# MIME types must match: type/subtype (with +suffix).
_SAFE_MIME_RE = re.compile(
    r"^[a-zA-Z0-9][a-zA-Z0-9!#$&\-^_.+]*/[a-zA-Z0-9][a-zA-Z0-9!#$&\-^_.+]*$"
)

# Extensions are given without the leading dot.
_SAFE_EXT_RE = re.compile(r"^[a-z0-9][a-z0-9_+\-]{0,8}$")


class FormatPlugin(ABC):
    """Abstract base class for format plugins.

    Every format must define class attributes:
        name: Unique identifier (e.g. "json", "yaml").
              Must match [a-z][a-z0-9_]*.
        mime_types: MIME types claimed by the format (may be empty).
        extensions: File extensions without the dot (may be empty).
        priority: Higher is checked first during detection (default 0).

    And implement:
        parse(text): Text to value. Raise on malformed input.
        format(value, options): Value back to text.

    Optionally override:
        matches(text): Content heuristic used when MIME type and
            extension say nothing.
        validate(value): Semantic checks run after a successful parse.
        tokenize(text): Tokens for highlighting. Alternatively set the
            ``patterns`` class attribute to an ordered mapping of
            TokenKind to regular expression.
        metadata(value): Extra facts for the status bar.
    """

    name: str
    mime_types: list[str] = []
    extensions: list[str] = []
    priority: int = 0
    patterns: dict | None = None

    def __init_subclass__(cls, **kwargs: object) -> None:
        """Validate required class attributes at definition time."""
        super().__init_subclass__(**kwargs)

        # Skip validation for intermediate abstract classes
        if getattr(cls, "__abstractmethods__", None):
            return

        # --- name ---
        if not hasattr(cls, "name"):
            raise TypeError(f"FormatPlugin subclass {cls.__name__} must define 'name'")
        if not isinstance(cls.name, str) or not _SAFE_NAME_RE.match(cls.name):
            raise TypeError(
                f"FormatPlugin subclass {cls.__name__} has invalid name "
                f"{cls.name!r}: must match [a-z][a-z0-9_]*"
            )

        # --- mime_types ---
        if not isinstance(cls.mime_types, list):
            raise TypeError(
                f"FormatPlugin subclass {cls.__name__}: mime_types must be a list"
            )
        for mt in cls.mime_types:
            if not isinstance(mt, str) or not _SAFE_MIME_RE.match(mt):
                raise TypeError(
                    f"FormatPlugin subclass {cls.__name__} has invalid "
                    f"MIME type {mt!r}: must match type/subtype"
                )

        # --- extensions ---
        if not isinstance(cls.extensions, list):
            raise TypeError(
                f"FormatPlugin subclass {cls.__name__}: extensions must be a list"
            )
        for ext in cls.extensions:
            if not isinstance(ext, str) or not _SAFE_EXT_RE.match(ext):
                raise TypeError(
                    f"FormatPlugin subclass {cls.__name__} has invalid "
                    f"extension {ext!r}: lower-case, no dot, at most 9 characters"
                )

        if not isinstance(cls.priority, int) or isinstance(cls.priority, bool):
            raise TypeError(
                f"FormatPlugin subclass {cls.__name__}: priority must be an int"
            )

    @abstractmethod
    def parse(self, text: str) -> Value:
        """Parse text into a value.

        Raise any exception (preferably ParseError) on malformed input;
        the formatter registry reports it instead of propagating it.
        """
        ...

    @abstractmethod
    def format(self, value: Value, options: FormatOptions) -> str:
        """Regenerate text from a value this format's parse produced."""
        ...

    def matches(self, text: str) -> bool:
        return False

    def validate(self, value: Value) -> ValidationResult:
        """Check a parsed value; return a failed result or raise ValidationFailure."""
        return ValidationResult(True)

    def has_validator(self) -> bool:
        return type(self).validate is not FormatPlugin.validate

    def tokenize(self, text: str) -> list[Token] | None:
        return None

    def has_tokenizer(self) -> bool:
        return type(self).tokenize is not FormatPlugin.tokenize

    def metadata(self, value: Value) -> dict[str, Any]:
        return summarize(value)
