"""Parse/format dispatch for registered formats."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .errors import FormatError, RegistrationError, ValidationFailure
from .value import Value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormatOptions:
    """Options threaded through ``format()``."""

    indent: int = 2
    sort_keys: bool = False
    delimiter: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None


@dataclass(frozen=True)
class FormatterEntry:
    """Parse/format/validate functions for one format."""

    id: str
    parse: Callable[[str], Value]
    format: Callable[[Value, FormatOptions], str]
    validate: Callable[[Value], ValidationResult] | None = None


@dataclass
class ParseResult:
    """Outcome of :meth:`FormatterRegistry.parse`.

    When validation fails, ``success`` is False but ``value`` still holds
    the parsed value and ``validation_failed`` is set.
    """

    success: bool
    value: Any = None
    error: str | None = None
    validation_failed: bool = False


class FormatterRegistry:
    """Registry of formatter entries keyed by format id."""

    def __init__(self) -> None:
        self._entries: dict[str, FormatterEntry] = {}

    def register(self, id: str, entry: FormatterEntry) -> None:
        """Store or overwrite the formatter for a format id.

        Raises:
            RegistrationError: If parse or format is missing.
        """
        if not callable(getattr(entry, "parse", None)) or not callable(
            getattr(entry, "format", None)
        ):
            raise RegistrationError(
                f"Format handler for {id} must have parse and format methods"
            )
        if entry.validate is not None and not callable(entry.validate):
            raise RegistrationError(f"Validator for {id} is not callable")
        self._entries[id] = entry

    def has_formatter(self, id: str) -> bool:
        return id in self._entries

    def parse(self, text: str, id: str) -> ParseResult:
        """Parse text with the formatter registered for ``id``.

        Never raises: parser exceptions are reported in the result.
        """
        entry = self._entries.get(id)
        if entry is None:
            return ParseResult(success=False, error=f"No formatter registered for {id}")

        try:
            value = entry.parse(text)
        except Exception as e:
            logger.debug("Parse failed for %s: %s", id, e)
            return ParseResult(success=False, error=str(e) or type(e).__name__)

        if entry.validate is not None:
            try:
                _check(entry.validate, value)
            except ValidationFailure as e:
                logger.debug("Validation failed for %s: %s", id, e)
                return ParseResult(
                    success=False, value=value, error=str(e), validation_failed=True
                )

        return ParseResult(success=True, value=value)

    def format(
        self, value: Value, id: str, options: FormatOptions | None = None
    ) -> str:
        """Regenerate text from a value.

        Raises:
            FormatError: If no formatter is registered or formatting fails.
        """
        entry = self._entries.get(id)
        if entry is None:
            raise FormatError(f"No formatter registered for {id}")

        try:
            return entry.format(value, options or FormatOptions())
        except FormatError:
            raise
        except Exception as e:
            raise FormatError(f"Cannot format {id}: {e}") from e


def _check(validate: Callable[[Value], ValidationResult], value: Value) -> None:
    """Run a validator, which may return a result or raise.

    Raises:
        ValidationFailure: If the value is rejected.
    """
    try:
        validation = validate(value)
    except ValidationFailure:
        raise
    except Exception as e:
        raise ValidationFailure(str(e) or type(e).__name__) from e
    if not validation.valid:
        raise ValidationFailure(validation.error or "Validation failed")
