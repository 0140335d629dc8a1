"""Exception types for fileview."""

from enum import Enum


class FileviewError(Exception):
    """Base exception for fileview errors."""

    pass


class RegistrationError(FileviewError):
    """A format, formatter or highlighter could not be registered."""

    pass


class ConfigError(FileviewError):
    """Configuration file or values are invalid."""

    pass


class ParseError(FileviewError):
    """A format claimed the content but its parser rejected it."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class ValidationFailure(FileviewError):
    """Content parsed but is semantically invalid for its format."""

    pass


class FormatError(FileviewError):
    """Text could not be regenerated from a parsed value."""

    pass


class HighlightError(FileviewError):
    """A tokenizer or highlight pattern failed."""

    pass


class ErrorKind(str, Enum):
    """Error tags carried on render results for diagnostics."""

    PARSE_ERROR = "parse_error"
    VALIDATION_FAILURE = "validation_failure"
    FORMAT_ERROR = "format_error"
    HIGHLIGHT_ERROR = "highlight_error"
