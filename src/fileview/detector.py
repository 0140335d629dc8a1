"""Format detection.

The registry maps a format id to its detection rule and resolves one id
for a given input. Resolution order:

    1. Explicit extension overrides (user configured), if the mapped
       format is registered.
    2. Descriptors by priority, highest first (registration order breaks
       ties). Each descriptor is checked in full before the next one:
       MIME type, then URL extension, then content matcher.
    3. None.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit

from .errors import RegistrationError

logger = logging.getLogger(__name__)

# Longer "extensions" are almost always part of a path or hostname.
MAX_EXTENSION_LENGTH = 9


class DetectionReason(str, Enum):
    """Why a format was chosen."""

    MIME_TYPE = "mime_type"
    EXTENSION = "extension"
    CONTENT_PATTERN = "content_pattern"
    EXPLICIT_MAPPING = "explicit_mapping"


@dataclass(frozen=True)
class FormatDescriptor:
    """Detection rule for one format."""

    id: str
    mime_types: frozenset[str] = field(default_factory=frozenset)
    extensions: frozenset[str] = field(default_factory=frozenset)
    content_matcher: Callable[[str], bool] | None = None
    priority: int = 0

    @classmethod
    def create(
        cls,
        id: str,
        mime_types: Iterable[str] = (),
        extensions: Iterable[str] = (),
        content_matcher: Callable[[str], bool] | None = None,
        priority: int = 0,
    ) -> FormatDescriptor:
        """Build a descriptor, normalizing MIME types and extensions."""
        return cls(
            id=id,
            mime_types=frozenset(m.lower() for m in mime_types),
            extensions=frozenset(normalize_extension(e) for e in extensions),
            content_matcher=content_matcher,
            priority=priority,
        )


@dataclass(frozen=True)
class DetectionInput:
    """What the host knows about a document before parsing it."""

    url: str = ""
    declared_content_type: str | None = None
    sample_text: str = ""


@dataclass(frozen=True)
class DetectionResult:
    """Chosen format id and the rule that chose it."""

    format_id: str
    reason: DetectionReason


def normalize_extension(ext: str) -> str:
    """Lower-case an extension and strip a leading dot."""
    return ext.strip().lower().lstrip(".")


def get_file_extension(url: str) -> str | None:
    """Extract the file extension from a URL or path.

    Query strings and fragments are ignored. Returns None when the last
    path segment has no real extension (dotfiles, trailing dots, or
    overlong pseudo-extensions).

    Args:
        url: URL or filesystem path.

    Returns:
        Lower-cased extension without the dot, or None.
    """
    if not url:
        return None
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url.split("?", 1)[0].split("#", 1)[0]

    filename = path.replace("\\", "/").rsplit("/", 1)[-1]
    dot = filename.rfind(".")
    if dot <= 0 or dot == len(filename) - 1:
        return None

    ext = filename[dot + 1 :].lower()
    if len(ext) > MAX_EXTENSION_LENGTH:
        return None
    return ext


class FormatRegistry:
    """Registry of format descriptors keyed by format id.

    Registration replaces any previous descriptor with the same id (last
    writer wins); the replaced id keeps its original registration slot.
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, FormatDescriptor] = {}

    def register(self, id: str, descriptor: FormatDescriptor) -> None:
        """Store or overwrite the descriptor for a format id."""
        if not id:
            raise RegistrationError("Format id cannot be empty")
        if descriptor.id != id:
            raise RegistrationError(
                f"Descriptor id {descriptor.id!r} does not match {id!r}"
            )
        if id in self._descriptors:
            logger.debug("Replacing detector for %s", id)
        self._descriptors[id] = descriptor

    def get(self, id: str) -> FormatDescriptor | None:
        return self._descriptors.get(id)

    def __contains__(self, id: object) -> bool:
        return id in self._descriptors

    def supported_formats(self) -> list[str]:
        """Registered format ids in registration order."""
        return list(self._descriptors)

    def ordered(self) -> list[FormatDescriptor]:
        """Descriptors by priority, highest first (stable)."""
        return sorted(
            self._descriptors.values(), key=lambda d: d.priority, reverse=True
        )

    def detect(
        self,
        request: DetectionInput,
        overrides: Mapping[str, str] | None = None,
    ) -> DetectionResult | None:
        """Resolve the format for an input.

        Args:
            request: URL, declared content type and a text sample.
            overrides: Extension to format id table consulted first.

        Returns:
            DetectionResult, or None when nothing matched.
        """
        extension = get_file_extension(request.url)

        if extension and overrides:
            mapped = _lookup_override(overrides, extension)
            if mapped is not None:
                if mapped in self._descriptors:
                    return DetectionResult(mapped, DetectionReason.EXPLICIT_MAPPING)
                logger.debug(
                    "Ignoring override .%s -> %s: format not registered",
                    extension,
                    mapped,
                )

        content_type = (request.declared_content_type or "").lower()

        for descriptor in self.ordered():
            if content_type and any(m in content_type for m in descriptor.mime_types):
                return DetectionResult(descriptor.id, DetectionReason.MIME_TYPE)

            if extension and extension in descriptor.extensions:
                return DetectionResult(descriptor.id, DetectionReason.EXTENSION)

            if descriptor.content_matcher is not None and _safe_match(
                descriptor, request.sample_text
            ):
                return DetectionResult(descriptor.id, DetectionReason.CONTENT_PATTERN)

        return None


def _lookup_override(overrides: Mapping[str, str], extension: str) -> str | None:
    for key, format_id in overrides.items():
        if normalize_extension(key) == extension:
            return format_id
    return None


def _safe_match(descriptor: FormatDescriptor, text: str) -> bool:
    try:
        return bool(descriptor.content_matcher(text))
    except Exception as e:
        logger.warning("Content matcher for %s failed: %s", descriptor.id, e)
        return False
