"""The format pipeline: detect, parse, format, highlight and render.

Every path through :meth:`Pipeline.render` yields a renderable result.
The worst case is the raw text, escaped, with an error attached.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .detector import DetectionInput, DetectionReason, DetectionResult
from .errors import ErrorKind, FormatError, HighlightError
from .formats import Registries, build_registries, discover_formats
from .formatter import FormatOptions
from .markup import escape_html
from .tree import render_tree

if TYPE_CHECKING:
    from .config import FileviewConfig

logger = logging.getLogger(__name__)

OverrideLoader = Callable[[], Awaitable[Mapping[str, str]]]

_SIZE_UNITS = ["B", "KB", "MB", "GB"]


@dataclass(frozen=True)
class RenderRequest:
    """Decoded text plus what the host knows about where it came from."""

    raw_text: str
    url: str = ""
    declared_content_type: str | None = None


@dataclass
class RenderResult:
    """Everything a presentation layer needs to show one document.

    ``highlight_markup`` always holds something displayable: the
    highlighted formatted text on success, otherwise the (highlighted or
    escaped) raw text. ``tree_markup`` is set whenever a value was
    parsed successfully.
    """

    raw_text: str
    format_id: str | None = None
    detection_reason: DetectionReason | None = None
    value: Any = None
    parse_error: str | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None
    highlight_markup: str = ""
    tree_markup: str | None = None
    formatted_text: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable form of the result."""
        return {
            "format": self.format_id,
            "detection_reason": self.detection_reason.value
            if self.detection_reason
            else None,
            "value": self.value,
            "parse_error": self.parse_error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
            "highlight_markup": self.highlight_markup,
            "tree_markup": self.tree_markup,
            "formatted_text": self.formatted_text,
            "raw_text": self.raw_text,
            "metadata": self.metadata,
            "diagnostics": self.diagnostics,
        }


def format_file_size(size: int) -> str:
    """Human readable size, e.g. ``1.50 KB``."""
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.2f} {_SIZE_UNITS[unit]}"


def text_metadata(text: str) -> dict[str, Any]:
    size = len(text.encode("utf-8"))
    return {
        "lines": text.count("\n") + 1,
        "bytes": size,
        "size": format_file_size(size),
    }


class Pipeline:
    """Runs documents through the registries built at startup.

    Registries are read-only here; build them once (see
    :func:`build_pipeline`) and share the pipeline across renders.
    """

    def __init__(
        self,
        registries: Registries,
        options: FormatOptions | None = None,
        overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.registries = registries
        self.options = options or FormatOptions()
        self.overrides = dict(overrides or {})

    def supported_formats(self) -> list[str]:
        return self.registries.formats.supported_formats()

    def detect(
        self,
        request: RenderRequest,
        overrides: Mapping[str, str] | None = None,
        format_id: str | None = None,
    ) -> DetectionResult | None:
        """Resolve the format for a request.

        An explicit ``format_id`` wins when it names a registered format.
        """
        if format_id:
            if format_id in self.registries.formats:
                return DetectionResult(format_id, DetectionReason.EXPLICIT_MAPPING)
            logger.warning("Unknown format %r requested, detecting instead", format_id)

        table = {**self.overrides, **(overrides or {})}
        detection = self.registries.formats.detect(
            DetectionInput(
                url=request.url,
                declared_content_type=request.declared_content_type,
                sample_text=request.raw_text,
            ),
            overrides=table,
        )
        if detection is None:
            logger.debug("No format matched %s", request.url or "<input>")
        else:
            logger.debug(
                "Detected %s via %s for %s",
                detection.format_id,
                detection.reason.value,
                request.url or "<input>",
            )
        return detection

    def render(
        self,
        request: RenderRequest,
        options: FormatOptions | None = None,
        overrides: Mapping[str, str] | None = None,
        format_id: str | None = None,
    ) -> RenderResult:
        """Render one document. Never raises for bad content.

        Args:
            request: Raw text, URL and declared content type.
            options: Formatting options (defaults to the pipeline's).
            overrides: Extra extension to format id mappings for this call.
            format_id: Skip detection and use this format.

        Returns:
            RenderResult bundle.
        """
        options = options or self.options
        raw = request.raw_text
        result = RenderResult(raw_text=raw, metadata=text_metadata(raw))

        if format_id and format_id not in self.registries.formats:
            result.diagnostics.append(f"Unknown format {format_id!r}; detected instead")
        detection = self.detect(request, overrides, format_id)
        if detection is None:
            result.diagnostics.append("No format matched")
            result.highlight_markup = escape_html(raw)
            return result

        fmt = detection.format_id
        result.format_id = fmt
        result.detection_reason = detection.reason
        result.diagnostics.append(f"Detected {fmt} via {detection.reason.value}")

        formatters = self.registries.formatters
        if not formatters.has_formatter(fmt):
            logger.warning("No formatter registered for %s, showing plain text", fmt)
            result.diagnostics.append(f"No formatter for {fmt}")
            result.highlight_markup = escape_html(raw)
            return result

        parsed = formatters.parse(raw, fmt)
        result.value = parsed.value
        if not parsed.success:
            kind = (
                ErrorKind.VALIDATION_FAILURE
                if parsed.validation_failed
                else ErrorKind.PARSE_ERROR
            )
            logger.info("%s for %s: %s", kind.value, fmt, parsed.error)
            result.parse_error = parsed.error
            result.error_kind = kind
            result.error = parsed.error
            result.highlight_markup = self._highlight(raw, fmt, result)
            return result

        try:
            tree_markup = render_tree(parsed.value)
        except (TypeError, ValueError) as e:
            # A plugin parser returned something outside the value model.
            logger.error("Parser for %s returned an unusable value: %s", fmt, e)
            message = f"Parser for {fmt} returned an unusable value: {e}"
            result.value = None
            result.parse_error = message
            result.error_kind = ErrorKind.PARSE_ERROR
            result.error = message
            result.highlight_markup = self._highlight(raw, fmt, result)
            return result

        result.metadata.update(self._metadata(fmt, parsed.value))
        result.tree_markup = tree_markup

        try:
            formatted = formatters.format(parsed.value, fmt, options)
        except FormatError as e:
            logger.error("Cannot regenerate %s text: %s", fmt, e)
            result.error_kind = ErrorKind.FORMAT_ERROR
            result.error = str(e)
            result.highlight_markup = self._highlight(raw, fmt, result)
            return result

        result.formatted_text = formatted
        result.highlight_markup = self._highlight(formatted, fmt, result)
        return result

    async def render_async(
        self,
        request: RenderRequest,
        load_overrides: OverrideLoader | None = None,
        options: FormatOptions | None = None,
        format_id: str | None = None,
    ) -> RenderResult:
        """Await the user's extension overrides, then render.

        A failing loader is logged and treated as "no overrides".
        """
        overrides: Mapping[str, str] = {}
        if load_overrides is not None:
            try:
                overrides = await load_overrides() or {}
            except Exception as e:
                logger.warning("Failed to load format overrides: %s", e)
                overrides = {}
        return self.render(request, options, overrides, format_id)

    def _highlight(self, text: str, fmt: str, result: RenderResult) -> str:
        try:
            return self.registries.highlighters.highlight(text, fmt)
        except HighlightError as e:
            logger.warning("%s", e)
            result.diagnostics.append(str(e))
            if result.error_kind is None:
                result.error_kind = ErrorKind.HIGHLIGHT_ERROR
                result.error = str(e)
            return escape_html(text)

    def _metadata(self, fmt: str, value: Any) -> dict[str, Any]:
        plugin = self.registries.plugins.get(fmt)
        if plugin is None:
            return {}
        try:
            return dict(plugin.metadata(value))
        except Exception as e:
            logger.warning("Metadata for %s failed: %s", fmt, e)
            return {}


def build_pipeline(config: FileviewConfig | None = None) -> Pipeline:
    """Discover format plugins and assemble a pipeline from config."""
    plugins = discover_formats(config)
    registries = build_registries(plugins)
    if config is None:
        return Pipeline(registries)
    return Pipeline(
        registries,
        options=config.format_options(),
        overrides=config.extension_overrides(),
    )
