"""Format plugin discovery and registry assembly.

Discovery scans directories for .py files containing FormatPlugin subclasses.
Built-in formats ship in ``formats/builtins/``. Users can add custom formats
by placing .py files in a directory specified by ``formats_dir`` in config.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ..detector import FormatDescriptor, FormatRegistry
from ..formatter import FormatterEntry, FormatterRegistry
from ..highlight import HighlighterRegistry
from .base import FormatPlugin

if TYPE_CHECKING:
    from ..config import FileviewConfig

logger = logging.getLogger(__name__)

# Path to the built-in formats directory (ships with fileview)
_BUILTINS_DIR = Path(__file__).parent / "builtins"


@dataclass
class Registries:
    """The three registries a pipeline reads from, plus the plugins."""

    formats: FormatRegistry = field(default_factory=FormatRegistry)
    formatters: FormatterRegistry = field(default_factory=FormatterRegistry)
    highlighters: HighlighterRegistry = field(default_factory=HighlighterRegistry)
    plugins: dict[str, FormatPlugin] = field(default_factory=dict)


def discover_formats(config: FileviewConfig | None = None) -> list[FormatPlugin]:
    """Discover all available format plugins.

    Loads built-in formats from ``formats/builtins/``, then scans the
    user's ``formats_dir`` (if configured). User formats override builtins
    on name collision (even at equal priority). Deduplicates by name,
    filters by config's ``formats:`` section, then applies the
    ``priorities:`` section.

    Args:
        config: Optional configuration with format overrides.

    Returns:
        List of active FormatPlugin instances.
    """
    plugins = scan_directory(_BUILTINS_DIR)

    if config is not None and getattr(config, "formats_dir", None) is not None:
        user_dir = Path(config.formats_dir)
        if user_dir.is_dir():
            plugins.extend(scan_directory(user_dir))
        else:
            logger.warning("formats_dir does not exist: %s", user_dir)

    plugins = _deduplicate_by_name(plugins)

    if config is not None:
        plugins = filter_by_config(plugins, config)
        plugins = apply_priorities(plugins, config)

    return plugins


def filter_by_config(
    plugins: list[FormatPlugin], config: FileviewConfig
) -> list[FormatPlugin]:
    """Filter plugins by the ``formats:`` config section.

    If ``config.formats`` is None (absent from YAML), all plugins pass.
    Names mapped to a false value are dropped.
    """
    format_config = getattr(config, "formats", None)
    if format_config is None:
        return plugins

    return [p for p in plugins if format_config.get(p.name, True)]


def apply_priorities(
    plugins: list[FormatPlugin], config: FileviewConfig
) -> list[FormatPlugin]:
    """Override detection priorities from the ``priorities:`` config section.

    The override is set on the plugin instance; the class default is
    left untouched.
    """
    priorities = getattr(config, "priorities", None) or {}
    for plugin in plugins:
        if plugin.name in priorities:
            logger.debug(
                "Priority for %s set to %d (was %d)",
                plugin.name,
                priorities[plugin.name],
                plugin.priority,
            )
            plugin.priority = int(priorities[plugin.name])
    return plugins


def scan_directory(directory: Path) -> list[FormatPlugin]:
    """Scan a directory for .py files containing FormatPlugin subclasses.

    Each .py file is imported as a module and inspected for concrete
    FormatPlugin subclasses. Files starting with ``_`` are skipped.

    Args:
        directory: Path to directory to scan.

    Returns:
        List of FormatPlugin instances found.
    """
    plugins: list[FormatPlugin] = []
    if not directory.is_dir():
        return plugins

    for py_file in sorted(directory.glob("*.py")):
        if py_file.name.startswith("_"):
            continue

        try:
            module = _import_file(py_file)
        except Exception:
            logger.warning("Failed to import format file: %s", py_file)
            continue

        for _name, obj in inspect.getmembers(module, inspect.isclass):
            if (
                issubclass(obj, FormatPlugin)
                and obj is not FormatPlugin
                and obj.__module__ == module.__name__
                and not getattr(obj, "__abstractmethods__", None)
            ):
                try:
                    plugins.append(obj())
                except Exception:
                    logger.warning(
                        "Failed to instantiate format %s from %s",
                        obj.__name__,
                        py_file,
                    )

    return plugins


def build_registries(plugins: list[FormatPlugin]) -> Registries:
    """Register each plugin's detector, formatter and highlighter.

    Plugins are registered in list order, which is the tie-break order
    for detection at equal priority.
    """
    registries = Registries()
    for plugin in plugins:
        name = plugin.name
        registries.formats.register(
            name,
            FormatDescriptor.create(
                name,
                mime_types=plugin.mime_types,
                extensions=plugin.extensions,
                content_matcher=plugin.matches,
                priority=plugin.priority,
            ),
        )
        registries.formatters.register(
            name,
            FormatterEntry(
                id=name,
                parse=plugin.parse,
                format=plugin.format,
                validate=plugin.validate if plugin.has_validator() else None,
            ),
        )
        if plugin.has_tokenizer():
            registries.highlighters.register(name, tokenize=plugin.tokenize)
        elif plugin.patterns:
            registries.highlighters.register(name, patterns=plugin.patterns)
        registries.plugins[name] = plugin
        logger.debug("Registered format %s (priority %d)", name, plugin.priority)
    return registries


def _deduplicate_by_name(plugins: list[FormatPlugin]) -> list[FormatPlugin]:
    """Deduplicate plugins by name, keeping the best for each.

    When two plugins share a name, the higher priority wins. On equal
    priority, the later one wins (so user formats override builtins).
    """
    best: dict[str, FormatPlugin] = {}
    for p in plugins:
        existing = best.get(p.name)
        if existing is None:
            best[p.name] = p
        elif p.priority >= existing.priority:
            if p.priority > existing.priority:
                logger.warning(
                    "Format %r (priority %d) overrides %r (priority %d)",
                    type(p).__name__,
                    p.priority,
                    type(existing).__name__,
                    existing.priority,
                )
            best[p.name] = p
        else:
            logger.debug(
                "Ignoring duplicate format %r (priority %d < %d)",
                p.name,
                p.priority,
                existing.priority,
            )
    return list(best.values())


def _import_file(path: Path):
    """Import a Python file as a module without it being on sys.path."""
    module_name = f"fileview_format_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot create module spec for {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
