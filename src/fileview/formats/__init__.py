"""Format plugin system for fileview.

Provides the API for defining and discovering the formats the pipeline
can detect, parse, format and highlight.

Format discovery scans directories for .py files that define
FormatPlugin subclasses. Built-in formats ship in ``builtins/``.
Users can add custom formats via the ``formats_dir`` config option.
"""

from .base import FormatPlugin
from .registry import (
    Registries,
    apply_priorities,
    build_registries,
    discover_formats,
    filter_by_config,
    scan_directory,
)

__all__ = [
    "FormatPlugin",
    "Registries",
    "build_registries",
    "discover_formats",
    "filter_by_config",
    "apply_priorities",
    "scan_directory",
]
