"""Configuration management for fileview.

Handles loading .fileview.yaml files with directory traversal,
environment variable overrides, and default values.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .detector import normalize_extension
from .errors import ConfigError
from .formatter import FormatOptions

CONFIG_FILENAME = ".fileview.yaml"
ENV_INDENT = "FILEVIEW_INDENT"
ENV_SORT_KEYS = "FILEVIEW_SORT_KEYS"

VALID_VIEWS = ("tree", "formatted", "raw")
VALID_THEMES = ("light", "dark", "auto")
MAX_INDENT = 8

_FORMAT_ID_RE = re.compile(r"^[a-z][a-z0-9_]*$")
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class TemplateConfig:
    """Page customization settings."""

    title: str | None = None  # Defaults to the file name
    theme: str = "auto"  # "light", "dark", "auto"
    color_primary: str = "#4CAF50"
    color_secondary: str = "#76B852"


@dataclass
class DefaultsConfig:
    """Default rendering settings."""

    indent: int = 2
    sort_keys: bool = False
    view: str = "tree"  # "tree", "formatted", "raw"
    line_numbers: bool = True


@dataclass
class FileviewConfig:
    """Complete fileview configuration."""

    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    template: TemplateConfig = field(default_factory=TemplateConfig)
    extension_mappings: dict[str, str] = field(default_factory=dict)
    custom_formats: dict[str, dict[str, Any]] = field(default_factory=dict)
    formats: dict[str, bool] | None = None  # Enable/disable by name
    priorities: dict[str, int] = field(default_factory=dict)
    formats_dir: Path | None = None  # Directory with user format plugins
    config_path: Path | None = None  # Path where config was loaded from

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if self.defaults.view not in VALID_VIEWS:
            raise ConfigError(
                f"Invalid view: {self.defaults.view}. "
                f"Must be one of: {', '.join(VALID_VIEWS)}"
            )

        if self.template.theme not in VALID_THEMES:
            raise ConfigError(
                f"Invalid theme: {self.template.theme}. "
                f"Must be one of: {', '.join(VALID_THEMES)}"
            )

        if (
            not isinstance(self.defaults.indent, int)
            or isinstance(self.defaults.indent, bool)
            or not 0 <= self.defaults.indent <= MAX_INDENT
        ):
            raise ConfigError(f"indent must be an integer from 0 to {MAX_INDENT}")

        for ext, format_id in self.extension_mappings.items():
            if not normalize_extension(ext):
                raise ConfigError("Extension mapping has an empty extension")
            if not _FORMAT_ID_RE.match(str(format_id)):
                raise ConfigError(
                    f"Extension mapping for '{ext}' names an invalid format: {format_id}"
                )

        for name, custom in self.custom_formats.items():
            if not isinstance(custom, dict):
                raise ConfigError(f"Custom format '{name}' must be a mapping")
            if not _FORMAT_ID_RE.match(str(custom.get("maps_to", ""))):
                raise ConfigError(
                    f"Custom format '{name}' needs 'maps_to' naming a format"
                )
            if not isinstance(custom.get("extensions", []), list):
                raise ConfigError(f"Custom format '{name}': extensions must be a list")

        for name, priority in self.priorities.items():
            if not isinstance(priority, int) or isinstance(priority, bool):
                raise ConfigError(f"Priority for '{name}' must be an integer")

    def format_options(self) -> FormatOptions:
        return FormatOptions(
            indent=self.defaults.indent, sort_keys=self.defaults.sort_keys
        )

    def extension_overrides(self) -> dict[str, str]:
        """Extension to format id table consulted before detection.

        Built from ``custom_formats`` first, then ``extension_mappings``,
        so a direct mapping wins over a custom format's list.
        """
        overrides: dict[str, str] = {}
        for custom in self.custom_formats.values():
            for ext in custom.get("extensions", []):
                overrides[normalize_extension(str(ext))] = str(custom["maps_to"])
        for ext, format_id in self.extension_mappings.items():
            overrides[normalize_extension(ext)] = str(format_id)
        return overrides


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find .fileview.yaml by traversing up from start_path.

    Args:
        start_path: Directory to start searching from. Defaults to cwd.

    Returns:
        Path to config file if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    # If start_path is a file, use its parent directory
    if start_path.is_file():
        start_path = start_path.parent

    current = start_path
    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    config_path: Path | None = None,
    start_path: Path | None = None,
    indent_override: int | None = None,
    sort_keys_override: bool | None = None,
) -> FileviewConfig:
    """Load configuration from file, environment, and overrides.

    Priority (highest to lowest):
    1. Function arguments (CLI flags)
    2. Environment variables (FILEVIEW_INDENT, FILEVIEW_SORT_KEYS)
    3. Config file (.fileview.yaml)
    4. Defaults

    Args:
        config_path: Explicit path to config file. If None, searches.
        start_path: Directory to start config file search from.
        indent_override: Indent width from the command line.
        sort_keys_override: Key sorting from the command line.

    Returns:
        Loaded and validated configuration.
    """
    config = FileviewConfig()

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        config_path = find_config_file(start_path)

    if config_path is not None:
        config = _load_config_file(config_path)
        config.config_path = config_path

    env_indent = os.environ.get(ENV_INDENT)
    if env_indent:
        try:
            config.defaults.indent = int(env_indent)
        except ValueError as e:
            raise ConfigError(f"{ENV_INDENT} must be an integer: {env_indent}") from e

    env_sort_keys = os.environ.get(ENV_SORT_KEYS)
    if env_sort_keys:
        config.defaults.sort_keys = env_sort_keys.strip().lower() in _TRUE_VALUES

    if indent_override is not None:
        config.defaults.indent = indent_override
    if sort_keys_override is not None:
        config.defaults.sort_keys = sort_keys_override

    config.validate()
    return config


def _load_config_file(config_path: Path) -> FileviewConfig:
    """Load configuration from a YAML file.

    Raises:
        ConfigError: If file cannot be read or parsed.
    """
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    config = FileviewConfig(config_path=config_path)

    if isinstance(data.get("defaults"), dict):
        defaults_data = data["defaults"]
        config.defaults = DefaultsConfig(
            indent=defaults_data.get("indent", config.defaults.indent),
            sort_keys=bool(defaults_data.get("sort_keys", config.defaults.sort_keys)),
            view=defaults_data.get("view", config.defaults.view),
            line_numbers=bool(
                defaults_data.get("line_numbers", config.defaults.line_numbers)
            ),
        )

    if isinstance(data.get("template"), dict):
        template_data = data["template"]
        config.template = TemplateConfig(
            title=template_data.get("title", config.template.title),
            theme=template_data.get("theme", config.template.theme),
            color_primary=template_data.get(
                "color_primary", config.template.color_primary
            ),
            color_secondary=template_data.get(
                "color_secondary", config.template.color_secondary
            ),
        )

    if isinstance(data.get("extension_mappings"), dict):
        config.extension_mappings = {
            str(k): str(v) for k, v in data["extension_mappings"].items()
        }

    if isinstance(data.get("custom_formats"), dict):
        config.custom_formats = {
            str(name): custom for name, custom in data["custom_formats"].items()
        }

    if "formats" in data and isinstance(data["formats"], dict):
        config.formats = {str(k): bool(v) for k, v in data["formats"].items()}

    if isinstance(data.get("priorities"), dict):
        config.priorities = dict(data["priorities"])

    # Resolve relative paths against config file directory
    if data.get("formats_dir"):
        formats_dir = Path(data["formats_dir"])
        if not formats_dir.is_absolute():
            formats_dir = config_path.parent / formats_dir
        config.formats_dir = formats_dir

    return config


def create_default_config(path: Path | None = None) -> Path:
    """Create a default .fileview.yaml config file.

    Args:
        path: Directory to create config in. Defaults to cwd.

    Returns:
        Path to created config file.

    Raises:
        ConfigError: If file already exists or cannot be written.
    """
    if path is None:
        path = Path.cwd()
    else:
        path = Path(path)

    config_path = path / CONFIG_FILENAME

    if config_path.exists():
        raise ConfigError(f"Config file already exists: {config_path}")

    config_content = """# fileview configuration

# Default rendering
defaults:
  indent: 2              # 0-8 (or FILEVIEW_INDENT env var)
  sort_keys: false       # or FILEVIEW_SORT_KEYS env var
  view: "tree"           # "tree", "formatted", "raw"
  line_numbers: true

# Page customization
template:
  # title: "My data"     # Defaults to the file name
  theme: "auto"          # "light", "dark", "auto"
  color_primary: "#4CAF50"
  color_secondary: "#76B852"

# Map extensions straight to a format (checked before detection)
# extension_mappings:
#   conf: yaml
#   jsonl: json

# Named groups of extensions mapped to a format
# custom_formats:
#   kubernetes:
#     extensions: ["k8s", "kube"]
#     maps_to: yaml

# Enable/disable formats by name
# formats:
#   toml: false

# Detection priority overrides (higher is checked first)
# priorities:
#   csv: 10

# Directory with extra format plugins (relative to this file)
# formats_dir: "formats"
"""

    try:
        config_path.write_text(config_content)
    except OSError as e:
        raise ConfigError(f"Cannot write config file: {e}") from e

    return config_path


def config_to_dict(config: FileviewConfig) -> dict[str, Any]:
    """Convert config to dictionary for display."""
    return {
        "defaults": {
            "indent": config.defaults.indent,
            "sort_keys": config.defaults.sort_keys,
            "view": config.defaults.view,
            "line_numbers": config.defaults.line_numbers,
        },
        "template": {
            "title": config.template.title,
            "theme": config.template.theme,
            "color_primary": config.template.color_primary,
            "color_secondary": config.template.color_secondary,
        },
        "extension_mappings": config.extension_mappings or None,
        "custom_formats": config.custom_formats or None,
        "formats": config.formats,
        "priorities": config.priorities or None,
        "formats_dir": str(config.formats_dir) if config.formats_dir else None,
        "config_path": str(config.config_path) if config.config_path else None,
    }
