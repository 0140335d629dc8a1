"""Command-line interface for fileview."""

import json
import logging
import re
from pathlib import Path

import click
import yaml

from . import __version__
from .config import (
    CONFIG_FILENAME,
    config_to_dict,
    create_default_config,
    find_config_file,
    load_config,
)
from .errors import FileviewError
from .page import render_page
from .pipeline import RenderRequest, build_pipeline
from .search import SearchOverlay
from .tree import tree_to_text

OUTPUT_VIEWS = ["tree", "formatted", "raw", "html", "json"]


@click.group()
@click.version_option(version=__version__, prog_name="fileview")
@click.option("-v", "--verbose", is_flag=True, help="Log detection and format details")
def main(verbose):
    """View structured text files as formatted text or collapsible trees.

    fileview detects JSON, YAML, XML, CSV and TOML (plus any format
    plugins you add), pretty-prints them, and renders them as an indented
    tree or as a self-contained HTML page.

    \b
    Quick start:
      fileview render data.json           # Tree view in the terminal
      fileview render data.yaml --view formatted --indent 4
      fileview render feed.xml --view html -o feed.html
      cat data.csv | fileview render - --format csv
      fileview detect *.conf              # Show which format applies
      fileview config init                # Create .fileview.yaml
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s"
        )


def _load(config_path, start, indent=None, sort_keys=None):
    try:
        return load_config(
            config_path=Path(config_path) if config_path else None,
            start_path=start,
            indent_override=indent,
            sort_keys_override=sort_keys,
        )
    except FileviewError as e:
        raise click.ClickException(str(e))


def _read_input(path: str) -> str:
    if path == "-":
        return click.get_text_stream("stdin").read()
    file_path = Path(path)
    if not file_path.is_file():
        raise click.ClickException(f"Not a file: {file_path}")
    try:
        return file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Cannot read {file_path}: {e}")


def _mark_terminal(text: str, term: str | None) -> str:
    """Reverse-video every case-insensitive occurrence of term."""
    if not term or len(term) < 2:
        return text
    pattern = re.compile(re.escape(term), re.IGNORECASE)
    return pattern.sub(lambda m: click.style(m.group(), reverse=True), text)


@main.command()
@click.argument("path", default="-", type=click.Path(allow_dash=True))
@click.option("-f", "--format", "format_id", help="Skip detection and use this format")
@click.option("--url", help="URL or file name used for extension detection")
@click.option("--content-type", help="Declared MIME type, e.g. application/json")
@click.option(
    "--indent", type=click.IntRange(0, 8), help="Indent width for formatted output"
)
@click.option(
    "--sort-keys/--no-sort-keys", default=None, help="Sort mapping keys when formatting"
)
@click.option(
    "--view",
    type=click.Choice(OUTPUT_VIEWS),
    help="Output: terminal tree, formatted or raw text, an HTML page, or JSON",
)
@click.option("-s", "--search", help="Highlight a search term (at least 2 characters)")
@click.option(
    "-o", "--output", "output_path", type=click.Path(), help="Write to file instead of stdout"
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Config file path",
)
def render(
    path,
    format_id,
    url,
    content_type,
    indent,
    sort_keys,
    view,
    search,
    output_path,
    config_path,
):
    """Render a structured text file (or stdin with '-').

    Content that cannot be parsed is still shown (as raw text) and the
    problem is reported on stderr.

    \b
    Examples:
      fileview render config.yaml
      fileview render data.json --view formatted --sort-keys
      fileview render export.txt --format csv --view html -o export.html
      curl -s https://example.com/api | fileview render - --content-type application/json
    """
    start = Path(path).parent if path != "-" else None
    cfg = _load(config_path, start, indent, sort_keys)
    text = _read_input(path)
    view = view or cfg.defaults.view

    pipeline = build_pipeline(cfg)
    request = RenderRequest(
        raw_text=text,
        url=url or ("" if path == "-" else path),
        declared_content_type=content_type,
    )
    result = pipeline.render(request, format_id=format_id)

    if result.error:
        kind = result.error_kind.value if result.error_kind else "error"
        click.echo(f"Warning: {kind}: {result.error}", err=True)

    filename = Path(url or path).name if path != "-" or url else "stdin"

    if view == "html":
        output = render_page(result, filename=filename, config=cfg, search=search)
    elif view == "json":
        data = result.to_dict()
        if search:
            count = 0
            for key in ("highlight_markup", "tree_markup"):
                if data[key]:
                    overlay = SearchOverlay(data[key])
                    count += overlay.apply_highlight(search)
                    data[key] = overlay.markup
            data["match_count"] = count
        output = json.dumps(data, indent=2, ensure_ascii=False)
    elif view == "tree" and result.value is not None and result.tree_markup is not None:
        output = _mark_terminal(
            tree_to_text(result.value, indent=cfg.defaults.indent or 2), search
        )
    elif view in ("tree", "formatted") and result.formatted_text is not None:
        output = _mark_terminal(result.formatted_text, search)
    else:
        output = _mark_terminal(result.raw_text, search)

    if output_path:
        try:
            Path(output_path).write_text(click.unstyle(output), encoding="utf-8")
        except OSError as e:
            raise click.ClickException(f"Cannot write {output_path}: {e}")
        click.echo(f"Wrote: {output_path}")
    else:
        click.echo(output)


@main.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, dir_okay=False))
@click.option("--content-type", help="Declared MIME type applied to every file")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Config file path",
)
def detect(paths, content_type, config_path):
    """Show which format each file is detected as, and why.

    \b
    Examples:
      fileview detect settings.conf
      fileview detect data/*
    """
    if not paths:
        raise click.UsageError("No files specified")

    cfg = _load(config_path, Path(paths[0]).parent)
    pipeline = build_pipeline(cfg)

    for path in paths:
        text = _read_input(path)
        detection = pipeline.detect(
            RenderRequest(raw_text=text, url=path, declared_content_type=content_type)
        )
        if detection is None:
            click.echo(f"{path}: no match")
        else:
            click.echo(f"{path}: {detection.format_id} ({detection.reason.value})")


@main.command()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Config file path",
)
def formats(config_path):
    """List available formats in detection order."""
    cfg = _load(config_path, None)
    pipeline = build_pipeline(cfg)
    registry = pipeline.registries.formats

    for descriptor in registry.ordered():
        click.echo(f"{descriptor.id} (priority {descriptor.priority})")
        if descriptor.extensions:
            click.echo(f"  extensions: {', '.join(sorted(descriptor.extensions))}")
        if descriptor.mime_types:
            click.echo(f"  mime types: {', '.join(sorted(descriptor.mime_types))}")

    overrides = pipeline.overrides
    if overrides:
        click.echo("Extension overrides:")
        for ext, format_id in sorted(overrides.items()):
            marker = "" if format_id in registry else " (not registered, ignored)"
            click.echo(f"  .{ext} -> {format_id}{marker}")


@main.group()
def config():
    """Manage fileview configuration."""
    pass


@config.command("init")
@click.option(
    "-d",
    "--directory",
    type=click.Path(),
    default=".",
    help="Directory to create config in",
)
def config_init(directory):
    """Create a new .fileview.yaml configuration file."""
    try:
        config_path = create_default_config(Path(directory))
        click.echo(f"Created: {config_path}")
    except FileviewError as e:
        raise click.ClickException(str(e))


@config.command("show")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Config file path",
)
def config_show(config_path):
    """Display current configuration.

    Shows merged configuration from file, environment, and defaults.
    """
    cfg = _load(config_path, None)
    click.echo(yaml.dump(config_to_dict(cfg), default_flow_style=False, sort_keys=False))


@config.command("where")
@click.option(
    "-d",
    "--directory",
    type=click.Path(exists=True),
    help="Directory to search from",
)
def config_where(directory):
    """Show which config file would be used.

    Searches up the directory tree for .fileview.yaml.
    """
    start = Path(directory) if directory else Path.cwd()
    config_path = find_config_file(start)

    if config_path:
        click.echo(f"Config file: {config_path}")
    else:
        click.echo(f"No {CONFIG_FILENAME} found (searched from {start})")
