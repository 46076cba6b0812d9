"""
pathsentry CLI — Click command group.

Commands: resolve (single paths), scan (discovery dry run),
sanitize (full document check + rewrite).

Exit codes: 0 ok, 1 rejected input, 2 usage/configuration error,
3 rejection caused by a filesystem failure on the host.
"""

import json
import logging
import re
import sys
from pathlib import Path

import click

from pathsentry import __version__
from pathsentry.config import (
    PRESET_SELECTION_KEYS,
    PRESET_SELECTION_KEY_PATTERNS,
    SanitizerSettings,
    load_settings,
)
from pathsentry.errors import ConfigurationError, PathRejected

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

EXIT_REJECTED = 1
EXIT_USAGE = 2
EXIT_INFRASTRUCTURE = 3


# ──────────────────────────────────────────────
# Main group
# ──────────────────────────────────────────────


@click.group()
@click.version_option(__version__, prog_name="pathsentry")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity (logs go to stderr).",
)
def main(log_level: str) -> None:
    """Path containment and JSON path sanitization."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
    )


# ──────────────────────────────────────────────
# Single paths
# ──────────────────────────────────────────────


@main.command()
@click.argument("base", type=click.Path(file_okay=False))
@click.argument("candidates", nargs=-1, required=True)
def resolve(base: str, candidates: tuple[str, ...]) -> None:
    """Resolve CANDIDATES under BASE and report containment."""
    from pathsentry.resolver import canonical_base, resolve_canonical

    base_real = _guard_config(lambda: canonical_base(base))
    failed = False

    for raw in candidates:
        try:
            resolved = resolve_canonical(base_real, raw)
        except PathRejected as e:
            failed = True
            click.echo(f"  {click.style('✗', fg='red')} {raw}: {e.kind.value}: {e.detail}")
            continue

        marker = "" if resolved.existed else " (new)"
        click.echo(
            f"  {click.style('✓', fg='green')} {resolved.base_relative_posix}"
            f" → {resolved.canonical_absolute}{marker}"
        )

    if failed:
        sys.exit(EXIT_REJECTED)


# ──────────────────────────────────────────────
# Documents
# ──────────────────────────────────────────────


def _document_options(func):
    """Options shared by scan and sanitize."""
    decorators = [
        click.argument("document", type=click.File("r", encoding="utf-8")),
        click.option("--base", "base_directory", type=click.Path(file_okay=False),
                      help="Base directory every path must stay inside."),
        click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
                      help="JSON settings file; command-line options override it."),
        click.option("--key", "keys", multiple=True, help="Field name holding paths (repeatable)."),
        click.option("--key-pattern", "key_patterns", multiple=True,
                     help="Case-insensitive regex for field names holding paths (repeatable)."),
        click.option("--preset-keys", is_flag=True,
                     help="Use the built-in image field names and patterns."),
        click.option("--ext", "extensions", multiple=True,
                     help="Allowed extension, e.g. .png (repeatable)."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def _guard_config(fn):
    """Run fn, turning ConfigurationError into a usage exit."""
    try:
        return fn()
    except ConfigurationError as e:
        click.secho(f"✗ {e}", fg="red", err=True)
        sys.exit(EXIT_USAGE)


def _load_document(document) -> object:
    try:
        return json.load(document)
    except json.JSONDecodeError as e:
        click.secho(f"✗ Invalid JSON in {document.name}: {e}", fg="red", err=True)
        sys.exit(EXIT_USAGE)


def _compile_key_pattern(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise ConfigurationError(f"Invalid --key-pattern {pattern!r}: {e}") from e


def _build_options(
    base_directory: str | None,
    config_path: Path | None,
    keys: tuple[str, ...],
    key_patterns: tuple[str, ...],
    preset_keys: bool,
    extensions: tuple[str, ...],
    **overrides,
):
    def _build():
        selected_keys = keys
        patterns = tuple(_compile_key_pattern(p) for p in key_patterns)
        if preset_keys:
            selected_keys = selected_keys + PRESET_SELECTION_KEYS
            patterns = patterns + PRESET_SELECTION_KEY_PATTERNS

        if config_path is not None:
            settings = load_settings(config_path)
        elif base_directory:
            settings = SanitizerSettings(base_directory=base_directory)
        else:
            raise ConfigurationError("Either --base or --config is required.")

        return settings.to_options(
            base_directory=base_directory,
            selection_keys=selected_keys or None,
            selection_key_patterns=patterns or None,
            allowed_extensions=extensions or None,
            **overrides,
        )

    return _guard_config(_build)


@main.command()
@_document_options
def scan(document, base_directory, config_path, keys, key_patterns, preset_keys, extensions) -> None:
    """List path candidates found in DOCUMENT without touching the filesystem."""
    from pathsentry.document import format_location
    from pathsentry.report import preview
    from pathsentry.sanitizer import discover_candidates

    # scan never resolves, so any placeholder base is acceptable
    options = _build_options(
        base_directory or ".", config_path, keys, key_patterns, preset_keys, extensions
    )
    data = _load_document(document)
    candidates = discover_candidates(data, options)

    mode = "targeted" if options.targeted else "heuristic"
    click.echo(f"{len(candidates)} candidate(s) ({mode} mode)")
    for c in candidates:
        click.echo(f"  {format_location(c.location)}: {preview(c.raw_value)}")


@main.command()
@_document_options
@click.option("--require-existence/--no-require-existence", default=None,
              help="Require each path to be an existing regular file.")
@click.option("--verify-content/--no-verify-content", default=None,
              help="Require existing files to parse as images.")
@click.option("--output-form", type=click.Choice(["absolute", "relative"]), default=None,
              help="How accepted paths are written back.")
@click.option("--workers", "max_workers", type=click.IntRange(min=1), default=None,
              help="Concurrent path checks.")
@click.option("--output", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Write the sanitized document here (only when every path passes).")
@click.option("--json", "as_json", is_flag=True, help="Print the full report as JSON.")
def sanitize(
    document,
    base_directory,
    config_path,
    keys,
    key_patterns,
    preset_keys,
    extensions,
    require_existence,
    verify_content,
    output_form,
    max_workers,
    output_path,
    as_json,
) -> None:
    """Validate every path in DOCUMENT and write a sanitized copy."""
    from pathsentry.report import format_report_summary
    from pathsentry.sanitizer import sanitize as _sanitize

    options = _build_options(
        base_directory,
        config_path,
        keys,
        key_patterns,
        preset_keys,
        extensions,
        require_existence=require_existence,
        verify_content=verify_content,
        output_form=output_form,
        max_workers=max_workers,
    )
    data = _load_document(document)

    try:
        report = _sanitize(data, options)
    except (ConfigurationError, TypeError) as e:
        click.secho(f"✗ {e}", fg="red", err=True)
        sys.exit(EXIT_USAGE)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo(format_report_summary(report))
        click.echo()

    if not report.ok:
        if not as_json:
            click.secho(
                f"✗ Validation FAILED with {len(report.rejected)} error(s)", fg="red", bold=True
            )
        sys.exit(EXIT_INFRASTRUCTURE if report.has_infrastructure_errors else EXIT_REJECTED)

    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            json.dumps(report.sanitized_document, indent=2),
            encoding="utf-8",
        )

    if not as_json:
        click.secho("✓ Validation PASSED", fg="green", bold=True)
        if output_path is not None:
            click.echo(f"  Written: {output_path}")
