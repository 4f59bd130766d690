"""Click CLI entry point for the subscan command.

Handles argument parsing, config loading, and error display. All business
logic is delegated to ``pipeline``, ``schedule``, ``config``, ``extract``,
and ``export`` modules.
"""

from __future__ import annotations

import logging
import re
import sys
from datetime import date
from pathlib import Path

import click

from subscan import __version__

_TEXT_SUFFIXES = (".txt", ".text")


def _validate_month(month: str) -> tuple[int, int]:
    """Validate that *month* matches ``YYYY-MM`` and represents a real month.

    Returns ``(year, month)``, or raises ``click.BadParameter``.
    """
    if not re.fullmatch(r"\d{4}-\d{2}", month):
        raise click.BadParameter(
            f"Invalid month format: {month!r}. Expected YYYY-MM (e.g. 2026-01)."
        )
    year, mon = (int(part) for part in month.split("-"))
    if mon < 1 or mon > 12:
        raise click.BadParameter(
            f"Invalid month: {month!r}. Month must be between 01 and 12."
        )
    return year, mon


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _load_config_or_exit(root: Path):
    from subscan.config import load_config

    try:
        return load_config(root)
    except FileNotFoundError as exc:
        click.echo(
            f"Error: {exc}. Run 'subscan init' to create the project files.",
            err=True,
        )
        sys.exit(1)
    except Exception as exc:
        click.echo(f"Error loading configuration: {exc}", err=True)
        sys.exit(1)


def _load_items_or_exit(path: Path):
    from subscan.config import load_items

    try:
        return load_items(path)
    except Exception as exc:
        click.echo(f"Error loading items from {path}: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="subscan")
def cli() -> None:
    """Find recurring charges in bank statements and plan when they land."""


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--save", is_flag=True, default=False, help="Add detections to the item store.")
@click.option(
    "--include-candidates",
    is_flag=True,
    default=False,
    help="With --save, also add the lower-confidence candidates.",
)
@click.option(
    "--export", "export_path", type=click.Path(dir_okay=False), help="Write detections to a CSV."
)
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def scan(
    file: str,
    save: bool,
    include_candidates: bool,
    export_path: str | None,
    verbose: bool,
    debug: bool,
) -> None:
    """Scan a statement FILE for recurring charges."""
    _configure_logging(verbose, debug)

    root = Path.cwd()
    config = _load_config_or_exit(root)
    items_path = root / config.items_file
    items, planned = _load_items_or_exit(items_path)

    # Extract the text layer
    from subscan.extract import ExtractionFailed, PlainTextExtractor, extract_smart, get_extractor

    path = Path(file)
    try:
        configured = get_extractor(config.extraction)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if path.suffix.lower() in _TEXT_SUFFIXES and config.extraction.provider != "plain":
        primary, fallback = PlainTextExtractor(), configured
    else:
        primary, fallback = configured, None

    try:
        text = extract_smart(path, primary, fallback)
    except ExtractionFailed as exc:
        click.echo(f"Error: text extraction failed: {exc}", err=True)
        sys.exit(1)

    # Run the engine
    from subscan.pipeline import confirm_results, promote_candidate
    from subscan.pipeline import scan as run_scan

    if verbose:
        click.echo(f"Scanning {path.name} ({len(text)} characters)")

    try:
        scan_result = run_scan(text, known_items=items, config=config.engine)
    except Exception as exc:
        click.echo(f"Error running scan: {exc}", err=True)
        sys.exit(1)

    from subscan.export import export_results, print_review

    print_review(scan_result)

    if export_path:
        try:
            written = export_results(scan_result.results, Path(export_path))
        except Exception as exc:
            click.echo(f"Error writing export: {exc}", err=True)
            sys.exit(1)
        click.echo(f"Wrote {len(scan_result.results)} detection(s) to {written}")

    if save:
        from subscan.config import save_items

        reviewed = list(scan_result.results)
        if include_candidates:
            reviewed.extend(promote_candidate(c, config.engine) for c in scan_result.candidates)

        outcome = confirm_results(
            reviewed,
            existing=items,
            config=config.engine,
            shift_if_weekend=config.shift_if_weekend,
        )
        try:
            save_items(items_path, items + outcome.items, planned)
        except Exception as exc:
            click.echo(f"Error saving items: {exc}", err=True)
            sys.exit(1)

        click.echo(f"Saved {outcome.saved} item(s), skipped {outcome.skipped}")
        if verbose:
            for w in outcome.warnings:
                click.echo(f"  - {w}")


@cli.command(name="calendar")
@click.option("--month", default=None, help="Target month in YYYY-MM format. Default: this month.")
@click.option(
    "--all", "show_all", is_flag=True, default=False, help="Include months before this one."
)
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
def calendar_cmd(month: str | None, show_all: bool, verbose: bool) -> None:
    """Show which recurring and planned payments land in a month."""
    _configure_logging(verbose, debug=False)

    today = date.today()
    if month is None:
        year, mon = today.year, today.month
    else:
        try:
            year, mon = _validate_month(month)
        except click.BadParameter as exc:
            click.echo(f"Error: {exc.format_message()}", err=True)
            sys.exit(1)

    root = Path.cwd()
    config = _load_config_or_exit(root)
    items, planned = _load_items_or_exit(root / config.items_file)

    from subscan.export import print_calendar
    from subscan.schedule import month_schedule

    schedule = month_schedule(
        items, year, mon, today=today, planned=planned, forward_only=not show_all
    )
    print_calendar(schedule)


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
def init(target_dir: str) -> None:
    """Initialize a directory with default config and item store files."""
    from subscan.config import initialize

    target = Path(target_dir).resolve()

    try:
        initialize(target)
    except Exception as exc:
        click.echo(f"Error initializing project: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Initialized subscan project in {target}")
