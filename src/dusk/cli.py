"""CLI interface for dusk."""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from typing import Any, Callable, NoReturn

import click

from dusk.core.aggregate import AggregateRow, aggregate
from dusk.core.scanner import ScanConfig, SizeMetric
from dusk.core.tree import EmptyDirPolicy, SortKey
from dusk.errors import DuskError
from dusk.settings import DEFAULTS, Settings, is_known_key, validate
from dusk.utils import ByteFormat, bytes_to_human, format_elapsed

log = logging.getLogger(__name__)

_LOG_FORMAT = "%(levelname)s: %(message)s"


def _setup_logging(verbosity: int, log_file: str | None = None, quiet: bool = False) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    if log_file:
        logging.basicConfig(level=level, format=_LOG_FORMAT, filename=log_file, force=True)
    elif quiet:
        logging.basicConfig(level=level, handlers=[logging.NullHandler()], force=True)
    else:
        logging.basicConfig(level=level, format=_LOG_FORMAT)


def _cwd_entries() -> list[str]:
    """Entries of the current directory, used when no path is given."""
    entries = sorted(os.listdir("."))
    return entries or ["."]


def _build_config(
    settings: Settings,
    apparent_size: bool,
    count_hard_links: bool,
    follow_symlinks: bool,
    threads: int | None,
) -> ScanConfig:
    apparent = apparent_size or settings.get_checked("scan.apparent_size")
    prune = settings.get_checked("browser.prune_empty_dirs")
    return ScanConfig(
        size_metric=SizeMetric.APPARENT if apparent else SizeMetric.ON_DISK,
        follow_symlinked_files=follow_symlinks or settings.get_checked("scan.follow_symlinks"),
        count_hard_links=count_hard_links or settings.get_checked("scan.count_hard_links"),
        threads=threads if threads is not None else settings.get_checked("scan.threads"),
        empty_dir_policy=EmptyDirPolicy.PRUNE if prune else EmptyDirPolicy.RETAIN,
    )


def _byte_format(settings: Settings, fmt: str | None) -> ByteFormat:
    return ByteFormat(fmt or settings.get_checked("display.byte_format"))


def scan_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that scans."""
    options = [
        click.argument("paths", nargs=-1, type=click.Path(path_type=str)),
        click.option("--apparent-size", "-A", is_flag=True, help="Count file lengths instead of allocated blocks"),
        click.option("--count-hard-links", "-l", is_flag=True, help="Count every hard link, not just the first"),
        click.option("--follow-symlinks", "-L", is_flag=True, help="Count the target of symlinks to files"),
        click.option("--threads", "-t", type=click.IntRange(min=0), default=None, help="Worker threads (0 = all CPUs)"),
        click.option(
            "--format",
            "-f",
            "fmt",
            type=click.Choice([f.value for f in ByteFormat]),
            default=None,
            help="How to show byte counts",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _fail(exc: DuskError) -> NoReturn:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(2)


class _DefaultGroup(click.Group):
    """Group that hands paths and scan options to 'aggregate' when no command is named."""

    default_command = "aggregate"

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        for index, arg in enumerate(args):
            if arg == "--verbose" or re.fullmatch(r"-v+", arg):
                continue
            if arg not in self.commands and arg not in self.get_help_option_names(ctx):
                args = [*args[:index], self.default_command, *args[index:]]
            break
        return super().parse_args(ctx, args)


@click.group(cls=_DefaultGroup, invoke_without_command=True)
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.pass_context
def main(ctx: click.Context, verbose: int) -> None:
    """dusk: see where your disk space went, and take it back."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        ctx.invoke(aggregate_cmd)


# ── aggregate ────────────────────────────────────────────────────────────

@main.command("aggregate")
@scan_options
@click.option("--no-total", is_flag=True, help="Do not print the total of all paths")
@click.option("--no-sort", is_flag=True, help="Print paths in the order given")
@click.option("--stats", "show_stats", is_flag=True, help="Print scan statistics to stderr")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def aggregate_cmd(
    paths: tuple[str, ...],
    apparent_size: bool,
    count_hard_links: bool,
    follow_symlinks: bool,
    threads: int | None,
    fmt: str | None,
    no_total: bool,
    no_sort: bool,
    show_stats: bool,
    as_json: bool,
) -> None:
    """Print the total size of each PATH (default: entries of the current directory)."""
    settings = Settings.instance()
    config = _build_config(settings, apparent_size, count_hard_links, follow_symlinks, threads)
    byte_format = _byte_format(settings, fmt)

    try:
        report = aggregate(list(paths) or _cwd_entries(), config, compute_total=not no_total, sort_by_size=not no_sort)
    except DuskError as exc:
        _fail(exc)

    if as_json:
        data = {
            "paths": [_row_json(r) for r in report.rows],
            "total": _row_json(report.total) if report.total else None,
            "statistics": {
                "entries_traversed": report.stats.entries_traversed,
                "smallest_file_bytes": report.stats.smallest_file_bytes or 0,
                "largest_file_bytes": report.stats.largest_file_bytes,
                "elapsed_seconds": round(report.stats.elapsed, 3),
            },
            "errors": [{"path": e.path, "reason": e.reason} for e in report.stats.errors],
        }
        click.echo(json.dumps(data, indent=2))
    else:
        for row in report.rows:
            click.echo(_format_row(row, byte_format))
        if report.total:
            click.echo(_format_row(report.total, byte_format, plain=True))

    if show_stats:
        stats = report.stats
        click.echo(
            f"entries traversed: {stats.entries_traversed:,}, "
            f"smallest file: {bytes_to_human(stats.smallest_file_bytes or 0, byte_format)}, "
            f"largest file: {bytes_to_human(stats.largest_file_bytes, byte_format)}, "
            f"elapsed: {format_elapsed(stats.elapsed)}",
            err=True,
        )

    if report.num_errors:
        sys.exit(1)


def _format_row(row: AggregateRow, fmt: ByteFormat, plain: bool = False) -> str:
    size = click.style(f"{bytes_to_human(row.size_bytes, fmt):>{fmt.width}}", fg="green")
    path = row.path if plain or not row.is_file else click.style(row.path, fg="bright_black")
    errors = ""
    if row.errors:
        errors = f"  <{row.errors} IO Error{'s' if row.errors > 1 else ''}>"
    return f"{size} {path}{errors}"


def _row_json(row: AggregateRow) -> dict[str, Any]:
    return {"path": row.path, "size_bytes": row.size_bytes, "errors": row.errors}


# ── interactive ──────────────────────────────────────────────────────────

@main.command("interactive")
@scan_options
@click.option("--sort", type=click.Choice([k.value for k in SortKey]), default=None, help="Initial sort key")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=str), default=None, help="Write logs here")
@click.pass_context
def interactive_cmd(
    ctx: click.Context,
    paths: tuple[str, ...],
    apparent_size: bool,
    count_hard_links: bool,
    follow_symlinks: bool,
    threads: int | None,
    fmt: str | None,
    sort: str | None,
    log_file: str | None,
) -> None:
    """Browse PATHS interactively and delete what you don't need."""
    from dusk.tui import run_interactive

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        click.echo("Error: interactive mode requires a connected terminal", err=True)
        sys.exit(2)

    _setup_logging(ctx.obj.get("verbose", 0) if ctx.obj else 0, log_file=log_file, quiet=log_file is None)
    settings = Settings.instance()
    config = _build_config(settings, apparent_size, count_hard_links, follow_symlinks, threads)
    byte_format = _byte_format(settings, fmt)
    sort_key = SortKey(sort or settings.get_checked("browser.sort"))

    try:
        run_interactive(list(paths) or _cwd_entries(), config, byte_format=byte_format, sort_key=sort_key)
    except DuskError as exc:
        _fail(exc)


# ── config ───────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Show or change default options."""


@config.command("get")
@click.argument("key", required=False)
def config_get(key: str | None) -> None:
    """Print KEY's value, or every setting when KEY is omitted."""
    settings = Settings.instance()
    if key is None:
        data = {
            section: {name: settings.get(f"{section}.{name}") for name in values}
            for section, values in DEFAULTS.items()
        }
        click.echo(json.dumps(data, indent=2))
        return
    if not is_known_key(key):
        click.echo(f"Unknown setting '{key}'.", err=True)
        sys.exit(1)
    click.echo(json.dumps(settings.get(key)))


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set KEY to VALUE (parsed as JSON when possible)."""
    if not is_known_key(key):
        click.echo(f"Unknown setting '{key}'.", err=True)
        sys.exit(1)
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    try:
        validate(key, parsed)
    except ValueError as exc:
        click.echo(f"Invalid value: {exc}", err=True)
        sys.exit(1)
    settings = Settings.instance()
    settings.set(key, parsed)
    click.echo(f"{key} = {json.dumps(parsed)}")


@config.command("path")
def config_path() -> None:
    """Print where settings are stored."""
    click.echo(str(Settings.instance().path))
