"""Main entry point for the cleanup utility."""

from __future__ import annotations

import argparse
import contextlib
import logging
import platform
import signal
import sys
import threading
import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from . import __version__
from .cleaner import Cleaner
from .config import CleanupConfig, format_bytes, parse_list
from .duplicates import find_duplicates
from .empty_dirs import classify_empty, path_depth
from .errors import ConfigurationError, ScanCancelled
from .exclusion import ExclusionRules
from .finder import find_files
from .models import EntryError, FileRecord
from .output import Row, emit
from .resolver import Chooser, KeepPolicy, resolve_duplicate_set
from .sizes import aggregate_sizes
from .walker import ProgressFunc

LOGGER_NAME = "fs_cleanup"
EXIT_CANCELLED = 130


@dataclass
class Session:
    """State shared by one command run."""

    config: CleanupConfig
    console: Console
    logger: logging.Logger
    # Not silenced by --quiet
    prompt_console: Console = field(default_factory=lambda: Console(stderr=True))
    cancel: threading.Event = field(default_factory=threading.Event)
    errors: list[EntryError] = field(default_factory=list)


def _common_options() -> argparse.ArgumentParser:
    """Options accepted by every subcommand."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", "-c", type=Path, default=None, help="Path to configuration file")
    common.add_argument("--verbose", "-v", action="store_true", default=None, help="Enable verbose output")
    common.add_argument("--quiet", "-q", action="store_true", default=None, help="Suppress all output except errors")
    common.add_argument("--log-file", "-l", dest="log_file", default=None, help="Also write logs to this file")
    common.add_argument(
        "--output",
        "-o",
        dest="output_format",
        choices=["json", "csv"],
        default=None,
        help="Output results in a structured format",
    )
    common.add_argument("--exclude-pattern", "-p", dest="exclude_pattern", default=None, help="Exclude paths matching regex")
    common.add_argument("--exclude-glob", "-g", dest="exclude_glob", default=None, help="Exclude names matching glob")
    common.add_argument(
        "--exclude-glob-path", dest="exclude_glob_path", default=None, help="Exclude full paths matching glob"
    )
    common.add_argument(
        "--exclude-dirs",
        "-x",
        dest="exclude_dirs",
        type=parse_list,
        action="extend",
        default=None,
        help="Comma-separated directory names to exclude",
    )
    common.add_argument("--workers", type=int, default=None, help="Worker threads for parallel scans")
    return common


def _deletion_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--dry-run", "-d", dest="dry_run", action="store_true", default=None, help="Make no changes")
    parser.add_argument("--force", "-f", action="store_true", default=None, help="Skip confirmation prompts")
    parser.add_argument("--trash", "-t", action="store_true", default=None, help="Move to trash instead of deleting")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments.

    """
    common = _common_options()
    parser = argparse.ArgumentParser(
        prog="cleanup",
        description="Find and manage empty folders, duplicate files and large directories",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    empty_parser = subparsers.add_parser("empty", parents=[common], help="Find and delete empty folders")
    empty_parser.add_argument("path", nargs="?", default=".", help="Directory to scan")
    empty_parser.add_argument("--recursive", "-r", action="store_true", default=None, help="Search recursively")
    _deletion_options(empty_parser)
    empty_parser.add_argument(
        "--ignore-files",
        "-i",
        dest="ignore_files",
        type=parse_list,
        action="extend",
        default=None,
        help="File names ignored when deciding whether a folder is empty",
    )
    empty_parser.add_argument(
        "--older-than", "-O", dest="older_than", default=None, help="Only folders older than a duration (30d, 4w, 12h)"
    )

    find_parser = subparsers.add_parser("find", parents=[common], help="Find files by duplicates, size or age")
    find_parser.add_argument("path", nargs="?", default=".", help="Directory to scan")
    _deletion_options(find_parser)
    find_parser.add_argument("--older-than", "-O", dest="older_than", default=None, help="Files older than a duration")
    find_parser.add_argument("--files-over", "-S", dest="files_over", default=None, help="Files larger than a size")
    find_parser.add_argument(
        "--find-duplicates",
        "-D",
        dest="find_duplicates",
        action="store_true",
        default=None,
        help="Find duplicate files by content hash",
    )
    find_parser.add_argument(
        "--keep",
        dest="duplicate_keep",
        choices=[p.value for p in KeepPolicy],
        default=None,
        help="Duplicate handling strategy",
    )
    find_parser.add_argument("--sort", dest="sort_by", choices=["path", "size", "age"], default=None, help="Sort results")
    find_parser.add_argument(
        "--hash-algo", dest="hash_algo", choices=["sha256", "sha1", "md5"], default=None, help="Hash algorithm"
    )

    large_parser = subparsers.add_parser("large", parents=[common], help="Find the largest folders")
    large_parser.add_argument("path", nargs="?", default=".", help="Directory to scan")
    large_parser.add_argument("--top", "-n", dest="top_n", type=int, default=None, help="Number of folders to show")

    config_parser = subparsers.add_parser("config", parents=[common], help="Configuration management")
    config_parser.add_argument("action", choices=["init", "show"], help="Create or display the configuration")
    config_parser.add_argument(
        "--global", dest="global_", action="store_true", help="Create the config file in the home directory"
    )

    subparsers.add_parser("version", help="Print version information")

    return parser.parse_args(argv)


def setup_logging(config: CleanupConfig, console: Console) -> logging.Logger:
    """Set up logging for a run.

    Returns:
        Configured package logger.

    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if config.verbose else logging.INFO)

    # Clear existing handlers to avoid duplicates if main() runs twice
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(console=console, show_time=False, show_path=False)
    if config.quiet:
        console_handler.setLevel(logging.ERROR)
    elif config.verbose:
        console_handler.setLevel(logging.DEBUG)
    else:
        console_handler.setLevel(logging.INFO)
    logger.addHandler(console_handler)

    if config.log_file:
        try:
            log_path = Path(config.log_file).expanduser()
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as e:
            logger.warning("Could not open log file: %s. Logging to stderr only.", e)
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
            logger.addHandler(file_handler)

    return logger


def resolve_target(path: str) -> Path:
    """Resolve the PATH argument to an absolute directory.

    Raises:
        ConfigurationError: If it is not an existing directory.

    """
    target = Path(path).expanduser().absolute()
    if not target.is_dir():
        raise ConfigurationError(f"The specified path does not exist or is not a directory: {target}")
    return target


@contextlib.contextmanager
def scan_progress(session: Session) -> Iterator[Progress]:
    """Progress bar on stderr; hidden in quiet or verbose mode."""
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=session.console,
        transient=True,
        disable=session.config.quiet or session.config.verbose,
    )
    with progress:
        yield progress


def _scan_callback(progress: Progress, description: str) -> ProgressFunc:
    task = progress.add_task(description, total=None)

    def advance(count: int) -> None:
        progress.advance(task, count)

    return advance


@contextlib.contextmanager
def _result_stream(config: CleanupConfig) -> Iterator[IO[str] | None]:
    """Where structured output goes: stdout, or the log file when quiet."""
    if not config.quiet:
        yield sys.stdout
        return
    if not config.log_file:
        yield None
        return
    with Path(config.log_file).expanduser().open("a", encoding="utf-8") as f:
        yield f


def output_results(session: Session, rows: list[Row], headers: list[str], title: str) -> None:
    """Render result rows according to ``output-format``."""
    with _result_stream(session.config) as stream:
        emit(
            rows,
            headers,
            output_format=session.config.output_format,
            stream=stream,
            console=session.console,
            title=title,
        )


def print_summary(session: Session, title: str, target: Path, lines: list[str], *, read_only: bool = False) -> None:
    """Print the settings a command will run with."""
    config = session.config
    console = session.console

    console.print(f"[bold]--- {title} ---[/bold]")
    console.print(f"Target directory: {escape(str(target))}")
    for line in lines:
        console.print(escape(line))
    if config.source is not None:
        console.print(f"Using config: {escape(str(config.source))}")
    if not read_only:
        if config.dry_run:
            console.print("Action: dry run")
        elif config.trash:
            console.print("Action: move to system trash")
        else:
            console.print("Action: permanent deletion")
        if config.force:
            console.print("Confirmation: skipped (--force)")
    if config.exclude_dirs:
        console.print(escape(f"Excluding dirs by name: {', '.join(config.exclude_dirs)}"))
    if config.exclude_glob:
        console.print(escape(f"Excluding by glob (name): {config.exclude_glob}"))
    if config.exclude_glob_path:
        console.print(escape(f"Excluding by glob (path): {config.exclude_glob_path}"))
    if config.exclude_pattern:
        console.print(escape(f"Excluding by regex: {config.exclude_pattern}"))
    console.print()


def confirm(console: Console, prompt: str) -> bool:
    """Ask a yes/no question; only ``yes`` or ``y`` confirm."""
    try:
        response = console.input(f"[blue]{escape(prompt)} \\[yes/No] [/blue]")
    except EOFError:
        return False
    return response.strip().lower() in ("yes", "y")


def handle_deletion(session: Session, item_type: str, paths: list[Path], total_size: int = 0) -> int:
    """Dry-run, confirm, then remove ``paths`` in the given order.

    Returns:
        Number of paths removed.

    """
    if not paths:
        return 0

    config = session.config
    console = session.console
    cleaner = Cleaner(session.logger, use_trash=config.trash)

    if config.dry_run:
        console.print("\n[bold]--- Dry run summary ---[/bold]")
        console.print(f"Would have {cleaner.action_past.lower()} {len(paths)} {item_type}.")
        if total_size > 0:
            console.print(f"Total size that would be freed: {format_bytes(total_size)}")
        for path in paths:
            console.print(f"  - {path}", markup=False)
        console.print("No changes were made.")
        return 0

    if not config.force:
        prompt_console = session.prompt_console
        warning = f"--- WARNING: About to {cleaner.action_verb} {len(paths)} {item_type} ---"
        prompt_console.print(f"\n[yellow]{warning}[/yellow]")
        if not config.trash:
            prompt_console.print("[red]This action is PERMANENT and CANNOT be undone.[/red]")
        if not confirm(prompt_console, "Are you sure you want to proceed?"):
            console.print("OK. No changes were made.")
            return 0

    with scan_progress(session) as progress:
        task = progress.add_task(f"{cleaner.action_past} items...", total=len(paths))
        results = cleaner.remove_all(paths, on_progress=lambda _result: progress.advance(task))

    removed = 0
    for result in results:
        if result.success:
            removed += 1
        else:
            session.errors.append(EntryError(path=result.path, message=result.error or result.action))

    console.print(f"\nAll done! {cleaner.action_past} {removed} {item_type}.")
    return removed


def print_error_summary(session: Session) -> None:
    """Print every non-fatal error collected during the run."""
    if not session.errors:
        return
    table = Table(title=f"Encountered {len(session.errors)} error(s)")
    table.add_column("#", style="dim")
    table.add_column("Path", style="red")
    table.add_column("Error")
    for i, error in enumerate(session.errors, 1):
        table.add_row(str(i), str(error.path), error.message)
    session.console.print(table)


def cmd_empty(session: Session, args: argparse.Namespace) -> int:
    """Execute empty command.

    Returns:
        Exit code.

    """
    config = session.config
    target = resolve_target(args.path)
    older_than = config.older_than_delta()
    rules = ExclusionRules.from_config(config)

    lines = ["Mode: recursive scan" if config.recursive else "Mode: top-level scan only"]
    if config.ignore_files:
        lines.append(f"Ignoring files: {', '.join(config.ignore_files)}")
    if config.older_than:
        lines.append(f"Age filter: only folders older than {config.older_than}")
    print_summary(session, "Find Empty Folders", target, lines)

    scan = classify_empty(
        target,
        recursive=config.recursive,
        ignore_names=config.ignore_files,
        older_than=older_than,
        rules=rules,
        cancel=session.cancel,
    )
    session.errors.extend(scan.errors)

    if not scan.paths:
        session.console.print("[green]Success! No empty folders were found.[/green]")
        return 0

    session.console.print(f"Found {len(scan.paths)} empty folders to process:")
    output_results(session, [{"path": str(p)} for p in scan.paths], ["path"], "Empty folders")

    # Children first, so a parent is only removed after everything under it
    ordered = sorted(scan.paths, key=path_depth, reverse=True)
    handle_deletion(session, "empty folders", ordered)
    return 0


def prompt_chooser(console: Console, set_index: int) -> Chooser:
    """Build an interactive chooser for one duplicate set."""

    def choose(records: Sequence[FileRecord]) -> int | None:
        console.print(f"\n--- Set {set_index} ({format_bytes(records[0].size)}) ---")
        now = time.time()
        for i, record in enumerate(records, 1):
            age = int(max(now - record.mtime, 0))
            console.print(f"  [{i}] {record.path} ({age}s ago)", markup=False)
        prompt = f"For set {set_index}, enter the number of the file to KEEP [1-{len(records)}], or 's' to skip: "
        while True:
            try:
                response = console.input(escape(prompt)).strip()
            except EOFError:
                return None
            if response.lower() == "s":
                return None
            if response.isdigit() and 1 <= int(response) <= len(records):
                return int(response)
            prompt = f"Invalid input. Please enter a number between 1 and {len(records)}, or 's' to skip: "

    return choose


def keep_policy(config: CleanupConfig) -> KeepPolicy:
    """Policy actually applied; with --force, prompting falls back to ``first``."""
    policy = KeepPolicy.parse(config.duplicate_keep)
    if config.force and policy is KeepPolicy.PROMPT:
        return KeepPolicy.FIRST
    return policy


def _find_duplicates(session: Session, target: Path, rules: ExclusionRules) -> int:
    config = session.config
    policy = keep_policy(config)

    with scan_progress(session) as progress:
        scan = find_duplicates(
            target,
            config.hash_algo,
            rules=rules,
            cancel=session.cancel,
            workers=config.workers or None,
            progress=_scan_callback(progress, "Hashing files..."),
        )
    session.errors.extend(scan.errors)

    session.console.print(f"Found {len(scan.groups)} sets of duplicate files.")
    if not scan.groups:
        return 0

    rows: list[Row] = []
    for i, group in enumerate(scan.groups, 1):
        rows.extend(
            {"set": i, "path": str(r.path), "size": r.size, "modified": r.modified.isoformat()} for r in group
        )
    output_results(session, rows, ["set", "path", "size", "modified"], "Duplicate files")

    to_delete: list[Path] = []
    total_size = 0
    for i, group in enumerate(scan.groups, 1):
        chooser = prompt_chooser(session.prompt_console, i) if policy is KeepPolicy.PROMPT else None
        paths = resolve_duplicate_set(group, policy, chooser)
        to_delete.extend(paths)
        total_size += group[0].size * len(paths)

    handle_deletion(session, "duplicate files", to_delete, total_size)
    return 0


def _find_by_criteria(session: Session, target: Path, rules: ExclusionRules) -> int:
    config = session.config

    with scan_progress(session) as progress:
        scan = find_files(
            target,
            files_over=config.files_over_bytes(),
            older_than=config.older_than_delta(),
            sort_by=config.sort_by,
            rules=rules,
            cancel=session.cancel,
            workers=config.workers or None,
            progress=_scan_callback(progress, "Scanning files..."),
        )
    session.errors.extend(scan.errors)

    session.console.print(f"Found {len(scan.files)} files matching criteria.")
    rows = [
        {"path": str(r.path), "size": r.size, "modified": r.modified.isoformat()}
        for r in scan.files
    ]
    output_results(session, rows, ["path", "size", "modified"], "Matching files")
    handle_deletion(session, "matching files", [r.path for r in scan.files], scan.total_size)
    return 0


def cmd_find(session: Session, args: argparse.Namespace) -> int:
    """Execute find command.

    Returns:
        Exit code.

    """
    config = session.config
    target = resolve_target(args.path)
    rules = ExclusionRules.from_config(config)

    if config.find_duplicates:
        lines = [
            f"Mode: find duplicates by hash ({config.hash_algo})",
            f"Keep strategy: {keep_policy(config).value}",
        ]
    else:
        lines = ["Mode: find by size/age"]
        if config.files_over:
            lines.append(f"Size filter: files over {config.files_over}")
        if config.older_than:
            lines.append(f"Age filter: files older than {config.older_than}")
    print_summary(session, "Find Files", target, lines)

    if config.find_duplicates:
        return _find_duplicates(session, target, rules)
    return _find_by_criteria(session, target, rules)


def cmd_large(session: Session, args: argparse.Namespace) -> int:
    """Execute large command.

    Returns:
        Exit code.

    """
    config = session.config
    target = resolve_target(args.path)
    rules = ExclusionRules.from_config(config)

    print_summary(session, "Find Large Folders", target, [f"Showing top: {config.top_n} folders"], read_only=True)

    with scan_progress(session) as progress:
        scan = aggregate_sizes(
            target,
            rules=rules,
            cancel=session.cancel,
            workers=config.workers or None,
            progress=_scan_callback(progress, "Scanning files..."),
        )
    session.errors.extend(scan.errors)

    largest = scan.largest(config.top_n)
    session.console.print(f"Top {len(largest)} largest folders:")
    rows = [{"path": str(p), "size": size, "size_formatted": format_bytes(size)} for p, size in largest]
    output_results(session, rows, ["path", "size", "size_formatted"], "Largest folders")
    return 0


def cmd_config(session: Session, args: argparse.Namespace) -> int:
    """Execute config command.

    Returns:
        Exit code.

    """
    console = session.console

    if args.action == "init":
        config_path = CleanupConfig.get_config_path(global_=args.global_)
        if config_path.exists():
            console.print(f"[yellow]Config file already exists at {config_path}[/yellow]")
            return 1
        CleanupConfig.init_defaults().save(config_path)
        console.print(f"[green]Default config file created at {config_path}[/green]")
        return 0

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Config file", str(session.config.source or "(defaults)"))
    for key, value in session.config.to_dict().items():
        shown = ", ".join(value) if isinstance(value, list) else str(value)
        table.add_row(key, shown)
    console.print(table)
    return 0


def cmd_version() -> int:
    """Print version information."""
    console = Console()
    console.print("Cleanup Utility")
    console.print(f"   Version: {__version__}")
    console.print(f"   Python Version: {platform.python_version()}")
    return 0


_COMMANDS = {
    "empty": cmd_empty,
    "find": cmd_find,
    "large": cmd_large,
    "config": cmd_config,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code.

    """
    args = parse_args(argv)

    if args.command is None:
        print("No command given. Use --help to list commands.")
        return 1
    if args.command == "version":
        return cmd_version()

    err_console = Console(stderr=True)
    try:
        config = CleanupConfig.load(args.config)
        config.apply_overrides(vars(args))
        config.validate()
    except ConfigurationError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    console = Console(stderr=True, quiet=config.quiet)
    logger = setup_logging(config, err_console if config.quiet else console)
    session = Session(config=config, console=console, logger=logger, prompt_console=err_console)

    previous: dict[signal.Signals, Any] = {}
    if threading.current_thread() is threading.main_thread():
        for sig in (signal.SIGTERM, signal.SIGINT):
            previous[sig] = signal.signal(sig, lambda *_: session.cancel.set())
    try:
        return _COMMANDS[args.command](session, args)
    except ConfigurationError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except ScanCancelled:
        err_console.print("\nOperation cancelled by user.")
        return EXIT_CANCELLED
    finally:
        for sig, handler in previous.items():
            if handler is not None:
                signal.signal(sig, handler)
        print_error_summary(session)


if __name__ == "__main__":
    sys.exit(main())
