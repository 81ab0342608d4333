"""CLI entry point for Symlocate."""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import DownloadColumn, Progress, SpinnerColumn, TaskID, TextColumn

from symlocate.core.config import SymbolConfig
from symlocate.core.exceptions import SymlocateError
from symlocate.core.models import ExecutableIdentity, SymbolIdentity
from symlocate.core.notifications import LoggingNotification, SymbolNotification
from symlocate.core.resolver import ResolverContext, SymbolResolver
from symlocate.core.search_path import PathElement, SearchPath, ServerElement
from symlocate.core.security import trust_directories
from symlocate.providers.loader import UnavailableProvider, load_provider

app = typer.Typer(
    name="symlocate",
    help="Find and cache debug-symbol files, executables and sources.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

_EXIT_NOT_FOUND = 1
_EXIT_ERROR = 2


@dataclass
class CliOptions:
    """Options shared by every command."""

    symbol_path: str | None = None
    provider: str | None = None
    trust: list[Path] = field(default_factory=list)


class ProgressNotification:
    """Renders lookup events on a rich progress display."""

    def __init__(self, progress: Progress, verbose: bool = False) -> None:
        self._progress = progress
        self._verbose = verbose
        self._task: TaskID | None = None

    def found_symbol_in_cache(self, path: Path) -> None:
        self._progress.console.print(f"[dim]In cache: {path}[/]")

    def found_symbol_on_path(self, location: str) -> None:
        self._progress.console.print(f"[dim]Found at {location}[/]")

    def probe_failed(self, location: str) -> None:
        if self._verbose:
            self._progress.console.print(f"[dim]Not at {location}[/]")

    def download_progress(self, bytes_so_far: int) -> None:
        if self._task is None:
            self._task = self._progress.add_task("[cyan]Downloading[/]", total=None)
        self._progress.update(self._task, completed=bytes_so_far)

    def download_complete(self, path: Path, compressed: bool) -> None:
        if self._task is not None:
            self._progress.remove_task(self._task)
            self._task = None
        suffix = " [dim](compressed)[/]" if compressed else ""
        self._progress.console.print(f"Downloaded [cyan]{path.name}[/]{suffix}")

    def decompression_complete(self, path: Path) -> None:
        self._progress.console.print(f"Expanded [cyan]{path.name}[/]")


def setup_logging(verbose: bool) -> None:
    """Send symlocate's log records to stderr through rich."""
    logger = logging.getLogger("symlocate")
    logger.handlers = [RichHandler(console=err_console, show_path=False)]
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


def parse_number(value: str) -> int:
    """Parse a decimal or ``0x``-prefixed hex number."""
    try:
        return int(value, 0)
    except ValueError:
        raise typer.BadParameter(f"'{value}' is not a number") from None


def build_config(options: CliOptions, **overrides: Any) -> SymbolConfig:
    if options.symbol_path is not None:
        overrides["symbol_path"] = SearchPath.parse(options.symbol_path)
    return SymbolConfig.from_environment(**overrides)


def build_context(
    options: CliOptions, notification: SymbolNotification, **overrides: Any
) -> ResolverContext:
    """Create a resolver context from the command line options."""
    config = build_config(options, **overrides)
    if options.provider:
        provider = load_provider(options.provider)
    else:
        provider = UnavailableProvider(
            "No debug-info provider configured; pass --provider package.module:name"
        )
    security_check = trust_directories(options.trust) if options.trust else None
    return ResolverContext(
        config, provider, security_check=security_check, notification=notification
    )


@contextmanager
def notifier(output_json: bool, verbose: bool) -> Iterator[SymbolNotification]:
    """Progress display for interactive use, plain logging for JSON output."""
    if output_json:
        yield LoggingNotification()
        return
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        DownloadColumn(),
        console=console,
        transient=True,
    ) as progress:
        yield ProgressNotification(progress, verbose)


def element_to_dict(element: PathElement, search_path: SearchPath) -> dict[str, str]:
    if isinstance(element, ServerElement):
        return {
            "type": "http" if element.is_http else "share",
            "remote": element.remote_root,
            "cache": str(search_path.cache_dir_for(element)),
        }
    return {"type": "local", "directory": str(element.directory)}


def fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(_EXIT_ERROR)


@app.callback()
def main(
    ctx: typer.Context,
    symbol_path: Annotated[
        str | None,
        typer.Option("--symbol-path", "-y", help="Search path; defaults to _NT_SYMBOL_PATH"),
    ] = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="Debug-info provider as package.module:name"),
    ] = None,
    trust: Annotated[
        list[Path] | None,
        typer.Option("--trust", "-t", help="Trust symbol files found under this directory"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log every probe")] = False,
) -> None:
    """Find and cache debug-symbol files, executables and sources."""
    setup_logging(verbose)
    ctx.obj = CliOptions(symbol_path, provider, trust or [])
    ctx.meta["verbose"] = verbose


@app.command("path")
def show_path(
    ctx: typer.Context,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the parsed symbol search path."""
    try:
        config = build_config(ctx.obj)
    except SymlocateError as e:
        raise fail(str(e)) from e

    search_path = config.symbol_path.with_extension_directories()
    elements = [element_to_dict(element, search_path) for element in search_path]

    if output_json:
        print(json.dumps({"elements": elements, "cache_dir": str(config.cache_dir)}))
        return

    if not elements:
        console.print("[dim]Symbol path is empty[/]")
    for element in elements:
        if element["type"] == "local":
            console.print(f"[cyan]local[/]  {element['directory']}")
        else:
            console.print(f"[cyan]{element['type']}[/]  {element['remote']}")
            console.print(f"  [dim]cache: {element['cache']}[/]")
    console.print(f"Cache directory: {config.cache_dir}")


@app.command("find-symbol")
def find_symbol(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Symbol file name, e.g. app.pdb")],
    guid: Annotated[str, typer.Argument(help="GUID recorded in the binary")],
    age: Annotated[int, typer.Argument(help="Age recorded in the binary")],
    dll: Annotated[
        Path | None, typer.Option("--dll", help="Binary the symbol file belongs to")
    ] = None,
    cache_only: Annotated[
        bool, typer.Option("--cache-only", help="Do not contact symbol servers")
    ] = False,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Find a symbol file by name, GUID and age."""
    try:
        identity = SymbolIdentity.parse(name, guid, age)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    try:
        with notifier(output_json, ctx.meta["verbose"]) as notification:
            with build_context(ctx.obj, notification, cache_only=cache_only) as context:
                path = SymbolResolver(context).find_symbol_file(identity, dll)
    except SymlocateError as e:
        raise fail(str(e)) from e

    if output_json:
        print(json.dumps({"identity": str(identity), "path": str(path) if path else None}))
    elif path:
        console.print(f"[green]Found[/green] {identity}")
        console.print(f"  {path}")
    else:
        console.print(f"[red]Not found:[/red] {identity}")

    if path is None:
        raise typer.Exit(_EXIT_NOT_FOUND)


@app.command("find-exe")
def find_exe(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Executable file name, e.g. app.dll")],
    timestamp: Annotated[str, typer.Argument(help="Build timestamp (decimal or 0x hex)")],
    size: Annotated[str, typer.Argument(help="Image size (decimal or 0x hex)")],
    cache_only: Annotated[
        bool, typer.Option("--cache-only", help="Do not contact symbol servers")
    ] = False,
    strict: Annotated[
        bool, typer.Option("--strict", help="Verify timestamp and size of local files")
    ] = False,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Find an executable by name, build timestamp and image size."""
    identity = ExecutableIdentity(name, parse_number(timestamp), parse_number(size))

    try:
        with notifier(output_json, ctx.meta["verbose"]) as notification:
            with build_context(
                ctx.obj, notification, cache_only=cache_only, strict_executable_match=strict
            ) as context:
                path = SymbolResolver(context).find_executable_file(identity)
    except SymlocateError as e:
        raise fail(str(e)) from e

    if output_json:
        print(json.dumps({"identity": str(identity), "path": str(path) if path else None}))
    elif path:
        console.print(f"[green]Found[/green] {identity}")
        console.print(f"  {path}")
    else:
        console.print(f"[red]Not found:[/red] {identity}")

    if path is None:
        raise typer.Exit(_EXIT_NOT_FOUND)


@app.command()
def sources(
    ctx: typer.Context,
    pdb: Annotated[Path, typer.Argument(help="Symbol file to read")],
    exe: Annotated[
        Path | None, typer.Option("--exe", help="Executable; its directory is searched first")
    ] = None,
    require_checksum: Annotated[
        bool, typer.Option("--require-checksum", help="Reject files whose checksum differs")
    ] = False,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Locate every source file a symbol file references."""
    results: list[dict[str, Any]] = []
    try:
        with notifier(output_json, ctx.meta["verbose"]) as notification:
            with build_context(ctx.obj, notification) as context:
                resolver = SymbolResolver(context)
                with resolver.open_symbol_file(pdb, exe) as module:
                    for source_file in module.source_files():
                        found = source_file.get_source_file(require_checksum)
                        results.append(
                            {
                                "build_time_path": source_file.build_time_path,
                                "path": str(found) if found else None,
                                "checksum_matches": source_file.checksum_matches,
                            }
                        )
    except SymlocateError as e:
        raise fail(str(e)) from e

    if output_json:
        print(json.dumps(results))
    else:
        if not results:
            console.print(f"No source files recorded in [cyan]{pdb.name}[/cyan]")
        for result in results:
            if result["path"] is None:
                console.print(f"[red]missing[/]   {result['build_time_path']}")
            elif result["checksum_matches"]:
                console.print(f"[green]ok[/]        {result['path']}")
            else:
                console.print(f"[yellow]mismatch[/]  {result['path']}")

    if any(result["path"] is None for result in results):
        raise typer.Exit(_EXIT_NOT_FOUND)


if __name__ == "__main__":
    app()
