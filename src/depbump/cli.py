"""Command-line interface for depbump.

Provides the main entry point and subcommands for checking dependency
updates, reconciling lockfiles and managing the version cache.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from depbump.cache import VersionCache
from depbump.errors import DepbumpError
from depbump.lockfile import Lockfile
from depbump.models import CollectResult, DependencyRef, UpdatePolicy, UpdateState
from depbump.orchestrator import UpdateOrchestrator
from depbump.registries import JsrRegistry, NpmRegistry, RemoteOrigin
from depbump.registries.http import HttpClient
from depbump.reporters import MarkdownReporter
from depbump.scanners import get_scanner
from depbump.specifiers import stringify
from depbump.updates import UpdateResolver

app = typer.Typer(
    name="depbump",
    help="Find and apply updates of jsr:, npm: and URL dependencies.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger("depbump")


def _setup_logging(verbose: bool) -> None:
    """Configure logging level based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger("depbump").setLevel(level)


def _scan(paths: list[Path], verbose: bool) -> list[DependencyRef]:
    """Collect dependency references from every given file.

    Raises:
        ValueError: If a file has no scanner or an invalid format.
    """
    refs: list[DependencyRef] = []
    for path in paths:
        scanner = get_scanner(path)
        if verbose:
            console.print(f"[dim]Scanning {path} as {scanner.source_name}[/dim]")
        refs.extend(scanner.scan())
    return refs


async def _collect(
    refs: list[DependencyRef],
    lockfile: Optional[Lockfile],
    rewrite: bool,
    policy: UpdatePolicy,
    fail_fast: bool,
    use_cache: bool,
    jsr_url: str,
    npm_registry: str,
    concurrency: int,
    timeout: float,
) -> CollectResult:
    """Resolve updates for the scanned references."""
    cache = VersionCache() if use_cache else None
    resolver = UpdateResolver(
        jsr=JsrRegistry(base_url=jsr_url, timeout=timeout),
        npm=NpmRegistry(base_url=npm_registry, timeout=timeout),
        remote=RemoteOrigin(timeout=timeout),
        cache=cache,
    )
    async with resolver:
        orchestrator = UpdateOrchestrator(resolver, concurrency=concurrency)
        return await orchestrator.collect(
            refs,
            lockfile=lockfile,
            rewrite=rewrite,
            policy=policy,
            fail_fast=fail_fast,
        )


def _print_result(result: CollectResult) -> None:
    changed = [u for u in result.updates if u.state is not UpdateState.UNCHANGED]
    if not changed:
        console.print("[green]All dependencies are up to date[/green]")
    else:
        console.print(f"Found [bold]{len(changed)}[/bold] update(s):")
        for update in changed:
            console.print(
                f"  - {update.ref.specifier} -> [bold]{stringify(update.to)}[/bold]"
                f" [dim]({update.ref.source.path}, {update.state.value})[/dim]"
            )

    if result.errors:
        err_console.print(f"\n[red]Failed ({len(result.errors)}):[/red]")
        for identity, error in sorted(result.errors.items()):
            err_console.print(f"  - {identity}: {error}")


@app.command()
def check(
    paths: Annotated[
        list[Path],
        typer.Argument(
            help="Import maps (*.json) and modules (*.ts, *.js) to scan",
            exists=True,
            readable=True,
        ),
    ],
    lock: Annotated[
        Optional[Path],
        typer.Option(
            "--lock",
            "-l",
            help="Lockfile to reconcile with the updates",
            exists=True,
            readable=True,
        ),
    ] = None,
    write_lock: Annotated[
        bool,
        typer.Option(
            "--write-lock",
            help="Write the reconciled lockfile back to disk",
        ),
    ] = False,
    no_rewrite: Annotated[
        bool,
        typer.Option(
            "--no-rewrite",
            help="Keep constraints as written and only refresh the lock",
        ),
    ] = False,
    policy: Annotated[
        UpdatePolicy,
        typer.Option(
            "--policy",
            "-p",
            help="Version to update to",
            case_sensitive=False,
        ),
    ] = UpdatePolicy.RELEASED,
    fail_fast: Annotated[
        bool,
        typer.Option(
            "--fail-fast",
            help="Stop at the first dependency that fails to resolve",
        ),
    ] = False,
    report: Annotated[
        Optional[Path],
        typer.Option(
            "--report",
            "-o",
            help="Write a Markdown summary to this file",
        ),
    ] = None,
    template: Annotated[
        Optional[Path],
        typer.Option(
            "--template",
            "-t",
            help="Custom Jinja2 template for the summary",
            exists=True,
            readable=True,
        ),
    ] = None,
    no_cache: Annotated[
        bool,
        typer.Option(
            "--no-cache",
            help="Do not use the version cache",
        ),
    ] = False,
    jsr_url: Annotated[
        str,
        typer.Option(
            "--jsr-url",
            envvar="DEPBUMP_JSR_URL",
            help="Root URL of the JSR registry",
        ),
    ] = JsrRegistry.BASE_URL,
    npm_registry: Annotated[
        str,
        typer.Option(
            "--npm-registry",
            envvar="NPM_CONFIG_REGISTRY",
            help="Root URL of the npm registry",
        ),
    ] = NpmRegistry.BASE_URL,
    concurrency: Annotated[
        int,
        typer.Option(
            "--concurrency",
            envvar="DEPBUMP_CONCURRENCY",
            min=1,
            help="Maximum number of dependencies resolved at once",
        ),
    ] = UpdateOrchestrator.DEFAULT_CONCURRENCY,
    timeout: Annotated[
        float,
        typer.Option(
            "--timeout",
            envvar="DEPBUMP_TIMEOUT",
            help="Timeout of each request in seconds",
        ),
    ] = HttpClient.DEFAULT_TIMEOUT,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """Check dependencies for updates.

    Scans the given files, resolves the newest version of every
    dependency, and optionally reconciles a lockfile with the result.

    Exit codes:
        0 - All dependencies resolved
        1 - Some dependencies failed or an error occurred
    """
    _setup_logging(verbose)

    if write_lock and lock is None:
        err_console.print("[red]Error:[/red] --write-lock requires --lock")
        raise typer.Exit(code=1)

    try:
        refs = _scan(paths, verbose)
        lockfile = Lockfile.read(lock) if lock else None
    except (ValueError, OSError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if not refs:
        console.print("[yellow]No dependencies found[/yellow]")
        raise typer.Exit(code=0)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(
            f"Resolving {len(refs)} dependency references...", total=None
        )
        try:
            result = asyncio.run(
                _collect(
                    refs,
                    lockfile=lockfile,
                    rewrite=not no_rewrite,
                    policy=policy,
                    fail_fast=fail_fast,
                    use_cache=not no_cache,
                    jsr_url=jsr_url,
                    npm_registry=npm_registry,
                    concurrency=concurrency,
                    timeout=timeout,
                )
            )
        except (DepbumpError, ValueError, OSError) as e:
            err_console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(code=1)
        progress.update(task, completed=True)

    _print_result(result)

    try:
        if report:
            reporter = MarkdownReporter(template_path=template) if template else MarkdownReporter()
            if not report.suffix:
                report = report.with_suffix(reporter.default_extension)
            reporter.write(result, report)
            console.print(f"[green]Generated:[/green] {report} ({reporter.format_name})")

        if write_lock and result.lockfile is not None:
            result.lockfile.write()
            console.print(f"[green]Updated:[/green] {lock}")
    except OSError as e:
        err_console.print(f"[red]Error writing output:[/red] {e}")
        raise typer.Exit(code=1)

    raise typer.Exit(code=1 if result.errors else 0)


@app.command()
def cache(
    action: Annotated[
        str,
        typer.Argument(help="Cache action: 'show' or 'clear'"),
    ],
    identity: Annotated[
        Optional[str],
        typer.Argument(help="Specific dependency to clear, e.g. jsr:@std/fs (optional)"),
    ] = None,
) -> None:
    """Manage the version cache.

    Actions:
        show  - Display cache location, entry count, and size
        clear - Clear all cached entries (or a specific dependency)
    """
    cache_instance = VersionCache()

    if action == "show":
        info = cache_instance.info()
        console.print(f"[bold]Cache Location:[/bold] {info['path']}")
        console.print(f"[bold]Entries:[/bold] {info['count']}")
        console.print(f"[bold]Size:[/bold] {info['size_bytes'] / 1024:.1f} KB")

    elif action == "clear":
        if identity:
            cache_instance.clear(identity=identity)
            console.print(f"[green]Cleared cache for:[/green] {identity}")
        else:
            cache_instance.clear()
            console.print("[green]Cache cleared[/green]")

    else:
        err_console.print(f"[red]Unknown action:[/red] {action}")
        err_console.print("Valid actions: show, clear")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
