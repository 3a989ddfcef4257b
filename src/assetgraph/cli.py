"""Click CLI for assetgraph: responsive image variants for documents."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from assetgraph.config.schema import PipelineSettings
from assetgraph.errors.exceptions import AssetGraphError, GraphError
from assetgraph.types import BreakpointSet, ExecutionPlan, Manifest, ResultStatus

if TYPE_CHECKING:
    from assetgraph.cache.manager import CacheManager

console = Console()
error_console = Console(stderr=True)

_STATUS_STYLE = {
    ResultStatus.HIT: "green",
    ResultStatus.REGENERATED: "cyan",
    ResultStatus.FAILED: "red",
}


def _setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def _load_settings(breakpoints_file: str | None = None, **overrides: object) -> PipelineSettings:
    from assetgraph.config.loader import load_breakpoints_yaml

    try:
        breakpoints = load_breakpoints_yaml(breakpoints_file) if breakpoints_file else None
        return PipelineSettings.load(breakpoints=breakpoints, **overrides)
    except ValueError as e:
        error_console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(2)


@click.group()
@click.version_option(package_name="assetgraph")
def cli() -> None:
    """assetgraph: resolve document references and build responsive images."""


@cli.command()
@click.argument("sources", nargs=-1, required=True)
@click.option("--document", is_flag=True, default=False, help="Treat SOURCES as root documents.")
@click.option("-o", "--output-dir", type=click.Path(), default=None, help="Output directory.")
@click.option("--workers", type=int, default=None, help="Maximum concurrent image tasks.")
@click.option(
    "--breakpoints", "breakpoints_file", type=click.Path(exists=True), help="Breakpoints YAML."
)
@click.option("--no-cache", is_flag=True, default=False, help="Disable caching.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the manifest as JSON.")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug).")
def process(
    sources: tuple[str, ...],
    document: bool,
    output_dir: str | None,
    workers: int | None,
    breakpoints_file: str | None,
    no_cache: bool,
    as_json: bool,
    verbose: int,
) -> None:
    """Generate variants for images, or for every image a document references."""
    from assetgraph.core import AssetGraph

    _setup_logging(verbose)
    settings = _load_settings(
        breakpoints_file,
        output_dir=output_dir,
        max_concurrency=workers,
        cache_disabled=no_cache or None,
    )

    async def _run() -> Manifest:
        graph = AssetGraph(settings)
        try:
            if document:
                return await graph.process_documents_async(list(sources))
            return await graph.process_async(list(sources))
        finally:
            await graph.close()

    try:
        manifest = asyncio.run(_run())
    except AssetGraphError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)

    if as_json:
        click.echo(manifest.model_dump_json(indent=2))
    else:
        _print_manifest(manifest, verbose)
    sys.exit(manifest.exit_code)


def _print_manifest(manifest: Manifest, verbose: int) -> None:
    table = Table(title="Processed Images", show_header=True)
    table.add_column("Source", style="cyan")
    table.add_column("Hash")
    table.add_column("Status")
    table.add_column("Size")
    table.add_column("Variants")
    table.add_column("Error")

    for result in manifest.results:
        style = _STATUS_STYLE[result.status]
        size = (
            f"{result.original_width}x{result.original_height}"
            if result.original_width is not None
            else "-"
        )
        table.add_row(
            result.source,
            result.hash,
            f"[{style}]{result.status.value}[/{style}]",
            size,
            str(len(result.variants)),
            f"{result.error_type}: {result.error}" if result.error else "-",
        )
    console.print(table)

    for failure in manifest.graph_errors:
        error_console.print(
            f"[red]Graph error[/red] ({failure.error_type}) in {failure.root}: {failure.error}"
        )

    console.print(
        f"{manifest.hits} cached, {manifest.regenerated} regenerated, {manifest.failed} failed"
    )

    # Show variant paths and warnings at -vv
    if verbose >= 2:
        for result in manifest.results:
            for variant in result.variants:
                error_console.print(f"  {variant.path} ({variant.width}x{variant.height})")
            for warning in result.warnings:
                error_console.print(f"  [yellow]{result.source}: {warning}[/yellow]")


@cli.command()
@click.argument("document")
@click.option(
    "--breakpoints", "breakpoints_file", type=click.Path(exists=True), help="Breakpoints YAML."
)
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug).")
def plan(document: str, breakpoints_file: str | None, verbose: int) -> None:
    """Show the resolved reference graph of a document without processing it."""
    from assetgraph.pipeline.graph import DocumentLoader, GraphBuilder
    from assetgraph.remote.client import AsyncFetcher

    _setup_logging(verbose)
    settings = _load_settings(breakpoints_file)
    fetcher = AsyncFetcher(timeout=settings.fetch_timeout, retries=settings.fetch_retries)
    builder = GraphBuilder(loader=DocumentLoader(fetcher), max_depth=settings.max_depth)

    try:
        execution_plan = builder.resolve([document], settings.breakpoints)
    except GraphError as e:
        error_console.print(f"[red]Graph error[/red] ({e.error_type}): {e.message}")
        sys.exit(1)
    finally:
        fetcher.close()

    _print_plan(execution_plan)


def _print_plan(execution_plan: ExecutionPlan) -> None:
    table = Table(title="Execution Plan", show_header=True)
    table.add_column("Kind", style="cyan")
    table.add_column("Source")
    table.add_column("Jobs")

    for doc in execution_plan.documents:
        table.add_row("document", doc.source, "-")
    for pdf in execution_plan.pdfs:
        table.add_row("pdf", pdf.source, "-")
    for task in execution_plan.image_tasks():
        table.add_row("image", task.identifier.source, str(len(task.jobs)))

    console.print(table)
    console.print(f"Total variant jobs: {execution_plan.total_jobs}")


@cli.command()
@click.option(
    "--breakpoints", "breakpoints_file", type=click.Path(exists=True), help="Breakpoints YAML."
)
def tiers(breakpoints_file: str | None) -> None:
    """List the size tiers derived from the configured breakpoints."""
    settings = _load_settings(breakpoints_file)
    _print_tiers(settings.breakpoints)


def _print_tiers(breakpoints: BreakpointSet) -> None:
    from assetgraph.pipeline.variants import derive_tiers

    table = Table(title="Size Tiers", show_header=True)
    table.add_column("Tier", style="cyan")
    table.add_column("Width (px)", justify="right")
    for tier in derive_tiers(breakpoints):
        table.add_row(tier.name, str(tier.width))
    console.print(table)


@cli.group()
def cache() -> None:
    """Cache management commands."""


def _open_cache() -> CacheManager:
    from assetgraph.cache.disk import SqliteCacheStore
    from assetgraph.cache.manager import CacheManager

    settings = _load_settings()
    try:
        return CacheManager(SqliteCacheStore(settings.cache_db_path))
    except AssetGraphError as e:
        error_console.print(f"[red]Cache unavailable:[/red] {e.message}")
        sys.exit(1)


@cache.command("stats")
def cache_stats() -> None:
    """Show cache statistics."""
    mgr = _open_cache()

    table = Table(title="Cache Statistics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")

    stats = mgr.stats()
    table.add_row("Entries", str(stats.entries))
    table.add_row("Location", str(mgr.store.db_path))

    console.print(table)
    mgr.close()


@cache.command("clear")
@click.confirmation_option(prompt="Are you sure you want to clear the cache?")
def cache_clear() -> None:
    """Clear all cache records (variant files are left in place)."""
    mgr = _open_cache()
    mgr.clear()
    mgr.close()
    console.print("[green]Cache cleared.[/green]")


@cache.command("invalidate")
@click.argument("source")
def cache_invalidate(source: str) -> None:
    """Drop the cache record for one source path or URL."""
    from assetgraph.cache.keys import hash_resource
    from assetgraph.types import ResourceIdentifier

    identifier = ResourceIdentifier.parse(source).resolve_against(None)
    mgr = _open_cache()
    removed = mgr.invalidate(hash_resource(identifier))
    mgr.close()
    if removed:
        console.print(f"[green]Invalidated {identifier.source}[/green]")
    else:
        console.print(f"[yellow]No cache record for {identifier.source}[/yellow]")


def main() -> None:
    """Entry point for the CLI."""
    cli()
