"""CLI entry point for e18e-analyzer."""

import asyncio
import logging
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from e18e_analyzer.analyzers.bigquery import auto_approve, default_confirm
from e18e_analyzer.analyzers.pipeline import AnalysisPipeline, PipelineResult
from e18e_analyzer.cache import GraphCache, WarehouseCache
from e18e_analyzer.config import AnalyzerConfig

app = typer.Typer(help="Rank npm packages by the value of a modernization PR.")

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.command()
def run(
    limit: int = typer.Option(0, "--limit", "-l", help="Sample N candidates across sources (0 = all)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Approve the BigQuery cost estimate without asking"),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Cache directory"),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Output directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run the full analysis and write outputs."""
    setup_logging(verbose)
    config = AnalyzerConfig.from_env(
        limit=limit,
        auto_approve=yes,
        cache_dir=cache_dir,
        output_dir=output_dir,
    )
    try:
        result = asyncio.run(_run(config))
    except Exception:
        logger.exception("Fatal error")
        raise typer.Exit(1)

    _print_summary(result)


async def _run(config: AnalyzerConfig) -> PipelineResult:
    """Async implementation of run."""
    confirm = auto_approve if config.auto_approve else default_confirm
    async with AnalysisPipeline(config, confirm=confirm) as pipeline:
        return await pipeline.run()


def _print_summary(result: PipelineResult) -> None:
    console.print()
    console.print(
        f"[bold green]Done in {result.elapsed_seconds:.1f}s[/bold green]"
        f" - {len(result.scored)} packages, {len(result.target_repos)} target repos"
    )

    if result.scored:
        table = Table(title="Top Opportunities")
        table.add_column("Rank", style="dim", width=6)
        table.add_column("Package", style="cyan")
        table.add_column("Score", justify="right", style="green")
        table.add_column("Downloads", justify="right")
        table.add_column("Dependents", justify="right")
        table.add_column("Status")

        for pkg in result.scored[:5]:
            table.add_row(
                str(pkg.rank),
                pkg.module_name,
                f"{pkg.composite_score:.4f}",
                f"{pkg.weekly_downloads:,}",
                f"{pkg.dependent_count:,}",
                pkg.status.value,
            )
        console.print(table)

    if result.target_repos:
        table = Table(title="Top Target Repos")
        table.add_column("Rank", style="dim", width=6)
        table.add_column("Repository", style="cyan")
        table.add_column("Score", justify="right", style="green")
        table.add_column("Stars", justify="right")
        table.add_column("Packages", justify="right")

        for repo in result.target_repos[:5]:
            table.add_row(
                str(repo.rank),
                repo.repo_full_name,
                f"{repo.composite_score:.4f}",
                f"{repo.stars:,}",
                str(len(repo.opportunities)),
            )
        console.print(table)


@app.command()
def cache_info(
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Cache directory"),
) -> None:
    """Show cache sizes and freshness."""
    config = AnalyzerConfig.from_env(cache_dir=cache_dir)
    graph_cache = GraphCache(config.graph_cache_path)
    warehouse_cache = WarehouseCache(config.warehouse_cache_path)

    table = Table(title="Caches")
    table.add_column("Cache", style="cyan")
    table.add_column("Path", style="dim")
    table.add_column("Entries", justify="right")
    table.add_column("Valid", justify="right", style="green")

    table.add_row(
        "libraries.io graph",
        str(config.graph_cache_path),
        str(graph_cache.size),
        str(graph_cache.valid_count),
    )
    warehouse = warehouse_cache.get_all()
    table.add_row(
        "BigQuery dependents",
        str(config.warehouse_cache_path),
        str(len(warehouse)) if warehouse is not None else "-",
        "yes" if warehouse is not None else "no",
    )
    console.print(table)

    if warehouse_cache.snapshot_date:
        console.print(
            f"[dim]Snapshot {warehouse_cache.snapshot_date}, fetched {warehouse_cache.fetched_at}[/dim]"
        )


@app.command()
def version() -> None:
    """Show version information."""
    from e18e_analyzer import __version__

    console.print(f"e18e-analyzer v{__version__}")


if __name__ == "__main__":
    app()
