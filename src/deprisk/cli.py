"""CLI entry point for deprisk."""

import asyncio
import json
import logging
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from deprisk.adapters.base import DepRiskError
from deprisk.analyzers.licenses import classify_license
from deprisk.analyzers.pipeline import ScanPipeline, save_result
from deprisk.models.schemas import RiskLevel, ScanResult

app = typer.Typer(help="Dependency supply-chain risk scanner for npm projects.")

console = Console()

LEVEL_COLORS = {
    RiskLevel.CRITICAL: "bold red",
    RiskLevel.HIGH: "red",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.LOW: "green",
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def scan(
    repository: str = typer.Argument(..., help="GitHub repository URL or owner/repo"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
    token: str | None = typer.Option(None, "--token", "-t", help="GitHub token (defaults to GITHUB_TOKEN)"),
) -> None:
    """Scan a GitHub repository's npm dependencies."""
    asyncio.run(_scan_repository(repository, output, token))


async def _scan_repository(repository: str, output: Path | None, token: str | None) -> None:
    """Async implementation of scan."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Starting scan...", total=None)

        def on_stage(name: str) -> None:
            progress.update(task, description=f"{name}...")

        try:
            async with ScanPipeline(github_token=token, on_stage=on_stage) as pipeline:
                result = await pipeline.scan_repository(repository)
        except DepRiskError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

    _print_result(result)
    _save(result, output)


@app.command()
def scan_local(
    manifest: Path = typer.Argument(..., help="Path to package.json", exists=True, dir_okay=False),
    lock: Path | None = typer.Option(None, "--lock", "-l", help="Path to package-lock.json", exists=True, dir_okay=False),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
) -> None:
    """Scan a local package.json (and optional lockfile)."""
    try:
        package_json = json.loads(manifest.read_text())
        package_lock = json.loads(lock.read_text()) if lock else None
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON: {e}[/red]")
        raise typer.Exit(1)

    for path, data in ((manifest, package_json), (lock, package_lock)):
        if path and not isinstance(data, dict):
            console.print(f"[red]Invalid JSON: {path.name} must contain an object[/red]")
            raise typer.Exit(1)

    asyncio.run(_scan_local(package_json, package_lock, manifest.name, output))


async def _scan_local(
    package_json: dict,
    package_lock: dict | None,
    filename: str,
    output: Path | None,
) -> None:
    """Async implementation of scan_local."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Loading local files...", total=None)

        def on_stage(name: str) -> None:
            progress.update(task, description=f"{name}...")

        try:
            async with ScanPipeline(on_stage=on_stage) as pipeline:
                result = await pipeline.scan_local(package_json, package_lock, filename)
        except DepRiskError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

    _print_result(result)
    _save(result, output)


@app.command()
def license(
    license_id: str = typer.Argument(..., help="License identifier, e.g. 'MIT OR GPL-3.0'"),
) -> None:
    """Classify a license identifier."""
    info = classify_license(license_id)

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row("SPDX ID", info.spdx_id)
    table.add_row("Name", info.name)
    table.add_row("Risk", info.risk_level.value)
    table.add_row("OSI Approved", "Yes" if info.is_osi_approved else "No")
    table.add_row("Explanation", info.explanation)

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from deprisk import __version__

    console.print(f"deprisk v{__version__}")


def _print_result(result: ScanResult) -> None:
    """Render the overall verdict, counters and top risks."""
    color = LEVEL_COLORS[result.overall_risk_level]

    console.print()
    console.print(f"[bold cyan]{result.repo.full_name}[/bold cyan]")
    if result.repo.description:
        console.print(f"[dim]{result.repo.description}[/dim]")
    console.print()
    console.print(
        f"[bold]Overall Risk:[/bold] [{color}]{result.overall_risk_level.value}[/{color}] "
        f"({result.overall_risk_score}/100)"
    )
    console.print()

    summary = result.summary
    summary_table = Table(title="Summary", show_header=False, box=None)
    summary_table.add_column("Metric", style="bold")
    summary_table.add_column("Value", justify="right")

    summary_table.add_row("Dependencies", str(summary.total_dependencies))
    summary_table.add_row("  Direct", str(summary.direct_dependencies))
    summary_table.add_row("  Transitive", str(summary.transitive_dependencies))
    summary_table.add_row("Critical Vulnerabilities", str(summary.critical_vulnerabilities))
    summary_table.add_row("High Vulnerabilities", str(summary.high_vulnerabilities))
    summary_table.add_row("Medium Vulnerabilities", str(summary.medium_vulnerabilities))
    summary_table.add_row("Low Vulnerabilities", str(summary.low_vulnerabilities))
    summary_table.add_row("High-Risk Licenses", str(summary.high_risk_licenses))
    summary_table.add_row("Abandoned Packages", str(summary.abandoned_packages))
    summary_table.add_row("Supply Chain Flags", str(summary.supply_chain_risks))

    console.print(summary_table)

    if not result.top_risks:
        return

    console.print()
    risks_table = Table(title="Top Risks")
    risks_table.add_column("Package", style="cyan")
    risks_table.add_column("Version", style="dim")
    risks_table.add_column("Score", justify="right")
    risks_table.add_column("Level")
    risks_table.add_column("Reasons", max_width=60)

    for risk in result.top_risks:
        level_color = LEVEL_COLORS[risk.risk_level]
        risks_table.add_row(
            risk.dependency.name,
            risk.dependency.version or "-",
            str(risk.risk_score),
            f"[{level_color}]{risk.risk_level.value}[/{level_color}]",
            "\n".join(risk.reasons) or "-",
        )

    console.print(risks_table)


def _save(result: ScanResult, output: Path | None) -> None:
    if output:
        save_result(result, output)
        console.print(f"\n[green]Saved to {output}[/green]")


if __name__ == "__main__":
    app()
