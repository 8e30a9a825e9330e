# -*- coding: utf-8 -*-
"""
PlotRisk command line interface.

Commands:
    plotrisk analyze FILE [--csv OUT] [--json]   normalize, classify, report
    plotrisk validate FILE [--json]              normalize only, list issues
    plotrisk config                              effective configuration
"""

import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from plotrisk import __version__
from plotrisk.plot_analysis.config import get_config
from plotrisk.plot_analysis.csv_export import plots_to_csv
from plotrisk.plot_analysis.exceptions import PlotAnalysisError
from plotrisk.plot_analysis.geometry_normalizer import GeometryNormalizerEngine
from plotrisk.plot_analysis.models import ClassifiedPlot, NormalizationIssue, UploadResult
from plotrisk.plot_analysis.setup import PlotAnalysisService

console = Console()

SECRET_FIELDS = ("gfw_api_key",)

RISK_STYLES = {
    "HIGH": "bold red",
    "MEDIUM": "yellow",
    "LOW": "green",
    "UNKNOWN": "dim",
}


def _configure_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else get_config().log_level
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.group()
@click.version_option(__version__, prog_name="plotrisk")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """PlotRisk: EUDR deforestation risk analysis for farm plots"""
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


async def _run_analysis(path: Path, progress: Progress) -> UploadResult:
    service = PlotAnalysisService()
    service.startup()
    task = progress.add_task("Classifying plots...", total=100)

    def _on_progress(percent: int) -> None:
        progress.update(task, completed=percent)

    try:
        return await service.upload_file(path, progress=_on_progress)
    finally:
        await service.shutdown()


def display_results(plots: List[ClassifiedPlot]) -> None:
    """Print classified plots as a rich table."""
    table = Table(title="Plot Risk Assessment")
    table.add_column("Plot ID", style="cyan")
    table.add_column("Country")
    table.add_column("Area (ha)", justify="right")
    table.add_column("Risk")
    table.add_column("Compliance")
    table.add_column("GFW / JRC / SBTN")
    table.add_column("WDPA")
    table.add_column("Peatland")

    for plot in plots:
        risk = plot.overall_risk.value
        flags = " / ".join(plot.loss_for(name).flag for name in ("gfw", "jrc", "sbtn"))
        table.add_row(
            plot.plot_id,
            plot.country,
            f"{plot.area_hectares:.4f}",
            f"[{RISK_STYLES.get(risk, '')}]{risk}[/]",
            plot.compliance_status.value,
            flags,
            plot.wdpa_status,
            plot.peatland_status,
        )
    console.print(table)


def display_issues(issues: List[NormalizationIssue]) -> None:
    """Print normalization issues as a rich table."""
    if not issues:
        console.print("[green]No normalization issues[/green]")
        return
    table = Table(title="Normalization Issues")
    table.add_column("#", justify="right")
    table.add_column("Plot ID")
    table.add_column("Severity")
    table.add_column("Code")
    table.add_column("Message")
    for issue in issues:
        table.add_row(
            "-" if issue.feature_index is None else str(issue.feature_index),
            issue.plot_id or "-",
            issue.severity.value,
            issue.code,
            issue.message,
        )
    console.print(table)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--csv", "csv_out", type=click.Path(dir_okay=False, path_type=Path),
              help="Write the results as CSV")
@click.option("--json", "output_json", is_flag=True, help="Output the enriched FeatureCollection")
def analyze(file: Path, csv_out: Path, output_json: bool):
    """Normalize and classify a GeoJSON or KML plot file

    Examples:
        plotrisk analyze plots.geojson
        plotrisk analyze plots.kml --csv results.csv
    """
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            console=console,
            transient=True,
            disable=output_json,
        ) as progress:
            result = asyncio.run(_run_analysis(file, progress))
    except PlotAnalysisError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if output_json:
        click.echo(json.dumps(result.to_response(), indent=2))
    else:
        display_results(result.plots)
        summary = result.summary
        console.print(
            f"\n[bold]{summary.plots_classified}[/bold] of {summary.total_features} features "
            f"classified, {summary.plots_rejected} rejected, "
            f"{summary.plots_with_missing_data} with missing data"
        )
        console.print(f"Risk: {summary.risk_counts}")
        console.print(f"Compliance: {summary.compliance_counts}")
        if result.warning:
            console.print(f"[yellow]Warning:[/yellow] {result.warning}")

    if csv_out is not None:
        csv_out.write_text(plots_to_csv(result.plots), encoding="utf-8", newline="")
        if not output_json:
            console.print(f"[green]CSV written to {csv_out}[/green]")


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "output_json", is_flag=True, help="Output issues as JSON")
def validate(file: Path, output_json: bool):
    """Normalize a plot file without classifying it and list the issues"""
    normalizer = GeometryNormalizerEngine()
    try:
        collection = normalizer.read_file(file)
        result = normalizer.normalize(collection, source_name=file.name)
    except PlotAnalysisError as exc:
        if output_json:
            click.echo(json.dumps(exc.to_dict(), indent=2))
        else:
            console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if output_json:
        click.echo(json.dumps({
            "total_features": result.total_features,
            "plots": len(result.plots),
            "rejected": result.rejected_count,
            "warning": result.warning,
            "issues": [issue.model_dump(mode="json") for issue in result.issues],
        }, indent=2))
        return

    display_issues(result.issues)
    console.print(
        f"\n[bold]{len(result.plots)}[/bold] of {result.total_features} features valid, "
        f"{result.rejected_count} rejected"
    )
    if result.warning:
        console.print(f"[yellow]Warning:[/yellow] {result.warning}")


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


def masked_config() -> Dict[str, Any]:
    """Effective configuration with secrets masked."""
    values = dataclasses.asdict(get_config())
    for name in SECRET_FIELDS:
        values[name] = "***" if values.get(name) else ""
    return values


@cli.command(name="config")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def show_config(output_json: bool):
    """Show the effective configuration (PLOTRISK_* environment)"""
    values = masked_config()
    if output_json:
        click.echo(json.dumps(values, indent=2))
        return

    table = Table(title="PlotRisk Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in values.items():
        table.add_row(name, str(value))
    console.print(table)


if __name__ == "__main__":
    cli()
