"""CLI Runner for the Incident Statistics Engine.

Usage:
    incident-stats generate --csv-input report.csv -o stats.json [--day-range 30]
    incident-stats generate --json-input incidents.json -o stats.json --rules rules.json
    incident-stats summary stats.json
    incident-stats rules [--rules rules.json]
"""

import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click
from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from incident_stats import __version__
from incident_stats.config import get_settings, load_rules
from incident_stats.errors import ConfigurationError
from incident_stats.models import ClassificationRules, StatsDocument, SummaryStats
from incident_stats.utils.log_setup import configure_logging
from incident_stats.utils.time_utils import format_duration

console = Console()

DATE = click.DateTime(formats=["%Y-%m-%d"])


class ConsoleProgress:
    """Progress callbacks that report each stage on the console."""

    def __init__(self, progress: Progress, task_id, verbose: bool = False):
        self.progress = progress
        self.task_id = task_id
        self.verbose = verbose

    def on_stage_start(self, stage_name: str) -> None:
        self.progress.update(self.task_id, description=f"{stage_name.capitalize()}...")

    def on_stage_complete(self, stage_name: str, duration: float) -> None:
        if self.verbose:
            self.progress.console.print(f"  [dim]{stage_name} done in {duration:.2f}s[/dim]")

    def on_error(self, stage_name: str, error: Exception) -> None:
        self.progress.console.print(f"[red]{stage_name} failed:[/red] {error}")


def resolve_rules(rules_path: Optional[str]) -> ClassificationRules:
    """Rules from --rules, else from settings, else the defaults."""
    if rules_path:
        return load_rules(rules_path)
    return get_settings().get_rules()


def resolve_zone(name: Optional[str]):
    name = name or get_settings().timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone: {name}") from e


@click.group()
@click.version_option(version=__version__)
def cli():
    """Incident Statistics Engine.

    Turn raw incident exports into response-time and workload statistics.
    """
    pass


@cli.command("generate")
@click.option("--csv-input", type=click.Path(dir_okay=False), default=None,
              help="ESO ad-hoc CSV report")
@click.option("--json-input", type=click.Path(dir_okay=False), default=None,
              help="NERIS-style JSON incident export")
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False),
              help="Where to write the stats JSON")
@click.option("--csv-output", type=click.Path(dir_okay=False), default=None,
              help="Also keep a copy of the CSV input here")
@click.option("--rules", "rules_path", type=click.Path(dir_okay=False), default=None,
              help="Classification rules JSON file")
@click.option("--day-range", type=click.IntRange(min=1), default=None,
              help="Days in the detailed stats window")
@click.option("--start-date", type=DATE, default=None, help="First day of the window (YYYY-MM-DD)")
@click.option("--stop-date", type=DATE, default=None, help="Last day of the window (YYYY-MM-DD)")
@click.option("--timezone", "timezone_name", default=None,
              help="IANA timezone of the export's timestamps")
@click.option("--date-format", default=None,
              help="strptime format of the export's dates, e.g. %m/%d/%Y %H:%M:%S")
@click.option("--verbose", "-v", count=True, help="More logging (-vv for debug)")
def generate(csv_input: Optional[str], json_input: Optional[str], output: str,
             csv_output: Optional[str], rules_path: Optional[str], day_range: Optional[int],
             start_date: Optional[datetime], stop_date: Optional[datetime],
             timezone_name: Optional[str], date_format: Optional[str], verbose: int):
    """Generate the stats document from an incident export."""
    from incident_stats.services.pipeline import ProcessingOptions, StatsPipeline

    settings = get_settings()
    configure_logging(verbose, settings.log_level)

    if bool(csv_input) == bool(json_input):
        raise click.UsageError("Provide exactly one of --csv-input or --json-input")
    if csv_output and not csv_input:
        raise click.UsageError("--csv-output requires --csv-input")

    try:
        pipeline = StatsPipeline(
            rules=resolve_rules(rules_path),
            zone=resolve_zone(timezone_name),
            min_interval_seconds=settings.min_interval_seconds,
            date_format=date_format or settings.date_format,
        )
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    options = ProcessingOptions(
        day_range=day_range or settings.day_range,
        start_date=start_date.date() if start_date else None,
        stop_date=stop_date.date() if stop_date else None,
    )

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Generating stats...", total=None)
        callbacks = ConsoleProgress(progress, task, verbose=verbose > 0)
        if csv_input:
            result = pipeline.process(csv_input, "csv", options, callbacks)
        else:
            result = pipeline.process(json_input, "json", options, callbacks)

    if not result.success:
        console.print("\n[red]Stats generation failed![/red] Nothing was written.")
        for error in result.errors:
            console.print(f"  - {error}")
        sys.exit(1)

    document = result.document
    try:
        document.save_to_file(output)
        if csv_output:
            Path(csv_output).parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(csv_input, csv_output)
    except OSError as e:
        console.print(f"[red]Error writing output:[/red] {e}")
        sys.exit(1)

    stats = document.incident_stats
    console.print(f"[green]Stats saved to:[/green] {output}")
    console.print(f"  Window: {document.date_range_from} to {document.date_range_to}")
    console.print(f"  Incidents: {stats.num_incidents} in window, "
                  f"{stats.num_incidents_last_365_days} total")
    console.print(f"  Warnings: {document.parse_warnings}")
    console.print(f"  Duration: {result.duration_seconds:.2f}s")


def _duration_cell(value) -> str:
    return format_duration(value) if value else "-"


@cli.command("summary")
@click.argument("stats_path", type=click.Path(exists=True, dir_okay=False))
def summary(stats_path: str):
    """Show the main figures of a stats document."""
    try:
        document = StatsDocument.load_from_file(stats_path)
    except (OSError, ValidationError) as e:
        console.print(f"[red]Error reading {stats_path}:[/red] {e}")
        sys.exit(1)

    stats = document.incident_stats
    console.print(f"[bold]Stats updated {document.updated_at:%Y-%m-%d %H:%M}[/bold]")
    console.print(f"  Window: {document.date_range_from} to {document.date_range_to}")

    counts = Table(title="Incidents")
    counts.add_column("Measure", style="cyan")
    counts.add_column("Value", justify="right")
    counts.add_row("In window", str(stats.num_incidents))
    counts.add_row("All input", str(stats.num_incidents_last_365_days))
    counts.add_row("Daytime", str(stats.num_daytime_incidents))
    counts.add_row("Nighttime", str(stats.num_nighttime_incidents))
    counts.add_row("Overlapping", str(stats.num_overlapping_incidents))
    counts.add_row("Per day (mean)", str(stats.num_per_day.mean))
    for type_name, count in stats.types.items():
        counts.add_row(f"Type: {type_name}", str(count))
    console.print(counts)

    timers = Table(title="Unit Times")
    timers.add_column("Timer", style="cyan")
    timers.add_column("Mean", justify="right")
    timers.add_column("Median", justify="right")
    timers.add_column("Min", justify="right")
    timers.add_column("Max", justify="right")
    unit_stats = document.unit_time_stats
    rows: list[tuple[str, SummaryStats]] = [
        ("First unit reaction", unit_stats.first_unit_reaction),
        ("Travel", unit_stats.travel),
        ("To scene", unit_stats.to_scene),
        ("On scene", unit_stats.on_scene),
        ("Incident", stats.incident_times),
    ]
    for label, s in rows:
        timers.add_row(label, _duration_cell(s.mean), _duration_cell(s.median),
                       _duration_cell(s.min), _duration_cell(s.max))
    console.print(timers)

    if document.region_stats:
        regions = Table(title="Regions")
        regions.add_column("Region", style="cyan")
        regions.add_column("Incidents", justify="right")
        regions.add_column("Travel (median)", justify="right")
        for name, region in document.region_stats.items():
            regions.add_row(name, str(region.num_incidents),
                            _duration_cell(region.unit_travel_time.median))
        console.print(regions)

    console.print(f"  Responders: {document.personnel_stats.num_unique_responders}")
    console.print(f"  Apparatus used: {document.apparatus_stats.num_unique_used}")


@cli.command("rules")
@click.option("--rules", "rules_path", type=click.Path(dir_okay=False), default=None,
              help="Classification rules JSON file")
def show_rules(rules_path: Optional[str]):
    """Print the effective classification rules as JSON."""
    try:
        rules = resolve_rules(rules_path)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    click.echo(rules.to_json())


if __name__ == "__main__":
    cli()
