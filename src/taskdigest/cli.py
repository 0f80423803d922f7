"""Command-line interface for taskdigest."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from taskdigest.incremental import SnapshotPair, TimeWindowPolicy
from taskdigest.logging_config import configure_logging
from taskdigest.models import DigestReport, Settings
from taskdigest.source import SourceError

app = typer.Typer(
    name="taskdigest",
    help="Incremental status digests for tasks tracked in ClickUp",
    add_completion=False,
)
console = Console()


def _load_settings(state_dir: Optional[Path] = None) -> Settings:
    settings = Settings()
    if state_dir is not None:
        settings.state_dir = state_dir
    return settings


def _print_summary(report: DigestReport) -> None:
    console.print(f"\n[bold]Daily Activity Report[/bold] [dim]{report.report_date}[/dim]")
    console.print(f"[cyan]Window:[/cyan] {report.window_label}\n")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan")
    table.add_column("Entries", justify="right", style="yellow")
    table.add_column("Status changes", justify="right", style="green")

    rows = [
        ("Completed", report.completed),
        ("Blocked", report.blocked),
        ("Task updates", report.task_updates),
        ("Recently created", report.recently_created),
    ]
    for label, entries in rows:
        changes = sum(1 for e in entries if getattr(e, "status_change", None) is not None)
        table.add_row(label, str(len(entries)), str(changes))

    feature_changes = sum(
        len(m.recent_changes) for f in report.features for m in f.milestones
    )
    table.add_row("Features", str(len(report.features)), str(feature_changes))
    console.print(table)


@app.command()
def run(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output JSON file"),
    state_dir: Optional[Path] = typer.Option(None, "--state-dir", help="Snapshot directory (defaults to STATE_DIR or ./.taskdigest)"),
    no_save: bool = typer.Option(False, "--no-save", help="Do not persist updated snapshots"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Build the digest and update the snapshots."""
    from taskdigest.incremental.manager import DigestRunManager
    from taskdigest.source import ClickUpSource

    settings = _load_settings(state_dir)
    configure_logging("DEBUG" if verbose else settings.log_level)

    if not settings.clickup_api_token:
        console.print("[bold red]Error:[/bold red] CLICKUP_API_TOKEN not set")
        raise typer.Exit(1)

    async def run_async() -> DigestReport:
        source = ClickUpSource(settings)
        try:
            manager = DigestRunManager(source, settings)
            return await manager.run(save=not no_save)
        finally:
            await source.aclose()

    try:
        report = asyncio.run(run_async())
    except SourceError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        console.print("[dim]Snapshots were not updated.[/dim]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        if verbose:
            import traceback
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(1)

    _print_summary(report)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w", encoding="utf-8") as f:
            json.dump(report.model_dump(mode="json"), f, indent=2)
        console.print(f"[bold green]✓[/bold green] Report saved to {output}")

    if no_save:
        console.print("[yellow]Snapshots left unchanged (--no-save)[/yellow]")


@app.command()
def snapshot(
    state_dir: Optional[Path] = typer.Option(None, "--state-dir", help="Snapshot directory (defaults to STATE_DIR or ./.taskdigest)"),
) -> None:
    """Show what the persisted snapshots contain."""
    settings = _load_settings(state_dir)
    configure_logging(settings.log_level)
    stats = SnapshotPair(settings.state_dir).stats()

    console.print("\n[bold]Snapshot Status[/bold]")
    console.print(f"[cyan]Directory:[/cyan] {stats['state_dir']}")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Snapshot")
    table.add_column("File", overflow="fold")
    table.add_column("Entries", justify="right")
    table.add_row(
        "Status",
        stats["status_file"] if stats["status_exists"] else "[dim]missing[/dim]",
        str(stats["status_entries"]),
    )
    table.add_row(
        "Dates",
        stats["date_file"] if stats["date_exists"] else "[dim]missing[/dim]",
        str(stats["date_entries"]),
    )
    console.print(table)

    if not stats["status_exists"] and not stats["date_exists"]:
        console.print("\n[dim]No snapshots yet. The next run will seed them.[/dim]")


@app.command()
def window() -> None:
    """Show the active lookback windows."""
    settings = _load_settings()
    policy = TimeWindowPolicy(settings.timezone)

    console.print(f"\n[bold]Lookback Windows[/bold] [dim]({settings.timezone})[/dim]")
    console.print(f"[cyan]Now:[/cyan] {policy.now().astimezone(policy.tz):%Y-%m-%d %H:%M %Z}")
    for hours in (settings.activity_window_hours, settings.feature_window_hours):
        cutoff = policy.cutoff(hours).astimezone(policy.tz)
        console.print(
            f"[cyan]{hours}h window:[/cyan] {policy.hours_back(hours)}h back, "
            f"since {cutoff:%Y-%m-%d %H:%M}"
        )
    console.print(f"[cyan]Label:[/cyan] {policy.label(settings.activity_window_hours)}")


@app.command()
def version() -> None:
    """Show version information."""
    from taskdigest import __version__

    console.print(f"[bold]taskdigest[/bold] version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
