# src/cli/runner.py

"""Headless commands: long-running service, one-shot cycle, summary, status."""

import asyncio
import logging
from datetime import date, datetime, timedelta

from rich.console import Console
from rich.table import Table

from src.config.settings import Settings
from src.models.snapshot import CycleResult, SummaryReport
from src.services.tracker import TrackerService

logger = logging.getLogger("refurb_tracker.cli")

_err = Console(stderr=True)


def resolve_sources(source_csv: str | None) -> list[str] | None:
    """Map a comma-separated list of source IDs to validated IDs.

    Returns ``None`` when *source_csv* is ``None`` (keep configured set).
    Raises ``SystemExit`` on unknown IDs.
    """
    if source_csv is None:
        return None
    available = {s["id"] for s in Settings.AVAILABLE_SOURCES}
    requested = [s.strip() for s in source_csv.split(",") if s.strip()]
    unknown = [r for r in requested if r not in available]
    if unknown:
        _err.print(f"[red]Unknown source(s): {', '.join(unknown)}[/red]")
        _err.print(f"[dim]Available: {', '.join(sorted(available))}[/dim]")
        raise SystemExit(1)
    return requested


def _apply_sources(service: TrackerService, source_ids: list[str] | None) -> None:
    if source_ids is None:
        return
    manager = service.scraper_manager
    for source_id in manager.available_scrapers():
        if source_id in source_ids:
            manager.enable_scraper(source_id)
        else:
            manager.disable_scraper(source_id)


def _print_cycle(result: CycleResult) -> None:
    table = Table(title="Tracking Cycle", show_lines=True, title_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Products scraped", str(result.total_products))
    table.add_row("New products", str(result.new_products))
    table.add_row("New matches", str(result.total_new_matches))
    table.add_row("Subscribers notified", str(result.notified_subscribers))
    table.add_row(
        "Status",
        "[yellow]degraded[/yellow]" if result.degraded else "[green]ok[/green]",
    )
    Console().print(table)


def _print_summary(report: SummaryReport) -> None:
    Console().print(report.format())
    if not report.categories:
        return
    table = Table(title="New listings by category", title_style="bold cyan")
    table.add_column("Category", style="magenta")
    table.add_column("Count", justify="right")
    for category, count in report.categories.items():
        table.add_row(category, str(count))
    Console().print(table)


def _parse_day(raw: str | None) -> date:
    if raw is None:
        return date.today() - timedelta(days=1)
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        _err.print(f"[red]Invalid date '{raw}', expected YYYY-MM-DD[/red]")
        raise SystemExit(1)


async def run_once(source_csv: str | None) -> int:
    """Run a single tracking cycle and print its result."""
    source_ids = resolve_sources(source_csv)
    service = TrackerService()
    _apply_sources(service, source_ids)
    try:
        await service.init(start_loops=False)
        _err.print("[bold]Running one tracking cycle...[/bold]")
        result = await service.run_cycle()
    finally:
        await service.shutdown()
    _print_cycle(result)
    return 1 if result.degraded else 0


async def run_summary(day_raw: str | None, source_csv: str | None) -> int:
    """Print the day-over-day summary for one date (default: yesterday)."""
    day = _parse_day(day_raw)
    source_ids = resolve_sources(source_csv)
    service = TrackerService()
    _apply_sources(service, source_ids)
    try:
        await service.init(start_loops=False)
        report = await service.differ.diff_against_previous_day(day)
    finally:
        await service.shutdown()
    _print_summary(report)
    return 0


async def run_status() -> int:
    """Print source registry and persisted tracking state."""
    service = TrackerService()
    try:
        status = service.status()
        persisted = service.store.get_tracking_state()
    finally:
        await service.shutdown()

    stats = status["scrapers"]
    enabled = set(stats["enabled_platforms"])
    table = Table(title="Sources", show_lines=True, title_style="bold cyan")
    table.add_column("Source", style="bold")
    table.add_column("Enabled", justify="center")
    for source_id in stats["available_platforms"]:
        table.add_row(
            source_id,
            "[green]yes[/green]" if source_id in enabled else "[dim]no[/dim]",
        )
    console = Console()
    console.print(table)
    console.print(f"Tracking enabled (persisted): {'yes' if persisted else 'no'}")
    console.print(
        f"Durable store: {'yes' if status['durable_store'] else 'no'}"
    )
    return 0


async def run_service(source_csv: str | None) -> int:
    """Start tracking and the summary scheduler; run until interrupted."""
    source_ids = resolve_sources(source_csv)
    service = TrackerService()
    _apply_sources(service, source_ids)
    try:
        await service.init()
        await service.start_tracking()
        _err.print("[bold green]Tracking started. Ctrl+C to stop.[/bold green]")
        await asyncio.Event().wait()
    finally:
        await service.shutdown()
    return 0
