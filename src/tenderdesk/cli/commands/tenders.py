"""
Tender browsing, bookmarking and statistics commands.
"""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tenderdesk.core.config import AppConfig, ConfigError, IndustryCategory, Province, load_app_config
from tenderdesk.core.errors import QueryFailed
from tenderdesk.core.gateway import HttpTenderGateway, InMemoryTenderGateway, TenderQueryGateway
from tenderdesk.core.logging import setup_logging
from tenderdesk.core.normalize import Tender
from tenderdesk.core.urgency import utcnow
from tenderdesk.engine import (
    ALL_PROVINCES,
    EmptyReason,
    FilterCriteria,
    SavedTenderRegistry,
    StatsSnapshot,
    TenderDiscoveryEngine,
    ViewMode,
    ViewState,
    ViewStatus,
)
from tenderdesk.persistence import SqlClientStorage

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Browse, filter and bookmark tenders",
    no_args_is_help=True,
)


# =============================================================================
# Shared options
# =============================================================================

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to app.yaml (default: configs/app.yaml)",
)
FIXTURE_OPTION = typer.Option(
    None,
    "--fixture",
    help="Serve tenders from a local JSON file instead of the tender service",
)
INDUSTRY_OPTION = typer.Option(
    None,
    "--industry",
    "-i",
    help="Industry category (repeatable)",
)
PROVINCE_OPTION = typer.Option(
    ALL_PROVINCES,
    "--province",
    "-p",
    help="Province code (GP, WC, KZN, ...) or 'all'",
)
SEARCH_OPTION = typer.Option(
    "",
    "--search",
    "-q",
    help="Substring to match in title, description or buyer",
)
VERBOSE_OPTION = typer.Option(
    False,
    "--verbose",
    help="Show debug logging",
)


# =============================================================================
# Helpers
# =============================================================================


def _load_config(path: Path | None, verbose: bool = False) -> AppConfig:
    try:
        config = load_app_config(path)
    except ConfigError as e:
        err_console.print(f"[red]{e}[/red]")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    setup_logging(
        level="DEBUG" if verbose else config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )
    return config


def _make_gateway(config: AppConfig, fixture: Path | None) -> TenderQueryGateway:
    if fixture is not None:
        try:
            return InMemoryTenderGateway.from_file(
                fixture, urgent_window=timedelta(days=config.engine.urgent_window_days)
            )
        except QueryFailed as e:
            err_console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
    return HttpTenderGateway.from_config(config.gateway)


def _make_registry(config: AppConfig) -> SavedTenderRegistry:
    return SavedTenderRegistry(
        SqlClientStorage(config.storage.url),
        key=config.storage.saved_key,
        scope=config.storage.user_scope,
    )


def _build_criteria(industry: list[str] | None, province: str, search: str) -> FilterCriteria:
    try:
        industries = [IndustryCategory.from_label(label).value for label in industry or []]
    except ValueError as e:
        err_console.print(f"[red]{e}[/red]")
        err_console.print("[dim]See: tenderdesk tenders catalog[/dim]")
        raise typer.Exit(1)

    if province.strip().lower() != ALL_PROVINCES:
        try:
            province = Province(province.strip().upper()).value
        except ValueError:
            err_console.print(f"[red]Unknown province:[/red] {province}")
            err_console.print("[dim]See: tenderdesk tenders catalog[/dim]")
            raise typer.Exit(1)

    return FilterCriteria().with_industries(industries).with_province(province).with_search(search)


def _resolve_mode(urgent: bool, saved: bool) -> ViewMode:
    if urgent and saved:
        err_console.print("[red]--urgent and --saved cannot be combined[/red]")
        raise typer.Exit(1)
    if urgent:
        return ViewMode.URGENT
    if saved:
        return ViewMode.SAVED
    return ViewMode.ALL


async def _load_view(
    config: AppConfig,
    fixture: Path | None,
    criteria: FilterCriteria,
    mode: ViewMode,
    page: int = 1,
) -> tuple[ViewState, bool]:
    """Run one engine cycle. Returns the final state and whether ``page`` was honoured."""
    page_ok = True
    async with _make_gateway(config, fixture) as gateway:
        engine = TenderDiscoveryEngine(
            gateway,
            _make_registry(config),
            page_size=config.engine.page_size,
            urgent_window=timedelta(days=config.engine.urgent_window_days),
            criteria=criteria,
            mode=mode,
        )
        engine.start()
        await engine.settle()

        if page != 1:
            page_ok = engine.set_page(page) is not None
            await engine.settle()

        state = engine.state
        engine.close()
    return state, page_ok


def _closing_label(tender: Tender) -> str:
    now = utcnow()
    days_until = tender.days_until_close(now)
    if tender.is_expired(now):
        return "[dim]Closed[/dim]"
    if days_until <= 3:
        return f"[red bold]{days_until}d[/red bold]"
    if days_until <= 7:
        return f"[yellow]{days_until}d[/yellow]"
    return tender.closing_date.strftime("%Y-%m-%d")


def _truncate(text: str, width: int) -> str:
    if not text:
        return "[dim]-[/dim]"
    return escape(text if len(text) <= width else text[:width - 3] + "...")


def _exit_on_error(state: ViewState) -> None:
    if state.status is ViewStatus.ERROR and state.error is not None:
        err_console.print(f"[red]Could not load tenders:[/red] {state.error.message}")
        if state.error.retryable:
            err_console.print("[dim]The tender service may be temporarily unavailable; run the command again to retry.[/dim]")
        raise typer.Exit(1)


def _print_warnings(state: ViewState) -> None:
    for warning in state.warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {warning}")


def _render_stats_line(stats: StatsSnapshot) -> str:
    note = " [dim](this page only)[/dim]" if stats.approximate else ""
    return (
        f"[bold]{stats.total_tenders}[/bold] tenders  "
        f"[cyan]{stats.this_week_tenders}[/cyan] this week  "
        f"[cyan]{stats.this_month_tenders}[/cyan] this month  "
        f"[yellow]{stats.urgent_tenders}[/yellow] urgent  "
        f"[green]{stats.saved_count}[/green] saved{note}"
    )


def _render_table(state: ViewState) -> None:
    mode_label = {
        ViewMode.ALL: "All tenders",
        ViewMode.URGENT: "Urgent tenders",
        ViewMode.SAVED: "Saved tenders",
    }[state.mode]

    table = Table(
        title=f"{mode_label} ({len(state.tenders)} shown, {state.total_count} total)",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("", justify="center", no_wrap=True)
    table.add_column("Title", max_width=45)
    table.add_column("Buyer", max_width=25)
    table.add_column("Industry", max_width=20)
    table.add_column("Prov.", justify="center")
    table.add_column("Closing", justify="right")

    for tender in state.tenders:
        table.add_row(
            escape(tender.id),
            "[green]*[/green]" if tender.id in state.saved_ids else "",
            _truncate(tender.title, 45),
            _truncate(tender.buyer, 25),
            _truncate(tender.industry_category, 20),
            escape(tender.province) if tender.province else "[dim]-[/dim]",
            _closing_label(tender),
        )

    console.print(table)


def _render_empty(state: ViewState) -> None:
    if state.empty_reason is EmptyReason.FILTERED_BY_MODE:
        which = "urgent" if state.mode is ViewMode.URGENT else "saved"
        console.print(f"[dim]No {which} tenders on this page.[/dim]")
        console.print("[dim]Drop --urgent/--saved or try another page.[/dim]")
    else:
        console.print("[dim]No tenders found matching criteria.[/dim]")
        if state.criteria.active_filter_count:
            console.print("[dim]Try adjusting your filters or check back later for new opportunities.[/dim]")


def _render_footer(state: ViewState) -> None:
    if not state.shows_pagination:
        return
    hints = []
    if state.has_previous:
        hints.append(f"--page {state.page - 1} for previous")
    if state.has_next:
        hints.append(f"--page {state.page + 1} for next")
    console.print(f"Page {state.page} of {state.total_pages}  [dim]{'; '.join(hints)}[/dim]")


def _tender_rows(state: ViewState) -> list[dict[str, object]]:
    rows = []
    for tender in state.tenders:
        data = tender.to_dict()
        data["saved"] = tender.id in state.saved_ids
        rows.append(data)
    return rows


# =============================================================================
# Commands
# =============================================================================


@app.command("list")
def list_tenders(
    industry: Optional[List[str]] = INDUSTRY_OPTION,
    province: str = PROVINCE_OPTION,
    search: str = SEARCH_OPTION,
    page: int = typer.Option(
        1,
        "--page",
        "-n",
        help="Page number (1-based)",
    ),
    urgent: bool = typer.Option(
        False,
        "--urgent",
        "-u",
        help="Only tenders closing within 7 days",
    ),
    saved: bool = typer.Option(
        False,
        "--saved",
        "-s",
        help="Only bookmarked tenders",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, json, csv)",
    ),
    fixture: Optional[Path] = FIXTURE_OPTION,
    config_path: Optional[Path] = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """List tenders with filters.

    Examples:
        tenderdesk tenders list --industry "ICT & Software" --province GP
        tenderdesk tenders list --urgent --format json
    """
    if format not in ("table", "json", "csv"):
        err_console.print(f"[red]Unsupported format:[/red] {format}")
        raise typer.Exit(1)

    mode = _resolve_mode(urgent, saved)
    criteria = _build_criteria(industry, province, search)
    config = _load_config(config_path, verbose)

    state, page_ok = asyncio.run(_load_view(config, fixture, criteria, mode, page))
    _exit_on_error(state)
    _print_warnings(state)

    if not page_ok:
        err_console.print(f"[yellow]Page {page} does not exist; showing page {state.page} of {state.total_pages}.[/yellow]")

    if format == "json":
        console.print_json(json.dumps({
            "tenders": _tender_rows(state),
            "total_count": state.total_count,
            "page": state.page,
            "total_pages": state.total_pages,
            "mode": state.mode.value,
            "stats": state.stats.to_dict(),
        }))
        return

    if format == "csv":
        import csv
        import sys
        writer = csv.writer(sys.stdout)
        writer.writerow([
            "tender_id", "title", "buyer", "industry_category", "province",
            "published_date", "closing_date", "saved", "source_url",
        ])
        for tender in state.tenders:
            writer.writerow([
                tender.id,
                tender.title,
                tender.buyer,
                tender.industry_category,
                tender.province or "",
                tender.published_date.isoformat(),
                tender.closing_date.isoformat(),
                "yes" if tender.id in state.saved_ids else "no",
                tender.source_url,
            ])
        return

    console.print(_render_stats_line(state.stats))
    console.print()

    if state.status is ViewStatus.EMPTY:
        _render_empty(state)
        return

    _render_table(state)
    _render_footer(state)


@app.command("show")
def show_tender(
    tender_id: str = typer.Argument(..., help="Tender ID"),
    fixture: Optional[Path] = FIXTURE_OPTION,
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Show detailed information about a tender."""
    from rich.panel import Panel

    config = _load_config(config_path)

    async def fetch() -> Tender | None:
        async with _make_gateway(config, fixture) as gateway:
            return await gateway.get(tender_id)

    try:
        tender = asyncio.run(fetch())
    except QueryFailed as e:
        err_console.print(f"[red]Could not load tender:[/red] {e}")
        raise typer.Exit(1)

    if tender is None:
        err_console.print(f"[red]Tender not found:[/red] {escape(tender_id)}")
        raise typer.Exit(1)

    registry = _make_registry(config)
    registry.load()
    now = utcnow()

    status = "[red]Closed[/red]"
    if not tender.is_expired(now):
        status = "[yellow]Urgent[/yellow]" if tender.is_urgent(now) else "[green]Open[/green]"

    details = f"""[bold]Title:[/bold] {escape(tender.title) or '-'}
[bold]Buyer:[/bold] {escape(tender.buyer) or '-'}
[bold]Industry:[/bold] {escape(tender.industry_category) or '-'}
[bold]Province:[/bold] {escape(tender.province or '-')}

[bold]Published:[/bold] {tender.published_date.strftime('%b %d, %Y')}
[bold]Closing:[/bold] {tender.closing_date.strftime('%b %d, %Y')} ({status})
[bold]Saved:[/bold] {'yes' if registry.is_saved(tender.id) else 'no'}

[bold]Source:[/bold] {escape(tender.source or '-')}
[bold]Source URL:[/bold] {escape(tender.source_url or '-')}"""

    console.print()
    console.print(Panel.fit(details, title=f"[bold cyan]Tender {escape(tender.id)}[/bold cyan]", border_style="cyan"))

    if tender.description:
        console.print()
        console.print(Panel(
            escape(tender.description[:2000]) + ("..." if len(tender.description) > 2000 else ""),
            title="[bold]Description[/bold]",
            border_style="dim",
        ))

    if tender.document_links:
        console.print()
        console.print("[bold]Documents[/bold]")
        for link in tender.document_links:
            console.print(f"  - {escape(link)}")


@app.command("save")
def toggle_saved(
    tender_id: str = typer.Argument(..., help="Tender ID to bookmark or un-bookmark"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Toggle the bookmark on a tender."""
    config = _load_config(config_path)
    registry = _make_registry(config)
    registry.load()

    if registry.toggle(tender_id):
        console.print(f"[green]OK[/green] Saved {escape(tender_id)}")
    else:
        console.print(f"[green]OK[/green] Removed {escape(tender_id)} from saved tenders")

    for warning in registry.warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {warning}")


@app.command("saved")
def list_saved(
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """List bookmarked tender IDs."""
    config = _load_config(config_path)
    registry = _make_registry(config)
    registry.load()

    for warning in registry.warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {warning}")

    if not registry.count:
        console.print("[dim]No saved tenders yet. Bookmark one with:[/dim] tenderdesk tenders save <id>")
        return

    console.print(f"[bold]{registry.count} saved tenders[/bold]")
    for tender_id in registry.ids:
        console.print(f"  {escape(tender_id)}")


@app.command("stats")
def show_stats(
    industry: Optional[List[str]] = INDUSTRY_OPTION,
    province: str = PROVINCE_OPTION,
    search: str = SEARCH_OPTION,
    fixture: Optional[Path] = FIXTURE_OPTION,
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Show tender statistics for the current filters."""
    criteria = _build_criteria(industry, province, search)
    config = _load_config(config_path)

    state, _ = asyncio.run(_load_view(config, fixture, criteria, ViewMode.ALL))
    _exit_on_error(state)
    _print_warnings(state)

    stats = state.stats
    table = Table(title="Tender Statistics", show_header=True, header_style="bold magenta")
    table.add_column("Counter", style="cyan")
    table.add_column("Count", justify="right")

    table.add_row("Total", str(stats.total_tenders))
    table.add_row("Published this week", str(stats.this_week_tenders))
    table.add_row("Published this month", str(stats.this_month_tenders))
    table.add_row("Closing within 7 days", str(stats.urgent_tenders))
    table.add_row("Saved", str(stats.saved_count))
    table.add_row("Industry categories", str(stats.industry_count))

    console.print(table)
    if stats.approximate:
        console.print(
            f"[dim]Counts cover the first page only ({stats.total_tenders} of "
            f"{state.total_count} matching tenders).[/dim]"
        )


@app.command("catalog")
def show_catalog() -> None:
    """List the industry categories and province codes accepted as filters."""
    industries = Table(title="Industry Categories", show_header=False)
    industries.add_column("Category", style="cyan")
    for category in IndustryCategory:
        industries.add_row(category.value)

    provinces = Table(title="Provinces", show_header=True, header_style="bold magenta")
    provinces.add_column("Code", style="cyan")
    provinces.add_column("Name")
    for province in Province:
        provinces.add_row(province.value, province.label)

    console.print(industries)
    console.print()
    console.print(provinces)
