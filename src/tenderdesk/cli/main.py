"""
TenderDesk CLI - Main entry point.

A terminal tender dashboard: filter, page, bookmark and summarize
tenders from the remote tender service.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from tenderdesk import __app_name__, __version__

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name=__app_name__,
    help="Terminal tender discovery dashboard",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """TenderDesk - Tender discovery dashboard."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import tenders  # noqa: E402

app.add_typer(tenders.app, name="tenders", help="Browse, filter and bookmark tenders")


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
    config_path: Path = typer.Option(
        Path("configs/app.yaml"),
        "--config",
        "-c",
        help="Where to write the configuration file",
    ),
) -> None:
    """Initialize TenderDesk configuration and local storage.

    Creates the default configuration file, the data and log
    directories, and the saved-tenders storage schema.
    """
    from tenderdesk.core.config import ConfigError, load_app_config, write_default_config
    from tenderdesk.persistence.db import init_db

    if not config_path.exists() or force:
        write_default_config(config_path)
        console.print(f"[green]OK[/green] Wrote {config_path}")
    else:
        console.print(f"[dim]Keeping existing {config_path} (use --force to overwrite)[/dim]")

    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]{e}[/red]")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    config.ensure_directories()
    init_db(config.storage.url)

    console.print()
    console.print(Panel.fit(
        "[bold green]OK - TenderDesk initialized[/bold green]\n\n"
        f"  - [cyan]{config_path}[/cyan] - Application configuration\n"
        f"  - [cyan]{config.storage.url}[/cyan] - Saved tenders storage\n\n"
        "Next steps:\n"
        "  1. Point [yellow]gateway.base_url[/yellow] at your tender service\n"
        "  2. Browse tenders: [yellow]tenderdesk tenders list[/yellow]\n"
        "  3. Only urgent ones: [yellow]tenderdesk tenders list --urgent[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
