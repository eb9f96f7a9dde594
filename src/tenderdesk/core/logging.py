"""
Logging infrastructure for TenderDesk.

Provides:
- Structured JSON logging for file output
- Rich console output for terminal
- Contextual logging with query sequence / view mode context
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.markup import escape

if TYPE_CHECKING:
    from rich.console import Console


# Record attributes copied into JSON log lines when present
CONTEXT_FIELDS = ("query_seq", "view_mode", "page", "url", "status_code", "storage_key")


# =============================================================================
# JSON Formatter for File Logging
# =============================================================================


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


# =============================================================================
# Rich Console Handler
# =============================================================================


class RichConsoleHandler(logging.Handler):
    """Handler that outputs to Rich console with formatting."""

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        try:
            # Tender titles and URLs may contain brackets
            message = escape(self.format(record))

            style = {
                logging.DEBUG: "dim",
                logging.INFO: "default",
                logging.WARNING: "yellow",
                logging.ERROR: "red",
                logging.CRITICAL: "bold red",
            }.get(record.levelno, "default")

            # "[q3 urgent]" ties a line to the fetch that produced it
            prefix = ""
            if hasattr(record, "query_seq"):
                tag = f"q{record.query_seq}"
                if getattr(record, "view_mode", None):
                    tag += f" {record.view_mode}"
                prefix = f"[cyan]{escape('[' + tag + ']')}[/cyan] "

            self.console.print(f"{prefix}[{style}]{message}[/{style}]", markup=True, highlight=False)

            if record.exc_info:
                self.console.print_exception()

        except Exception:
            self.handleError(record)


# =============================================================================
# Logger Configuration
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Set up logging for TenderDesk.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file (optional)
        json_format: Use JSON format for file logs
        rich_console: Use Rich for console output

    Returns:
        Root logger for tenderdesk
    """
    logger = logging.getLogger("tenderdesk")
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers.clear()

    if rich_console:
        console_handler: logging.Handler = RichConsoleHandler()
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    console_handler.setLevel(getattr(logging, level.upper()))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # Capture all levels to file

        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )

        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (will be prefixed with 'tenderdesk.')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"tenderdesk.{name}")
    return logging.getLogger("tenderdesk")


# =============================================================================
# Contextual Logging Adapter
# =============================================================================


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that adds query/view context to log records."""

    def __init__(
        self,
        logger: logging.Logger,
        query_seq: int | None = None,
        view_mode: str | None = None,
    ):
        super().__init__(logger, {})
        self.query_seq = query_seq
        self.view_mode = view_mode

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})

        if self.query_seq is not None:
            extra["query_seq"] = self.query_seq
        if self.view_mode:
            extra["view_mode"] = self.view_mode

        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(
        self,
        query_seq: int | None = None,
        view_mode: str | None = None,
    ) -> "ContextualLogger":
        """Create a new logger with additional context."""
        return ContextualLogger(
            self.logger,
            query_seq=query_seq if query_seq is not None else self.query_seq,
            view_mode=view_mode or self.view_mode,
        )


def get_contextual_logger(
    name: str | None = None,
    query_seq: int | None = None,
    view_mode: str | None = None,
) -> ContextualLogger:
    """Get a contextual logger with query/view context.

    Args:
        name: Logger name
        query_seq: Fetch sequence number for context
        view_mode: Active view mode for context

    Returns:
        ContextualLogger instance
    """
    return ContextualLogger(get_logger(name), query_seq=query_seq, view_mode=view_mode)
