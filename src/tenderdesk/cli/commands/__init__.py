"""CLI subcommand modules."""

from . import tenders

__all__ = ["tenders"]
