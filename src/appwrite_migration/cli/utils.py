"""
Utility functions for CLI commands.

Helpers for colored messages, tables and summaries.
"""

from typing import Any

import click
from rich.console import Console
from rich.table import Table

from appwrite_migration.migration.executor import MigrationStats
from appwrite_migration.migration.plan import MigrationPlan

console = Console()


def echo_success(message: str) -> None:
    """Print success message in green."""
    click.secho(f"✓ {message}", fg="green")


def echo_error(message: str) -> None:
    """Print error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def echo_warning(message: str) -> None:
    """Print warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def echo_info(message: str) -> None:
    """Print info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def echo_log_line(message: str) -> None:
    """Print one line of the migration log, colored by severity."""
    if message.startswith("ERROR"):
        click.secho(message, fg="red", err=True)
    elif message.startswith("WARNING"):
        click.secho(message, fg="yellow")
    else:
        click.echo(message)


def format_count(count: int) -> str:
    """Format large numbers with thousands separator (e.g. "1,234,567")."""
    return f"{count:,}"


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[Any]],
    show_header: bool = True,
) -> None:
    """
    Print a formatted table using rich.

    Args:
        title: Table title
        columns: Column headers
        rows: List of row data
        show_header: Whether to show header row
    """
    table = Table(title=title, show_header=show_header)

    for col in columns:
        table.add_column(col)

    for row in rows:
        table.add_row(*[str(cell) for cell in row])

    console.print(table)


def print_plan_summary(plan: MigrationPlan) -> None:
    """Print enabled/total node counts per category."""
    rows = [
        [category.title(), format_count(enabled), format_count(total)]
        for category, (enabled, total) in plan.counts().items()
    ]
    print_table("Migration Plan", ["Category", "Enabled", "Total"], rows)


def print_stats(stats: MigrationStats, title: str = "Migration Summary") -> None:
    """Print created/skipped/failed counters per resource kind."""
    rows = [
        [
            kind.replace("_", " ").title(),
            format_count(counts["created"]),
            format_count(counts["skipped"]),
            format_count(counts["failed"]),
        ]
        for kind, counts in stats.as_dict().items()
    ]
    print_table(title, ["Resource", "Created", "Skipped", "Failed"], rows)
