"""
Configuration management commands.

This module provides commands for validating the migration configuration.
"""

import asyncio

import click

from appwrite_migration.cli.context import MigrationContext
from appwrite_migration.cli.decorators import handle_errors, pass_context, requires_config
from appwrite_migration.cli.utils import echo_error, echo_info, echo_success, print_table
from appwrite_migration.client import query
from appwrite_migration.client.appwrite_client import AppwriteClient
from appwrite_migration.client.exceptions import AppwriteMigrationError
from appwrite_migration.config import MigrationConfig, ProjectConfig
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)


@click.group(name="config")
def config() -> None:
    """Configuration management commands."""
    pass


@config.command(name="validate")
@click.option(
    "--check-connectivity",
    is_flag=True,
    help="List one database in each project to verify endpoints and keys",
)
@pass_context
@requires_config
@handle_errors
def validate(ctx: MigrationContext, check_connectivity: bool) -> None:
    """Validate the migration configuration.

    Examples:

        appwrite-bridge --config config.yaml config validate --check-connectivity
    """
    echo_info(f"Validating configuration: {ctx.config_path}")

    config = ctx.config
    click.echo()
    _display_config_summary(config)

    if check_connectivity:
        click.echo()
        echo_info("Testing connectivity...")
        failures = asyncio.run(_test_connectivity(config))
        if failures:
            raise click.ClickException(f"{failures} project(s) unreachable")

    click.echo()
    echo_success("Configuration is valid!")


def _display_config_summary(config: MigrationConfig) -> None:
    """Display configuration summary (API keys are never shown)."""
    options = config.options
    enabled = [
        name.removeprefix("migrate_")
        for name, value in options.model_dump().items()
        if name.startswith("migrate_") and value
    ]
    rows = [
        ["Source", f"{config.source.endpoint} ({config.source.project_id})"],
        ["Destination", f"{config.destination.endpoint} ({config.destination.project_id})"],
        ["Categories", ", ".join(enabled) or "none"],
        ["Cloud Proxy", "yes" if options.use_cloud_proxy else "no"],
        ["State DB Path", config.state.db_path],
        ["Max Concurrent Items", config.performance.max_concurrent],
        ["Rate Limit (req/s)", config.performance.rate_limit],
    ]
    print_table("Configuration Summary", ["Setting", "Value"], rows)


async def _check_project(label: str, project: ProjectConfig) -> bool:
    async with AppwriteClient(project) as client:
        try:
            await client.list_databases(query.limit(1))
        except AppwriteMigrationError as e:
            echo_error(f"{label}: {e}")
            return False
    echo_success(f"{label}: connected to {project.endpoint}")
    return True


async def _test_connectivity(config: MigrationConfig) -> int:
    results = await asyncio.gather(
        _check_project("Source", config.source),
        _check_project("Destination", config.destination),
    )
    return sum(1 for ok in results if not ok)
