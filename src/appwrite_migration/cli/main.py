"""
Main CLI entry point for Appwrite Bridge.

This module provides the command-line interface for migrating resources
between two Appwrite projects.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from appwrite_migration import __version__
from appwrite_migration.cli.commands import checkpoint as checkpoint_commands
from appwrite_migration.cli.commands import config as config_commands
from appwrite_migration.cli.commands import migrate as migrate_commands
from appwrite_migration.cli.commands import scan as scan_commands
from appwrite_migration.cli.context import MigrationContext
from appwrite_migration.utils.logging import configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="appwrite-bridge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
    envvar="APPWRITE_BRIDGE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Set console logging level (file logging stays at DEBUG)",
    envvar="APPWRITE_BRIDGE_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Log file path (default: logs/migration.log)",
    envvar="APPWRITE_BRIDGE_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str,
    log_file: Path | None,
) -> None:
    """Appwrite Bridge - Migrate resources between Appwrite projects.

    Copies databases (collections, attributes, indexes, documents), storage
    buckets and files, functions (variables and active deployment), users
    and teams from a source project into a destination project.

    Examples:

        # Validate configuration
        appwrite-bridge --config config.yaml config validate

        # Scan the source project into an editable plan
        appwrite-bridge --config config.yaml scan --output plan.yaml

        # Execute the plan
        appwrite-bridge --config config.yaml migrate --plan plan.yaml
    """
    effective_log_file = str(log_file) if log_file else "logs/migration.log"
    configure_logging(level=log_level, log_file=effective_log_file)

    ctx.obj = MigrationContext(
        config_path=config,
        log_level=log_level,
        log_file=log_file,
    )

    logger.debug(
        "CLI initialized",
        config=str(config) if config else None,
        log_level=log_level,
    )


cli.add_command(checkpoint_commands.checkpoint)
cli.add_command(config_commands.config)
cli.add_command(migrate_commands.migrate)
cli.add_command(scan_commands.scan)


def main() -> int:
    """Main entry point for CLI."""
    try:
        # Without standalone mode click returns the code of an Exit instead of raising it
        result = cli(standalone_mode=False)
        return result if isinstance(result, int) else 0
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except Exception as e:
        logger.error("Unexpected error", error=str(e), exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
