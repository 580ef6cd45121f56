"""
Decorators for CLI commands.

This module provides decorators for error handling, context passing,
configuration loading and confirmation prompts.
"""

import functools
from collections.abc import Callable

import click

from appwrite_migration.cli.context import MigrationContext
from appwrite_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    MigrationCancelledError,
    StateError,
)
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass MigrationContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: MigrationContext):
            print(ctx.config)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        migration_ctx: MigrationContext = click_ctx.obj
        return f(migration_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    Exit codes:
        0: Success
        1: General error
        2: Configuration error
        3: Authentication/authorization error
        4: API error
        5: State error
        6: Migration stopped by user
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except (click.exceptions.Exit, click.ClickException):
            raise

        except MigrationCancelledError as e:
            logger.warning("Migration cancelled", error=str(e))
            click.echo(f"Stopped: {e}", err=True)
            click.echo(
                "\nCheckpoints were kept. Run 'appwrite-bridge migrate --resume' to continue.",
                err=True,
            )
            raise click.exceptions.Exit(6) from e

        except ConfigurationError as e:
            logger.error("Configuration error", error=str(e))
            click.echo(f"Configuration Error: {e}", err=True)
            click.echo(
                "\nPlease check your configuration file and ensure all required fields are set.",
                err=True,
            )
            raise click.exceptions.Exit(2) from e

        except (AuthenticationError, AuthorizationError) as e:
            logger.error("Authentication error", error=str(e))
            click.echo(f"Authentication Error: {e}", err=True)
            click.echo(
                "\nPlease verify the project IDs and API keys (and their scopes).",
                err=True,
            )
            raise click.exceptions.Exit(3) from e

        except APIError as e:
            logger.error("API error", error=str(e))
            click.echo(f"API Error: {e}", err=True)
            if e.status_code:
                click.echo(f"\nResponse status: {e.status_code}", err=True)
            raise click.exceptions.Exit(4) from e

        except StateError as e:
            logger.error("State error", error=str(e))
            click.echo(f"State Error: {e}", err=True)
            click.echo(
                "\nThere was an error accessing checkpoint state. "
                "The database may be corrupted or inaccessible.",
                err=True,
            )
            raise click.exceptions.Exit(5) from e

        except Exception as e:
            logger.error("Unexpected error", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo(
                "\nAn unexpected error occurred. Please check the logs for details.",
                err=True,
            )
            raise click.exceptions.Exit(1) from e

    return wrapper


def requires_config(f: Callable) -> Callable:
    """
    Decorator to ensure configuration is loaded.

    Exits with code 2 when no configuration was given or it fails validation.
    """

    @functools.wraps(f)
    def wrapper(ctx: MigrationContext, *args, **kwargs):
        if ctx.config_path is None:
            click.echo(
                "Error: Configuration file required. "
                "Use --config option or set APPWRITE_BRIDGE_CONFIG.",
                err=True,
            )
            raise click.exceptions.Exit(2)

        try:
            _ = ctx.config
        except Exception as e:
            click.echo(f"Error loading configuration: {e}", err=True)
            raise click.exceptions.Exit(2) from e

        return f(ctx, *args, **kwargs)

    return wrapper


def confirm_action(
    message: str = "Do you want to continue?",
    abort_message: str = "Operation cancelled.",
) -> Callable:
    """
    Decorator to prompt for confirmation before executing a command.

    The prompt is skipped when the command has a ``--yes`` flag set.

    Args:
        message: Confirmation prompt message
        abort_message: Message to show if user aborts
    """

    def decorator(f: Callable) -> Callable:
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            ctx = click.get_current_context()
            if ctx.params.get("yes", False):
                return f(*args, **kwargs)

            if not click.confirm(message):
                click.echo(abort_message)
                raise click.exceptions.Exit(0)

            return f(*args, **kwargs)

        return wrapper

    return decorator
