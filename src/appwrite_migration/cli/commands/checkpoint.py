"""
Checkpoint management commands.

View and clear the resumable cursors of the configured project pair.
"""

import click

from appwrite_migration.cli.context import MigrationContext
from appwrite_migration.cli.decorators import (
    confirm_action,
    handle_errors,
    pass_context,
    requires_config,
)
from appwrite_migration.cli.utils import echo_info, echo_success, echo_warning
from appwrite_migration.migration.checkpoint import CheckpointManager, SQLCheckpointStore
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)


def _manager(ctx: MigrationContext) -> CheckpointManager:
    config = ctx.config
    return CheckpointManager(
        SQLCheckpointStore(config.state.database_url),
        config.source.project_id,
        config.destination.project_id,
    )


@click.group(name="checkpoint")
def checkpoint() -> None:
    """Checkpoint management commands."""
    pass


@checkpoint.command(name="status")
@pass_context
@requires_config
@handle_errors
def status(ctx: MigrationContext) -> None:
    """Show whether an interrupted migration can be resumed."""
    manager = _manager(ctx)
    echo_info(f"Checkpoint key: {manager.migration_key}")

    if manager.has_checkpoint():
        echo_warning("An unfinished migration exists. Resume it with 'migrate --resume'.")
    else:
        echo_success("No checkpoint found.")


@checkpoint.command(name="clear")
@click.option("--yes", "-y", is_flag=True, help="Do not prompt for confirmation")
@pass_context
@requires_config
@handle_errors
@confirm_action("This discards the resume position of the last migration. Continue?")
def clear(ctx: MigrationContext, yes: bool) -> None:
    """Delete all checkpoints of the configured project pair."""
    removed = _manager(ctx).clear()
    logger.info("Checkpoints cleared", removed=removed)
    echo_success(f"Removed {removed} checkpoint(s).")
