"""
Migrate command.

Executes a plan against the destination project. The first Ctrl+C asks
the engine to stop after the operations already in flight; checkpoints
are kept so the run can be resumed with --resume.
"""

import asyncio
import contextlib
import signal
import time
from pathlib import Path

import click

from appwrite_migration.cli.context import MigrationContext
from appwrite_migration.cli.decorators import handle_errors, pass_context, requires_config
from appwrite_migration.cli.utils import (
    echo_info,
    echo_log_line,
    echo_success,
    echo_warning,
    print_plan_summary,
    print_stats,
)
from appwrite_migration.migration.coordinator import MigrationCoordinator
from appwrite_migration.migration.executor import MigrationStats
from appwrite_migration.migration.plan import MigrationPlan
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)


def _install_stop_handler(coordinator: MigrationCoordinator) -> None:
    """Route the first SIGINT to a cooperative stop; a second one interrupts."""
    loop = asyncio.get_running_loop()

    def request_stop() -> None:
        loop.remove_signal_handler(signal.SIGINT)
        echo_warning("Stop requested. Press Ctrl+C again to abort immediately.")
        coordinator.stop()

    # add_signal_handler is unavailable on Windows event loops
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, request_stop)


async def run_migration(
    ctx: MigrationContext, plan_path: Path | None, resume: bool, assume_yes: bool
) -> MigrationStats:
    coordinator = ctx.create_coordinator(log_callback=echo_log_line)
    try:
        if resume and not coordinator.has_checkpoint():
            echo_warning("No checkpoint found for this project pair; starting from the beginning.")
        elif not resume and coordinator.has_checkpoint():
            echo_warning("A previous migration between these projects did not finish.")
            if not assume_yes and not click.confirm(
                "Discard its checkpoints and start over? (use --resume to continue it)"
            ):
                raise click.exceptions.Exit(0)

        if plan_path is not None:
            plan = MigrationPlan.load(plan_path)
            echo_info(f"Loaded plan from {plan_path}")
        else:
            plan = await coordinator.get_migration_plan(ctx.config.options)

        print_plan_summary(plan)
        if not assume_yes and not click.confirm("Start migration?", default=True):
            raise click.exceptions.Exit(0)

        _install_stop_handler(coordinator)
        return await coordinator.start_migration(plan, resume=resume)
    finally:
        await coordinator.close()


@click.command(name="migrate")
@click.option(
    "--plan",
    "plan_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Plan written by 'scan' (scans the source when omitted)",
)
@click.option("--resume", is_flag=True, help="Continue from the last checkpoint")
@click.option("--yes", "-y", is_flag=True, help="Do not prompt for confirmation")
@pass_context
@requires_config
@handle_errors
def migrate(ctx: MigrationContext, plan_path: Path | None, resume: bool, yes: bool) -> None:
    """Migrate resources from the source to the destination project.

    Examples:

        # Scan, review, then migrate
        appwrite-bridge -c config.yaml scan -o plan.yaml
        appwrite-bridge -c config.yaml migrate --plan plan.yaml

        # Continue an interrupted run
        appwrite-bridge -c config.yaml migrate --plan plan.yaml --resume
    """
    start_time = time.time()
    stats = asyncio.run(run_migration(ctx, plan_path, resume, yes))

    click.echo()
    print_stats(stats)
    duration = time.time() - start_time

    failed = stats.total("failed")
    if failed:
        echo_warning(f"Migration finished in {duration:.1f}s with {failed} failed item(s).")
    else:
        echo_success(f"Migration finished in {duration:.1f}s.")
