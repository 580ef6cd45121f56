"""
Scan command.

Reads the source project and writes an editable migration plan.
"""

import asyncio
from pathlib import Path

import click

from appwrite_migration.cli.context import MigrationContext
from appwrite_migration.cli.decorators import handle_errors, pass_context, requires_config
from appwrite_migration.cli.utils import echo_log_line, echo_success, print_plan_summary
from appwrite_migration.migration.plan import MigrationPlan
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)


async def scan_source(ctx: MigrationContext) -> MigrationPlan:
    coordinator = ctx.create_coordinator(log_callback=echo_log_line)
    try:
        return await coordinator.get_migration_plan(ctx.config.options)
    finally:
        await coordinator.close()


@click.command(name="scan")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("migration_plan.yaml"),
    show_default=True,
    help="Where to write the plan (.yaml, .yml or .json)",
)
@pass_context
@requires_config
@handle_errors
def scan(ctx: MigrationContext, output: Path) -> None:
    """Scan the source project into an editable plan.

    Only the first 100 resources of each category are scanned. Edit the
    plan to disable nodes (enabled: false) or change target IDs and names,
    then pass it to 'migrate --plan'. User password hashes are not written
    to the plan; they are read from the source project during migration.

    Examples:

        appwrite-bridge --config config.yaml scan --output plan.yaml
    """
    plan = asyncio.run(scan_source(ctx))
    plan.save(output)

    click.echo()
    print_plan_summary(plan)
    echo_success(f"Plan written to {output}")
    logger.info("Plan saved", path=str(output))
