"""Migration coordinator.

Drives the scan -> (edit plan) -> execute lifecycle for one source and
destination project pair:

- get_migration_plan() scans the source project
- has_checkpoint() tells the caller whether an interrupted run can resume
- start_migration() deploys the cloud worker when file transfers should go
  through it, runs the executor, and always removes the worker afterwards
"""

from collections.abc import Callable

from appwrite_migration.client.appwrite_client import AppwriteClient
from appwrite_migration.client.exceptions import WorkerDeploymentError
from appwrite_migration.config import MigrationConfig, MigrationOptions
from appwrite_migration.migration.checkpoint import (
    CheckpointManager,
    CheckpointStore,
    SQLCheckpointStore,
)
from appwrite_migration.migration.executor import MigrationStats, TransferExecutor
from appwrite_migration.migration.plan import MigrationPlan
from appwrite_migration.migration.scanner import ResourceScanner
from appwrite_migration.migration.transfer import CloudProxyTransfer, FileTransfer
from appwrite_migration.migration.worker import CloudWorkerDeployer
from appwrite_migration.utils.logging import MigrationLog, get_logger

logger = get_logger(__name__)


class MigrationCoordinator:
    """Coordinates scanning, execution and the cloud worker lifecycle."""

    def __init__(
        self,
        source: AppwriteClient,
        destination: AppwriteClient,
        checkpoint_store: CheckpointStore,
        config: MigrationConfig,
        log_callback: Callable[[str], None] | None = None,
    ):
        """Initialize coordinator.

        Args:
            source: Source project client
            destination: Destination project client
            checkpoint_store: Durable cursor storage
            config: Migration configuration
            log_callback: Receives every user-visible progress/failure line
        """
        self.source = source
        self.destination = destination
        self.config = config
        self.log = MigrationLog(logger, callback=log_callback)
        self.checkpoints = CheckpointManager(
            checkpoint_store, config.source.project_id, config.destination.project_id
        )
        self.scanner = ResourceScanner(source, self.log, page_size=config.performance.scan_page_size)
        self.deployer = CloudWorkerDeployer(destination, config.worker, self.log)
        self.executor = TransferExecutor(
            source,
            destination,
            self.checkpoints,
            log=self.log,
            performance=config.performance,
            membership_url=config.teams.membership_redirect_url,
        )

    @classmethod
    def from_config(
        cls,
        config: MigrationConfig,
        log_callback: Callable[[str], None] | None = None,
    ) -> "MigrationCoordinator":
        """Build clients and the SQL checkpoint store from configuration."""
        return cls(
            AppwriteClient(config.source, config.performance),
            AppwriteClient(config.destination, config.performance),
            SQLCheckpointStore(config.state.database_url),
            config,
            log_callback=log_callback,
        )

    async def get_migration_plan(self, options: MigrationOptions | None = None) -> MigrationPlan:
        return await self.scanner.scan(options or self.config.options)

    def has_checkpoint(self) -> bool:
        """Whether a previous run for this project pair stopped before finishing."""
        return self.checkpoints.has_checkpoint()

    def clear_checkpoint(self) -> int:
        return self.checkpoints.clear()

    def stop(self) -> None:
        self.executor.stop()

    async def start_migration(self, plan: MigrationPlan, resume: bool = False) -> MigrationStats:
        """Execute a plan.

        Checkpoints are cleared first unless resuming, and cleared again when
        the run completes. A failed or cancelled run keeps them. A stop
        requested during an earlier run does not carry over.

        Args:
            plan: Plan to execute
            resume: Continue from saved cursors

        Returns:
            Counters for this run

        Raises:
            MigrationCancelledError: If stop() was called
        """
        self.executor.reset()
        if not resume:
            self.checkpoints.clear()

        worker_id = None
        file_transfer: FileTransfer | None = None

        if plan.options.needs_cloud_worker:
            try:
                worker_id = await self.deployer.deploy()
            except WorkerDeploymentError as e:
                self.log.error("deploying cloud worker. Falling back to local transfer.", e)
            else:
                file_transfer = CloudProxyTransfer(
                    self.destination, worker_id, self.config.source, self.config.destination
                )

        try:
            stats = await self.executor.execute(plan, resume=resume, file_transfer=file_transfer)
        finally:
            if worker_id:
                self.log.info("Cleaning up cloud worker...")
                await self.deployer.remove(worker_id)

        self.log.info("Migration completed.")
        self.checkpoints.clear()
        return stats

    async def close(self) -> None:
        await self.source.close()
        await self.destination.close()
