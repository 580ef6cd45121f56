"""Migration engine: plan model, checkpoints, scanner, worker, executor and coordinator."""

from appwrite_migration.migration.checkpoint import (
    CheckpointManager,
    CheckpointStore,
    InMemoryCheckpointStore,
    SQLCheckpointStore,
)
from appwrite_migration.migration.coordinator import MigrationCoordinator
from appwrite_migration.migration.executor import MigrationStats, TransferExecutor, sanitize_int
from appwrite_migration.migration.plan import MigrationPlan, MigrationResource, ResourceKind
from appwrite_migration.migration.scanner import ResourceScanner
from appwrite_migration.migration.transfer import (
    CloudProxyTransfer,
    FileTransfer,
    LocalBufferTransfer,
)
from appwrite_migration.migration.worker import CloudWorkerDeployer

__all__ = [
    "CheckpointManager",
    "CheckpointStore",
    "CloudProxyTransfer",
    "CloudWorkerDeployer",
    "FileTransfer",
    "InMemoryCheckpointStore",
    "LocalBufferTransfer",
    "MigrationCoordinator",
    "MigrationPlan",
    "MigrationResource",
    "MigrationStats",
    "ResourceKind",
    "ResourceScanner",
    "SQLCheckpointStore",
    "TransferExecutor",
    "sanitize_int",
]
