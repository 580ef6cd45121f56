"""
Pytest configuration and fixtures for the Appwrite Bridge tests.

Engine tests run against two in-memory FakeProject instances (see
fakes.py); client tests mock the HTTP layer with respx.
"""

import pytest

from appwrite_migration.config import (
    MigrationConfig,
    MigrationOptions,
    PerformanceConfig,
    ProjectConfig,
    WorkerConfig,
)
from appwrite_migration.migration.checkpoint import CheckpointManager, InMemoryCheckpointStore
from appwrite_migration.migration.executor import TransferExecutor
from appwrite_migration.utils.logging import MigrationLog
from fakes import FakeProject


@pytest.fixture
def source_project_config() -> ProjectConfig:
    """Source project connection settings."""
    return ProjectConfig(
        endpoint="https://source.example.com/v1",
        project_id="src-project",
        api_key="source-secret",
    )


@pytest.fixture
def dest_project_config() -> ProjectConfig:
    """Destination project connection settings."""
    return ProjectConfig(
        endpoint="https://dest.example.com/v1/",
        project_id="dst-project",
        api_key="dest-secret",
    )


@pytest.fixture
def performance() -> PerformanceConfig:
    """Performance settings without attribute pacing."""
    return PerformanceConfig(attribute_create_delay=0)


@pytest.fixture
def migration_config(
    source_project_config: ProjectConfig,
    dest_project_config: ProjectConfig,
    performance: PerformanceConfig,
    tmp_path,
) -> MigrationConfig:
    """Full migration configuration with fast worker polling."""
    return MigrationConfig(
        source=source_project_config,
        destination=dest_project_config,
        performance=performance,
        worker=WorkerConfig(poll_interval=0, poll_attempts=3),
        state={"db_path": str(tmp_path / "state.db")},
    )


@pytest.fixture
def source() -> FakeProject:
    return FakeProject("src-project")


@pytest.fixture
def destination() -> FakeProject:
    return FakeProject("dst-project")


@pytest.fixture
def checkpoint_store() -> InMemoryCheckpointStore:
    return InMemoryCheckpointStore()


@pytest.fixture
def checkpoints(checkpoint_store: InMemoryCheckpointStore) -> CheckpointManager:
    return CheckpointManager(checkpoint_store, "src-project", "dst-project")


@pytest.fixture
def log_lines() -> list[str]:
    """Lines delivered to the progress callback."""
    return []


@pytest.fixture
def migration_log(log_lines: list[str]) -> MigrationLog:
    return MigrationLog(callback=log_lines.append)


@pytest.fixture
def executor(source, destination, checkpoints, migration_log, performance) -> TransferExecutor:
    """Executor wired to the fake projects."""
    return TransferExecutor(
        source,
        destination,
        checkpoints,
        log=migration_log,
        performance=performance,
    )


@pytest.fixture
def all_options() -> MigrationOptions:
    return MigrationOptions()


@pytest.fixture
def blog_source(source: FakeProject) -> FakeProject:
    """Source project with one database holding posts and authors.

    posts has a relationship to authors, an integer with unusable limits,
    a string index, and 150 documents.
    """
    source.add_database("blog", "Blog")
    source.add_collection(
        "blog",
        "authors",
        "Authors",
        attributes=[
            {"key": "name", "type": "string", "size": 128, "required": True},
            {"key": "email", "type": "string", "format": "email", "required": False},
        ],
    )
    source.add_collection(
        "blog",
        "posts",
        "Posts",
        attributes=[
            {"key": "title", "type": "string", "size": 256, "required": True},
            {
                "key": "views",
                "type": "integer",
                "required": False,
                "min": "-9223372036854775808",
                "max": "9223372036854775807",
                "default": None,
            },
            {
                "key": "author",
                "type": "relationship",
                "relatedCollection": "authors",
                "relationType": "manyToOne",
                "twoWay": False,
                "onDelete": "setNull",
            },
        ],
        indexes=[{"key": "title_idx", "type": "key", "attributes": ["title"], "orders": ["ASC"]}],
        permissions=['read("any")'],
    )
    source.add_documents("blog", "posts", 150)
    return source
