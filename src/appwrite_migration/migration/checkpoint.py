"""
Checkpoint and resume management for migrations.

A checkpoint is a pagination cursor: the ID of the last document or file
fully transferred for one source container. Cursors are keyed by the
(source project, destination project) pair so runs between different
project pairs never see each other's progress.

Usage:
    store = SQLCheckpointStore("sqlite:///migration_state.db")
    manager = CheckpointManager(store, "source-project", "dest-project")

    manager.save_cursor("documents", "shop/orders", "doc_0042")
    cursor = manager.get_cursor("documents", "shop/orders")

    if manager.has_checkpoint():
        ...  # offer to resume
    manager.clear()
"""

from typing import Protocol

from sqlalchemy import delete, exists, select

from appwrite_migration.client.exceptions import CheckpointError, StateError
from appwrite_migration.migration.database import init_database, session_scope
from appwrite_migration.migration.models import Checkpoint
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)

# Cursor kinds
DOCUMENTS = "documents"
FILES = "files"


def collection_container(database_id: str, collection_id: str) -> str:
    """Cursor container ID of a collection (collection IDs are unique per database only)."""
    return f"{database_id}/{collection_id}"


class CheckpointStore(Protocol):
    """Durable string key/value storage for cursors."""

    def save(self, key: str, cursor: str) -> None: ...

    def get(self, key: str) -> str | None: ...

    def clear(self, prefix: str) -> int: ...

    def has_prefix(self, prefix: str) -> bool: ...


class InMemoryCheckpointStore:
    """Process-local checkpoint store.

    Records every save in ``writes`` so callers can assert how often a
    cursor advanced.
    """

    def __init__(self):
        self.data: dict[str, str] = {}
        self.writes: list[tuple[str, str]] = []

    def save(self, key: str, cursor: str) -> None:
        self.data[key] = cursor
        self.writes.append((key, cursor))

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def clear(self, prefix: str) -> int:
        keys = [key for key in self.data if key.startswith(prefix)]
        for key in keys:
            del self.data[key]
        return len(keys)

    def has_prefix(self, prefix: str) -> bool:
        return any(key.startswith(prefix) for key in self.data)


class SQLCheckpointStore:
    """Checkpoint store backed by a SQLAlchemy database (SQLite by default).

    Survives process restarts, which is what makes ``--resume`` work from
    the command line.
    """

    def __init__(self, database_url: str):
        """
        Initialize the store, creating the schema if needed.

        Args:
            database_url: SQLAlchemy database URL
        """
        self.database_url = database_url
        self._session_factory = init_database(database_url)

    def save(self, key: str, cursor: str) -> None:
        try:
            with session_scope(self._session_factory) as session:
                row = session.scalars(select(Checkpoint).where(Checkpoint.key == key)).first()
                if row is None:
                    session.add(Checkpoint(key=key, cursor=cursor))
                else:
                    row.cursor = cursor
        except StateError as e:
            raise CheckpointError(f"Failed to save checkpoint {key}: {e}") from e

    def get(self, key: str) -> str | None:
        try:
            with session_scope(self._session_factory) as session:
                return session.scalars(
                    select(Checkpoint.cursor).where(Checkpoint.key == key)
                ).first()
        except StateError as e:
            raise CheckpointError(f"Failed to read checkpoint {key}: {e}") from e

    def clear(self, prefix: str) -> int:
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(
                    delete(Checkpoint).where(Checkpoint.key.startswith(prefix, autoescape=True))
                )
                return result.rowcount or 0
        except StateError as e:
            raise CheckpointError(f"Failed to clear checkpoints {prefix}: {e}") from e

    def has_prefix(self, prefix: str) -> bool:
        try:
            with session_scope(self._session_factory) as session:
                return bool(
                    session.scalar(
                        select(
                            exists().where(Checkpoint.key.startswith(prefix, autoescape=True))
                        )
                    )
                )
        except StateError as e:
            raise CheckpointError(f"Failed to read checkpoints {prefix}: {e}") from e


class CheckpointManager:
    """
    Manages the resumable cursors of one source/destination project pair.

    Keys are ``mig_checkpoint_<source>_<dest>:<kind>:<resource_id>`` where
    kind is ``documents`` or ``files``. For documents resource_id is
    ``<database>/<collection>`` (see collection_container); for files it is
    the source bucket ID.
    """

    def __init__(self, store: CheckpointStore, source_project_id: str, dest_project_id: str):
        """
        Initialize checkpoint manager.

        Args:
            store: Backing key/value store
            source_project_id: Source project ID
            dest_project_id: Destination project ID
        """
        self.store = store
        self.migration_key = f"mig_checkpoint_{source_project_id}_{dest_project_id}"

    def _key(self, kind: str, resource_id: str) -> str:
        return f"{self.migration_key}:{kind}:{resource_id}"

    def save_cursor(self, kind: str, resource_id: str, cursor: str) -> None:
        self.store.save(self._key(kind, resource_id), cursor)

    def get_cursor(self, kind: str, resource_id: str) -> str | None:
        return self.store.get(self._key(kind, resource_id))

    def has_checkpoint(self) -> bool:
        """Whether any cursor exists for this project pair."""
        return self.store.has_prefix(f"{self.migration_key}:")

    def clear(self) -> int:
        """
        Delete every cursor of this project pair.

        Returns:
            Number of cursors removed
        """
        removed = self.store.clear(f"{self.migration_key}:")
        logger.debug("Checkpoints cleared", migration_key=self.migration_key, removed=removed)
        return removed
