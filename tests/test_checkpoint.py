"""Tests for checkpoint stores and the per-pair checkpoint manager."""

import pytest

from appwrite_migration.migration.checkpoint import (
    DOCUMENTS,
    FILES,
    CheckpointManager,
    InMemoryCheckpointStore,
    SQLCheckpointStore,
)


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryCheckpointStore()
    return SQLCheckpointStore(f"sqlite:///{tmp_path / 'checkpoints.db'}")


def test_save_overwrites_cursor(store):
    manager = CheckpointManager(store, "src", "dst")

    manager.save_cursor(DOCUMENTS, "posts", "doc_1")
    manager.save_cursor(DOCUMENTS, "posts", "doc_2")

    assert manager.get_cursor(DOCUMENTS, "posts") == "doc_2"
    assert manager.get_cursor(FILES, "posts") is None


def test_key_layout(store):
    manager = CheckpointManager(store, "src", "dst")
    manager.save_cursor(FILES, "media", "file_1")

    assert manager.migration_key == "mig_checkpoint_src_dst"
    assert store.get("mig_checkpoint_src_dst:files:media") == "file_1"


def test_clear_only_touches_own_pair(store):
    mine = CheckpointManager(store, "src", "dst")
    other = CheckpointManager(store, "src", "dst2")
    mine.save_cursor(DOCUMENTS, "posts", "doc_1")
    mine.save_cursor(FILES, "media", "file_1")
    other.save_cursor(DOCUMENTS, "posts", "doc_9")

    assert mine.has_checkpoint()
    assert mine.clear() == 2

    assert not mine.has_checkpoint()
    assert other.has_checkpoint()
    assert other.get_cursor(DOCUMENTS, "posts") == "doc_9"


def test_prefix_is_not_a_pattern(store):
    """Underscores and percent signs in project IDs are matched literally."""
    manager = CheckpointManager(store, "a%", "b_")
    lookalike = CheckpointManager(store, "aX", "bY")
    lookalike.save_cursor(DOCUMENTS, "posts", "doc_1")

    assert not manager.has_checkpoint()
    assert manager.clear() == 0
    assert lookalike.has_checkpoint()


def test_sql_store_survives_reopen(tmp_path):
    url = f"sqlite:///{tmp_path / 'state.db'}"
    CheckpointManager(SQLCheckpointStore(url), "src", "dst").save_cursor(DOCUMENTS, "posts", "doc_7")

    reopened = CheckpointManager(SQLCheckpointStore(url), "src", "dst")

    assert reopened.has_checkpoint()
    assert reopened.get_cursor(DOCUMENTS, "posts") == "doc_7"


def test_memory_store_records_writes():
    store = InMemoryCheckpointStore()
    manager = CheckpointManager(store, "src", "dst")

    manager.save_cursor(DOCUMENTS, "posts", "doc_1")
    manager.save_cursor(DOCUMENTS, "posts", "doc_2")

    assert store.writes == [
        ("mig_checkpoint_src_dst:documents:posts", "doc_1"),
        ("mig_checkpoint_src_dst:documents:posts", "doc_2"),
    ]
