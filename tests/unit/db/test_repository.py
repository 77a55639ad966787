"""Tests for MemoryRepository and SqliteRepository (shared contract)."""

from __future__ import annotations

import sqlite3
from datetime import timedelta

import pytest

from agrirag.db.models import (
    Conversation,
    Dataset,
    DatasetStatus,
    DocumentChunk,
    FileType,
    Message,
    MessageRole,
    RowMetadata,
    TextMetadata,
    utcnow,
)
from agrirag.errors import InvalidStatusTransition


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    return request.getfixturevalue(f"{request.param}_store")


def _dataset(name: str = "crops.csv", file_type: FileType = FileType.CSV) -> Dataset:
    return Dataset(name=name, file_type=file_type, source_location=f"/data/{name}")


def _chunk(dataset_id: str | None, content: str = "crop: rice", embedding=None) -> DocumentChunk:
    return DocumentChunk(
        content=content,
        dataset_id=dataset_id,
        embedding=embedding,
        metadata=RowMetadata(row_index=0, original_row={"crop": "rice"}),
    )


# ------------------------------------------------------------------
# Datasets
# ------------------------------------------------------------------


def test_create_and_get_dataset(store):
    ds = store.create_dataset(_dataset())
    fetched = store.get_dataset(ds.id)
    assert fetched is not None
    assert fetched.name == "crops.csv"
    assert fetched.file_type is FileType.CSV
    assert fetched.status is DatasetStatus.PROCESSING


def test_get_dataset_unknown_returns_none(store):
    assert store.get_dataset("missing") is None


def test_list_datasets_oldest_first(store):
    first = _dataset("a.csv")
    second = _dataset("b.csv")
    second.created_at = first.created_at + timedelta(seconds=1)
    store.create_dataset(second)
    store.create_dataset(first)
    assert [d.name for d in store.list_datasets()] == ["a.csv", "b.csv"]


def test_status_moves_forward(store):
    ds = store.create_dataset(_dataset())
    updated = store.update_dataset_status(ds.id, DatasetStatus.READY)
    assert updated.status is DatasetStatus.READY
    assert store.get_dataset(ds.id).status is DatasetStatus.READY


@pytest.mark.parametrize("terminal", [DatasetStatus.READY, DatasetStatus.ERROR])
def test_status_never_moves_backwards(store, terminal):
    ds = store.create_dataset(_dataset())
    store.update_dataset_status(ds.id, terminal)
    with pytest.raises(InvalidStatusTransition):
        store.update_dataset_status(ds.id, DatasetStatus.PROCESSING)


def test_ready_cannot_become_error(store):
    ds = store.create_dataset(_dataset())
    store.update_dataset_status(ds.id, DatasetStatus.READY)
    with pytest.raises(InvalidStatusTransition):
        store.update_dataset_status(ds.id, DatasetStatus.ERROR)


def test_update_status_unknown_dataset_raises(store):
    with pytest.raises(KeyError):
        store.update_dataset_status("missing", DatasetStatus.READY)


def test_delete_dataset_cascades_to_chunks(store):
    ds = store.create_dataset(_dataset())
    other = store.create_dataset(_dataset("other.csv"))
    store.add_chunks([_chunk(ds.id), _chunk(ds.id), _chunk(other.id)])

    assert store.delete_dataset(ds.id) is True
    assert store.get_dataset(ds.id) is None
    assert store.list_chunks_by_dataset(ds.id) == []
    assert len(store.list_chunks_by_dataset(other.id)) == 1


def test_delete_unknown_dataset_returns_false(store):
    assert store.delete_dataset("missing") is False


# ------------------------------------------------------------------
# Chunks
# ------------------------------------------------------------------


def test_add_chunks_assigns_increasing_seq(store):
    ds = store.create_dataset(_dataset())
    stored = store.add_chunks([_chunk(ds.id, "one"), _chunk(ds.id, "two")])
    assert stored[0].seq < stored[1].seq
    assert [c.content for c in store.list_chunks()] == ["one", "two"]


def test_chunk_round_trip_keeps_embedding_and_metadata(store):
    ds = store.create_dataset(_dataset("notes.txt", FileType.TXT))
    chunk = DocumentChunk(
        content="Rice needs standing water.",
        dataset_id=ds.id,
        embedding=[0.1, 0.2, 0.3],
        metadata=TextMetadata(chunk_index=0, length=26, extra={"file_name": "notes.txt"}),
    )
    store.add_chunks([chunk])

    fetched = store.get_chunk(chunk.id)
    assert fetched.embedding == [0.1, 0.2, 0.3]
    assert fetched.metadata == chunk.metadata
    assert fetched.dataset_id == ds.id


def test_chunk_without_embedding_is_retained(store):
    ds = store.create_dataset(_dataset())
    store.add_chunks([_chunk(ds.id)])
    assert store.list_chunks()[0].embedding is None


def test_orphan_chunk_allowed(store):
    store.add_chunks([_chunk(None)])
    assert store.list_chunks()[0].dataset_id is None


def test_delete_chunks_removes_only_given_ids(store):
    ds = store.create_dataset(_dataset())
    first, second, third = store.add_chunks([_chunk(ds.id), _chunk(ds.id), _chunk(ds.id)])

    assert store.delete_chunks([first.id, third.id, "missing"]) == 2
    assert [c.id for c in store.list_chunks()] == [second.id]


def test_delete_chunks_empty_list_is_noop(store):
    ds = store.create_dataset(_dataset())
    store.add_chunks([_chunk(ds.id)])
    assert store.delete_chunks([]) == 0
    assert len(store.list_chunks()) == 1


# ------------------------------------------------------------------
# Conversations + messages
# ------------------------------------------------------------------


def test_create_and_list_conversations(store):
    conv = store.create_conversation(Conversation(title="Rice yields..."))
    assert store.get_conversation(conv.id).title == "Rice yields..."
    assert [c.id for c in store.list_conversations()] == [conv.id]


def test_messages_ordered_by_created_at_then_seq(store):
    conv = store.create_conversation(Conversation(title="t"))
    stamp = utcnow()
    first = Message(conversation_id=conv.id, role=MessageRole.USER, content="q", created_at=stamp)
    second = Message(
        conversation_id=conv.id, role=MessageRole.ASSISTANT, content="a", created_at=stamp
    )
    store.add_message(first)
    store.add_message(second)

    assert [m.content for m in store.list_messages(conv.id)] == ["q", "a"]


def test_message_metadata_round_trip(store):
    conv = store.create_conversation(Conversation())
    msg = store.add_message(
        Message(
            conversation_id=conv.id,
            role=MessageRole.ASSISTANT,
            content="answer",
            metadata={"sources": ["crops.csv"], "is_computation": True},
        )
    )
    fetched = store.get_message(msg.id)
    assert fetched.role is MessageRole.ASSISTANT
    assert fetched.metadata == {"sources": ["crops.csv"], "is_computation": True}


def test_add_message_unknown_conversation_raises(store):
    with pytest.raises(KeyError):
        store.add_message(Message(conversation_id="missing", role=MessageRole.USER, content="q"))


def test_sqlite_add_chunks_is_atomic(sqlite_store):
    ds = sqlite_store.create_dataset(_dataset())
    good = _chunk(ds.id, "good")
    duplicate = _chunk(ds.id, "dup")
    duplicate.id = good.id
    with pytest.raises(sqlite3.IntegrityError):
        sqlite_store.add_chunks([good, duplicate])
    assert sqlite_store.list_chunks() == []
