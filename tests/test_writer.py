import pytest

from common.errors import StoreError
from conftest import article_text
from ingestion.chunkers import build_chunks
from ingestion.document_models import RawDoc, SourceItem
from ingestion.writer import ChunkWriter
from vectorstore.memory_store import InMemoryStore


class RecordingStore(InMemoryStore):
    def __init__(self, fail_with=None):
        super().__init__()
        self.batches = []
        self.fail_with = fail_with

    def insert_many(self, documents):
        self.batches.append(len(documents))
        if self.fail_with is not None:
            raise self.fail_with
        return super().insert_many(documents)


def _chunks():
    source = SourceItem(url="https://example.com/football/report", content_type="html", label="Example")
    chunks = build_chunks(RawDoc(source=source, text=article_text("writer") * 2))
    for c in chunks.children:
        c.vector = [0.5] * 4
    return chunks


def test_writes_in_bounded_batches():
    chunks = _chunks()
    store = RecordingStore()
    writer = ChunkWriter(store, batch_size=3)

    assert writer.write_children(chunks.children) == len(chunks.children)
    assert all(size <= 3 for size in store.batches)
    assert sum(store.batches) == len(chunks.children)


def test_duplicates_count_as_partial_success():
    chunks = _chunks()
    store = RecordingStore()
    writer = ChunkWriter(store, batch_size=4)

    first = writer.write_parents(chunks.parents) + writer.write_children(chunks.children)
    second = writer.write_parents(chunks.parents) + writer.write_children(chunks.children)

    assert first == len(chunks.parents) + len(chunks.children)
    assert second == 0
    assert len(store) == first


def test_mixed_batch_reports_new_documents_only():
    chunks = _chunks()
    store = RecordingStore()
    writer = ChunkWriter(store, batch_size=100)
    writer.write_children(chunks.children[:1])

    assert writer.write_children(chunks.children) == len(chunks.children) - 1


def test_other_store_errors_propagate():
    writer = ChunkWriter(RecordingStore(fail_with=StoreError("network down")), batch_size=5)
    with pytest.raises(StoreError):
        writer.write_parents(_chunks().parents)


def test_children_without_vectors_are_refused():
    chunks = _chunks()
    chunks.children[0].vector = []
    store = RecordingStore()
    with pytest.raises(ValueError):
        ChunkWriter(store).write_children(chunks.children)
    assert store.batches == []


def test_stored_documents_have_expected_shape():
    chunks = _chunks()
    store = InMemoryStore()
    writer = ChunkWriter(store)
    writer.write_parents(chunks.parents)
    writer.write_children(chunks.children)

    parent = store.docs[chunks.parents[0].id]
    child = store.docs[chunks.children[0].id]
    assert parent["type"] == "parent" and "$vector" not in parent
    assert child["type"] == "child" and child["parentId"] in store.docs
    assert child["$vector"] == [0.5] * 4
    assert child["scrapedAt"] == parent["scrapedAt"]


def test_written_counts_batches_before_a_failure():
    class FailsOnSecondBatch(RecordingStore):
        def insert_many(self, documents):
            if len(self.batches) == 1:
                self.batches.append(len(documents))
                raise StoreError("timeout")
            return super().insert_many(documents)

    chunks = _chunks()
    store = FailsOnSecondBatch()
    writer = ChunkWriter(store, batch_size=2)
    with pytest.raises(StoreError):
        writer.write_children(chunks.children)
    assert writer.written == len(store) == 2
