from __future__ import annotations

from typing import Any, Dict, List, Sequence

from common.config import yaml_config
from common.errors import DuplicateKeyError
from common.logger import get_logger
from ingestion.document_models import ChildChunk, ParentChunk
from vectorstore.base import DocumentStore

log = get_logger(__name__)


class ChunkWriter:
    """
    Writes parents (no vector) and children (vector + parentId) in bounded,
    unordered batches. Duplicate ids are a partial success, not a failure;
    any other store error propagates to the caller.

    `written` counts new documents over the writer's lifetime, including
    batches that landed before a later batch failed.
    """

    def __init__(self, store: DocumentStore, batch_size: int | None = None):
        self.store = store
        self.batch_size = batch_size or yaml_config.writer.batch_size
        self.written = 0

    def _write(self, documents: Sequence[Dict[str, Any]], kind: str) -> int:
        inserted = 0
        duplicates = 0
        for i in range(0, len(documents), self.batch_size):
            batch = documents[i : i + self.batch_size]
            try:
                n = self.store.insert_many(batch)
            except DuplicateKeyError as e:
                n = e.inserted_count
                duplicates += len(batch) - e.inserted_count
            inserted += n
            self.written += n
        if duplicates:
            log.info("%d %s document(s) already present", duplicates, kind)
        return inserted

    def write_parents(self, parents: List[ParentChunk]) -> int:
        return self._write([p.to_document() for p in parents], "parent")

    def write_children(self, children: List[ChildChunk]) -> int:
        missing = [c.id for c in children if not c.vector]
        if missing:
            raise ValueError(f"{len(missing)} child chunk(s) have no vector")
        return self._write([c.to_document() for c in children], "child")
