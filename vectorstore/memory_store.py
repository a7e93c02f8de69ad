from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from common.errors import DuplicateKeyError
from common.logger import get_logger
from vectorstore.base import Document

log = get_logger(__name__)

VECTOR_FIELD = "$vector"


def _matches(doc: Document, filter: Optional[Document]) -> bool:
    return all(doc.get(k) == v for k, v in (filter or {}).items())


class InMemoryStore:
    """
    Process-local DocumentStore with the same duplicate-id semantics as the
    Astra collection. Used for dry runs and tests.
    """

    def __init__(self):
        self.docs: Dict[str, Document] = {}

    def __len__(self) -> int:
        return len(self.docs)

    def insert_many(self, documents: Sequence[Document]) -> int:
        inserted = 0
        duplicates = 0
        for doc in documents:
            if doc["_id"] in self.docs:
                duplicates += 1
                continue
            self.docs[doc["_id"]] = dict(doc)
            inserted += 1
        if duplicates:
            raise DuplicateKeyError(inserted_count=inserted, duplicate_count=duplicates)
        return inserted

    def vector_search(
        self, vector: Sequence[float], k: int, filter: Optional[Document] = None
    ) -> List[Document]:
        scored = []
        for doc in self.docs.values():
            if VECTOR_FIELD not in doc or not _matches(doc, filter):
                continue
            score = sum(a * b for a, b in zip(vector, doc[VECTOR_FIELD]))
            scored.append((score, doc))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        out = []
        for score, doc in scored[:k]:
            hit = {key: val for key, val in doc.items() if key != VECTOR_FIELD}
            hit["$similarity"] = score
            out.append(hit)
        return out

    def find_by_ids(self, ids: Sequence[str], filter: Optional[Document] = None) -> List[Document]:
        return [dict(self.docs[i]) for i in ids if i in self.docs and _matches(self.docs[i], filter)]

    def exists(self, filter: Document) -> bool:
        return any(_matches(doc, filter) for doc in self.docs.values())
