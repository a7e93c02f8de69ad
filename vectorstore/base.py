from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

Document = Dict[str, Any]


class DocumentStore(Protocol):
    """
    Keyed document collection with vector similarity search.

    insert_many is unordered: a bad document does not stop the rest of the
    batch. When only duplicate ids failed it raises DuplicateKeyError with the
    number of documents that were written; any other failure is StoreError.
    """

    def insert_many(self, documents: Sequence[Document]) -> int: ...

    def vector_search(
        self, vector: Sequence[float], k: int, filter: Optional[Document] = None
    ) -> List[Document]: ...

    def find_by_ids(self, ids: Sequence[str], filter: Optional[Document] = None) -> List[Document]: ...

    def exists(self, filter: Document) -> bool: ...
