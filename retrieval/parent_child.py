from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from common.config import yaml_config
from common.logger import get_logger
from vectorstore.base import DocumentStore

log = get_logger(__name__)

CHILD_FILTER = {"type": "child"}
PARENT_FILTER = {"type": "parent"}


@dataclass
class RetrievedContext:
    text: str
    children: List[Dict[str, Any]] = field(default_factory=list)
    parents: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return bool(self.children) and not self.parents


def unique_parent_ids(children: Sequence[Dict[str, Any]]) -> List[str]:
    """Distinct parentIds in first-seen order."""
    out: List[str] = []
    for c in children:
        pid = c.get("parentId")
        if pid and pid not in out:
            out.append(pid)
    return out


class ParentChildRetriever:
    """
    Searches child vectors, then hands the LLM the larger parent chunks.

    Orphan children (parent missing or pruned) fall back to their own text.
    """

    def __init__(self, store: DocumentStore, k: int | None = None, separator: str | None = None):
        self.store = store
        self.k = k or yaml_config.retrieval.k
        self.separator = separator if separator is not None else yaml_config.retrieval.context_separator

    def retrieve(self, query_vector: Sequence[float], k: int | None = None) -> RetrievedContext:
        children = self.store.vector_search(query_vector, k or self.k, filter=CHILD_FILTER)
        if not children:
            log.info("Vector search returned no children")
            return RetrievedContext(text="")

        ids = unique_parent_ids(children)
        found = {p["_id"]: p for p in self.store.find_by_ids(ids, filter=PARENT_FILTER)}
        parents = [found[i] for i in ids if i in found]

        if parents:
            text = self.separator.join(p.get("content", "") for p in parents)
        else:
            log.warning("No parents found for %d children; using child text", len(children))
            text = self.separator.join(c.get("content", "") for c in children)
        log.info("Retrieved %d children -> %d parents", len(children), len(parents))
        return RetrievedContext(text=text, children=list(children), parents=parents)
