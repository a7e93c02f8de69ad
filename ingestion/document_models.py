from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Union

ContentType = Literal["html", "rss", "hub"]


@dataclass(frozen=True)
class SourceItem:
    url: str
    content_type: ContentType
    label: str
    delay_seconds: float = 1.0
    category: str = "general"

    @property
    def expands(self) -> bool:
        """Feeds and hub pages are expanded into article URLs, never embedded."""
        return self.content_type in ("rss", "hub")


@dataclass(frozen=True)
class FetchEntry:
    source: SourceItem


@dataclass(frozen=True)
class ExpandEntry:
    source: SourceItem


QueueEntry = Union[FetchEntry, ExpandEntry]


def entry_for(source: SourceItem) -> QueueEntry:
    return ExpandEntry(source) if source.expands else FetchEntry(source)


@dataclass
class RawDoc:
    source: SourceItem
    text: str  # cleaned page text


@dataclass
class ParentChunk:
    id: str
    text: str
    source: str
    url: str
    category: str
    scraped_at: str
    kind: str = "parent"

    def to_document(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "content": self.text,
            "source": self.source,
            "url": self.url,
            "category": self.category,
            "scrapedAt": self.scraped_at,
            "type": self.kind,
        }


@dataclass
class ChildChunk:
    id: str
    text: str
    parent_id: str
    source: str
    url: str
    category: str
    scraped_at: str
    vector: List[float] = field(default_factory=list)
    kind: str = "child"

    def to_document(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "content": self.text,
            "parentId": self.parent_id,
            "source": self.source,
            "url": self.url,
            "category": self.category,
            "scrapedAt": self.scraped_at,
            "type": self.kind,
            "$vector": self.vector,
        }


@dataclass
class ChunkSet:
    """Parents of one document and the children split from them."""

    parents: List[ParentChunk]
    children: List[ChildChunk]
