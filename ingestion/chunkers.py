from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import List
from urllib.parse import urlparse

from langchain_text_splitters import RecursiveCharacterTextSplitter

from common.config import ChunkProfile, yaml_config
from common.errors import SourceSkipped
from ingestion.document_models import ChildChunk, ChunkSet, ParentChunk, RawDoc, SourceItem
from ingestion.hash_utils import child_id, parent_id
from ingestion.quality import is_acceptable

# paragraph -> line -> sentence -> word -> character
SEPARATORS = ["\n\n", "\n", ". ", " ", ""]

STATS_PROFILE = "stats"
DEFAULT_PROFILE = "default"


def select_profile(source: SourceItem) -> str:
    """Stats-oriented categories and sites get the larger stats windows."""
    if source.category in yaml_config.chunking.stats_categories:
        return STATS_PROFILE
    host = (urlparse(source.url).hostname or "").lower()
    for domain in yaml_config.chunking.stats_domains:
        if host == domain or host.endswith("." + domain):
            return STATS_PROFILE
    return DEFAULT_PROFILE


def _profile(name: str) -> ChunkProfile:
    profiles = yaml_config.chunking.profiles
    return profiles.get(name) or profiles[DEFAULT_PROFILE]


@lru_cache(maxsize=None)
def _splitter(chunk_size: int, chunk_overlap: int) -> RecursiveCharacterTextSplitter:
    return RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        separators=SEPARATORS,
        keep_separator="end",
    )


def split_parents(text: str, profile: str = DEFAULT_PROFILE) -> List[str]:
    p = _profile(profile)
    return _splitter(p.parent_size, p.parent_overlap).split_text(text)


def split_children(parent_text: str, profile: str = DEFAULT_PROFILE) -> List[str]:
    p = _profile(profile)
    return _splitter(p.child_size, p.child_overlap).split_text(parent_text)


def _keep(piece: str, min_chars: int) -> bool:
    return len(piece.strip()) >= min_chars and is_acceptable(piece)


def build_chunks(doc: RawDoc, scraped_at: str | None = None) -> ChunkSet:
    """
    Split one document into parent chunks and their child chunks.

    Raises SourceSkipped when nothing worth storing survives filtering.
    """
    source = doc.source
    profile = select_profile(source)
    scraped_at = scraped_at or datetime.now(timezone.utc).isoformat()
    cfg = yaml_config.chunking

    parent_texts = [p for p in split_parents(doc.text, profile) if _keep(p, cfg.min_parent_chars)]
    if not parent_texts:
        raise SourceSkipped("no valid parent chunks")

    parents: List[ParentChunk] = []
    children: List[ChildChunk] = []
    seen_parents = set()
    for text in parent_texts:
        pid = parent_id(text)
        if pid in seen_parents:
            continue
        seen_parents.add(pid)
        parents.append(
            ParentChunk(
                id=pid,
                text=text,
                source=source.label,
                url=source.url,
                category=source.category,
                scraped_at=scraped_at,
            )
        )
        seen_children = set()
        for child_text in split_children(text, profile):
            if not _keep(child_text, cfg.min_child_chars):
                continue
            cid = child_id(pid, child_text)
            if cid in seen_children:
                continue
            seen_children.add(cid)
            children.append(
                ChildChunk(
                    id=cid,
                    text=child_text,
                    parent_id=pid,
                    source=source.label,
                    url=source.url,
                    category=source.category,
                    scraped_at=scraped_at,
                )
            )

    if not children:
        raise SourceSkipped("no valid child chunks")
    return ChunkSet(parents=parents, children=children)
