from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Iterable, List, Set

import orjson
from tqdm import tqdm

from common.config import resolve_path, yaml_config
from common.errors import ConfigurationError, SourceSkipped
from common.logger import get_logger
from ingestion.chunkers import build_chunks
from ingestion.document_models import ExpandEntry, FetchEntry, QueueEntry, SourceItem, entry_for
from ingestion.embedder import Embedder
from ingestion.loaders import PageFetcher, discover_links, load_document
from ingestion.quality import is_acceptable, is_access_blocked
from ingestion.writer import ChunkWriter
from vectorstore.base import DocumentStore

log = get_logger(__name__)


class EntryState(str, Enum):
    PENDING = "pending"
    EXPANDING = "expanding"
    FETCHING = "fetching"
    FILTERING = "filtering"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    WRITING = "writing"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class EntryOutcome:
    url: str
    label: str
    state: EntryState
    stage: EntryState
    reason: str = ""
    records: int = 0
    discovered: int = 0


@dataclass
class RunState:
    """Everything one run mutates. Owned by the runner, never shared across runs."""

    seen: Set[str] = field(default_factory=set)
    processed: int = 0
    done: int = 0
    skipped: int = 0
    failed: int = 0
    dropped: int = 0
    expanded: int = 0
    expansion_failures: int = 0
    records_added: int = 0
    tokens_used: int = 0
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None
    outcomes: List[EntryOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def elapsed(self) -> float:
        return (self.finished_at or time.monotonic()) - self.started_at

    def record(self, entry: QueueEntry, outcome: EntryOutcome) -> None:
        self.outcomes.append(outcome)
        if isinstance(entry, ExpandEntry):
            if outcome.state is EntryState.FAILED:
                self.expansion_failures += 1
                self.errors.append(f"{outcome.label}: {outcome.reason}")
            else:
                self.expanded += 1
            return
        self.processed += 1
        self.records_added += outcome.records
        if outcome.state is EntryState.DONE:
            self.done += 1
        elif outcome.state is EntryState.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.errors.append(f"{outcome.url}: {outcome.reason}")

    def summary(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "done": self.done,
            "skipped": self.skipped,
            "failed": self.failed,
            "expanded": self.expanded,
            "expansion_failures": self.expansion_failures,
            "not_processed_over_cap": self.dropped,
            "records_added": self.records_added,
            "embedding_tokens": self.tokens_used,
            "elapsed_seconds": round(self.elapsed, 1),
            "errors": self.errors,
        }


class IngestionRunner:
    """
    Sequential work queue: seeds are processed FIFO, feeds and hub pages
    append their article URLs to the back, and one entry fully finishes
    before the next is dequeued.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: Embedder,
        fetcher: PageFetcher,
        writer: ChunkWriter | None = None,
        max_urls: int | None = None,
        skip_existing: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        show_progress: bool = True,
    ):
        self.store = store
        self.embedder = embedder
        self.fetcher = fetcher
        self.writer = writer or ChunkWriter(store)
        self.max_urls = max_urls
        self.skip_existing = skip_existing
        self.sleep = sleep
        self.show_progress = show_progress

    def _cap_reached(self, state: RunState) -> bool:
        return self.max_urls is not None and state.processed >= self.max_urls

    def _enqueue(self, queue: Deque[QueueEntry], state: RunState, entry: QueueEntry) -> bool:
        url = entry.source.url
        if url in state.seen:
            return False
        state.seen.add(url)
        queue.append(entry)
        return True

    def run(self, sources: Iterable[SourceItem]) -> RunState:
        state = RunState()
        queue: Deque[QueueEntry] = deque()
        for source in sources:
            self._enqueue(queue, state, entry_for(source))
        log.info("Starting ingestion: %d queued entries, max_urls=%s", len(queue), self.max_urls)

        bar = tqdm(total=len(queue), desc="Ingesting", unit="url", disable=not self.show_progress)
        try:
            while queue:
                entry = queue.popleft()
                if isinstance(entry, FetchEntry):
                    if self._cap_reached(state):
                        if not state.dropped:
                            log.info("max_urls=%d reached; only expanding feeds from here", self.max_urls)
                        state.dropped += 1
                        bar.update(1)
                        continue
                    outcome = self._process_fetch(entry.source, state)
                elif isinstance(entry, ExpandEntry):
                    outcome = self._process_expand(entry.source, queue, state)
                else:
                    raise TypeError(f"Unknown queue entry: {entry!r}")

                state.record(entry, outcome)
                bar.total = bar.n + 1 + len(queue)
                bar.update(1)
                # Politeness delay after every terminal transition
                if entry.source.delay_seconds > 0:
                    self.sleep(entry.source.delay_seconds)
        finally:
            bar.close()
            state.finished_at = time.monotonic()
            log.info("Ingestion summary: %s", orjson.dumps(state.summary()).decode())
        return state

    def _process_expand(self, source: SourceItem, queue: Deque[QueueEntry], state: RunState) -> EntryOutcome:
        try:
            discovered = discover_links(self.fetcher, source)
        except ConfigurationError:
            raise
        except Exception as e:
            log.error("Expansion failed for %s (%s): %s", source.label, source.url, e)
            return EntryOutcome(source.url, source.label, EntryState.FAILED, EntryState.EXPANDING, reason=str(e))

        added = sum(1 for s in discovered if self._enqueue(queue, state, FetchEntry(s)))
        log.info("%s: %d links found, %d new", source.label, len(discovered), added)
        return EntryOutcome(source.url, source.label, EntryState.DONE, EntryState.EXPANDING, discovered=added)

    def _process_fetch(self, source: SourceItem, state: RunState) -> EntryOutcome:
        url = source.url
        stage = EntryState.PENDING
        tokens_before = self.embedder.tokens_used
        written_before = self.writer.written
        try:
            if self.skip_existing and self.store.exists({"url": url}):
                raise SourceSkipped("already in store")

            stage = EntryState.FETCHING
            doc = load_document(self.fetcher, source)

            stage = EntryState.FILTERING
            if is_access_blocked(doc.text):
                raise SourceSkipped("access blocked")
            if not is_acceptable(doc.text):
                raise SourceSkipped("low quality content")

            stage = EntryState.CHUNKING
            chunks = build_chunks(doc)

            # Every vector must arrive before anything of this URL is written
            stage = EntryState.EMBEDDING
            vectors = self.embedder.embed_documents([c.text for c in chunks.children], source.label)
            for child, vector in zip(chunks.children, vectors):
                child.vector = vector

            stage = EntryState.WRITING
            self.writer.write_parents(chunks.parents)
            self.writer.write_children(chunks.children)
        except SourceSkipped as e:
            log.info("Skipped %s: %s", url, e.reason)
            return EntryOutcome(url, source.label, EntryState.SKIPPED, stage, reason=e.reason)
        except ConfigurationError:
            raise
        except Exception as e:
            records = self.writer.written - written_before
            log.error("Failed %s during %s: %s (%d records written)", url, stage.value, e, records)
            return EntryOutcome(url, source.label, EntryState.FAILED, stage, reason=str(e), records=records)
        finally:
            state.tokens_used += self.embedder.tokens_used - tokens_before

        records = self.writer.written - written_before
        log.info(
            "Inserted %s (%dP + %dC, %d new records)",
            url,
            len(chunks.parents),
            len(chunks.children),
            records,
        )
        return EntryOutcome(url, source.label, EntryState.DONE, EntryState.WRITING, records=records)


def write_manifest(state: RunState, name: str) -> Path:
    """Run summary plus per-URL outcomes, for audit/debug."""
    payload = {
        **state.summary(),
        "outcomes": [asdict(o) for o in state.outcomes],
    }
    out = resolve_path(yaml_config.app.cache_dir) / f"run_{name}.json"
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    log.info("Wrote run manifest to %s", out)
    return out
