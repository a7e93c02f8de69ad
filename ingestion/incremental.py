from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable

from common.config import FeedConfig
from common.logger import get_logger
from ingestion.embedder import Embedder
from ingestion.ingest_pipeline import IngestionRunner
from ingestion.loaders import HttpPageFetcher, PageFetcher
from ingestion.sources import feed_sources
from vectorstore.base import DocumentStore

log = get_logger(__name__)


def run_incremental(
    store: DocumentStore,
    embedder: Embedder,
    fetcher: PageFetcher | None = None,
    feeds: Iterable[FeedConfig] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """
    Reduced pipeline for scheduled refreshes: configured RSS feeds only, and
    article URLs already present in the store are skipped before scraping.
    """
    runner = IngestionRunner(
        store=store,
        embedder=embedder,
        fetcher=fetcher or HttpPageFetcher(),
        skip_existing=True,
        sleep=sleep,
        show_progress=False,
    )
    state = runner.run(feed_sources(feeds))
    summary = {
        "ok": True,
        "newArticles": state.done,
        "skipped": state.skipped,
        "failed": state.failed,
        "recordsAdded": state.records_added,
        "embeddingTokens": state.tokens_used,
        "durationSec": round(state.elapsed, 1),
    }
    if state.errors:
        summary["errors"] = state.errors
    log.info("Incremental update done: %d new, %d skipped", state.done, state.skipped)
    return summary
