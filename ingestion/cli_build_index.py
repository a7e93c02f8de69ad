from __future__ import annotations

import argparse
from pathlib import Path

from common.config import yaml_config
from common.errors import ConfigurationError
from common.logger import get_logger
from ingestion.ingest_pipeline import IngestionRunner, write_manifest
from ingestion.loaders import HttpPageFetcher
from ingestion.runtime import build_runtime
from ingestion.sources import load_sources

log = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Seed the football knowledge base from the configured sources."
    )
    parser.add_argument(
        "--sources", type=str, default="", help="Sources YAML (default: app.sources_file)"
    )
    parser.add_argument(
        "--max-urls",
        type=int,
        default=yaml_config.ingestion.max_urls,
        help="Stop after this many article/page URLs (feeds still expand)",
    )
    parser.add_argument(
        "--allow-recreate",
        action="store_true",
        default=None,
        help="Drop and recreate the collection on a vector dimension mismatch",
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Write to an in-memory store instead of Astra"
    )
    args = parser.parse_args()

    try:
        sources = load_sources(Path(args.sources) if args.sources else None)
        runtime = build_runtime(allow_recreate=args.allow_recreate, dry_run=args.dry_run)
    except ConfigurationError as e:
        log.error("Configuration error: %s", e)
        raise SystemExit(1)

    runner = IngestionRunner(
        store=runtime.store,
        embedder=runtime.embedder,
        fetcher=HttpPageFetcher(),
        max_urls=args.max_urls,
    )
    state = runner.run(sources)
    write_manifest(state, runtime.secrets.astra_db_collection)
    log.info(
        "Processed %d URLs (%d done, %d skipped, %d failed), %d records added, %d tokens, %.1fs",
        state.processed,
        state.done,
        state.skipped,
        state.failed,
        state.records_added,
        state.tokens_used,
        state.elapsed,
    )


if __name__ == "__main__":
    main()
