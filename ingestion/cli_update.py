from __future__ import annotations

import argparse

import orjson

from common.errors import ConfigurationError
from common.logger import get_logger
from ingestion.incremental import run_incremental
from ingestion.runtime import build_runtime

log = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Run one incremental update over the configured RSS feeds."
    )
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    try:
        runtime = build_runtime(dry_run=args.dry_run)
    except ConfigurationError as e:
        log.error("Configuration error: %s", e)
        raise SystemExit(1)

    summary = run_incremental(runtime.store, runtime.embedder)
    print(orjson.dumps(summary, option=orjson.OPT_INDENT_2).decode())


if __name__ == "__main__":
    main()
