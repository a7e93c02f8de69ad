from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any, Dict, Iterable, List

import yaml

from common.config import FeedConfig, resolve_path, yaml_config
from common.errors import ConfigurationError
from common.logger import get_logger
from ingestion.document_models import SourceItem

log = get_logger(__name__)

CONTENT_TYPES = ("html", "rss", "hub")


def _expand_template(item: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    """`url_template` + `params` -> one item per parameter combination."""
    template = item["url_template"]
    params: Dict[str, List[str]] = item.get("params") or {}
    keys = list(params)
    for values in itertools.product(*(params[k] for k in keys)):
        bound = dict(zip(keys, values))
        label = item.get("label", template)
        yield {
            **{k: v for k, v in item.items() if k not in ("url_template", "params")},
            "url": template.format(**bound),
            "label": f"{label} ({', '.join(str(v) for v in values)})" if values else label,
        }


def _to_source(item: Dict[str, Any], default_delay: float) -> SourceItem:
    content_type = item.get("type", "html")
    if content_type not in CONTENT_TYPES:
        raise ConfigurationError(f"Unsupported source type '{content_type}' for {item.get('url')}")
    if not item.get("url"):
        raise ConfigurationError(f"Source without url: {item}")
    return SourceItem(
        url=item["url"],
        content_type=content_type,
        label=item.get("label") or item["url"],
        delay_seconds=float(item.get("delay_seconds", default_delay)),
        category=item.get("category", "general"),
    )


def parse_sources(raw: Dict[str, Any]) -> List[SourceItem]:
    defaults = raw.get("defaults") or {}
    default_delay = float(defaults.get("delay_seconds", yaml_config.ingestion.default_delay_seconds))
    out: List[SourceItem] = []
    for item in raw.get("sources") or []:
        items = _expand_template(item) if "url_template" in item else [item]
        out.extend(_to_source(i, default_delay) for i in items)
    return out


def load_sources(path: Path | None = None) -> List[SourceItem]:
    path = resolve_path(Path(path or yaml_config.app.sources_file))
    if not path.exists():
        raise ConfigurationError(f"Sources file not found: {path}")
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    sources = parse_sources(raw)
    log.info("Loaded %d sources from %s", len(sources), path)
    return sources


def feed_sources(feeds: Iterable[FeedConfig] | None = None, delay_seconds: float | None = None) -> List[SourceItem]:
    """Sources for the incremental run: configured RSS feeds only."""
    feeds = yaml_config.cron.feeds if feeds is None else feeds
    delay = yaml_config.cron.delay_seconds if delay_seconds is None else delay_seconds
    return [
        SourceItem(url=f.url, content_type="rss", label=f.label, delay_seconds=delay, category=f.category)
        for f in feeds
    ]
