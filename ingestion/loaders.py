from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, Tuple
from urllib.parse import urldefrag, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from common.config import yaml_config
from common.logger import get_logger
from common.retry import with_retry
from ingestion.cleaners import extract_html_text
from ingestion.document_models import RawDoc, SourceItem

log = get_logger(__name__)


class PageFetcher(Protocol):
    def fetch(self, url: str) -> str:
        """Return the raw body (HTML or XML) of `url`."""
        ...


class HttpPageFetcher:
    """Plain HTTP fetcher; every request carries an explicit timeout."""

    def __init__(
        self,
        timeout: float | None = None,
        user_agent: str | None = None,
        session: requests.Session | None = None,
    ):
        self.timeout = timeout or yaml_config.app.timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent or yaml_config.app.user_agent,
                "Accept": "text/html,application/xml,text/xml,*/*",
            }
        )

    def fetch(self, url: str) -> str:
        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        resp.encoding = resp.encoding or "utf-8"
        return resp.text


def is_transient(exc: BaseException) -> bool:
    """Client errors other than 429 will not improve on retry."""
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return status >= 500 or status == 429
    return True


def fetch_with_retry(fetcher: PageFetcher, url: str, what: str = "fetch") -> str:
    return with_retry(f"{what} {url}", lambda: fetcher.fetch(url), retry_if=is_transient)


def load_document(fetcher: PageFetcher, source: SourceItem) -> RawDoc:
    """Scrape one page and reduce it to cleaned text."""
    html = fetch_with_retry(fetcher, source.url, what="scrape")
    return RawDoc(source=source, text=extract_html_text(html))


# --------------------
# Link discovery
# --------------------
def is_blocked_url(url: str) -> bool:
    lower = url.lower()
    return any(p in lower for p in yaml_config.ingestion.blocked_url_patterns)


def matches_keywords(url: str, title: str = "") -> bool:
    keywords = yaml_config.ingestion.link_keywords
    if not keywords:
        return True
    hay = f"{url} {title}".lower()
    return any(k in hay for k in keywords)


def normalize_link(raw: Optional[str], base_url: str) -> Optional[str]:
    """Absolute http(s) URL without fragment, or None."""
    if not raw or not raw.strip():
        return None
    url, _ = urldefrag(urljoin(base_url, raw.strip()))
    if urlparse(url).scheme not in ("http", "https"):
        return None
    return url


def _filter_links(candidates: Iterable[Tuple[str, str]], base_url: str, limit: int) -> List[str]:
    out: List[str] = []
    for raw, title in candidates:
        url = normalize_link(raw, base_url)
        if not url or url in out or url == base_url:
            continue
        if is_blocked_url(url) or not matches_keywords(url, title):
            continue
        out.append(url)
        if len(out) >= limit:
            break
    return out


def _entry_link(entry) -> Optional[str]:
    """RSS 2.0 links are element text; Atom links carry an href attribute."""
    links = entry.find_all("link")
    for link in links:
        if link.get("href") and link.get("rel", "alternate") == "alternate":
            return link["href"]
    for link in links:
        if link.get("href"):
            return link["href"]
        text = link.get_text(strip=True)
        if text:
            return text
    return None


def parse_feed_links(xml: str, feed_url: str, limit: int | None = None) -> List[str]:
    limit = limit or yaml_config.ingestion.max_links_per_page
    soup = BeautifulSoup(xml, "xml")
    entries = soup.find_all("item") or soup.find_all("entry")
    candidates = []
    for entry in entries:
        title = entry.find("title")
        candidates.append((_entry_link(entry), title.get_text(strip=True) if title else ""))
    return _filter_links(candidates, feed_url, limit)


def _same_site(url: str, page_url: str) -> bool:
    def host(u: str) -> str:
        h = (urlparse(u).hostname or "").lower()
        return h[4:] if h.startswith("www.") else h

    return host(url) == host(page_url)


def parse_hub_links(html: str, page_url: str, limit: int | None = None) -> List[str]:
    limit = limit or yaml_config.ingestion.max_links_per_page
    soup = BeautifulSoup(html, "html.parser")
    candidates = []
    for a in soup.find_all("a", href=True):
        url = normalize_link(a["href"], page_url)
        if url and _same_site(url, page_url):
            candidates.append((url, a.get_text(" ", strip=True)))
    return _filter_links(candidates, page_url, limit)


def discover_links(fetcher: PageFetcher, source: SourceItem) -> List[SourceItem]:
    """Expand a feed or hub page into article sources that inherit its settings."""
    if source.content_type == "rss":
        parse = parse_feed_links
    elif source.content_type == "hub":
        parse = parse_hub_links
    else:
        raise ValueError(f"Source {source.url} of type {source.content_type} does not expand")
    urls = with_retry(
        f"expand {source.url}",
        lambda: parse(fetcher.fetch(source.url), source.url),
        retry_if=is_transient,
    )
    return [
        SourceItem(
            url=u,
            content_type="html",
            label=source.label,
            delay_seconds=source.delay_seconds,
            category=source.category,
        )
        for u in urls
    ]
