import pytest
import requests

from conftest import FakeFetcher, article_html
from ingestion.document_models import SourceItem
from ingestion.loaders import (
    discover_links,
    is_blocked_url,
    is_transient,
    load_document,
    normalize_link,
    parse_feed_links,
    parse_hub_links,
)

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel>
  <title>Football</title>
  <link>https://www.bbc.com/sport/football</link>
  <item><title>Arsenal hold Liverpool</title><link>https://www.bbc.com/sport/football/articles/a1</link></item>
  <item><title>Transfer latest</title><link>https://www.bbc.com/sport/football/articles/a2#comments</link></item>
  <item><title>Watch the highlights</title><link>https://www.bbc.com/sport/football/video/v1</link></item>
  <item><title>Duplicate</title><link>https://www.bbc.com/sport/football/articles/a1</link></item>
</channel></rss>
"""

ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Soccer</title>
  <entry>
    <title>Champions League preview</title>
    <link rel="alternate" href="https://www.espn.com/soccer/story/_/id/1/champions-preview"/>
  </entry>
  <entry>
    <title>Match report</title>
    <link rel="enclosure" href="https://cdn.espn.com/img/photo.jpg"/>
    <link rel="alternate" href="/soccer/report/_/id/2/match"/>
  </entry>
</feed>
"""

HUB = """<html><body>
  <a href="/football/news/123-arsenal-win">Arsenal win again</a>
  <a href="https://www.skysports.com/football/news/124-transfer">Transfer news</a>
  <a href="https://other-site.com/football/news/9">Off-site football</a>
  <a href="/shop/football/shirts">Shop</a>
  <a href="/weather">Weather</a>
  <a href="mailto:editor@skysports.com">Contact football desk</a>
  <a href="#top">Back to top</a>
</body></html>
"""


def test_rss_links_are_normalized_filtered_and_deduplicated():
    links = parse_feed_links(RSS, "https://feeds.bbci.co.uk/sport/football/rss.xml", limit=10)
    assert links == [
        "https://www.bbc.com/sport/football/articles/a1",
        "https://www.bbc.com/sport/football/articles/a2",
    ]


def test_atom_links_use_alternate_href_resolved_against_feed():
    links = parse_feed_links(ATOM, "https://www.espn.com/espn/rss/soccer/news", limit=10)
    assert links == [
        "https://www.espn.com/soccer/story/_/id/1/champions-preview",
        "https://www.espn.com/soccer/report/_/id/2/match",
    ]


def test_feed_links_respect_limit():
    items = "".join(
        f"<item><title>Story {i}</title><link>https://example.com/football/{i}</link></item>" for i in range(50)
    )
    xml = f"<rss><channel>{items}</channel></rss>"
    assert len(parse_feed_links(xml, "https://example.com/rss", limit=5)) == 5


def test_hub_links_stay_on_site():
    links = parse_hub_links(HUB, "https://www.skysports.com/football", limit=10)
    assert links == [
        "https://www.skysports.com/football/news/123-arsenal-win",
        "https://www.skysports.com/football/news/124-transfer",
    ]


def test_normalize_link():
    assert normalize_link("/a/b#frag", "https://x.com/base") == "https://x.com/a/b"
    assert normalize_link("javascript:void(0)", "https://x.com") is None
    assert normalize_link("  ", "https://x.com") is None
    assert normalize_link(None, "https://x.com") is None


def test_blocked_urls():
    assert is_blocked_url("https://x.com/football/video/1")
    assert is_blocked_url("https://x.com/report.PDF")
    assert not is_blocked_url("https://x.com/football/report")


def test_discover_links_inherits_source_settings():
    feed = SourceItem(
        url="https://feeds.bbci.co.uk/sport/football/rss.xml",
        content_type="rss",
        label="BBC RSS",
        delay_seconds=2.5,
        category="news",
    )
    found = discover_links(FakeFetcher({feed.url: RSS}), feed)
    assert [s.url for s in found] == [
        "https://www.bbc.com/sport/football/articles/a1",
        "https://www.bbc.com/sport/football/articles/a2",
    ]
    assert all(s.content_type == "html" and s.label == "BBC RSS" for s in found)
    assert all(s.delay_seconds == 2.5 and s.category == "news" for s in found)


def test_discover_links_retries_transient_fetch_errors():
    feed = SourceItem(url="https://example.com/football/rss", content_type="rss", label="Feed")
    responses = [ConnectionError("reset"), RSS]
    fetcher = FakeFetcher()

    def flaky(url):
        fetcher.calls.append(url)
        body = responses.pop(0)
        if isinstance(body, Exception):
            raise body
        return body

    fetcher.fetch = flaky
    assert len(discover_links(fetcher, feed)) == 2
    assert fetcher.calls == [feed.url, feed.url]


def test_html_source_does_not_expand():
    page = SourceItem(url="https://example.com/football", content_type="html", label="Page")
    with pytest.raises(ValueError):
        discover_links(FakeFetcher(), page)


def test_load_document_strips_page_chrome():
    source = SourceItem(url="https://example.com/football/report", content_type="html", label="Example")
    doc = load_document(FakeFetcher({source.url: article_html("load")}), source)
    assert doc.source == source
    assert "Match report load." in doc.text
    assert "tracking" not in doc.text
    assert "Sign in" not in doc.text
    assert "All rights reserved" not in doc.text


def _http_error(status):
    response = requests.Response()
    response.status_code = status
    return requests.HTTPError(f"{status} error", response=response)


def test_is_transient():
    assert is_transient(_http_error(503))
    assert is_transient(_http_error(429))
    assert is_transient(requests.ConnectionError())
    assert not is_transient(_http_error(404))
    assert not is_transient(_http_error(403))


def test_client_errors_are_not_retried():
    source = SourceItem(url="https://example.com/football/gone", content_type="html", label="Example")
    fetcher = FakeFetcher({source.url: _http_error(404)})
    with pytest.raises(requests.HTTPError):
        load_document(fetcher, source)
    assert fetcher.calls == [source.url]
