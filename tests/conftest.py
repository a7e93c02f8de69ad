from __future__ import annotations

import hashlib
import random
from types import SimpleNamespace
from typing import Dict, List

import pytest

from common.config import yaml_config

PARAGRAPHS = [
    "Arsenal travelled to Anfield on Sunday knowing that anything less than a draw would hand "
    "Liverpool the advantage at the top of the Premier League. Mikel Arteta named an unchanged "
    "side, trusting the midfield trio that had controlled possession so well against Chelsea a "
    "week earlier, while the hosts recalled their captain after a minor hamstring problem.",
    "The opening half was cagey. Both teams pressed high, forcing hurried clearances and long "
    "balls that rarely found a target. Bukayo Saka had the first real chance, cutting inside "
    "from the right flank and curling a shot that the goalkeeper tipped around the post. "
    "Liverpool responded through quick transitions down the left channel.",
    "After the interval the tempo rose sharply. A corner routine rehearsed on the training "
    "ground produced the opener: a near-post flick, a scramble, and Gabriel forcing the ball "
    "over the line from close range. The travelling supporters behind the goal erupted, "
    "sensing that a famous result might finally be within reach this season.",
    "Liverpool pushed forward relentlessly, switching to a back three and introducing two "
    "attacking substitutes. Their equaliser arrived with twelve minutes remaining, a low "
    "drive from the edge of the area that skidded off the wet surface and beyond a "
    "diving defender. Momentum swung again as the crowd urged one more effort.",
    "Statistically the match was remarkably even. Possession finished close to fifty percent "
    "each, shots were twelve against eleven, and expected goals differed by barely a tenth. "
    "Analysts pointed to the aerial duels, which Arsenal won convincingly, as the decisive "
    "factor in limiting Liverpool to speculative efforts from distance late on.",
    "The point keeps the title race open heading into the international break. Arteta praised "
    "the character of his squad, while the Liverpool manager lamented missed opportunities "
    "and questioned a late offside decision. Both clubs return to action against newly "
    "promoted opponents, with fixture congestion looming in December and January.",
]


def article_text(tag: str = "") -> str:
    lead = f"Match report {tag}." if tag else ""
    return "\n\n".join([lead + " " + PARAGRAPHS[0], *PARAGRAPHS[1:]]).strip()


def article_html(tag: str = "") -> str:
    body = "".join(f"<p>{p}</p>\n" for p in article_text(tag).split("\n\n"))
    return (
        "<html><head><title>Report</title><style>p {color: red}</style></head><body>"
        "<nav>Home | News | Scores | Sign in</nav>"
        "<script>var tracking = 1;</script>"
        f"<article>{body}</article>"
        "<footer>All rights reserved. Privacy policy. Cookie settings.</footer>"
        "</body></html>"
    )


class FakeFetcher:
    """PageFetcher serving canned bodies; unknown URLs raise."""

    def __init__(self, pages: Dict[str, object] | None = None, default: str | None = None):
        self.pages = dict(pages or {})
        self.default = default
        self.calls: List[str] = []

    def fetch(self, url: str) -> str:
        self.calls.append(url)
        body = self.pages.get(url, self.default)
        if isinstance(body, Exception):
            raise body
        if body is None:
            raise ConnectionError(f"no canned page for {url}")
        return body


def fake_vector(text: str, dim: int = 8) -> List[float]:
    digest = hashlib.sha1(text.encode("utf-8")).digest()
    return [b / 255.0 for b in digest[:dim]]


class FakeEmbeddingsAPI:
    def __init__(self, failures: List[Exception] | None = None, tokens_per_text: int = 3, shuffle: bool = True):
        self.failures = list(failures or [])
        self.tokens_per_text = tokens_per_text
        self.shuffle = shuffle
        self.calls: List[Dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.failures:
            raise self.failures.pop(0)
        data = [
            SimpleNamespace(index=i, embedding=fake_vector(t)) for i, t in enumerate(kwargs["input"])
        ]
        if self.shuffle:
            random.Random(len(data)).shuffle(data)
        usage = SimpleNamespace(total_tokens=self.tokens_per_text * len(data))
        return SimpleNamespace(data=data, usage=usage)


class FakeOpenAI:
    def __init__(self, **kwargs):
        self.embeddings = FakeEmbeddingsAPI(**kwargs)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    """Retries in tests never wait on the wall clock."""
    monkeypatch.setattr(yaml_config.retry, "base_delay", 0.0)


@pytest.fixture
def fake_openai():
    return FakeOpenAI()
