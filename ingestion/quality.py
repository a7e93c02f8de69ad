"""
Content quality predicates applied to scraped text before and after chunking.

All checks run on the collapsed, lower-cased form of the text.
"""
from __future__ import annotations

import re

from ingestion.cleaners import collapse_whitespace

MIN_STATS_CHARS = 100
MIN_CHARS = 200
ALWAYS_ACCEPT_CHARS = 800
MAX_BOILERPLATE_HITS = 3
MIN_DISTINCT_WORDS = 30

STATS_KEYWORDS = (
    "goal",
    "assist",
    "match",
    "team",
    "player",
    "score",
    "stat",
    "table",
    "league",
    "position",
    "points",
    "win",
    "draw",
    "loss",
)

BOILERPLATE_PHRASES = (
    "cookie",
    "accept all",
    "privacy policy",
    "terms of use",
    "terms and conditions",
    "all rights reserved",
    "sign in",
    "log in",
    "sign up",
    "subscribe",
    "newsletter",
    "read more",
    "skip to content",
    "skip to main content",
    "advertisement",
    "follow us",
    "share this",
    "download the app",
    "already a subscriber",
    "manage preferences",
)

BLOCK_MARKERS = (
    "access denied",
    "you don't have permission",
    "captcha",
    "cloudflare",
    "checking your browser",
    "are you a robot",
    "verify you are human",
    "enable javascript and cookies",
    "error 403",
    "403 forbidden",
    "error 404",
    "404 not found",
    "page not found",
    "too many requests",
)

_NUMBER = re.compile(r"\d")
_WORD = re.compile(r"[a-z0-9']+")


def _has_stats_signal(norm: str) -> bool:
    return bool(_NUMBER.search(norm)) and any(k in norm for k in STATS_KEYWORDS)


def boilerplate_hits(norm: str) -> int:
    return sum(1 for phrase in BOILERPLATE_PHRASES if phrase in norm)


def distinct_words(norm: str) -> int:
    return len(set(_WORD.findall(norm)))


def is_acceptable(text: str) -> bool:
    norm = collapse_whitespace(text or "")
    n = len(norm)
    if n == 0:
        return False
    if n >= ALWAYS_ACCEPT_CHARS:
        return True
    if n < MIN_CHARS:
        # Stats tables are short but dense
        return n >= MIN_STATS_CHARS and _has_stats_signal(norm)
    if boilerplate_hits(norm) >= MAX_BOILERPLATE_HITS:
        return False
    return distinct_words(norm) >= MIN_DISTINCT_WORDS


def is_access_blocked(text: str) -> bool:
    norm = collapse_whitespace(text or "")
    return any(marker in norm for marker in BLOCK_MARKERS)
