import re
import unicodedata

from bs4 import BeautifulSoup

NOISE_TAGS = ["script", "style", "noscript", "nav", "footer", "header", "aside"]


def normalize_text(s: str) -> str:
    s = unicodedata.normalize("NFKC", s)
    s = s.replace("\u00a0", " ")
    s = re.sub(r"[ \t]+", " ", s)
    s = re.sub(r"\s+\n", "\n", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()


def collapse_whitespace(s: str) -> str:
    """Single-line, lower-cased form used by the quality predicates."""
    return re.sub(r"\s+", " ", s).strip().lower()


def extract_html_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NOISE_TAGS):
        tag.extract()
    root = soup.body or soup
    lines = (t.strip() for t in root.get_text("\n").splitlines())
    return normalize_text("\n".join(t for t in lines if t))
