"""Main-content extraction from rendered page HTML."""

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from bs4 import BeautifulSoup

# Removed before any text is read
BOILERPLATE_SELECTORS = [
    "script",
    "style",
    "noscript",
    "nav",
    "header",
    "footer",
    "aside",
    ".advertisement",
    ".ads",
    ".social-share",
]

# Checked in order, first selector with any match wins
CONTENT_SELECTORS = [
    "main",
    '[role="main"]',
    ".main-content",
    ".content",
    ".post-content",
    ".entry-content",
    "article",
    ".article",
    ".blog-post",
    ".page-content",
]

MAX_TITLE_CHARS = 200
MAX_DESCRIPTION_CHARS = 300
MAX_CONTENT_CHARS = 10_000

MAX_HEADINGS = 10
MAX_PARAGRAPHS = 20
MIN_PARAGRAPH_CHARS = 20
STRUCTURED_CONTENT_RATIO = 0.3

_SPACES_RE = re.compile(r"[^\S\n]+")
_NEWLINES_RE = re.compile(r"\s*\n\s*")


@dataclass(frozen=True)
class ExtractedContent:
    title: str
    content: str
    description: str | None = None


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces to one space and runs of newlines to one newline."""
    text = _SPACES_RE.sub(" ", text)
    text = _NEWLINES_RE.sub("\n", text)
    return text.strip()


def extract_content(html: str, url: str) -> ExtractedContent:
    """Extract title, description and main text from page HTML.

    Boilerplate elements are dropped first. The content is the text of the
    first matching content region (falling back to the whole body). When the
    page's headings and substantial paragraphs add up to more than 30% of that
    text, they replace it.

    Args:
        html: Rendered page HTML
        url: URL the HTML was loaded from (title fallback)

    Returns:
        ExtractedContent with truncated title, content and description
    """
    soup = BeautifulSoup(html, "html.parser")

    for selector in BOILERPLATE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()

    title = _extract_title(soup, url)
    description = _extract_description(soup)

    content = ""
    for selector in CONTENT_SELECTORS:
        elements = soup.select(selector)
        if elements:
            content = " ".join(element.get_text(" ") for element in elements).strip()
            break

    if not content:
        body = soup.body or soup
        content = body.get_text(" ")

    content = normalize_whitespace(content)

    headings = [_clean(h.get_text(" ")) for h in soup.select("h1, h2, h3, h4, h5, h6")]
    headings = [h for h in headings if h]
    paragraphs = [_clean(p.get_text(" ")) for p in soup.find_all("p")]
    paragraphs = [p for p in paragraphs if len(p) > MIN_PARAGRAPH_CHARS]

    if headings or paragraphs:
        structured = " ".join(headings[:MAX_HEADINGS] + paragraphs[:MAX_PARAGRAPHS])
        if len(structured) > len(content) * STRUCTURED_CONTENT_RATIO:
            content = structured

    return ExtractedContent(
        title=title[:MAX_TITLE_CHARS],
        content=content[:MAX_CONTENT_CHARS],
        description=description[:MAX_DESCRIPTION_CHARS] if description else None,
    )


def _clean(text: str) -> str:
    return " ".join(text.split())


def _extract_title(soup: BeautifulSoup, url: str) -> str:
    if soup.title:
        title = _clean(soup.title.get_text())
        if title:
            return title

    h1 = soup.find("h1")
    if h1:
        title = _clean(h1.get_text(" "))
        if title:
            return title

    try:
        return urlparse(url).hostname or url
    except ValueError:
        return url


def _extract_description(soup: BeautifulSoup) -> str | None:
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta is not None:
            value = (meta.get("content") or "").strip()
            if value:
                return value
    return None
