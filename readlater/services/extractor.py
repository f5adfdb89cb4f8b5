"""Readable-article extraction for downloaded pages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup
from lxml.etree import ParserError
from readability import Document
from readability.readability import Unparseable

from ..errors import ExtractionError

_NO_TITLE = "[no-title]"

_BYLINE_META = (
    {"name": "author"},
    {"property": "article:author"},
    {"name": "byl"},
    {"name": "dc.creator"},
    {"name": "twitter:creator"},
)

_BYLINE_SELECTORS = (
    "[rel=author]",
    "[itemprop=author]",
    ".byline",
    ".author",
)


@dataclass(frozen=True)
class ExtractedArticle:
    title: Optional[str]
    byline: Optional[str]
    content: str


def _find_byline(soup: BeautifulSoup) -> Optional[str]:
    for attrs in _BYLINE_META:
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content") and tag["content"].strip():
            return tag["content"].strip()
    for selector in _BYLINE_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        text = " ".join(node.stripped_strings)
        if text:
            return text
    return None


def _find_title(document: Document, soup: BeautifulSoup) -> Optional[str]:
    title = (document.short_title() or "").strip()
    if title and title != _NO_TITLE:
        return title
    og_title = soup.find("meta", attrs={"property": "og:title"})
    if og_title and og_title.get("content"):
        return og_title["content"].strip()
    return None


def extract_article(body: bytes, url: str) -> ExtractedArticle:
    """Isolate the main article of ``body`` fetched from ``url``.

    Links in the returned HTML fragment are absolute, resolved against
    ``url``. Raises :class:`ExtractionError` when the page cannot be parsed
    or contains no article text.
    """

    if not body or not body.strip():
        raise ExtractionError(url, "empty document")
    try:
        document = Document(body, url=url)
        content = document.summary(html_partial=True)
        soup = BeautifulSoup(body, "html.parser")
        title = _find_title(document, soup)
    except (Unparseable, ParserError, ValueError) as exc:
        raise ExtractionError(url, str(exc) or exc.__class__.__name__) from exc

    text = BeautifulSoup(content, "html.parser").get_text(" ", strip=True)
    if not text:
        raise ExtractionError(url, "no article content found")

    return ExtractedArticle(title=title, byline=_find_byline(soup), content=content)
