"""Content extraction: turns fetched HTML into an :class:`ExtractedPage`."""

from __future__ import annotations

import re
from typing import List

from bs4 import BeautifulSoup

from smma.config import settings
from smma.crawler.models import ExtractedPage
from smma.crawler.urls import resolve_internal_link
from smma.db.models import Heading

# Boilerplate removed before any text is read
_STRIP_TAGS = ["script", "style", "nav", "footer", "header", "noscript", "iframe"]

# Body text container, first match wins
_CONTENT_SELECTORS = ("main", "article", ".content", "#content", "body")

_HEADING_TAGS = ["h1", "h2", "h3", "h4"]

_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _extract_title(soup: BeautifulSoup) -> str:
    if soup.title is None:
        return ""
    return soup.title.get_text().strip()


def _extract_headings(soup: BeautifulSoup) -> List[Heading]:
    """Return ``h1``-``h4`` headings in document order, skipping empty ones."""
    headings: List[Heading] = []
    for el in soup.find_all(_HEADING_TAGS):
        text = el.get_text().strip()
        if text:
            headings.append(Heading(tag=el.name, text=text))
    return headings


def _extract_body_text(soup: BeautifulSoup, limit: int) -> str:
    """Whitespace-collapsed text of the main content container, capped at *limit*."""
    container = None
    for selector in _CONTENT_SELECTORS:
        container = soup.select_one(selector)
        if container is not None:
            break
    if container is None:
        container = soup
    text = _WHITESPACE.sub(" ", container.get_text(separator=" ")).strip()
    return text[:limit]


def _extract_internal_links(soup: BeautifulSoup, page_url: str, host: str) -> List[str]:
    """Resolve every ``href`` and keep same-host links, normalised and deduplicated."""
    seen: set[str] = set()
    links: List[str] = []
    for a in soup.find_all("a", href=True):
        link = resolve_internal_link(page_url, a["href"], host)
        if link and link not in seen:
            seen.add(link)
            links.append(link)
    return links


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_page(
    html: str,
    page_url: str,
    host: str,
    body_limit: int | None = None,
) -> ExtractedPage:
    """Parse *html* fetched from *page_url*.

    Boilerplate elements (scripts, styles, navigation, header/footer, iframes)
    are stripped first so they pollute neither the body text nor the link
    set.  Only links whose host equals *host* are kept.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_STRIP_TAGS):
        tag.decompose()

    return ExtractedPage(
        title=_extract_title(soup),
        headings=_extract_headings(soup),
        body_text=_extract_body_text(soup, body_limit or settings.body_text_limit),
        links=_extract_internal_links(soup, page_url, host),
    )
