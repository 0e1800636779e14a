"""Bounded breadth-first site crawler.

``crawl_site`` walks one website starting from a URL, one page at a time:

    queue ← [(normalize(start), 0)]
    while queue and len(pages) < max_pages:
        pop front → skip if visited / too deep / disallowed → fetch → extract
        → enqueue unseen same-host links at depth + 1 → classify → collect

Page-level failures (timeouts, network errors, non-HTML responses) are
printed and skipped; they never abort the crawl.  ``crawl_domain`` wraps the
walk and replaces the domain's stored pages with the result.
"""

from __future__ import annotations

import sqlite3
import uuid
from collections import deque
from typing import Optional
from urllib.parse import urlparse

import httpx

from smma.config import settings
from smma.crawler.classifier import classify_page
from smma.crawler.extractor import extract_page
from smma.crawler.fetcher import PageSkipped, build_client, fetch_page
from smma.crawler.models import FrontierEntry
from smma.crawler.robots import fetch_disallowed, is_disallowed
from smma.crawler.urls import normalize_url
from smma.db.models import CrawledPage
from smma.db.pages import store_crawled_pages


async def crawl_site(
    start_url: str,
    max_pages: Optional[int] = None,
    max_depth: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> list[CrawledPage]:
    """Crawl the website at *start_url* and return its pages in BFS order.

    Args:
        start_url: Absolute URL the crawl starts from (depth 0).
        max_pages: Stop once this many pages were collected.
            Defaults to ``settings.crawl_max_pages``.
        max_depth: Links further than this many hops from the start URL are
            not followed.  Defaults to ``settings.crawl_max_depth``.
        client: Optional shared ``AsyncClient``; a fresh one is opened (and
            closed) when omitted.

    Raises:
        ValueError: If *start_url* is not an absolute http(s) URL.
    """
    if client is None:
        async with build_client() as own_client:
            return await crawl_site(start_url, max_pages, max_depth, own_client)

    max_pages = settings.crawl_max_pages if max_pages is None else max_pages
    max_depth = settings.crawl_max_depth if max_depth is None else max_depth

    start = normalize_url(start_url)
    start_parts = urlparse(start)
    if start_parts.scheme not in ("http", "https") or not start_parts.hostname:
        raise ValueError(f"Invalid start URL: {start_url!r}")
    host = start_parts.hostname
    origin = f"{start_parts.scheme}://{start_parts.netloc}"

    disallowed = await fetch_disallowed(client, origin)

    queue: deque[FrontierEntry] = deque([FrontierEntry(start, 0)])
    enqueued: set[str] = {start}
    visited: set[str] = set()
    pages: list[CrawledPage] = []

    while queue and len(pages) < max_pages:
        entry = queue.popleft()
        if entry.url in visited or entry.depth > max_depth:
            continue
        visited.add(entry.url)

        path = urlparse(entry.url).path or "/"
        if is_disallowed(path, disallowed):
            print(f"[CRAWLER] Disallowed by robots.txt: {entry.url}")
            continue

        try:
            print(f"[CRAWLER] Fetching (depth {entry.depth}): {entry.url}")
            html = await fetch_page(client, entry.url)
            extracted = extract_page(html, entry.url, host)
        except PageSkipped as exc:
            print(f"[CRAWLER] Skipped {entry.url}: {exc}")
            continue
        except Exception as exc:  # noqa: BLE001
            print(f"[CRAWLER] Error fetching {entry.url}: {exc!r:.200}")
            continue

        if entry.depth + 1 <= max_depth:
            for link in extracted.links:
                if link not in visited and link not in enqueued:
                    enqueued.add(link)
                    queue.append(FrontierEntry(link, entry.depth + 1))

        pages.append(
            CrawledPage(
                id=str(uuid.uuid4()),
                url=entry.url,
                title=extracted.title,
                headings=extracted.headings,
                body_text=extracted.body_text,
                internal_links=extracted.links,
                page_type=classify_page(path, extracted.title).value,
            )
        )

    return pages


async def crawl_domain(
    conn: sqlite3.Connection,
    domain_id: str,
    start_url: str,
    max_pages: Optional[int] = None,
    max_depth: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> list[CrawledPage]:
    """Crawl *start_url* and replace the stored pages of *domain_id*.

    Returns the crawled pages (also when the crawl collected none, in which
    case the domain's stored page set becomes empty).
    """
    pages = await crawl_site(start_url, max_pages, max_depth, client)
    store_crawled_pages(conn, domain_id, pages)
    print(f"[CRAWLER] Done. Crawled {len(pages)} page(s) for domain {domain_id}")
    return pages
