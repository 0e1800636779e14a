"""Time-bounded HTML fetcher built on ``httpx.AsyncClient``."""

from __future__ import annotations

import httpx

from smma.config import settings


class PageSkipped(Exception):
    """The response is not something the crawler keeps (non-2xx or non-HTML)."""


def default_headers() -> dict[str, str]:
    return {
        "User-Agent": settings.crawler_user_agent,
        "Accept": "text/html,application/xhtml+xml",
    }


def build_client() -> httpx.AsyncClient:
    """Return an ``AsyncClient`` preconfigured with the crawler identity."""
    return httpx.AsyncClient(
        headers=default_headers(),
        timeout=settings.page_timeout,
        follow_redirects=True,
    )


async def fetch_page(
    client: httpx.AsyncClient,
    url: str,
    timeout: float | None = None,
) -> str:
    """GET *url* and return its HTML.

    Raises:
        PageSkipped: If the status is not 2xx or the ``content-type`` does
            not include ``text/html``.
        httpx.TimeoutException: If *timeout* (default ``settings.page_timeout``)
            elapses.
        httpx.HTTPError: On any other transport failure.
    """
    response = await client.get(
        url,
        headers=default_headers(),
        timeout=timeout or settings.page_timeout,
    )
    if not response.is_success:
        raise PageSkipped(f"HTTP {response.status_code}")

    content_type = response.headers.get("content-type", "")
    if "text/html" not in content_type:
        raise PageSkipped(f"content-type {content_type or 'missing'!r}")

    return response.text
