"""URL canonicalisation used for visited-set keys and link dedup."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse


def normalize_url(url: str) -> str:
    """Return the canonical form of *url*.

    Clears the query string and fragment, lowercases scheme and host, and
    removes trailing slashes from the path (an empty path becomes ``/``).
    Path parameters (``;v=1``) are part of the path and are kept.
    Input that does not parse as an absolute URL is returned unchanged.
    The function is idempotent.
    """
    try:
        parts = urlparse(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url

    path = parts.path.rstrip("/") or "/"
    return urlunparse(
        (parts.scheme.lower(), parts.netloc.lower(), path, parts.params, "", "")
    )


def resolve_internal_link(page_url: str, href: str, host: str) -> Optional[str]:
    """Resolve *href* against *page_url* and normalise it.

    Returns ``None`` when the link is unparsable, not http(s), or points to a
    host other than *host*.
    """
    try:
        resolved = urljoin(page_url, href.strip())
        parts = urlparse(resolved)
        hostname = parts.hostname
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or hostname != host.lower():
        return None
    return normalize_url(resolved)
