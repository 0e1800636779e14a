"""Minimal robots.txt support: ``Disallow`` prefixes of the ``*`` group.

Only prefix matching is supported.  There is no ``Allow`` override, no
wildcard pattern matching and no user-agent specificity ranking; the crawler
relies on exactly these prefix-Disallow semantics.
"""

from __future__ import annotations

import httpx

from smma.config import settings


def parse_disallowed(text: str) -> list[str]:
    """Return the ``Disallow`` paths of the wildcard user-agent group(s).

    Lines are scanned in order.  Each ``User-agent:`` line decides whether the
    following ``Disallow:`` lines apply (only when the agent is ``*``).  Empty
    ``Disallow:`` values are ignored.
    """
    disallowed: list[str] = []
    in_wildcard_group = False
    for line in text.splitlines():
        trimmed = line.strip()
        lowered = trimmed.lower()
        if lowered.startswith("user-agent:"):
            agent = lowered.split(":", 1)[1].strip()
            in_wildcard_group = agent == "*"
        elif in_wildcard_group and lowered.startswith("disallow:"):
            path = trimmed.split(":", 1)[1].strip()
            if path:
                disallowed.append(path)
    return disallowed


async def fetch_disallowed(
    client: httpx.AsyncClient,
    origin: str,
    timeout: float | None = None,
) -> list[str]:
    """Fetch ``{origin}/robots.txt`` and return its disallowed prefixes.

    Fails open: any network error, non-2xx status or unreadable body yields
    an empty list (no restrictions).
    """
    robots_url = f"{origin.rstrip('/')}/robots.txt"
    try:
        response = await client.get(
            robots_url, timeout=timeout or settings.robots_timeout
        )
        if not response.is_success:
            print(f"[ROBOTS] {robots_url} returned {response.status_code}; no restrictions.")
            return []
        disallowed = parse_disallowed(response.text)
    except Exception as exc:  # noqa: BLE001
        print(f"[ROBOTS] Could not read {robots_url}: {exc!r:.120}; no restrictions.")
        return []

    print(f"[ROBOTS] {len(disallowed)} disallowed prefix(es) for {origin}")
    return disallowed


def is_disallowed(path: str, disallowed: list[str]) -> bool:
    """Return ``True`` if *path* starts with any of the *disallowed* prefixes."""
    return any(path.startswith(prefix) for prefix in disallowed)
