"""Heuristic page-type classification from a page's path and title."""

from __future__ import annotations

from enum import Enum


class PageType(str, Enum):
    HOME = "home"
    BLOG = "blog"
    CATEGORY = "category"
    PRICING = "pricing"
    ABOUT = "about"
    SIGNUP = "signup"
    CONTACT = "contact"
    PRODUCT = "product"
    OTHER = "other"


# Checked in order; the first rule with a matching keyword wins.
_PATH_RULES: list[tuple[PageType, tuple[str, ...]]] = [
    (PageType.BLOG, ("blog", "article", "news")),
    (PageType.CATEGORY, ("category", "topics")),
    (PageType.PRICING, ("pricing", "plans")),
    (PageType.ABOUT, ("about",)),
    (PageType.SIGNUP, ("signup", "register", "subscribe")),
    (PageType.CONTACT, ("contact",)),
    (PageType.PRODUCT, ("product", "shop", "store")),
]


def classify_page(pathname: str, title: str = "") -> PageType:
    """Map a URL path (and title) to a :class:`PageType`.

    The root path is ``home``.  ``about`` also matches on the title; every
    other rule looks at the path only.
    """
    path = pathname.lower()
    title_lower = (title or "").lower()

    if path in ("", "/"):
        return PageType.HOME
    for page_type, keywords in _PATH_RULES:
        if any(k in path for k in keywords):
            return page_type
        if page_type is PageType.ABOUT and "about" in title_lower:
            return page_type
    return PageType.OTHER
