"""Per-platform limits applied to generated post drafts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PlatformConstraint:
    name: str
    max_chars: int
    max_hashtags: int
    supports_links: bool
    tone: str


PLATFORM_CONSTRAINTS: dict[str, PlatformConstraint] = {
    "twitter": PlatformConstraint(
        name="Twitter / X",
        max_chars=280,
        max_hashtags=5,
        supports_links=True,
        tone="concise, punchy, conversational",
    ),
    "facebook": PlatformConstraint(
        name="Facebook",
        max_chars=2000,
        max_hashtags=3,
        supports_links=True,
        tone="conversational, engaging, storytelling",
    ),
    "instagram": PlatformConstraint(
        name="Instagram",
        max_chars=2200,
        max_hashtags=30,
        supports_links=False,
        tone="visual-first, aspirational, authentic",
    ),
    "linkedin": PlatformConstraint(
        name="LinkedIn",
        max_chars=3000,
        max_hashtags=5,
        supports_links=True,
        tone="professional, insightful, thought-leadership",
    ),
    "pinterest": PlatformConstraint(
        name="Pinterest",
        max_chars=500,
        max_hashtags=5,
        supports_links=True,
        tone="descriptive, keyword-rich, actionable",
    ),
    "tiktok": PlatformConstraint(
        name="TikTok",
        max_chars=2200,
        max_hashtags=5,
        supports_links=False,
        tone="trendy, casual, entertaining, authentic",
    ),
}

DEFAULT_PLATFORMS: tuple[str, ...] = ("twitter", "facebook", "linkedin", "instagram")


def get_platform_constraint(platform: str) -> PlatformConstraint:
    """Return the limits for *platform*; unknown platforms get Twitter's."""
    return PLATFORM_CONSTRAINTS.get(platform, PLATFORM_CONSTRAINTS["twitter"])


def apply_constraints(draft: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *draft* cut down to its platform's limits.

    Text longer than ``max_chars`` is cut and ends in an ellipsis; only the
    first ``max_hashtags`` hashtags are kept.
    """
    limits = get_platform_constraint(draft.get("platform") or "twitter")
    text = draft.get("text") or ""
    if len(text) > limits.max_chars:
        text = text[: limits.max_chars - 1].rstrip() + "…"
    return {
        **draft,
        "text": text,
        "hashtags": list(draft.get("hashtags") or [])[: limits.max_hashtags],
    }
