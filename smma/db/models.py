"""Dataclass models representing DB rows.

These are plain Python objects, not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass
class Domain:
    id: str
    url: str
    name: str
    primary_goal: str
    audience_description: Optional[str]
    brand_voice_tone: str
    created_at: int
    updated_at: int


@dataclass
class Heading:
    tag: str
    text: str


@dataclass
class CrawledPage:
    """One successfully fetched, allowed HTML page from a crawl run."""

    id: str
    url: str
    title: str
    headings: list[Heading] = field(default_factory=list)
    body_text: str = ""
    internal_links: list[str] = field(default_factory=list)
    page_type: str = "other"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PostDraft:
    id: str
    domain_id: str
    platform: str
    content_type: str
    text: str
    hashtags: list[str]
    scheduled_date: Optional[str]
    status: str
    created_at: int
    updated_at: int


@dataclass
class Persona:
    """A target-audience persona; *data* holds demographics, pain points etc."""

    id: str
    domain_id: str
    name: str
    avatar_emoji: str
    is_primary: bool
    is_ai_generated: bool
    data: dict[str, Any]
    created_at: int
    updated_at: int
