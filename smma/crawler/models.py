"""Data models for the crawler pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from smma.db.models import Heading


@dataclass(frozen=True)
class FrontierEntry:
    """A queued URL together with its BFS depth from the start URL."""

    url: str
    depth: int


@dataclass
class ExtractedPage:
    """Structured content pulled out of one HTML document."""

    title: str
    headings: List[Heading] = field(default_factory=list)
    body_text: str = ""
    links: List[str] = field(default_factory=list)
