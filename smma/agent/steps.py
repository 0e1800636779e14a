"""Pipeline step actions.

Each step is an ``async`` function taking the shared :class:`PipelineContext`.
It reads the artifacts of earlier steps from storage, calls the LLM (or the
crawler), writes its own artifact back and returns it.  A missing
prerequisite raises :class:`MissingArtifactError`.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

import httpx

from smma.agent import prompts
from smma.agent.platforms import DEFAULT_PLATFORMS, apply_constraints
from smma.agent.registry import LogLevel, RunRegistry
from smma.config import settings
from smma.crawler.crawler import crawl_domain
from smma.db.artifacts import (
    CAMPAIGN_CALENDAR,
    COMPETITOR_SET,
    CONTENT_STRATEGY,
    DOMAIN_PROFILE,
    POSITIONING_SUMMARY,
    get_artifact,
    store_artifact,
)
from smma.db.models import CrawledPage, Domain, Persona
from smma.db.pages import get_crawled_pages
from smma.db.personas import list_personas, store_personas
from smma.db.posts import replace_post_drafts
from smma.llm.client import LLMClient, LLMResponseError

# Calendar entries sent to the LLM per post-generation call
POST_BATCH_SIZE = 10


class MissingArtifactError(Exception):
    """A step ran before the artifact it depends on was stored."""


@dataclass
class PipelineOptions:
    max_pages: int = field(default_factory=lambda: settings.pipeline_max_pages)
    max_depth: int = field(default_factory=lambda: settings.pipeline_max_depth)
    generate_posts: bool = True
    preferences: dict[str, Any] = field(default_factory=dict)
    generate_personas: bool = False
    # Write drafts with the LLM per platform instead of copying calendar captions
    llm_posts: bool = False
    platforms: list[str] = field(default_factory=lambda: list(DEFAULT_PLATFORMS))


@dataclass
class PipelineContext:
    """Everything a step needs, shared by all steps of one run."""

    conn: sqlite3.Connection
    domain: Domain
    llm: LLMClient
    registry: RunRegistry
    options: PipelineOptions = field(default_factory=PipelineOptions)
    step_delay: float = field(default_factory=lambda: settings.pipeline_step_delay)
    http_client: Optional[httpx.AsyncClient] = None

    @property
    def domain_id(self) -> str:
        return self.domain.id

    def log(self, level: LogLevel, message: str) -> None:
        self.registry.log(self.domain.id, level, message)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_artifact(ctx: PipelineContext, kind: str, label: str) -> dict[str, Any]:
    data = get_artifact(ctx.conn, ctx.domain_id, kind)
    if data is None:
        raise MissingArtifactError(
            f"{label} not found for domain {ctx.domain.name!r}; run the earlier steps first."
        )
    return data


def _calendar_posts(calendar: dict[str, Any]) -> list[dict[str, Any]]:
    for key in ("posts", "drafts", "content"):
        posts = calendar.get(key)
        if isinstance(posts, list):
            return [p for p in posts if isinstance(p, dict)]
    return []


def _as_text(value: Any) -> str:
    """Coerce an LLM-provided field to text (objects are unwrapped or dumped)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("text"), str):
        return value["text"]
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _as_date(value: Any) -> Optional[str]:
    text = _as_text(value)
    return text or None


def _as_hashtags(value: Any) -> list[str]:
    if isinstance(value, str):
        return value.replace(",", " ").split()
    if isinstance(value, list):
        return [_as_text(tag) for tag in value if tag not in (None, "")]
    return []


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

async def run_crawl(ctx: PipelineContext) -> list[CrawledPage]:
    """Reuse stored pages; crawl the site only when none exist yet."""
    pages = get_crawled_pages(ctx.conn, ctx.domain_id)
    if pages:
        ctx.log(LogLevel.INFO, f"Reusing {len(pages)} previously crawled pages")
        return pages

    ctx.log(
        LogLevel.INFO,
        f"Fetching up to {ctx.options.max_pages} pages from {ctx.domain.url}",
    )
    return await crawl_domain(
        ctx.conn,
        ctx.domain_id,
        ctx.domain.url,
        max_pages=ctx.options.max_pages,
        max_depth=ctx.options.max_depth,
        client=ctx.http_client,
    )


async def run_site_analysis(ctx: PipelineContext) -> dict[str, Any]:
    pages = get_crawled_pages(ctx.conn, ctx.domain_id)
    if not pages:
        raise MissingArtifactError(
            f"No crawled pages for domain {ctx.domain.name!r}; crawl the site first."
        )

    ctx.log(LogLevel.INFO, "Sending site content to LLM for brand analysis...")
    site_context = prompts.build_site_context(ctx.domain, pages)
    profile = await ctx.llm.complete(
        prompts.SITE_ANALYSIS_SYSTEM,
        prompts.site_analysis_prompt(site_context),
        temperature=0.6,
        max_tokens=3000,
    )
    store_artifact(ctx.conn, ctx.domain_id, DOMAIN_PROFILE, profile)
    return profile


async def run_competitor_research(ctx: PipelineContext) -> dict[str, Any]:
    profile = _require_artifact(ctx, DOMAIN_PROFILE, "Domain profile")

    ctx.log(LogLevel.INFO, "Identifying competitors and market position...")
    competitors = await ctx.llm.complete(
        prompts.COMPETITOR_RESEARCH_SYSTEM,
        prompts.competitor_research_prompt(ctx.domain, profile),
        temperature=0.6,
        max_tokens=3000,
    )
    store_artifact(ctx.conn, ctx.domain_id, COMPETITOR_SET, competitors)
    return competitors


async def run_positioning(ctx: PipelineContext) -> dict[str, Any]:
    profile = _require_artifact(ctx, DOMAIN_PROFILE, "Domain profile")
    competitors = _require_artifact(ctx, COMPETITOR_SET, "Competitor set")

    ctx.log(LogLevel.INFO, "Defining value proposition and differentiators...")
    positioning = await ctx.llm.complete(
        prompts.POSITIONING_SYSTEM,
        prompts.positioning_prompt(ctx.domain, profile, competitors),
        temperature=0.7,
        max_tokens=3000,
    )
    store_artifact(ctx.conn, ctx.domain_id, POSITIONING_SUMMARY, positioning)
    return positioning


async def generate_personas(
    conn: sqlite3.Connection,
    domain: Domain,
    llm: LLMClient,
) -> list[Persona]:
    """Ask the LLM for buyer personas of *domain* and store them.

    Uses whatever crawled pages, profile and competitor set already exist.

    Raises:
        LLMResponseError: If the reply carries no non-empty ``personas`` list.
    """
    pages = get_crawled_pages(conn, domain.id)[: prompts.SITE_CONTEXT_PAGES]
    result = await llm.complete(
        prompts.PERSONA_SYSTEM,
        prompts.persona_prompt(
            domain,
            pages,
            get_artifact(conn, domain.id, DOMAIN_PROFILE),
            get_artifact(conn, domain.id, COMPETITOR_SET),
        ),
        temperature=0.8,
        max_tokens=6000,
    )
    personas = result.get("personas")
    if not isinstance(personas, list):
        raise LLMResponseError("LLM reply is missing the personas array")
    personas = [p for p in personas if isinstance(p, dict)]
    if not personas:
        raise LLMResponseError("LLM returned no personas")
    return store_personas(conn, domain.id, personas)


async def run_personas(ctx: PipelineContext) -> list[Persona]:
    ctx.log(LogLevel.INFO, "Building buyer personas from site content and competitors...")
    return await generate_personas(ctx.conn, ctx.domain, ctx.llm)


async def run_content_strategy(ctx: PipelineContext) -> dict[str, Any]:
    profile = _require_artifact(ctx, DOMAIN_PROFILE, "Domain profile")
    competitors = _require_artifact(ctx, COMPETITOR_SET, "Competitor set")
    positioning = _require_artifact(ctx, POSITIONING_SUMMARY, "Positioning summary")
    personas = [{"name": p.name, **p.data} for p in list_personas(ctx.conn, ctx.domain_id)]

    ctx.log(LogLevel.INFO, "Creating content pillars, posting schedule, and tone guidelines...")
    strategy = await ctx.llm.complete(
        prompts.CONTENT_STRATEGY_SYSTEM,
        prompts.content_strategy_prompt(
            ctx.domain, profile, competitors, positioning, ctx.options.preferences, personas
        ),
        temperature=0.7,
        max_tokens=4000,
    )
    store_artifact(ctx.conn, ctx.domain_id, CONTENT_STRATEGY, strategy)
    return strategy


async def run_campaign_calendar(ctx: PipelineContext) -> dict[str, Any]:
    profile = _require_artifact(ctx, DOMAIN_PROFILE, "Domain profile")
    strategy = _require_artifact(ctx, CONTENT_STRATEGY, "Content strategy")

    ctx.log(LogLevel.INFO, "Creating post schedule with captions and hashtags...")
    calendar = await ctx.llm.complete(
        prompts.calendar_system_prompt(date.today().isoformat()),
        prompts.calendar_prompt(ctx.domain, profile, strategy),
        temperature=0.8,
        max_tokens=8000,
    )
    store_artifact(ctx.conn, ctx.domain_id, CAMPAIGN_CALENDAR, calendar)
    return calendar


def _drafts_from_calendar(posts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "platform": _as_text(p.get("platform")) or "twitter",
            "text": _as_text(
                p.get("caption") or p.get("body") or p.get("content") or p.get("topic")
            ),
            "scheduled_date": _as_date(p.get("date") or p.get("scheduled_date")),
            "status": "draft",
            "hashtags": _as_hashtags(p.get("hashtags")),
            "content_type": _as_text(p.get("contentType") or p.get("content_type")) or "post",
        }
        for p in posts
    ]


async def _write_drafts(ctx: PipelineContext, posts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Have the LLM write drafts per platform, in batches, within platform limits."""
    profile = _require_artifact(ctx, DOMAIN_PROFILE, "Domain profile")
    strategy = _require_artifact(ctx, CONTENT_STRATEGY, "Content strategy")

    drafts: list[dict[str, Any]] = []
    for platform in ctx.options.platforms:
        entries = [
            {**p, "calendarPostId": f"post-{i}"}
            for i, p in enumerate(posts)
            if p.get("platform") == platform
        ]
        if not entries:
            ctx.log(LogLevel.INFO, f"No calendar entries for {platform}, skipping")
            continue

        ctx.log(LogLevel.INFO, f"Writing {len(entries)} {platform} drafts...")
        for start in range(0, len(entries), POST_BATCH_SIZE):
            batch = entries[start : start + POST_BATCH_SIZE]
            by_id = {e["calendarPostId"]: e for e in batch}
            result = await ctx.llm.complete(
                prompts.POST_GENERATOR_SYSTEM,
                prompts.post_generator_prompt(platform, batch, profile, strategy),
                temperature=0.8,
                max_tokens=6000,
            )
            items = result.get("drafts")
            for item in items if isinstance(items, list) else []:
                if not isinstance(item, dict):
                    continue
                entry = by_id.get(_as_text(item.get("calendarPostId")), {})
                drafts.append(
                    apply_constraints(
                        {
                            "platform": platform,
                            "text": _as_text(item.get("text")),
                            "scheduled_date": _as_date(entry.get("date")),
                            "status": "draft",
                            "hashtags": _as_hashtags(item.get("hashtags")),
                            "content_type": _as_text(entry.get("contentType")) or "post",
                        }
                    )
                )
    return drafts


async def run_post_drafts(ctx: PipelineContext) -> list[dict[str, Any]]:
    """Turn the calendar's posts into stored drafts (replacing earlier ones)."""
    calendar = _require_artifact(ctx, CAMPAIGN_CALENDAR, "Campaign calendar")
    posts = _calendar_posts(calendar)
    if ctx.options.llm_posts:
        drafts = await _write_drafts(ctx, posts)
    else:
        drafts = _drafts_from_calendar(posts)
    if not drafts:
        ctx.log(LogLevel.INFO, "Calendar generated but no individual posts to store as drafts")
        return []

    replace_post_drafts(ctx.conn, ctx.domain_id, drafts)
    return drafts
