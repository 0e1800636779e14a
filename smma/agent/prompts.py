"""System and user prompts for the LLM-backed pipeline steps.

Every system prompt asks for a JSON object; user prompts carry the artifacts
produced by earlier steps.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from smma.agent.platforms import PLATFORM_CONSTRAINTS
from smma.db.models import CrawledPage, Domain

# Pages and characters per page included in the site-analysis prompt
SITE_CONTEXT_PAGES = 10
SITE_CONTEXT_CHARS = 500
# Characters per page, and of each earlier artifact, in the persona prompt
PERSONA_PAGE_CHARS = 800
PERSONA_ARTIFACT_CHARS = 2000

SITE_ANALYSIS_SYSTEM = (
    "You are a brand strategist. Analyze the website and return a JSON brand "
    "profile with: brandSummary, targetAudience, uniqueSellingPoints (array), "
    "brandPersonality (array of traits), industry, competitors (array of names), "
    "strengths (array), weaknesses (array)."
)

COMPETITOR_RESEARCH_SYSTEM = (
    "You are a competitive intelligence analyst. Based on the brand profile and "
    "website data, identify top competitors and analyze them. Return JSON with: "
    "competitors (array of {name, url, strengths, weaknesses, socialPresence}), "
    "marketPosition, opportunities (array)."
)

POSITIONING_SYSTEM = (
    "You are a positioning strategist. Given a brand profile and its competitor "
    "set, define how the brand should position itself on social media. Return "
    "JSON with: uniqueValueProposition, keyDifferentiators (array), "
    "areasToEmphasizeInSocial (array), areasToAvoidOrDownplay (array), "
    "positioningNarrative (2-3 paragraphs)."
)

CONTENT_STRATEGY_SYSTEM = (
    "You are a social media content strategist. Create a content strategy based "
    "on the brand profile, positioning, competitors, and target audience. Return "
    "JSON with: pillars (array of {name, description, percentage}), "
    "postingFrequency (object per platform), contentMix (array of {type, "
    "percentage}), toneGuidelines, hashtagStrategy, bestPostingTimes."
)

PERSONA_SYSTEM = (
    "You are an audience researcher. From the website content, competitor "
    "information and business goals, create 2-3 distinct buyer personas based on "
    "evidence from the site. Each persona is a specific person with a name, age, "
    "job, pain points and motivations; mark exactly one as primary. Return JSON "
    "with: personas (array of {name, avatarEmoji, isPrimary, demographics, "
    "psychographics, painPoints (array), motivations (array), buyingTriggers "
    "(array), objections (array), preferredPlatforms (array), contentPreferences, "
    "onlineBehavior, keywords (array)})."
)

POST_GENERATOR_SYSTEM = (
    "You are a social media copywriter. For every calendar entry, write a post "
    "tailored to the platform: an engaging first line, hashtags in the right "
    "quantity and a clear call to action. Platform rules:\n"
    + "\n".join(
        f"- {c.name}: max {c.max_chars} chars, at most {c.max_hashtags} hashtags, {c.tone}"
        for c in PLATFORM_CONSTRAINTS.values()
    )
    + "\nReturn JSON with: drafts (array of {calendarPostId, text, hashtags "
    "(array), cta})."
)


def calendar_system_prompt(start_date: str, days: int = 30) -> str:
    return (
        f"You are a social media campaign planner. Generate a {days}-day content "
        f"calendar starting from {start_date}. Return JSON with: startDate, "
        "endDate, posts (array of {date (YYYY-MM-DD), platform, contentType, "
        'topic, caption, hashtags (array), status: "draft"}). Generate 2-3 posts '
        "per day across different platforms. Keep captions engaging and on-brand."
    )


def _dump(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False)


def build_site_context(domain: Domain, pages: list[CrawledPage]) -> str:
    """Summarise the domain and its first crawled pages for the LLM."""
    lines = [
        f"Website: {domain.url}",
        f"Name: {domain.name}",
        f"Goal: {domain.primary_goal}",
        f"Brand Voice: {domain.brand_voice_tone or 'professional'}",
    ]
    if domain.audience_description:
        lines.append(f"Audience: {domain.audience_description}")
    lines.append("")
    lines.append(f"Crawled Pages ({len(pages)}):")
    for page in pages[:SITE_CONTEXT_PAGES]:
        lines.append(f"\n--- {page.title or page.url} [{page.page_type}] ---")
        lines.append(page.body_text[:SITE_CONTEXT_CHARS])
    return "\n".join(lines)


def site_analysis_prompt(site_context: str) -> str:
    return f"Analyze this website:\n{site_context}\n\nReturn valid JSON only."


def competitor_research_prompt(domain: Domain, profile: dict[str, Any]) -> str:
    return (
        f"Brand: {domain.name} ({domain.url})\n"
        f"Profile: {_dump(profile)}\n\nReturn valid JSON only."
    )


def positioning_prompt(
    domain: Domain,
    profile: dict[str, Any],
    competitors: dict[str, Any],
) -> str:
    return (
        f"Brand: {domain.name} ({domain.url})\n"
        f"Profile: {_dump(profile)}\n"
        f"Competitors: {_dump(competitors)}\n\nReturn valid JSON only."
    )


def content_strategy_prompt(
    domain: Domain,
    profile: dict[str, Any],
    competitors: dict[str, Any],
    positioning: dict[str, Any],
    preferences: dict[str, Any],
    personas: Optional[list[dict[str, Any]]] = None,
) -> str:
    prompt = (
        f"Brand: {domain.name}\n"
        f"Goal: {domain.primary_goal}\n"
        f"Profile: {_dump(profile)}\n"
        f"Positioning: {_dump(positioning)}\n"
        f"Competitors: {_dump(competitors)}\n"
    )
    if personas:
        prompt += f"Personas: {_dump(personas)}\n"
    if preferences:
        prompt += f"Preferences: {_dump(preferences)}\n"
    return prompt + "\nReturn valid JSON only."


def calendar_prompt(
    domain: Domain,
    profile: dict[str, Any],
    strategy: dict[str, Any],
) -> str:
    return (
        f"Brand: {domain.name} ({domain.url})\n"
        f"Strategy: {_dump(strategy)}\n"
        f"Profile: {_dump(profile)}\n\nReturn valid JSON only."
    )


def persona_prompt(
    domain: Domain,
    pages: list[CrawledPage],
    profile: Optional[dict[str, Any]],
    competitors: Optional[dict[str, Any]],
) -> str:
    lines = [
        f"Website: {domain.url}",
        f"Name: {domain.name}",
        f"Goal: {domain.primary_goal}",
        f"Current audience: {domain.audience_description or 'Not provided'}",
        f"Brand Voice: {domain.brand_voice_tone}",
        "",
        "Crawled Pages:",
    ]
    if not pages:
        lines.append("No crawled content available.")
    for page in pages:
        lines.append(f"\n--- {page.title or page.url} [{page.page_type}] ---")
        lines.append(page.body_text[:PERSONA_PAGE_CHARS])
    lines.append("")
    lines.append(
        "Competitors: "
        + (_dump(competitors)[:PERSONA_ARTIFACT_CHARS] if competitors else "No competitor data available.")
    )
    lines.append(
        "Profile: "
        + (_dump(profile)[:PERSONA_ARTIFACT_CHARS] if profile else "No profile data available.")
    )
    lines.append("\nReturn valid JSON only.")
    return "\n".join(lines)


def post_generator_prompt(
    platform: str,
    entries: list[dict[str, Any]],
    profile: dict[str, Any],
    strategy: dict[str, Any],
) -> str:
    return (
        f"Write drafts for these {platform} calendar entries.\n"
        f"Profile: {_dump(profile)}\n"
        f"Strategy: {_dump(strategy)}\n"
        f"Entries: {_dump(entries)}\n\n"
        "Produce one draft for every entry. Return valid JSON only."
    )
