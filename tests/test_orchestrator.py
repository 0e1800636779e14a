"""Tests for the pipeline task graph and its executor.

The LLM is a ``MagicMock`` whose ``complete`` is an ``AsyncMock`` answering by
system prompt; crawled pages are seeded into an in-memory DB so the crawl
task reuses them and no network access happens.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from smma.agent import prompts
from smma.agent.orchestrator import PIPELINE_TASKS, TaskStatus, build_tasks, run_pipeline
from smma.agent.registry import RunRegistry
from smma.agent.steps import PipelineContext, PipelineOptions, generate_personas
from smma.db.artifacts import (
    CAMPAIGN_CALENDAR,
    COMPETITOR_SET,
    CONTENT_STRATEGY,
    DOMAIN_PROFILE,
    POSITIONING_SUMMARY,
    get_artifact,
)
from smma.db.personas import list_personas
from smma.db.posts import list_post_drafts
from smma.llm.client import LLMResponseError

from tests.pipeline_fakes import COMPETITORS, PROFILE, fake_llm, seed_pages


@pytest.fixture()
def registry():
    return RunRegistry()


def _ctx(conn, domain, registry, llm=None, **options) -> PipelineContext:
    registry.try_start(domain.id)
    return PipelineContext(
        conn=conn,
        domain=domain,
        llm=llm or fake_llm(),
        registry=registry,
        options=PipelineOptions(**options),
        step_delay=0,
    )


class TestTaskGraph:
    def test_declaration_order_respects_dependencies(self) -> None:
        seen: set[str] = set()
        for task in PIPELINE_TASKS:
            assert set(task.depends_on) <= seen
            seen.add(task.id)

    def test_positioning_depends_on_analysis_and_competitors(self) -> None:
        positioning = next(t for t in PIPELINE_TASKS if t.id == "positioning")
        assert positioning.depends_on == ("siteAnalysis", "competitorResearch")

    def test_post_drafts_optional(self) -> None:
        assert "postDrafts" in [t.id for t in build_tasks(PipelineOptions())]
        assert "postDrafts" not in [t.id for t in build_tasks(PipelineOptions(generate_posts=False))]


class TestRunPipeline:
    async def test_full_run_stores_every_artifact(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        statuses = await run_pipeline(_ctx(conn, domain, registry))

        assert all(s is TaskStatus.DONE for s in statuses.values())
        assert list(statuses) == [t.id for t in build_tasks(PipelineOptions())]
        assert get_artifact(conn, domain.id, DOMAIN_PROFILE) == PROFILE
        assert get_artifact(conn, domain.id, COMPETITOR_SET) == COMPETITORS
        for kind in (POSITIONING_SUMMARY, CONTENT_STRATEGY, CAMPAIGN_CALENDAR):
            assert get_artifact(conn, domain.id, kind) is not None

        run = registry.snapshot(domain.id)
        assert run["status"] == "done"
        assert run["error"] is None
        assert set(run["steps"].values()) == {"done"}
        messages = [e["message"] for e in run["logs"]]
        assert "✅ Site Analysis complete (industry: SaaS)" in messages
        assert "✅ Competitor Research complete (2 competitors analyzed)" in messages
        assert messages[-1].startswith("🎉 Pipeline complete!")

    async def test_llm_parameters_per_step(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        llm = fake_llm()
        await run_pipeline(_ctx(conn, domain, registry, llm=llm))

        calls = {c.args[0]: c.kwargs for c in llm.complete.await_args_list}
        assert calls[prompts.SITE_ANALYSIS_SYSTEM] == {"temperature": 0.6, "max_tokens": 3000}
        assert calls[prompts.CONTENT_STRATEGY_SYSTEM] == {"temperature": 0.7, "max_tokens": 4000}
        calendar_kwargs = [
            kw for system, kw in calls.items() if "campaign planner" in system
        ]
        assert calendar_kwargs == [{"temperature": 0.8, "max_tokens": 8000}]

    async def test_calendar_posts_become_drafts(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        await run_pipeline(_ctx(conn, domain, registry))

        drafts = list_post_drafts(conn, domain.id)
        assert [d.scheduled_date for d in drafts] == ["2026-01-01", "2026-01-02"]
        launch, speed = drafts
        assert launch.platform == "twitter"
        assert launch.text == "Launch day"
        assert launch.content_type == "post"
        assert speed.text == "Speed is a feature."
        assert speed.hashtags == ["#saas", "#speed"]
        assert speed.content_type == "carousel"
        assert {d.status for d in drafts} == {"draft"}

    async def test_without_posts_option(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        statuses = await run_pipeline(_ctx(conn, domain, registry, generate_posts=False))
        assert "postDrafts" not in statuses
        assert list_post_drafts(conn, domain.id) == []
        assert registry.snapshot(domain.id)["status"] == "done"

    async def test_calendar_without_posts_still_completes(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        ctx = _ctx(conn, domain, registry, llm=fake_llm(calendar={"posts": []}))
        statuses = await run_pipeline(ctx)
        assert statuses["postDrafts"] is TaskStatus.DONE
        messages = [e["message"] for e in registry.snapshot(domain.id)["logs"]]
        assert any("no individual posts" in m for m in messages)

    async def test_non_string_calendar_fields_are_coerced(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        calendar = {
            "posts": [
                {
                    "platform": "linkedin",
                    "date": "2026-03-01",
                    "caption": {"text": "hi"},
                    "hashtags": "#a, #b",
                },
                {"platform": "twitter", "date": 20260302, "caption": ["one", "two"], "hashtags": [1, None]},
            ]
        }
        ctx = _ctx(conn, domain, registry, llm=fake_llm(calendar=calendar))
        statuses = await run_pipeline(ctx)

        assert statuses["postDrafts"] is TaskStatus.DONE
        assert registry.snapshot(domain.id)["status"] == "done"
        first, second = list_post_drafts(conn, domain.id)
        assert first.text == "hi"
        assert first.hashtags == ["#a", "#b"]
        assert second.text == '["one", "two"]'
        assert second.scheduled_date == "20260302"
        assert second.hashtags == ["1"]

    async def test_step_failure_stops_run(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        llm = fake_llm(fail_on=prompts.COMPETITOR_RESEARCH_SYSTEM)
        statuses = await run_pipeline(_ctx(conn, domain, registry, llm=llm))

        assert statuses["crawl"] is TaskStatus.DONE
        assert statuses["siteAnalysis"] is TaskStatus.DONE
        assert statuses["competitorResearch"] is TaskStatus.BLOCKED
        for later in ("positioning", "contentStrategy", "campaignCalendar", "postDrafts"):
            assert statuses[later] is TaskStatus.TODO
        assert llm.complete.await_count == 2

        run = registry.snapshot(domain.id)
        assert run["status"] == "error"
        assert run["currentStep"] == "competitorResearch"
        assert run["steps"]["competitorResearch"] == "error"
        assert run["error"] == "Competitor Research failed: provider down"
        assert get_artifact(conn, domain.id, POSITIONING_SUMMARY) is None

    async def test_unmet_dependencies_block_without_running(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        llm = fake_llm()
        positioning = next(t for t in PIPELINE_TASKS if t.id == "positioning")
        statuses = await run_pipeline(_ctx(conn, domain, registry, llm=llm), tasks=[positioning])

        assert statuses == {"positioning": TaskStatus.BLOCKED}
        llm.complete.assert_not_awaited()
        run = registry.snapshot(domain.id)
        assert run["status"] == "error"
        assert run["error"] == "Pipeline blocked: Positioning Analysis"

    async def test_empty_crawl_fails_site_analysis(self, conn, domain, registry) -> None:
        with patch("smma.agent.steps.crawl_domain", new_callable=AsyncMock, return_value=[]) as crawl:
            statuses = await run_pipeline(_ctx(conn, domain, registry, max_pages=5, max_depth=1))

        crawl.assert_awaited_once()
        assert crawl.await_args.kwargs["max_pages"] == 5
        assert crawl.await_args.kwargs["max_depth"] == 1
        assert statuses["crawl"] is TaskStatus.DONE
        assert statuses["siteAnalysis"] is TaskStatus.BLOCKED
        assert "No crawled pages" in registry.snapshot(domain.id)["error"]

    async def test_stored_pages_are_reused(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        with patch("smma.agent.steps.crawl_domain", new_callable=AsyncMock) as crawl:
            await run_pipeline(_ctx(conn, domain, registry))
        crawl.assert_not_awaited()

    async def test_cooldown_before_later_llm_steps(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        ctx = _ctx(conn, domain, registry)
        ctx.step_delay = 3.0
        with patch("smma.agent.orchestrator.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await run_pipeline(ctx)
        assert [c.args[0] for c in sleep.await_args_list] == [3.0, 3.0, 3.0, 3.0]


class TestPersonas:
    def test_personas_task_optional(self) -> None:
        assert "personas" not in [t.id for t in build_tasks(PipelineOptions())]
        ids = [t.id for t in build_tasks(PipelineOptions(generate_personas=True))]
        assert ids.index("competitorResearch") < ids.index("personas") < ids.index("positioning")

    async def test_personas_stored_and_fed_to_strategy(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        llm = fake_llm()
        statuses = await run_pipeline(_ctx(conn, domain, registry, llm=llm, generate_personas=True))

        assert statuses["personas"] is TaskStatus.DONE
        assert [p.name for p in list_personas(conn, domain.id)] == ["Sarah", "Tom"]
        strategy_prompt = next(
            c.args[1] for c in llm.complete.await_args_list if c.args[0] == prompts.CONTENT_STRATEGY_SYSTEM
        )
        assert "Personas:" in strategy_prompt
        assert "slow tools" in strategy_prompt
        assert "✅ Audience Personas complete (2 personas)" in [
            e["message"] for e in registry.snapshot(domain.id)["logs"]
        ]

    async def test_reply_without_personas_fails_step(self, conn, domain) -> None:
        llm = MagicMock()
        llm.complete = AsyncMock(return_value={"personas": []})
        with pytest.raises(LLMResponseError):
            await generate_personas(conn, domain, llm)

        llm.complete = AsyncMock(return_value={"audience": "everyone"})
        with pytest.raises(LLMResponseError):
            await generate_personas(conn, domain, llm)
        assert list_personas(conn, domain.id) == []


class TestLLMPostDrafts:
    async def test_drafts_written_per_platform_within_limits(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        llm = fake_llm()
        ctx = _ctx(conn, domain, registry, llm=llm, llm_posts=True, platforms=["twitter", "linkedin"])
        statuses = await run_pipeline(ctx)

        assert statuses["postDrafts"] is TaskStatus.DONE
        launch, speed = list_post_drafts(conn, domain.id)
        assert (launch.platform, launch.scheduled_date) == ("twitter", "2026-01-01")
        assert (speed.platform, speed.scheduled_date) == ("linkedin", "2026-01-02")
        assert speed.content_type == "carousel"

        assert len(launch.text) <= 280
        assert launch.text.endswith("…")
        assert len(launch.hashtags) == 5
        assert speed.text.startswith("Draft post-0 ")
        assert not speed.text.endswith("…")
        assert len(speed.hashtags) == 5

    async def test_platforms_without_entries_are_skipped(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        llm = fake_llm()
        await run_pipeline(_ctx(conn, domain, registry, llm=llm, llm_posts=True, platforms=["tiktok"]))

        writer_calls = [c for c in llm.complete.await_args_list if c.args[0] == prompts.POST_GENERATOR_SYSTEM]
        assert writer_calls == []
        assert list_post_drafts(conn, domain.id) == []
        messages = [e["message"] for e in registry.snapshot(domain.id)["logs"]]
        assert "No calendar entries for tiktok, skipping" in messages

    async def test_entries_sent_in_batches(self, conn, domain, registry) -> None:
        seed_pages(conn, domain.id)
        calendar = {
            "posts": [
                {"date": f"2026-01-{day:02d}", "platform": "twitter", "topic": f"t{day}"}
                for day in range(1, 13)
            ]
        }
        llm = fake_llm(calendar=calendar)
        await run_pipeline(_ctx(conn, domain, registry, llm=llm, llm_posts=True, platforms=["twitter"]))

        writer_calls = [c for c in llm.complete.await_args_list if c.args[0] == prompts.POST_GENERATOR_SYSTEM]
        assert len(writer_calls) == 2
        assert writer_calls[0].kwargs == {"temperature": 0.8, "max_tokens": 6000}
        assert len(list_post_drafts(conn, domain.id)) == 12
