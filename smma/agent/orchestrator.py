"""Fixed task graph and its sequential executor.

The task graph is:

    crawl → siteAnalysis → competitorResearch → positioning → contentStrategy
                 └───────────────────────────────↗
          → campaignCalendar → postDrafts (optional)

``positioning`` depends on both ``siteAnalysis`` and ``competitorResearch``,
as does the optional ``personas`` task that runs between them and
``positioning``; stored personas feed the content strategy.
Tasks run strictly in declaration order (the list is already consistent with
the dependencies).  Per task: ``todo → in_progress → done | blocked``.  A task
whose dependencies are not all ``done`` becomes ``blocked`` without running;
the first task that raises stops the run and leaves the rest ``todo``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from smma.agent import steps
from smma.agent.registry import LogLevel, RunStatus, StepState
from smma.agent.steps import PipelineContext, PipelineOptions


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class PipelineTask:
    id: str
    title: str
    depends_on: tuple[str, ...]
    action: Callable[[PipelineContext], Awaitable[Any]]
    # Wait ``ctx.step_delay`` before running (eases provider rate limits)
    cooldown: bool = False
    describe: Optional[Callable[[Any], str]] = None


def _count(key: str, noun: str) -> Callable[[Any], str]:
    def describe(result: Any) -> str:
        items = result.get(key) if isinstance(result, dict) else None
        return f"{len(items) if isinstance(items, list) else 0} {noun}"

    return describe


PIPELINE_TASKS: tuple[PipelineTask, ...] = (
    PipelineTask(
        id="crawl",
        title="Crawl Website",
        depends_on=(),
        action=steps.run_crawl,
        describe=lambda pages: f"{len(pages)} pages indexed",
    ),
    PipelineTask(
        id="siteAnalysis",
        title="Site Analysis",
        depends_on=("crawl",),
        action=steps.run_site_analysis,
        describe=lambda profile: f"industry: {profile.get('industry') or 'identified'}",
    ),
    PipelineTask(
        id="competitorResearch",
        title="Competitor Research",
        depends_on=("siteAnalysis",),
        action=steps.run_competitor_research,
        cooldown=True,
        describe=_count("competitors", "competitors analyzed"),
    ),
    PipelineTask(
        id="personas",
        title="Audience Personas",
        depends_on=("siteAnalysis", "competitorResearch"),
        action=steps.run_personas,
        cooldown=True,
        describe=lambda personas: f"{len(personas)} personas",
    ),
    PipelineTask(
        id="positioning",
        title="Positioning Analysis",
        depends_on=("siteAnalysis", "competitorResearch"),
        action=steps.run_positioning,
        cooldown=True,
        describe=_count("keyDifferentiators", "differentiators"),
    ),
    PipelineTask(
        id="contentStrategy",
        title="Content Strategy",
        depends_on=("positioning",),
        action=steps.run_content_strategy,
        cooldown=True,
        describe=_count("pillars", "content pillars defined"),
    ),
    PipelineTask(
        id="campaignCalendar",
        title="Campaign Calendar",
        depends_on=("contentStrategy",),
        action=steps.run_campaign_calendar,
        cooldown=True,
        describe=_count("posts", "posts scheduled"),
    ),
    PipelineTask(
        id="postDrafts",
        title="Post Drafts",
        depends_on=("campaignCalendar",),
        action=steps.run_post_drafts,
        describe=lambda drafts: f"{len(drafts)} drafts stored",
    ),
)


def build_tasks(options: PipelineOptions) -> list[PipelineTask]:
    """Return the task list for one run.

    ``personas`` and ``postDrafts`` are included only when requested.
    """
    optional = {"personas": options.generate_personas, "postDrafts": options.generate_posts}
    return [t for t in PIPELINE_TASKS if optional.get(t.id, True)]


def _print_summary(tasks: Sequence[PipelineTask], statuses: dict[str, TaskStatus]) -> None:
    icons = {TaskStatus.DONE: "✓", TaskStatus.BLOCKED: "✗"}
    print("=" * 60)
    print("  Pipeline Summary:")
    for task in tasks:
        status = statuses[task.id]
        print(f"  {icons.get(status, '○')} {task.title}: {status.value}")
    print("=" * 60)


async def run_pipeline(
    ctx: PipelineContext,
    tasks: Optional[Sequence[PipelineTask]] = None,
) -> dict[str, TaskStatus]:
    """Execute *tasks* (default: :func:`build_tasks`) for ``ctx.domain``.

    Progress is mirrored into ``ctx.registry``: each task id is used as the
    registry step key.  Step failures are recorded there and never raised;
    cancellation marks the run as failed and is re-raised.

    Returns:
        The final ``{task_id: TaskStatus}`` map.
    """
    tasks = list(tasks) if tasks is not None else build_tasks(ctx.options)
    statuses = {t.id: TaskStatus.TODO for t in tasks}
    registry = ctx.registry
    total = len(tasks)
    failed = False
    current: Optional[PipelineTask] = None

    try:
        for position, task in enumerate(tasks, start=1):
            waiting_on = [d for d in task.depends_on if statuses.get(d) is not TaskStatus.DONE]
            if waiting_on:
                statuses[task.id] = TaskStatus.BLOCKED
                ctx.log(LogLevel.ERROR, f"⛔ {task.title} blocked, waiting on: {', '.join(waiting_on)}")
                continue

            if task.cooldown and ctx.step_delay > 0:
                await asyncio.sleep(ctx.step_delay)

            current = task
            statuses[task.id] = TaskStatus.IN_PROGRESS
            registry.update(ctx.domain_id, task.id, StepState.RUNNING.value)
            ctx.log(LogLevel.INFO, f"▶ Step {position}/{total}: {task.title}...")
            try:
                result = await task.action(ctx)
            except Exception as exc:  # noqa: BLE001
                statuses[task.id] = TaskStatus.BLOCKED
                registry.update(
                    ctx.domain_id, task.id, StepState.ERROR.value, f"{task.title} failed: {exc}"
                )
                failed = True
                break

            statuses[task.id] = TaskStatus.DONE
            current = None
            registry.update(ctx.domain_id, task.id, StepState.DONE.value)
            detail = f" ({task.describe(result)})" if task.describe else ""
            ctx.log(LogLevel.SUCCESS, f"✅ {task.title} complete{detail}")

    except asyncio.CancelledError:
        if current is not None:
            statuses[current.id] = TaskStatus.BLOCKED
            registry.update(ctx.domain_id, current.id, StepState.ERROR.value)
        registry.update(ctx.domain_id, None, RunStatus.ERROR.value, "Pipeline cancelled")
        _print_summary(tasks, statuses)
        raise

    if not failed:
        blocked = [t.title for t in tasks if statuses[t.id] is not TaskStatus.DONE]
        if blocked:
            registry.update(
                ctx.domain_id, None, RunStatus.ERROR.value,
                f"Pipeline blocked: {', '.join(blocked)}",
            )
        else:
            registry.update(ctx.domain_id, None, RunStatus.DONE.value)
            ctx.log(LogLevel.SUCCESS, "🎉 Pipeline complete! All steps finished successfully.")

    _print_summary(tasks, statuses)
    return statuses
