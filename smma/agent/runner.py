"""Background execution of pipeline runs.

:class:`PipelineService` is created once per process (the API lifespan or a
CLI command) and owns the :class:`RunRegistry` plus one ``asyncio.Task`` per
domain.  ``trigger`` returns immediately; progress is observed by polling
``status``.  At most one run per domain is active at a time.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any, Callable, Optional

from smma.agent.orchestrator import TaskStatus, run_pipeline
from smma.agent.registry import RunRegistry, RunStatus
from smma.agent.steps import PipelineContext, PipelineOptions
from smma.db.artifacts import (
    CAMPAIGN_CALENDAR,
    COMPETITOR_SET,
    CONTENT_STRATEGY,
    DOMAIN_PROFILE,
    POSITIONING_SUMMARY,
    get_artifact,
)
from smma.db.models import Domain
from smma.db.pages import count_crawled_pages
from smma.db.personas import list_personas
from smma.db.posts import list_post_drafts
from smma.llm.client import LLMClient

# Registry step key -> artifact kind that proves the step has completed
_STEP_ARTIFACTS = {
    "siteAnalysis": DOMAIN_PROFILE,
    "competitorResearch": COMPETITOR_SET,
    "positioning": POSITIONING_SUMMARY,
    "contentStrategy": CONTENT_STRATEGY,
    "campaignCalendar": CAMPAIGN_CALENDAR,
}


class PipelineAlreadyRunning(Exception):
    """A foreground run was requested while the domain's run is active."""


def build_status(
    conn: sqlite3.Connection,
    domain: Domain,
    run: Optional[dict[str, Any]],
) -> dict[str, Any]:
    """Combine the run snapshot (if any) with what storage says is complete."""
    run = run or {}
    run_steps: dict[str, str] = run.get("steps", {})

    def step(done: bool, key: str, **extra: Any) -> dict[str, Any]:
        return {
            "done": done,
            "status": run_steps.get(key) or ("done" if done else "pending"),
            **extra,
        }

    page_count = count_crawled_pages(conn, domain.id)
    draft_count = len(list_post_drafts(conn, domain.id))
    persona_count = len(list_personas(conn, domain.id))
    steps: dict[str, Any] = {"crawl": step(page_count > 0, "crawl", pageCount=page_count)}
    for key, kind in _STEP_ARTIFACTS.items():
        steps[key] = step(get_artifact(conn, domain.id, kind) is not None, key)
        # Optional step, listed only once a run included it or personas exist
        if key == "competitorResearch" and (persona_count or "personas" in run_steps):
            steps["personas"] = step(persona_count > 0, "personas", personaCount=persona_count)
    steps["postDrafts"] = step(draft_count > 0, "postDrafts", draftCount=draft_count)

    return {
        "domainId": domain.id,
        "domain": domain.url,
        "pipelineStatus": run.get("status", RunStatus.IDLE.value),
        "currentStep": run.get("currentStep"),
        "error": run.get("error"),
        "logs": run.get("logs", []),
        "steps": steps,
    }


class PipelineService:
    """Starts, tracks and cancels pipeline runs.

    Args:
        registry: Run registry to report into (a fresh one when omitted).
        llm_factory: Builds the LLM client for a DB connection.
        step_delay: Override for the pause between LLM steps.
    """

    def __init__(
        self,
        registry: Optional[RunRegistry] = None,
        llm_factory: Callable[[sqlite3.Connection], LLMClient] = LLMClient.for_connection,
        step_delay: Optional[float] = None,
    ) -> None:
        self.registry = registry or RunRegistry()
        self._llm_factory = llm_factory
        self._step_delay = step_delay
        self._tasks: dict[str, asyncio.Task] = {}

    def _context(
        self,
        conn: sqlite3.Connection,
        domain: Domain,
        options: Optional[PipelineOptions],
    ) -> PipelineContext:
        ctx = PipelineContext(
            conn=conn,
            domain=domain,
            llm=self._llm_factory(conn),
            registry=self.registry,
            options=options or PipelineOptions(),
        )
        if self._step_delay is not None:
            ctx.step_delay = self._step_delay
        return ctx

    async def _execute(self, ctx: PipelineContext) -> dict[str, TaskStatus]:
        try:
            return await run_pipeline(ctx)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self.registry.update(ctx.domain_id, None, RunStatus.ERROR.value, f"Pipeline failed: {exc}")
            return {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def trigger(
        self,
        conn: sqlite3.Connection,
        domain: Domain,
        options: Optional[PipelineOptions] = None,
    ) -> tuple[bool, dict[str, Any]]:
        """Start a background run for *domain* unless one is already running.

        Must be awaited on the event loop that will execute the run.

        Returns:
            ``(started, run_snapshot)``.  When a run is already in progress
            nothing is started and its current snapshot is returned as is.
        """
        ctx = self._context(conn, domain, options)
        started, snapshot = self.registry.try_start(domain.id)
        if not started:
            return False, snapshot

        task = asyncio.create_task(self._execute(ctx), name=f"pipeline:{domain.id}")
        self._tasks[domain.id] = task
        task.add_done_callback(lambda t, d=domain.id: self._on_done(d, t))
        return True, snapshot

    async def run(
        self,
        conn: sqlite3.Connection,
        domain: Domain,
        options: Optional[PipelineOptions] = None,
    ) -> dict[str, TaskStatus]:
        """Run the pipeline for *domain* in the foreground and return task states.

        Raises:
            PipelineAlreadyRunning: If a run for *domain* is in progress.
        """
        ctx = self._context(conn, domain, options)
        started, _ = self.registry.try_start(domain.id)
        if not started:
            raise PipelineAlreadyRunning(f"Pipeline already running for {domain.id}")
        return await self._execute(ctx)

    def cancel(self, domain_id: str) -> bool:
        """Request cancellation of *domain_id*'s run.  Returns ``False`` if none is active."""
        task = self._tasks.get(domain_id)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def wait(self, domain_id: str) -> None:
        """Block until *domain_id*'s background run (if any) has finished."""
        task = self._tasks.get(domain_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def forget(self, domain_id: str) -> None:
        """Cancel *domain_id*'s run, wait for it to unwind, then drop its registry entry."""
        self.cancel(domain_id)
        await self.wait(domain_id)
        self.registry.discard(domain_id)

    def llm_for(self, conn: sqlite3.Connection) -> LLMClient:
        """Return the LLM client this service hands to pipeline steps."""
        return self._llm_factory(conn)

    def status(self, conn: sqlite3.Connection, domain: Domain) -> dict[str, Any]:
        return build_status(conn, domain, self.registry.snapshot(domain.id))

    async def shutdown(self) -> None:
        """Cancel every active run and wait for them to unwind."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_done(self, domain_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(domain_id) is task:
            del self._tasks[domain_id]
        # Cancelled before its first step ran, so nothing recorded the outcome
        if task.cancelled() and self.registry.is_running(domain_id):
            self.registry.update(domain_id, None, RunStatus.ERROR.value, "Pipeline cancelled")

