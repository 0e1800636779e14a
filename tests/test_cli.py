"""Tests for the ``smma`` command line.

Commands run through typer's ``CliRunner`` against the on-disk workspace DB,
which the autouse ``isolated_workspace`` fixture points at a temp directory.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from smma.agent import prompts
from smma.agent.runner import PipelineService
from smma.db import get_connection, init_db
from smma.db.artifacts import DOMAIN_PROFILE, store_artifact
from smma.db.domains import create_domain, get_domain
from smma.db.models import CrawledPage
from smma.db.personas import list_personas
from smma.db.posts import get_post_draft, replace_post_drafts
from smma.db.settings_store import get_setting
from smma_cli.main import app

from tests.pipeline_fakes import PROFILE, fake_llm, seed_pages

runner = CliRunner()


@pytest.fixture()
def disk_db():
    conn = get_connection()
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture()
def site(disk_db):
    return create_domain(disk_db, url="https://example.com", name="Example")


def _service_with(llm):
    return lambda: PipelineService(llm_factory=lambda conn: llm, step_delay=0)


class TestDb:
    def test_init(self, isolated_workspace) -> None:
        result = runner.invoke(app, ["db", "init"])
        assert result.exit_code == 0
        assert "Database ready" in result.output
        assert (isolated_workspace / "smma.db").exists()


class TestDomainCommands:
    def test_add_and_list(self) -> None:
        result = runner.invoke(
            app, ["domain", "add", "https://acme.com", "--name", "Acme", "--tone", "witty"]
        )
        assert result.exit_code == 0
        assert "✅ Domain created: Acme" in result.output

        result = runner.invoke(app, ["domain", "list"])
        assert "'Acme'" in result.output
        assert "https://acme.com" in result.output

    def test_list_empty(self) -> None:
        result = runner.invoke(app, ["domain", "list"])
        assert "No domains found." in result.output

    def test_show_by_name_and_prefix(self, disk_db, site) -> None:
        store_artifact(disk_db, site.id, DOMAIN_PROFILE, PROFILE)
        for identifier in ("Example", site.id[:8], "https://example.com"):
            result = runner.invoke(app, ["domain", "show", identifier])
            assert result.exit_code == 0
            assert "✓ domain_profile" in result.output
            assert "○ campaign_calendar" in result.output

    def test_show_artifact_json(self, disk_db, site) -> None:
        store_artifact(disk_db, site.id, DOMAIN_PROFILE, PROFILE)
        result = runner.invoke(app, ["domain", "show", site.id, "--artifact", "domain_profile"])
        assert result.exit_code == 0
        assert json.loads(result.output) == PROFILE

    def test_show_missing(self) -> None:
        result = runner.invoke(app, ["domain", "show", "nope"])
        assert result.exit_code == 1
        assert "Domain not found" in result.output

    def test_remove(self, disk_db, site) -> None:
        result = runner.invoke(app, ["domain", "remove", site.id, "--yes"])
        assert result.exit_code == 0
        assert get_domain(disk_db, site.id) is None

    def test_remove_aborted(self, disk_db, site) -> None:
        result = runner.invoke(app, ["domain", "remove", site.id], input="n\n")
        assert result.exit_code == 1
        assert get_domain(disk_db, site.id) is not None


class TestCrawlCommand:
    def test_crawl_prints_pages(self, site) -> None:
        pages = [CrawledPage(id="p1", url="https://example.com/", title="Home", page_type="home")]
        with patch("smma_cli.main.crawl_domain", new_callable=AsyncMock, return_value=pages) as crawl:
            result = runner.invoke(app, ["crawl", site.id, "--max-pages", "5", "--max-depth", "1"])

        assert result.exit_code == 0
        assert "https://example.com/" in result.output
        assert "Stored 1 page(s)." in result.output
        assert crawl.await_args.kwargs == {"max_pages": 5, "max_depth": 1}


class TestPipelineCommand:
    def test_run_success(self, disk_db, site) -> None:
        seed_pages(disk_db, site.id)
        with patch("smma_cli.commands.pipeline.PipelineService", side_effect=_service_with(fake_llm())):
            result = runner.invoke(app, ["pipeline", "run", site.id])

        assert result.exit_code == 0, result.output
        assert "Pipeline Summary" in result.output
        assert "🎉 All steps complete." in result.output

    def test_run_failure_exits_nonzero(self, disk_db, site) -> None:
        seed_pages(disk_db, site.id)
        llm = fake_llm(fail_on=prompts.POSITIONING_SYSTEM)
        with patch("smma_cli.commands.pipeline.PipelineService", side_effect=_service_with(llm)):
            result = runner.invoke(app, ["pipeline", "run", site.id, "--no-posts"])

        assert result.exit_code == 1
        assert "Positioning Analysis failed: provider down" in result.output

    def test_preferences_forwarded(self, disk_db, site) -> None:
        seed_pages(disk_db, site.id)
        llm = fake_llm()
        with patch("smma_cli.commands.pipeline.PipelineService", side_effect=_service_with(llm)):
            result = runner.invoke(
                app, ["pipeline", "run", site.id, "--preferences", '{"platforms": ["linkedin"]}']
            )

        assert result.exit_code == 0, result.output
        strategy_prompt = next(
            c.args[1] for c in llm.complete.await_args_list
            if c.args[0] == prompts.CONTENT_STRATEGY_SYSTEM
        )
        assert '"platforms": ["linkedin"]' in strategy_prompt

    def test_invalid_preferences(self, site) -> None:
        result = runner.invoke(app, ["pipeline", "run", site.id, "--preferences", "[1]"])
        assert result.exit_code == 1


    def test_personas_and_llm_posts_flags(self, disk_db, site) -> None:
        seed_pages(disk_db, site.id)
        with patch("smma_cli.commands.pipeline.PipelineService", side_effect=_service_with(fake_llm())):
            result = runner.invoke(
                app, ["pipeline", "run", site.id, "--personas", "--llm-posts", "--platforms", "twitter"]
            )

        assert result.exit_code == 0, result.output
        assert "Audience Personas" in result.output
        assert [p.name for p in list_personas(disk_db, site.id)] == ["Sarah", "Tom"]

    def test_unknown_platform(self, site) -> None:
        result = runner.invoke(app, ["pipeline", "run", site.id, "--platforms", "twitter,myspace"])
        assert result.exit_code == 1
        assert "--platforms must name any of" in result.output


class TestPersonaCommands:
    def test_generate_then_list(self, disk_db, site) -> None:
        seed_pages(disk_db, site.id)
        with patch("smma_cli.commands.personas.LLMClient.for_connection", return_value=fake_llm()):
            result = runner.invoke(app, ["personas", "generate", site.id])

        assert result.exit_code == 0, result.output
        assert "Stored 2 persona(s)." in result.output

        result = runner.invoke(app, ["personas", "list", site.id, "-v"])
        assert result.output.index("Sarah") < result.output.index("Tom")
        assert '"keywords"' in result.output

    def test_generate_failure(self, disk_db, site) -> None:
        seed_pages(disk_db, site.id)
        llm = MagicMock()
        llm.complete = AsyncMock(return_value={"personas": []})
        with patch("smma_cli.commands.personas.LLMClient.for_connection", return_value=llm):
            result = runner.invoke(app, ["personas", "generate", site.id])

        assert result.exit_code == 1
        assert list_personas(disk_db, site.id) == []

    def test_list_empty(self, site) -> None:
        result = runner.invoke(app, ["personas", "list", site.id])
        assert "No personas yet." in result.output


class TestPostCommands:
    def test_list_and_set_status(self, disk_db, site) -> None:
        a, b = replace_post_drafts(
            disk_db, site.id,
            [{"platform": "twitter", "text": "first"}, {"platform": "linkedin", "text": "second"}],
        )
        result = runner.invoke(app, ["posts", "list", site.id, "--platform", "linkedin"])
        assert "second" in result.output
        assert "first" not in result.output

        result = runner.invoke(app, ["posts", "set-status", "approved", a.id, b.id])
        assert result.exit_code == 0, result.output
        assert "Updated 2 draft(s) to approved." in result.output
        assert get_post_draft(disk_db, a.id).status == "approved"

    def test_invalid_status(self, disk_db, site) -> None:
        (draft,) = replace_post_drafts(disk_db, site.id, [{"text": "t"}])
        result = runner.invoke(app, ["posts", "set-status", "lost", draft.id])
        assert result.exit_code == 1
        assert get_post_draft(disk_db, draft.id).status == "draft"

    def test_list_empty(self, site) -> None:
        result = runner.invoke(app, ["posts", "list", site.id])
        assert "No post drafts found." in result.output

class TestSettingsCommands:
    def test_set_and_show_masked(self, disk_db) -> None:
        assert runner.invoke(app, ["settings", "set", "openai_api_key", "sk-abcdefgh1234"]).exit_code == 0
        result = runner.invoke(app, ["settings", "show"])
        assert "openai_api_key = sk-a••••••••1234" in result.output
        assert get_setting(disk_db, "openai_api_key") == "sk-abcdefgh1234"

    def test_unknown_provider_rejected(self) -> None:
        result = runner.invoke(app, ["settings", "set", "active_provider", "nope"])
        assert result.exit_code == 1

    def test_empty_value_deletes(self, disk_db) -> None:
        runner.invoke(app, ["settings", "set", "ollama_model", "llama3.1"])
        runner.invoke(app, ["settings", "set", "ollama_model", ""])
        assert get_setting(disk_db, "ollama_model") is None
