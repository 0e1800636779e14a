"""Tests for the HTTP API.

All tests use the FastAPI ``TestClient`` with an in-memory SQLite database and
a ``PipelineService`` whose LLM is a mock.  No network calls are made: the
crawler is patched where an endpoint would reach it.
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from smma.agent.runner import PipelineService
from smma.api.app import create_app
from smma.db import get_connection, init_db
from smma.db.artifacts import DOMAIN_PROFILE, store_artifact
from smma.db.domains import create_domain
from smma.db.models import CrawledPage
from smma.db.personas import store_personas
from smma.db.posts import get_post_draft, replace_post_drafts
from smma.llm.client import LLMResponseError

from tests.pipeline_fakes import PROFILE, fake_llm, seed_pages


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def db():
    conn = get_connection(db_path=":memory:")
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture()
def llm():
    return fake_llm()


@pytest.fixture()
def client(db, llm):
    """TestClient whose lifespan state is swapped for an in-memory DB and mock LLM."""
    app = create_app()
    with TestClient(app, raise_server_exceptions=True) as c:
        c.app.state.db = db
        c.app.state.pipeline = PipelineService(llm_factory=lambda conn: llm, step_delay=0)
        yield c


@pytest.fixture()
def domain(db):
    return create_domain(db, url="https://example.com", name="Example")


def _wait_for(client, domain_id: str, predicate, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        status = client.get(f"/domains/{domain_id}/status").json()
        if predicate(status) or time.monotonic() > deadline:
            return status
        time.sleep(0.01)


# ---------------------------------------------------------------------------
# Domains
# ---------------------------------------------------------------------------

class TestDomains:
    def test_create_and_get(self, client) -> None:
        resp = client.post("/domains", json={"url": "https://acme.com", "name": "Acme"})
        assert resp.status_code == 201
        body = resp.json()
        assert body["primary_goal"] == "drive_traffic"

        resp = client.get(f"/domains/{body['id']}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Acme"

    def test_create_requires_url(self, client) -> None:
        assert client.post("/domains", json={"name": "Acme"}).status_code == 422

    def test_list(self, client, domain) -> None:
        resp = client.get("/domains")
        assert [d["id"] for d in resp.json()] == [domain.id]

    def test_get_missing(self, client) -> None:
        assert client.get("/domains/nope").status_code == 404

    def test_update(self, client, domain) -> None:
        resp = client.put(f"/domains/{domain.id}", json={"brand_voice_tone": "witty"})
        assert resp.status_code == 200
        assert resp.json()["brand_voice_tone"] == "witty"

    def test_update_empty_body(self, client, domain) -> None:
        assert client.put(f"/domains/{domain.id}", json={}).status_code == 422

    def test_update_missing(self, client) -> None:
        assert client.put("/domains/nope", json={"name": "x"}).status_code == 404

    def test_delete(self, client, domain) -> None:
        assert client.delete(f"/domains/{domain.id}").status_code == 204
        assert client.get(f"/domains/{domain.id}").status_code == 404

    def test_delete_drops_pipeline_run(self, client, db, domain, llm) -> None:
        seed_pages(db, domain.id)

        async def stall(*args, **kwargs):
            await asyncio.Event().wait()

        llm.complete.side_effect = stall
        client.post(f"/domains/{domain.id}/pipeline")
        _wait_for(client, domain.id, lambda s: s["currentStep"] == "siteAnalysis")

        assert client.delete(f"/domains/{domain.id}").status_code == 204
        assert client.app.state.pipeline.registry.snapshot(domain.id) is None


class TestCrawlAndData:
    def test_crawl_reports_pages(self, client, domain) -> None:
        page = CrawledPage(id="p1", url="https://example.com/", title="Home", page_type="home")
        with patch(
            "smma.api.routers.domains.crawl_domain", new_callable=AsyncMock, return_value=[page]
        ) as crawl:
            resp = client.post(f"/domains/{domain.id}/crawl", json={"max_pages": 5, "max_depth": 1})

        assert resp.status_code == 200
        assert resp.json()["pageCount"] == 1
        assert resp.json()["pages"] == [{"url": "https://example.com/", "title": "Home", "pageType": "home"}]
        assert crawl.await_args.kwargs == {"max_pages": 5, "max_depth": 1}

    def test_crawl_missing_domain(self, client) -> None:
        assert client.post("/domains/nope/crawl").status_code == 404

    def test_pages(self, client, db, domain) -> None:
        seed_pages(db, domain.id, count=2)
        resp = client.get(f"/domains/{domain.id}/pages")
        assert [p["title"] for p in resp.json()] == ["Page 0", "Page 1"]
        assert resp.json()[0]["headings"] == [{"tag": "h1", "text": "Heading 0"}]

    def test_artifact(self, client, db, domain) -> None:
        assert client.get(f"/domains/{domain.id}/artifacts/domain_profile").status_code == 404
        store_artifact(db, domain.id, DOMAIN_PROFILE, PROFILE)
        resp = client.get(f"/domains/{domain.id}/artifacts/domain_profile")
        assert resp.json() == PROFILE

    def test_unknown_artifact_kind(self, client, domain) -> None:
        assert client.get(f"/domains/{domain.id}/artifacts/persona").status_code == 400

    def test_posts_with_filter(self, client, db, domain) -> None:
        replace_post_drafts(
            db, domain.id, [{"platform": "twitter", "text": "t"}, {"platform": "linkedin", "text": "l"}]
        )
        resp = client.get(f"/domains/{domain.id}/posts", params={"platform": "linkedin"})
        assert [p["text"] for p in resp.json()] == ["l"]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class TestPipeline:
    def test_trigger_then_poll_until_done(self, client, db, domain) -> None:
        seed_pages(db, domain.id)
        resp = client.post(f"/domains/{domain.id}/pipeline")
        assert resp.json() == {"success": True, "message": "Pipeline started", "domainId": domain.id}

        status = _wait_for(client, domain.id, lambda s: s["pipelineStatus"] != "running")
        assert status["pipelineStatus"] == "done"
        assert status["domain"] == "https://example.com"
        assert status["steps"]["campaignCalendar"]["done"] is True
        assert status["steps"]["postDrafts"]["draftCount"] == 2
        assert any("Pipeline complete" in e["message"] for e in status["logs"])

    def test_trigger_options_forwarded(self, client, db, domain) -> None:
        seed_pages(db, domain.id)
        client.post(
            f"/domains/{domain.id}/pipeline",
            json={"maxPages": 3, "maxDepth": 1, "generatePosts": False},
        )
        status = _wait_for(client, domain.id, lambda s: s["pipelineStatus"] != "running")
        assert status["pipelineStatus"] == "done"
        assert status["steps"]["postDrafts"]["done"] is False

    def test_trigger_while_running_and_cancel(self, client, db, domain, llm) -> None:
        seed_pages(db, domain.id)
        async def stall(*args, **kwargs):
            await asyncio.Event().wait()

        llm.complete.side_effect = stall
        client.post(f"/domains/{domain.id}/pipeline")
        _wait_for(client, domain.id, lambda s: s["currentStep"] == "siteAnalysis")

        resp = client.post(f"/domains/{domain.id}/pipeline")
        body = resp.json()
        assert body["message"] == "Pipeline already running"
        assert body["status"] == "running"
        assert body["domainId"] == domain.id
        assert llm.complete.await_count == 1

        assert client.delete(f"/domains/{domain.id}/pipeline").status_code == 200
        status = _wait_for(client, domain.id, lambda s: s["pipelineStatus"] != "running")
        assert status["pipelineStatus"] == "error"
        assert status["error"] == "Pipeline cancelled"

    def test_cancel_without_run(self, client, domain) -> None:
        assert client.delete(f"/domains/{domain.id}/pipeline").status_code == 409

    def test_step_failure_surfaces_in_status(self, client, db, domain, llm) -> None:
        seed_pages(db, domain.id)
        llm.complete.side_effect = RuntimeError("invalid api key")
        client.post(f"/domains/{domain.id}/pipeline")
        status = _wait_for(client, domain.id, lambda s: s["pipelineStatus"] != "running")
        assert status["pipelineStatus"] == "error"
        assert status["currentStep"] == "siteAnalysis"
        assert status["error"] == "Site Analysis failed: invalid api key"

    def test_personas_and_written_posts_options(self, client, db, domain) -> None:
        seed_pages(db, domain.id)
        client.post(
            f"/domains/{domain.id}/pipeline",
            json={"generatePersonas": True, "llmPosts": True, "platforms": ["twitter"]},
        )
        status = _wait_for(client, domain.id, lambda s: s["pipelineStatus"] != "running")
        assert status["pipelineStatus"] == "done"
        assert status["steps"]["personas"] == {"done": True, "status": "done", "personaCount": 2}
        assert status["steps"]["postDrafts"]["draftCount"] == 1
        (draft,) = client.get(f"/domains/{domain.id}/posts").json()
        assert draft["platform"] == "twitter"
        assert len(draft["text"]) <= 280

    def test_unknown_platform_rejected(self, client, domain) -> None:
        resp = client.post(f"/domains/{domain.id}/pipeline", json={"platforms": ["myspace"]})
        assert resp.status_code == 422
        assert client.get(f"/domains/{domain.id}/status").json()["pipelineStatus"] == "idle"

    def test_status_idle(self, client, domain) -> None:
        resp = client.get(f"/domains/{domain.id}/status")
        assert resp.json()["pipelineStatus"] == "idle"

    def test_missing_domain(self, client) -> None:
        assert client.post("/domains/nope/pipeline").status_code == 404
        assert client.get("/domains/nope/status").status_code == 404


# ---------------------------------------------------------------------------
# Personas
# ---------------------------------------------------------------------------

class TestPersonas:
    def test_store_and_list(self, client, domain) -> None:
        resp = client.post(
            f"/domains/{domain.id}/personas",
            json={"personas": [{"name": "Tom"}, {"name": "Sarah", "isPrimary": True, "keywords": ["k"]}]},
        )
        assert resp.status_code == 200
        listed = client.get(f"/domains/{domain.id}/personas").json()
        assert [p["name"] for p in listed] == ["Sarah", "Tom"]
        assert listed[0]["data"] == {"keywords": ["k"]}
        assert listed[0]["is_ai_generated"] is True

    def test_store_requires_personas(self, client, domain) -> None:
        assert client.post(f"/domains/{domain.id}/personas", json={"personas": []}).status_code == 400
        assert client.post("/domains/nope/personas", json={"personas": [{"name": "x"}]}).status_code == 404

    def test_generate(self, client, db, domain) -> None:
        seed_pages(db, domain.id)
        resp = client.post(f"/domains/{domain.id}/personas/generate")
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json()] == ["Sarah", "Tom"]

    def test_generate_bad_reply(self, client, domain, llm) -> None:
        llm.complete.side_effect = LLMResponseError("LLM returned no personas")
        resp = client.post(f"/domains/{domain.id}/personas/generate")
        assert resp.status_code == 502
        assert resp.json()["detail"] == "LLM returned no personas"

    def test_generate_refused_while_running(self, client, domain) -> None:
        client.app.state.pipeline.registry.try_start(domain.id)
        assert client.post(f"/domains/{domain.id}/personas/generate").status_code == 409

    def test_update_and_delete(self, client, db, domain) -> None:
        (persona,) = store_personas(db, domain.id, [{"name": "Tom", "painPoints": ["cost"]}])
        resp = client.put(
            f"/domains/{domain.id}/personas/{persona.id}",
            json={"avatarEmoji": "🧑", "data": {"keywords": ["k"]}},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["avatar_emoji"] == "🧑"
        assert body["data"] == {"painPoints": ["cost"], "keywords": ["k"]}
        assert body["is_ai_generated"] is False

        assert client.put(f"/domains/{domain.id}/personas/{persona.id}", json={}).status_code == 422
        resp = client.delete(f"/domains/{domain.id}/personas/{persona.id}")
        assert resp.json() == {"deleted": persona.id}
        assert client.get(f"/domains/{domain.id}/personas").json() == []

    def test_persona_of_other_domain_not_found(self, client, db, domain) -> None:
        other = create_domain(db, url="https://other.com", name="Other")
        (persona,) = store_personas(db, other.id, [{"name": "Tom"}])
        assert client.put(f"/domains/{domain.id}/personas/{persona.id}", json={"name": "x"}).status_code == 404
        assert client.delete(f"/domains/{domain.id}/personas/{persona.id}").status_code == 404


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

class TestPosts:
    def test_get_update_delete(self, client, db, domain) -> None:
        (draft,) = replace_post_drafts(db, domain.id, [{"platform": "twitter", "text": "t"}])
        assert client.get(f"/posts/{draft.id}").json()["text"] == "t"

        resp = client.put(f"/posts/{draft.id}", json={"text": "edited", "hashtags": ["#x"], "status": "approved"})
        assert resp.status_code == 200
        assert resp.json()["text"] == "edited"
        assert resp.json()["hashtags"] == ["#x"]
        assert resp.json()["status"] == "approved"

        assert client.delete(f"/posts/{draft.id}").status_code == 204
        assert get_post_draft(db, draft.id) is None

    def test_missing_draft(self, client) -> None:
        assert client.get("/posts/nope").status_code == 404
        assert client.put("/posts/nope", json={"text": "x"}).status_code == 404
        assert client.delete("/posts/nope").status_code == 404

    def test_update_validation(self, client, db, domain) -> None:
        (draft,) = replace_post_drafts(db, domain.id, [{"text": "t"}])
        assert client.put(f"/posts/{draft.id}", json={}).status_code == 422
        assert client.put(f"/posts/{draft.id}", json={"status": "lost"}).status_code == 400

    def test_bulk_status(self, client, db, domain) -> None:
        a, b = replace_post_drafts(db, domain.id, [{"text": "a"}, {"text": "b"}])
        resp = client.post("/posts/bulk-status", json={"ids": [a.id, b.id], "status": "scheduled"})
        assert resp.json() == {"success": True, "updated": 2}
        assert {p["status"] for p in client.get(f"/domains/{domain.id}/posts").json()} == {"scheduled"}

    def test_bulk_status_validation(self, client) -> None:
        assert client.post("/posts/bulk-status", json={"ids": ["x"], "status": "lost"}).status_code == 400
        assert client.post("/posts/bulk-status", json={"status": "draft"}).status_code == 422


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TestSettings:
    def test_keys_masked_on_read(self, client) -> None:
        resp = client.put("/settings", json={"openai_api_key": "sk-abcdefgh1234", "openai_model": "gpt-4o"})
        assert resp.json() == {"openai_api_key": "sk-a••••••••1234", "openai_model": "gpt-4o"}
        assert client.get("/settings").json()["openai_api_key"] == "sk-a••••••••1234"

    def test_empty_value_deletes(self, client) -> None:
        client.put("/settings", json={"openai_model": "gpt-4o"})
        assert client.put("/settings", json={"openai_model": ""}).json() == {}

    def test_delete_key(self, client) -> None:
        client.put("/settings", json={"ollama_model": "llama3.1"})
        assert client.delete("/settings/ollama_model").json() == {"deleted": "ollama_model"}
        assert client.get("/settings").json() == {}

    def test_providers(self, client) -> None:
        ids = [p["id"] for p in client.get("/settings/providers").json()]
        assert ids == ["openai", "anthropic", "google", "ollama", "lmstudio", "openrouter", "custom"]

    def test_active_provider(self, client) -> None:
        assert client.get("/settings/active-provider").json() == {"activeProvider": "openai"}
        resp = client.put("/settings/active-provider", json={"providerId": "ollama"})
        assert resp.json() == {"activeProvider": "ollama"}
        assert client.get("/settings/active-provider").json() == {"activeProvider": "ollama"}

    def test_unknown_active_provider(self, client) -> None:
        assert client.put("/settings/active-provider", json={"providerId": "nope"}).status_code == 400
