"""Shared fixtures: isolated workspace and in-memory databases."""

from __future__ import annotations

import pytest

from smma.db import get_connection, init_db
from smma.db.domains import create_domain


@pytest.fixture(autouse=True)
def isolated_workspace(tmp_path, monkeypatch):
    """Point the on-disk workspace at a temp dir so no test touches ``~/.smma_data``."""
    monkeypatch.setattr("smma.config.settings.workspace_dir", tmp_path)
    monkeypatch.setattr("smma.config.settings.openai_api_key", "")
    monkeypatch.setattr("smma.config.settings.llm_provider", "openai")
    return tmp_path


@pytest.fixture()
def conn():
    """Fresh in-memory DB with the schema applied."""
    c = get_connection(db_path=":memory:")
    init_db(c)
    yield c
    c.close()


@pytest.fixture()
def domain(conn):
    return create_domain(conn, url="https://example.com", name="Example")
