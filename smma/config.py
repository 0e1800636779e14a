"""Centralised settings for the SMMA backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _optional_float(name: str) -> Optional[float]:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else None


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("SMMA_WORKSPACE", Path.home() / ".smma_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "smma.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # LLM provider (environment-level fallbacks for the settings table)
    # ------------------------------------------------------------------
    llm_provider: str = field(
        default_factory=lambda: os.environ.get("LLM_PROVIDER", "openai")
    )
    openai_api_key: str = field(
        default_factory=lambda: os.environ.get("OPENAI_API_KEY", "")
    )
    openai_base_url: str = field(
        default_factory=lambda: os.environ.get(
            "OPENAI_BASE_URL", "https://api.openai.com/v1"
        )
    )
    openai_model: str = field(
        default_factory=lambda: os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
    )
    llm_timeout: Optional[float] = field(
        default_factory=lambda: _optional_float("LLM_TIMEOUT")
    )
    llm_max_attempts: int = field(
        default_factory=lambda: int(os.environ.get("LLM_MAX_ATTEMPTS", "4"))
    )
    llm_retry_delay: float = field(
        default_factory=lambda: float(os.environ.get("LLM_RETRY_DELAY", "8.0"))
    )

    # ------------------------------------------------------------------
    # Crawler
    # ------------------------------------------------------------------
    crawler_user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "CRAWLER_USER_AGENT",
            "SMMACrawler/1.0 (Social Media Marketing Agent; +https://smma.dev)",
        )
    )
    page_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PAGE_TIMEOUT", "10.0"))
    )
    robots_timeout: float = field(
        default_factory=lambda: float(os.environ.get("ROBOTS_TIMEOUT", "5.0"))
    )
    body_text_limit: int = field(
        default_factory=lambda: int(os.environ.get("BODY_TEXT_LIMIT", "5000"))
    )
    crawl_max_pages: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_PAGES", "20"))
    )
    crawl_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_DEPTH", "3"))
    )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    pipeline_max_pages: int = field(
        default_factory=lambda: int(os.environ.get("PIPELINE_MAX_PAGES", "20"))
    )
    pipeline_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("PIPELINE_MAX_DEPTH", "2"))
    )
    pipeline_step_delay: float = field(
        default_factory=lambda: float(os.environ.get("PIPELINE_STEP_DELAY", "3.0"))
    )
    pipeline_log_limit: int = field(
        default_factory=lambda: int(os.environ.get("PIPELINE_LOG_LIMIT", "100"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from smma.config import settings
settings = Settings()
