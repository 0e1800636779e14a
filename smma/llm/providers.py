"""Provider catalogue and active-provider resolution.

Every provider is reached through an OpenAI-compatible ``/chat/completions``
endpoint, so one client implementation serves all of them.  The active
provider and its credentials live in the ``settings`` table (editable from
the API/CLI); the environment only supplies fallbacks for ``openai``.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from smma.config import settings
from smma.db.settings_store import get_all_settings

ACTIVE_PROVIDER_KEY = "active_provider"

# Placeholder key for local servers that ignore authentication
_NO_KEY = "not-needed"


@dataclass(frozen=True)
class ProviderInfo:
    id: str
    name: str
    base_url: str
    model: str
    requires_key: bool


PROVIDERS: dict[str, ProviderInfo] = {
    p.id: p
    for p in (
        ProviderInfo("openai", "OpenAI", "https://api.openai.com/v1", "gpt-4o-mini", True),
        ProviderInfo("anthropic", "Anthropic", "https://api.anthropic.com/v1/", "claude-sonnet-4-20250514", True),
        ProviderInfo("google", "Google AI", "https://generativelanguage.googleapis.com/v1beta/openai/", "gemini-2.0-flash", True),
        ProviderInfo("ollama", "Ollama", "http://localhost:11434/v1", "", False),
        ProviderInfo("lmstudio", "LM Studio", "http://localhost:1234/v1", "", False),
        ProviderInfo("openrouter", "OpenRouter", "https://openrouter.ai/api/v1", "", True),
        ProviderInfo("custom", "Custom (OpenAI-compatible)", "", "", False),
    )
}


class LLMError(Exception):
    """Base class for failures raised by the LLM adapter itself."""


class LLMConfigError(LLMError):
    """The active provider cannot be used with the stored configuration."""


@dataclass(frozen=True)
class ProviderConfig:
    """Resolved connection parameters.  Compared by value to detect changes."""

    provider: str
    api_key: str
    base_url: str
    model: str

    @property
    def supports_json_mode(self) -> bool:
        return self.provider in ("openai", "openrouter") or "openai.com" in self.base_url


def resolve_provider_config(conn: sqlite3.Connection) -> ProviderConfig:
    """Build the :class:`ProviderConfig` of the active provider.

    Lookup order per field: ``{provider}_{field}`` in the settings table, then
    (for ``openai`` only) the environment, then the provider's default.

    Raises:
        LLMConfigError: Unknown provider, missing API key where one is
            required, or no base URL / model available.
    """
    stored = get_all_settings(conn)
    provider = stored.get(ACTIVE_PROVIDER_KEY) or settings.llm_provider
    info = PROVIDERS.get(provider)
    if info is None:
        raise LLMConfigError(f"Unknown LLM provider {provider!r}")

    env_defaults = {}
    if provider == "openai":
        env_defaults = {
            "api_key": settings.openai_api_key,
            "base_url": settings.openai_base_url,
            "model": settings.openai_model,
        }

    api_key = stored.get(f"{provider}_api_key") or env_defaults.get("api_key", "")
    base_url = stored.get(f"{provider}_base_url") or env_defaults.get("base_url") or info.base_url
    model = stored.get(f"{provider}_model") or env_defaults.get("model") or info.model

    if not api_key:
        if info.requires_key:
            raise LLMConfigError(
                f'No API key configured for provider "{provider}". Go to Settings.'
            )
        api_key = _NO_KEY
    if not base_url:
        raise LLMConfigError(f'No base URL configured for provider "{provider}".')
    if not model:
        raise LLMConfigError(f'No model configured for provider "{provider}".')

    return ProviderConfig(provider=provider, api_key=api_key, base_url=base_url, model=model)


def mask_key(value: str) -> str:
    """Hide all but the first and last four characters of a secret."""
    if not value or len(value) < 8:
        return "••••••••"
    return f"{value[:4]}••••••••{value[-4:]}"


def mask_settings(stored: dict[str, str]) -> dict[str, str]:
    """Return *stored* with every ``*api_key*`` value masked."""
    return {k: mask_key(v) if "api_key" in k else v for k, v in stored.items()}
