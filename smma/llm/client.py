"""JSON-returning chat completion adapter.

``LLMClient.complete(system, user)`` sends one system + user message pair to
the active provider and returns the parsed JSON object of the reply.

Retry policy
------------
Only rate-limit responses (HTTP 429) are retried: up to
``settings.llm_max_attempts`` attempts in total, sleeping
``attempt * settings.llm_retry_delay`` seconds between them (8 s, 16 s, 24 s
with the defaults).  Every other error is raised on first occurrence.
"""

from __future__ import annotations

import asyncio
import json
import re
import sqlite3
from typing import Any, Callable, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from smma.config import settings
from smma.llm.providers import LLMError, ProviderConfig, resolve_provider_config

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


class LLMResponseError(LLMError):
    """The provider replied, but not with a JSON object."""


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

def is_rate_limited(exc: BaseException) -> bool:
    """Return ``True`` for provider errors that signal HTTP 429."""
    if getattr(exc, "status_code", None) == 429:
        return True
    return "429" in str(exc)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```` ``` ```` / ```` ```json ```` and a trailing ```` ``` ````."""
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text.strip())).strip()


def parse_json_content(content: str) -> dict[str, Any]:
    """Parse the (optionally fenced) reply into a dict.

    An empty reply yields ``{}``.

    Raises:
        LLMResponseError: If the reply is not valid JSON or not an object.
    """
    cleaned = strip_code_fences(content or "")
    if not cleaned:
        return {}
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise LLMResponseError(f"LLM returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise LLMResponseError(
            f"LLM returned JSON {type(data).__name__}, expected an object"
        )
    return data


def _message_text(response: Any) -> str:
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part)
            for part in content
        )
    return str(content or "")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class LLMClient:
    """Chat client bound to a provider-config source.

    The config is re-resolved on every call; the underlying ``ChatOpenAI``
    handle is rebuilt only when the resolved :class:`ProviderConfig` differs
    from the one it was built for.
    """

    def __init__(
        self,
        config_loader: Callable[[], ProviderConfig],
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ) -> None:
        self._config_loader = config_loader
        self._max_attempts = max_attempts or settings.llm_max_attempts
        self._retry_delay = settings.llm_retry_delay if retry_delay is None else retry_delay
        self._config: Optional[ProviderConfig] = None
        self._chat_model: Optional[ChatOpenAI] = None

    @classmethod
    def for_connection(cls, conn: sqlite3.Connection) -> "LLMClient":
        """Client whose provider config is read from *conn*'s settings table."""
        return cls(lambda: resolve_provider_config(conn))

    def _build_chat_model(self, config: ProviderConfig) -> ChatOpenAI:
        return ChatOpenAI(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=settings.llm_timeout,
            max_retries=0,
        )

    def _get_chat_model(self) -> tuple[ChatOpenAI, ProviderConfig]:
        config = self._config_loader()
        if self._chat_model is None or config != self._config:
            self._chat_model = self._build_chat_model(config)
            self._config = config
            print(
                f"[LLM] Using provider: {config.provider} | model: {config.model} "
                f"| baseURL: {config.base_url}"
            )
        return self._chat_model, config

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> dict[str, Any]:
        """Send one chat completion and return the reply parsed as JSON.

        Raises:
            LLMConfigError: If no usable provider configuration exists.
            LLMResponseError: If the reply is not a JSON object.
            Exception: The provider's own error, immediately for anything
                but a rate limit, after the last attempt for rate limits.
        """
        chat_model, config = self._get_chat_model()
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        call_kwargs: dict[str, Any] = {"temperature": temperature, "max_tokens": max_tokens}
        if config.supports_json_mode:
            call_kwargs["response_format"] = {"type": "json_object"}

        attempt = 1
        while True:
            try:
                response = await chat_model.ainvoke(messages, **call_kwargs)
                break
            except Exception as exc:
                if not is_rate_limited(exc) or attempt >= self._max_attempts:
                    raise
                delay = attempt * self._retry_delay
                print(
                    f"[LLM] Rate limited (429). Retry {attempt}/{self._max_attempts} "
                    f"in {delay:.0f}s …"
                )
                await asyncio.sleep(delay)
                attempt += 1

        return parse_json_content(_message_text(response))
