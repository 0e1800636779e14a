"""LLM adapter package.

Public API::

    from smma.llm import LLMClient
    profile = await LLMClient.for_connection(conn).complete(system, user)
"""

from smma.llm.client import LLMClient, LLMResponseError
from smma.llm.providers import (
    PROVIDERS,
    LLMConfigError,
    LLMError,
    ProviderConfig,
    resolve_provider_config,
)

__all__ = [
    "LLMClient",
    "LLMError",
    "LLMConfigError",
    "LLMResponseError",
    "ProviderConfig",
    "PROVIDERS",
    "resolve_provider_config",
]
