from typing import Dict, Optional, Type

import httpx

from .base import BaseCustomProvider
from .openai_chat import OpenAIChatProvider
from .openai_responses import OpenAIResponsesProvider
from .gemini import GeminiProvider
from .claude import ClaudeProvider
from ..config import Settings
from ..errors import ConfigurationError
from ..types import ProviderConfig

PROVIDER_CLASSES: Dict[str, Type[BaseCustomProvider]] = {
    "openai-chat": OpenAIChatProvider,
    "openai-responses": OpenAIResponsesProvider,
    "gemini": GeminiProvider,
    "claude": ClaudeProvider,
}


def create_provider(
    config: ProviderConfig,
    api_key: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> BaseCustomProvider:
    """
    Create the provider for a configuration's wire format.

    Raises:
        ConfigurationError: If the format is not supported.
    """
    provider_class = PROVIDER_CLASSES.get(config.api_format)
    if provider_class is None:
        raise ConfigurationError(f"Unsupported API format: {config.api_format!r}", provider=config.name)
    return provider_class(config, api_key, settings=settings, http_client=http_client)


__all__ = [
    "BaseCustomProvider",
    "OpenAIChatProvider",
    "OpenAIResponsesProvider",
    "GeminiProvider",
    "ClaudeProvider",
    "PROVIDER_CLASSES",
    "create_provider",
]
