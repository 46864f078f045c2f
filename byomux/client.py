import asyncio
import dataclasses
import logging
import math
from typing import Optional, Dict, List, Any, AsyncIterator, Tuple

import dotenv
import httpx

from .cancellation import CancellationToken
from .config import (
    EnvKeyStore,
    InMemoryProviderStore,
    KeyStore,
    ProviderStore,
    Settings,
    load_settings,
    validate_provider_config,
)
from .errors import ConfigurationError
from .providers import BaseCustomProvider, create_provider
from .types import (
    ApiFormat,
    Message,
    ModelDescriptor,
    ProviderConfig,
    StreamDelta,
    ToolDefinition,
    generate_provider_id,
)
from .utils import ResponseAccumulator

logger = logging.getLogger(__name__)


class UnifiedChatClient:
    """
    Unified client over every registered custom provider.

    Provider configurations live in the injected ProviderStore and keys in
    the KeyStore. Models from all providers are exposed under a
    provider-qualified id, "<provider_id>:<model_id>", and chat and
    token-count calls are routed to the provider that owns the model.
    """

    def __init__(
        self,
        provider_store: Optional[ProviderStore] = None,
        key_store: Optional[KeyStore] = None,
        *,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        env_file: Optional[str] = ".env",
    ):
        """
        Initialize the client and create a provider for every stored config.

        Args:
            provider_store: Configuration storage. Defaults to an empty in-memory store.
            key_store: API key lookup. Defaults to BYOMUX_KEY_* environment variables.
            settings: Runtime defaults. Defaults to BYOMUX_* environment variables.
            http_client: Shared httpx client, mainly for tests.
            env_file: dotenv file loaded into the environment, if present.
        """
        if env_file:
            dotenv.load_dotenv(env_file)

        self.provider_store = provider_store if provider_store is not None else InMemoryProviderStore()
        self.key_store = key_store if key_store is not None else EnvKeyStore(env_file)
        self.settings = settings or load_settings(env_file)
        self._http_client = http_client

        self.providers: Dict[str, BaseCustomProvider] = {}
        self._model_map: Dict[str, Tuple[str, ModelDescriptor]] = {}

        for provider_id, config in self.provider_store.all().items():
            self.providers[provider_id] = self._create(provider_id, config)

        logger.info("UnifiedChatClient created with %d providers", len(self.providers))

    def _create(self, provider_id: str, config: ProviderConfig) -> BaseCustomProvider:
        return create_provider(
            config,
            self.key_store.get_api_key(provider_id),
            settings=self.settings,
            http_client=self._http_client,
        )

    # ==========================================================================
    # Provider Management
    # ==========================================================================

    def add_provider(self, name: str, base_url: str, api_format: ApiFormat) -> str:
        """
        Register a new provider.

        Returns:
            str: The generated provider id ("custom-<slug>").

        Raises:
            ConfigurationError: If the configuration is invalid or the name is taken.
        """
        config = ProviderConfig(name=name.strip(), base_url=base_url.strip(), api_format=api_format)
        validate_provider_config(config, self.provider_store.all())

        provider_id = generate_provider_id(config.name)
        self.provider_store.put(provider_id, config)
        self.providers[provider_id] = self._create(provider_id, config)
        logger.info("Added provider '%s' (%s)", config.name, provider_id)
        return provider_id

    def update_provider(
        self,
        provider_id: str,
        *,
        name: Optional[str] = None,
        base_url: Optional[str] = None,
        api_format: Optional[ApiFormat] = None,
    ) -> str:
        """
        Change a provider's configuration.

        Renaming changes the provider id; the returned id is the current one.
        Discovered models of the provider are dropped until the next listing.

        Raises:
            ConfigurationError: If the provider is unknown or the new
                                configuration is invalid.
        """
        current = self.provider_store.get(provider_id)
        if current is None:
            raise ConfigurationError(f"Unknown provider '{provider_id}'")

        changes: Dict[str, Any] = {}
        if name is not None:
            changes["name"] = name.strip()
        if base_url is not None:
            changes["base_url"] = base_url.strip()
        if api_format is not None:
            changes["api_format"] = api_format
        updated = dataclasses.replace(current, **changes)
        validate_provider_config(updated, self.provider_store.all(), ignore_id=provider_id)

        new_id = generate_provider_id(updated.name)
        if new_id != provider_id:
            self.provider_store.delete(provider_id)
            self.providers.pop(provider_id, None)
        self._drop_models(provider_id)

        self.provider_store.put(new_id, updated)
        self.providers[new_id] = self._create(new_id, updated)
        logger.info("Updated provider '%s' (%s -> %s)", updated.name, provider_id, new_id)
        return new_id

    def remove_provider(self, provider_id: str) -> None:
        """
        Unregister a provider. Unknown ids are ignored.
        """
        if provider_id not in self.providers and self.provider_store.get(provider_id) is None:
            logger.debug("Provider '%s' not registered; nothing to remove", provider_id)
            return
        self.provider_store.delete(provider_id)
        self.providers.pop(provider_id, None)
        self._drop_models(provider_id)
        logger.info("Removed provider '%s'", provider_id)

    def refresh_api_key(self, provider_id: str) -> None:
        """
        Re-read a provider's key from the key store.
        """
        provider = self.get_provider(provider_id)
        provider.update_api_key(self.key_store.get_api_key(provider_id))

    def get_provider(self, provider_id: str) -> BaseCustomProvider:
        if provider_id not in self.providers:
            raise ConfigurationError(f"Unknown provider '{provider_id}'")
        return self.providers[provider_id]

    def has_provider(self, provider_id: str) -> bool:
        return provider_id in self.providers

    def provider_ids(self) -> List[str]:
        return list(self.providers)

    def _drop_models(self, provider_id: str) -> None:
        self._model_map = {
            qualified: entry
            for qualified, entry in self._model_map.items()
            if entry[0] != provider_id
        }

    # ==========================================================================
    # Models
    # ==========================================================================

    async def list_models(self, provider_id: Optional[str] = None, *, refresh: bool = False) -> List[ModelDescriptor]:
        """
        List models of all providers (or one) under provider-qualified ids.

        Discovery runs when the model map is empty or `refresh` is set.
        Providers whose discovery fails contribute no models.

        Args:
            provider_id (str, optional): Restrict the result to one provider.
            refresh (bool): Force rediscovery.

        Returns:
            List[ModelDescriptor]: Descriptors whose `id` is "<provider_id>:<model_id>".
        """
        if refresh or (not self._model_map and self.providers):
            await self._rebuild_model_map()

        return [
            dataclasses.replace(descriptor, id=qualified)
            for qualified, (owner, descriptor) in self._model_map.items()
            if provider_id is None or owner == provider_id
        ]

    async def _rebuild_model_map(self) -> None:
        provider_ids = list(self.providers)
        results = await asyncio.gather(*(self.providers[pid].list_models() for pid in provider_ids))

        model_map: Dict[str, Tuple[str, ModelDescriptor]] = {}
        for pid, models in zip(provider_ids, results):
            for descriptor in models:
                model_map[f"{pid}:{descriptor.id}"] = (pid, descriptor)

        self._model_map = model_map
        logger.info("Model map rebuilt with %d models", len(model_map))

    def _resolve(self, model: str) -> Tuple[BaseCustomProvider, str]:
        """
        Split a qualified model id into its provider and the provider's model id.
        """
        entry = self._model_map.get(model)
        if entry is not None:
            return self.providers[entry[0]], entry[1].id

        provider_id, sep, model_id = model.partition(":")
        if sep and model_id and provider_id in self.providers:
            return self.providers[provider_id], model_id

        raise ConfigurationError(f"Unknown model '{model}'")

    # ==========================================================================
    # Chat
    # ==========================================================================

    async def stream_chat(
        self,
        model: str,
        messages: List[Message],
        tools: Optional[List[ToolDefinition]] = None,
        options: Optional[Dict[str, Any]] = None,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamDelta]:
        """
        Stream a chat response from the provider owning `model`.

        Args:
            model (str): Qualified id, "<provider_id>:<model_id>".
            messages (List[Message]): Conversation history.
            tools (List[ToolDefinition], optional): Tools the model may call.
            options (dict, optional): Request options.
            cancellation (CancellationToken, optional): Cooperative cancel signal.

        Yields:
            StreamDelta: Deltas in wire order.
        """
        provider, model_id = self._resolve(model)
        async for delta in provider.stream_chat(
            model_id, messages, tools, options, cancellation=cancellation
        ):
            yield delta

    async def chat(
        self,
        model: str,
        messages: List[Message],
        tools: Optional[List[ToolDefinition]] = None,
        options: Optional[Dict[str, Any]] = None,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> Dict[str, Any]:
        """
        Run a chat request to completion.

        Returns:
            Dict[str, Any]: {"text", "message", "tool_calls", "meta"} where
            `message` is the assistant message ready to append to history.
        """
        accumulator = ResponseAccumulator()
        async for delta in self.stream_chat(model, messages, tools, options, cancellation=cancellation):
            accumulator.add(delta)

        message = accumulator.to_message()
        result = {
            "text": accumulator.text,
            "message": message,
            "tool_calls": accumulator.tool_calls,
            "meta": {
                "model": model,
                "usage": accumulator.usage,
                "finish_reason": accumulator.finish_reason,
                "errors": accumulator.errors,
            },
        }
        return result

    async def count_tokens(self, model: str, content: Any) -> int:
        """
        Estimate tokens for a string or message using the owning provider.

        Unknown models fall back to the four-characters-per-token estimate
        for strings and 0 for anything else.
        """
        try:
            provider, model_id = self._resolve(model)
        except ConfigurationError:
            return math.ceil(len(content) / 4) if isinstance(content, str) else 0
        return await provider.count_tokens(model_id, content)
