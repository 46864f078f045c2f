import asyncio
import json
import logging
import math
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import Dict, Any, List, AsyncIterator, Optional, Tuple, Type

import httpx

from ..cancellation import CancellationToken
from ..capabilities import detect_thinking_capability, parse_model_capabilities
from ..config import Settings, normalize_base_url
from ..converters.base import MessageConverter
from ..errors import (
    AuthenticationError,
    ByomuxError,
    StreamAbortedError,
    TransportError,
    classify_http_status,
)
from ..formats import filter_models_by_api_format
from ..sse import ServerSentEvent, iter_sse_events
from ..streaming.base import StreamParser
from ..types import (
    Message,
    ModelDescriptor,
    ProviderConfig,
    RequestOptions,
    StreamDelta,
    ToolDefinition,
    generate_provider_id,
    get_field,
    is_text_part,
    is_thinking_part,
    is_tool_call_part,
    is_tool_result_part,
    tool_result_text,
)

logger = logging.getLogger(__name__)


class BaseCustomProvider(ABC):
    """
    Abstract base class for custom providers.

    A provider binds one user-registered endpoint to the converter and stream
    parser of its wire format. Subclasses supply model discovery, the
    endpoint path and authentication; streaming is shared.
    """

    api_format: str = ""
    endpoint_path: str = ""
    converter_class: Type[MessageConverter]
    parser_class: Type[StreamParser]

    def __init__(
        self,
        config: ProviderConfig,
        api_key: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.api_key = api_key
        self.settings = settings or Settings()
        self.provider_id = generate_provider_id(config.name)
        self.base_url = normalize_base_url(config.base_url)
        self.converter = self.converter_class()
        self._http_client = http_client
        self._cached_models: Dict[str, ModelDescriptor] = {}
        logger.info(
            "Created %s for '%s' (format: %s, base URL: %s)",
            type(self).__name__, config.name, self.api_format, self.base_url,
        )

    # ==========================================================================
    # Model Discovery
    # ==========================================================================

    @abstractmethod
    async def _fetch_models(self) -> Dict[str, Dict[str, Any]]:
        """
        Fetch the raw model list from the endpoint.

        Returns:
            Dict[str, Dict[str, Any]]: Raw model metadata keyed by model id.

        Raises:
            AuthenticationError: The endpoint rejected the key.
            DiscoveryError: Any other failure.
        """
        pass

    async def list_models(self) -> List[ModelDescriptor]:
        """
        Discover the models of this provider that speak its wire format.

        Failures are logged and yield an empty list; the previous cache is
        kept so in-flight requests still resolve their model limits.

        Returns:
            List[ModelDescriptor]: Models matching the provider's API format.
        """
        if not self.api_key:
            logger.warning("No API key configured for '%s'; skipping model discovery", self.config.name)
            return []

        try:
            raw_models = await self._fetch_models()
        except ByomuxError as e:
            logger.error("Error fetching models for '%s': %s", self.config.name, e, exc_info=True)
            return []

        filtered = filter_models_by_api_format(raw_models, self.api_format)
        excluded = [model_id for model_id in raw_models if model_id not in filtered]
        logger.info(
            "Model filtering for '%s' (format: %s): %d from API, %d matching. Included: [%s] Excluded: [%s]",
            self.config.name, self.api_format, len(raw_models), len(filtered),
            ", ".join(filtered), ", ".join(excluded),
        )

        self._cached_models = {
            model_id: parse_model_capabilities(raw, model_id)
            for model_id, raw in filtered.items()
        }
        return list(self._cached_models.values())

    def get_cached_model(self, model_id: str) -> Optional[ModelDescriptor]:
        return self._cached_models.get(model_id)

    def update_api_key(self, api_key: Optional[str]) -> None:
        self.api_key = api_key or None

    # ==========================================================================
    # Token Counting
    # ==========================================================================

    async def count_tokens(self, model_id: str, content: Any) -> int:
        """
        Estimate the token count of a string or message.

        Uses the four-characters-per-token heuristic; no endpoint exposes a
        uniform counting API.
        """
        if isinstance(content, str):
            text = content
        else:
            pieces = []
            for part in get_field(content, "parts", []) or []:
                if is_text_part(part):
                    pieces.append(get_field(part, "text", ""))
                elif is_thinking_part(part):
                    pieces.append(get_field(part, "value", ""))
                elif is_tool_call_part(part):
                    pieces.append(get_field(part, "name", ""))
                    pieces.append(json.dumps(get_field(part, "input") or {}))
                elif is_tool_result_part(part):
                    pieces.append(tool_result_text(part))
            text = "".join(pieces)
        return math.ceil(len(text) / 4)

    # ==========================================================================
    # Streaming Chat
    # ==========================================================================

    def _endpoint_url(self, model_id: str) -> str:
        """
        Full request URL. A base URL already ending in the endpoint path is
        used as-is.
        """
        suffix = self.endpoint_path[len("/v1"):] if self.endpoint_path.startswith("/v1/") else self.endpoint_path
        if self.base_url.endswith(suffix):
            return self.base_url
        return f"{self.base_url}{self.endpoint_path}"

    def _request_params(self) -> Dict[str, str]:
        return {}

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        pass

    def _resolve_options(self, model_id: str, options: Optional[Dict[str, Any]]) -> RequestOptions:
        """
        Fill model, output limit and thinking flags the caller left out.
        """
        resolved: RequestOptions = dict(options or {})
        resolved["model"] = model_id
        cached = self.get_cached_model(model_id)

        if resolved.get("thinking") is None:
            if cached is not None:
                resolved["thinking"] = cached.supports_thinking
            else:
                resolved["thinking"] = detect_thinking_capability({}, model_id)

        if not resolved.get("max_tokens"):
            resolved["max_tokens"] = (
                cached.max_output_tokens if cached is not None else self.settings.default_max_output_tokens
            )

        resolved.setdefault("thinking_budget", self.settings.thinking_budget)
        resolved.setdefault("reasoning_effort", self.settings.reasoning_effort)
        return resolved

    async def stream_chat(
        self,
        model_id: str,
        messages: List[Message],
        tools: Optional[List[ToolDefinition]] = None,
        options: Optional[Dict[str, Any]] = None,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamDelta]:
        """
        Stream a chat response from the endpoint.

        The conversation is converted before any network call, so conversion
        and configuration errors surface first. Cancelling the token (or
        closing the generator) closes the HTTP response and ends the stream
        without further deltas.

        Args:
            model_id (str): Model identifier on this provider.
            messages (List[Message]): Conversation history.
            tools (List[ToolDefinition], optional): Tools the model may call.
            options (dict, optional): Request options (max_tokens, temperature,
                                      tool_choice, thinking, ...).
            cancellation (CancellationToken, optional): Cooperative cancel signal.

        Yields:
            StreamDelta: Deltas in wire order, ending with `done`.

        Raises:
            AuthenticationError: No key configured, or the endpoint returned 401/403.
            TransportError: Network failure or another HTTP error status.
            ProtocolViolationError: The response does not match the format.
            ConversionError: The conversation cannot be expressed in the format.
        """
        if not self.api_key:
            raise AuthenticationError("API key not configured", provider=self.provider_id, model=model_id)

        request_options = self._resolve_options(model_id, options)
        body = self.converter.to_wire_request(messages, tools, request_options)
        url = self._endpoint_url(model_id)
        parser = self.parser_class(model=model_id)

        logger.info("Sending request for %s to %s", model_id, url)
        logger.debug("Request body: %s", json.dumps(body))

        client, owns_client = self._client()
        try:
            async with client.stream(
                "POST", url, json=body, headers=self._headers(), params=self._request_params()
            ) as response:
                logger.info("Response status for %s: %d", model_id, response.status_code)
                if response.status_code >= 400:
                    await response.aread()
                    raise self._http_error(response, model_id)

                try:
                    async with aclosing(self._events(response, cancellation)) as events:
                        async for event in events:
                            for delta in parser.from_wire_event(event):
                                if cancellation is not None:
                                    cancellation.raise_if_cancelled()
                                yield delta
                            if parser.is_done:
                                break

                    for delta in parser.finish():
                        if cancellation is not None:
                            cancellation.raise_if_cancelled()
                        yield delta
                except StreamAbortedError as e:
                    await response.aclose()
                    logger.info("Stream for %s cancelled: %s", model_id, e.message)
        except httpx.HTTPError as e:
            logger.error("Request to %s failed: %s", url, e)
            raise TransportError(
                f"{type(e).__name__}: {e}", provider=self.provider_id, model=model_id
            ) from e
        finally:
            if owns_client:
                await client.aclose()

    async def _events(
        self, response: httpx.Response, cancellation: Optional[CancellationToken]
    ) -> AsyncIterator[ServerSentEvent]:
        """
        Decode the response body into SSE events.

        With a cancellation token every read is raced against the token, so a
        cancel during a silent stretch of the stream (long thinking, a stalled
        proxy) interrupts the pending read instead of waiting for the next
        event or the read timeout.

        Raises:
            StreamAbortedError: The token was cancelled.
        """
        events = iter_sse_events(response.aiter_bytes())
        if cancellation is None:
            async for event in events:
                yield event
            return

        loop = asyncio.get_running_loop()
        woken = asyncio.Event()
        unregister = cancellation.on_cancel(lambda reason: loop.call_soon_threadsafe(woken.set))
        waiter = asyncio.ensure_future(woken.wait())
        iterator = events.__aiter__()
        try:
            while True:
                cancellation.raise_if_cancelled()
                next_event = asyncio.ensure_future(iterator.__anext__())
                await asyncio.wait({next_event, waiter}, return_when=asyncio.FIRST_COMPLETED)
                if not next_event.done():
                    next_event.cancel()
                    await asyncio.wait({next_event})
                    cancellation.raise_if_cancelled()
                try:
                    event = next_event.result()
                except StopAsyncIteration:
                    return
                yield event
        finally:
            unregister()
            waiter.cancel()

    def _client(self) -> Tuple[httpx.AsyncClient, bool]:
        if self._http_client is not None:
            return self._http_client, False
        return httpx.AsyncClient(timeout=self.settings.request_timeout), True

    def _http_error(self, response: httpx.Response, model_id: Optional[str] = None) -> ByomuxError:
        """
        Build the taxonomy error for an HTTP error response, preferring the
        `error.message` of a JSON body over the raw text.
        """
        message = f"{self.api_format} API error: {response.status_code}"
        text = response.text
        try:
            payload = json.loads(text)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                message = error["message"]
            elif isinstance(error, str) and error:
                message = error
        elif text:
            message = text

        error_class = classify_http_status(response.status_code) or TransportError
        logger.error("Error response from '%s' (%d): %s", self.config.name, response.status_code, message)
        return error_class(message, status_code=response.status_code, provider=self.provider_id, model=model_id)
