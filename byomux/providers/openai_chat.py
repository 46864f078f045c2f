import logging
from typing import Dict, Any, Optional

import httpx
import openai
from openai import AsyncOpenAI

from .base import BaseCustomProvider
from ..config import Settings
from ..converters.openai_chat import OpenAIChatConverter
from ..errors import AuthenticationError, DiscoveryError
from ..streaming.openai_chat import OpenAIChatStreamParser
from ..types import ProviderConfig

logger = logging.getLogger(__name__)


class OpenAIChatProvider(BaseCustomProvider):
    """
    Provider for OpenAI Chat Completions compatible endpoints.

    Model discovery goes through the official SDK pointed at the custom base
    URL; chat streaming is done over raw SSE so proxies that return extra
    fields are parsed without SDK validation getting in the way.
    """

    api_format = "openai-chat"
    endpoint_path = "/v1/chat/completions"
    converter_class = OpenAIChatConverter
    parser_class = OpenAIChatStreamParser

    def __init__(
        self,
        config: ProviderConfig,
        api_key: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(config, api_key, settings=settings, http_client=http_client)
        self.client = self._create_client()

    def _create_client(self) -> Optional[AsyncOpenAI]:
        if not self.api_key:
            return None
        return AsyncOpenAI(
            api_key=self.api_key,
            base_url=f"{self.base_url}/v1",
            timeout=self.settings.request_timeout,
            max_retries=0,
        )

    def update_api_key(self, api_key: Optional[str]) -> None:
        super().update_api_key(api_key)
        self.client = self._create_client()

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def _fetch_models(self) -> Dict[str, Dict[str, Any]]:
        """
        Get the model list from `GET /v1/models`.
        """
        if not self.client:
            raise AuthenticationError("API key not configured", provider=self.provider_id)

        try:
            page = await self.client.models.list()
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise AuthenticationError(
                str(e), status_code=getattr(e, "status_code", None), provider=self.provider_id
            ) from e
        except openai.OpenAIError as e:
            raise DiscoveryError(f"{type(e).__name__}: {e}", provider=self.provider_id) from e

        models: Dict[str, Dict[str, Any]] = {}
        for model in page.data:
            raw = model.model_dump() if hasattr(model, "model_dump") else dict(model)
            model_id = raw.get("id")
            if model_id:
                models[model_id] = raw

        logger.info("Fetched %d models from '%s'", len(models), self.config.name)
        return models
