import logging
from typing import Dict, Any, Optional

import anthropic
import httpx
from anthropic import AsyncAnthropic

from .base import BaseCustomProvider
from ..config import ANTHROPIC_VERSION, Settings
from ..converters.claude import ClaudeConverter
from ..errors import AuthenticationError, DiscoveryError
from ..streaming.claude import ClaudeStreamParser
from ..types import ProviderConfig

logger = logging.getLogger(__name__)


class ClaudeProvider(BaseCustomProvider):
    """
    Provider for Anthropic Messages API compatible endpoints.
    """

    api_format = "claude"
    endpoint_path = "/v1/messages"
    converter_class = ClaudeConverter
    parser_class = ClaudeStreamParser

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

    def _create_client(self) -> Optional[AsyncAnthropic]:
        if not self.api_key:
            return None
        return AsyncAnthropic(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.settings.request_timeout,
            max_retries=0,
        )

    def update_api_key(self, api_key: Optional[str]) -> None:
        super().update_api_key(api_key)
        self.client = self._create_client()

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    async def _fetch_models(self) -> Dict[str, Dict[str, Any]]:
        """
        Get the model list from `GET /v1/models`.
        """
        if not self.client:
            raise AuthenticationError("API key not configured", provider=self.provider_id)

        try:
            page = await self.client.models.list()
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise AuthenticationError(
                str(e), status_code=getattr(e, "status_code", None), provider=self.provider_id
            ) from e
        except anthropic.AnthropicError as e:
            raise DiscoveryError(f"{type(e).__name__}: {e}", provider=self.provider_id) from e

        models: Dict[str, Dict[str, Any]] = {}
        for model in page.data:
            raw = model.model_dump() if hasattr(model, "model_dump") else dict(model)
            model_id = raw.get("id")
            if model_id:
                models[model_id] = raw

        logger.info("Fetched %d models from '%s'", len(models), self.config.name)
        return models
