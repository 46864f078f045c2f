import logging
from typing import Dict, Any

import httpx

from .base import BaseCustomProvider
from ..converters.gemini import GeminiConverter
from ..errors import DiscoveryError, ByomuxError
from ..streaming.gemini import GeminiStreamParser

logger = logging.getLogger(__name__)


class GeminiProvider(BaseCustomProvider):
    """
    Provider for Google Gemini compatible endpoints.

    The key travels as the `key` URL parameter rather than a header, and the
    model id is part of the request path.
    """

    api_format = "gemini"
    endpoint_path = "/v1beta/models"
    converter_class = GeminiConverter
    parser_class = GeminiStreamParser

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _request_params(self) -> Dict[str, str]:
        return {"key": self.api_key or "", "alt": "sse"}

    def _endpoint_url(self, model_id: str) -> str:
        model_path = model_id if model_id.startswith("models/") else f"models/{model_id}"
        return f"{self.base_url}/v1beta/{model_path}:streamGenerateContent"

    async def _fetch_models(self) -> Dict[str, Dict[str, Any]]:
        """
        Get the model list from `GET /v1beta/models?key=...`.

        Gemini names models 'models/<id>'; the prefix is stripped.
        """
        url = f"{self.base_url}{self.endpoint_path}"
        client, owns_client = self._client()
        try:
            response = await client.get(url, params={"key": self.api_key or ""})
            if response.status_code >= 400:
                raise self._http_error(response)
            payload = response.json()
        except ByomuxError:
            raise
        except (httpx.HTTPError, ValueError) as e:
            raise DiscoveryError(f"{type(e).__name__}: {e}", provider=self.provider_id) from e
        finally:
            if owns_client:
                await client.aclose()

        if not isinstance(payload, dict):
            raise DiscoveryError("Model list response is not a JSON object", provider=self.provider_id)

        models: Dict[str, Dict[str, Any]] = {}
        for model in payload.get("models") or []:
            name = model.get("name") or ""
            model_id = name[len("models/"):] if name.startswith("models/") else name
            if model_id:
                models[model_id] = model

        logger.info("Fetched %d models from '%s'", len(models), self.config.name)
        return models
