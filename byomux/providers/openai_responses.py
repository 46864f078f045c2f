from .openai_chat import OpenAIChatProvider
from ..converters.openai_responses import OpenAIResponsesConverter
from ..streaming.openai_responses import OpenAIResponsesStreamParser


class OpenAIResponsesProvider(OpenAIChatProvider):
    """
    Provider for OpenAI Responses API compatible endpoints.

    Shares discovery and bearer authentication with the Chat Completions
    provider; only the request body, endpoint and event stream differ.
    """

    api_format = "openai-responses"
    endpoint_path = "/v1/responses"
    converter_class = OpenAIResponsesConverter
    parser_class = OpenAIResponsesStreamParser
