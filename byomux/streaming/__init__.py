from typing import Dict, Type

from .base import StreamParser
from .openai_chat import OpenAIChatStreamParser
from .openai_responses import OpenAIResponsesStreamParser
from .gemini import GeminiStreamParser
from .claude import ClaudeStreamParser

PARSERS: Dict[str, Type[StreamParser]] = {
    "openai-chat": OpenAIChatStreamParser,
    "openai-responses": OpenAIResponsesStreamParser,
    "gemini": GeminiStreamParser,
    "claude": ClaudeStreamParser,
}

__all__ = [
    "StreamParser",
    "OpenAIChatStreamParser",
    "OpenAIResponsesStreamParser",
    "GeminiStreamParser",
    "ClaudeStreamParser",
    "PARSERS",
]
