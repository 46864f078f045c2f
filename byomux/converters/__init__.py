from typing import Dict, Type

from .base import MessageConverter
from .openai_chat import OpenAIChatConverter
from .openai_responses import OpenAIResponsesConverter
from .gemini import GeminiConverter, clean_schema_for_gemini
from .claude import ClaudeConverter, replayable_thinking_block

CONVERTERS: Dict[str, Type[MessageConverter]] = {
    "openai-chat": OpenAIChatConverter,
    "openai-responses": OpenAIResponsesConverter,
    "gemini": GeminiConverter,
    "claude": ClaudeConverter,
}

__all__ = [
    "MessageConverter",
    "OpenAIChatConverter",
    "OpenAIResponsesConverter",
    "GeminiConverter",
    "ClaudeConverter",
    "CONVERTERS",
    "clean_schema_for_gemini",
    "replayable_thinking_block",
]
