"""
Capability detection for discovered models.

Explicit capability fields reported by the API always win; otherwise fixed
keyword lists are matched against the model id (and display name for vision).
"""
from typing import Any, Dict, Mapping

from .config import DEFAULT_MAX_INPUT_TOKENS, DEFAULT_MAX_OUTPUT_TOKENS
from .types import ModelDescriptor

VISION_PATTERNS = (
    "vision", "image", "multimodal",
    "gpt-4o", "gpt-4-turbo", "gpt-4-vision",
    "claude-3", "claude-sonnet", "claude-opus", "claude-haiku",
    "gemini-pro", "gemini-1.5", "gemini-2", "gemini-flash", "gemini-ultra",
    "llava", "cogvlm", "qwen-vl", "yi-vl", "gemini",
)

NO_TOOL_PATTERNS = ("embed", "embedding", "whisper", "tts", "dall-e", "stable-diffusion")

THINKING_PATTERNS = ("thinking", "reasoning", "o1", "o3", "deepseek-r1", "gemini")


def _capabilities(model: Mapping[str, Any]) -> Dict[str, Any]:
    caps = model.get("capabilities")
    return caps if isinstance(caps, dict) else {}


def _contains_image(values: Any) -> bool:
    if not isinstance(values, (list, tuple)):
        return False
    return any(str(v).lower() == "image" for v in values)


def detect_vision_capability(model: Mapping[str, Any], model_id: str) -> bool:
    """
    Detect image input support.

    Checks `capabilities.vision`, then `supported_input_types` and
    `input_modalities`, then vision keywords in the id or display name.
    """
    if _capabilities(model).get("vision") is True:
        return True
    if _contains_image(model.get("supported_input_types")):
        return True
    if _contains_image(model.get("input_modalities")):
        return True

    lower_id = model_id.lower()
    lower_name = str(model.get("name") or "").lower()
    return any(p in lower_id or p in lower_name for p in VISION_PATTERNS)


def detect_tool_calling_capability(model: Mapping[str, Any], model_id: str) -> bool:
    """
    Detect function calling support. Chat models default to True.
    """
    caps = _capabilities(model)
    if caps.get("function_calling") is True or caps.get("tools") is True:
        return True

    lower_id = model_id.lower()
    return not any(p in lower_id for p in NO_TOOL_PATTERNS)


def detect_thinking_capability(model: Mapping[str, Any], model_id: str) -> bool:
    """
    Detect thinking/reasoning support. Unknown models default to False.
    """
    caps = _capabilities(model)
    if caps.get("thinking") is True or caps.get("reasoning") is True:
        return True
    if model.get("thinking") is True:
        return True

    lower_id = model_id.lower()
    return any(p in lower_id for p in THINKING_PATTERNS)


def _first_int(model: Mapping[str, Any], keys, default: int) -> int:
    for key in keys:
        value = model.get(key)
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
    return default


def parse_model_capabilities(model: Mapping[str, Any], model_id: str) -> ModelDescriptor:
    """
    Build a ModelDescriptor from one entry of a model-list response.

    Token limits accept the OpenAI-compatible (`context_length`,
    `max_output_tokens`), Gemini REST (`inputTokenLimit`, `outputTokenLimit`)
    and snake_case SDK spellings.
    """
    display_name = (
        model.get("display_name")
        or model.get("displayName")
        or model.get("name")
        or model_id
    )
    return ModelDescriptor(
        id=model_id,
        display_name=str(display_name),
        max_input_tokens=_first_int(
            model, ("context_length", "inputTokenLimit", "input_token_limit"), DEFAULT_MAX_INPUT_TOKENS
        ),
        max_output_tokens=_first_int(
            model, ("max_output_tokens", "outputTokenLimit", "output_token_limit"), DEFAULT_MAX_OUTPUT_TOKENS
        ),
        supports_tools=detect_tool_calling_capability(model, model_id),
        supports_vision=detect_vision_capability(model, model_id),
        supports_thinking=detect_thinking_capability(model, model_id),
    )
