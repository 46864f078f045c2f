"""
Model id classification against wire formats.

A single proxy endpoint often lists models for several backends. Only models
native to the provider's configured format are exposed, so a Claude-format
provider never offers a GPT model it cannot speak to.

Priority is fixed: Claude > Gemini > OpenAI. Proxy ids such as
'gemini-claude-sonnet' are Claude models, and ids containing 'oss'
(e.g. 'gpt-oss-20b') are served through the Gemini format.
"""
from typing import Dict, Literal, Optional, TypeVar

ModelFamily = Literal["claude", "gemini", "openai"]

_OPENAI_PREFIXES = ("gpt-", "o1", "o3", "o4", "chatgpt-", "text-")

T = TypeVar("T")


def classify_model_format(model_id: str) -> Optional[ModelFamily]:
    """
    Classify a model id into the family of wire formats it belongs to.

    Returns:
        'claude', 'gemini', 'openai', or None for ids with no known keyword.
    """
    lower = model_id.lower()
    if "claude" in lower:
        return "claude"
    if "gemini" in lower or "oss" in lower:
        return "gemini"
    if lower.startswith(_OPENAI_PREFIXES) or "openai" in lower:
        return "openai"
    return None


def is_model_matching_api_format(model_id: str, api_format: str) -> bool:
    """
    Check whether a model id is native to the given wire format.

    Both OpenAI formats accept the 'openai' family.
    """
    family = classify_model_format(model_id)
    if api_format in ("openai-chat", "openai-responses"):
        return family == "openai"
    if api_format == "gemini":
        return family == "gemini"
    if api_format == "claude":
        return family == "claude"
    return True


def filter_models_by_api_format(models: Dict[str, T], api_format: str) -> Dict[str, T]:
    """
    Keep only the entries whose model id matches the wire format.
    """
    return {
        model_id: info
        for model_id, info in models.items()
        if is_model_matching_api_format(model_id, api_format)
    }
