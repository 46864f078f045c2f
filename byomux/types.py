import re
from dataclasses import dataclass
from typing import Literal, List, Dict, Any, Union, TypedDict, Optional

# =============================================================================
# Wire Formats
# =============================================================================

# Supported wire protocols for custom providers
ApiFormat = Literal["openai-chat", "openai-responses", "gemini", "claude"]

API_FORMATS: tuple = ("openai-chat", "openai-responses", "gemini", "claude")

# Display names shown to users
API_FORMAT_LABELS: Dict[str, str] = {
    "openai-chat": "OpenAI Chat Completions",
    "openai-responses": "OpenAI Responses API",
    "gemini": "Google Gemini",
    "claude": "Anthropic Claude",
}

Role = Literal["system", "user", "assistant"]


def is_valid_api_format(value: str) -> bool:
    """
    Check whether a string names one of the supported wire formats.

    The comparison is exact: 'OpenAI-chat' or 'GEMINI' are rejected.
    """
    return value in API_FORMATS


def generate_provider_id(name: str) -> str:
    """
    Derive a stable provider id from a display name.

    Lowercases the name, collapses every run of characters outside [a-z0-9]
    into a single dash and strips dashes from both ends.

    Example:
        >>> generate_provider_id("My Custom Provider")
        'custom-my-custom-provider'
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return f"custom-{slug}"


# =============================================================================
# Configuration & Discovery Types
# =============================================================================

@dataclass(frozen=True)
class ProviderConfig:
    """
    A user-registered endpoint.

    Immutable; use dataclasses.replace() through the client's update
    operation to change it.
    """
    name: str
    base_url: str
    api_format: ApiFormat


@dataclass(frozen=True)
class ModelDescriptor:
    """
    A model discovered on a custom provider.

    Created during discovery and replaced wholesale on rediscovery.
    """
    id: str
    display_name: str
    max_input_tokens: int = 128000
    max_output_tokens: int = 16000
    supports_tools: bool = True
    supports_vision: bool = False
    supports_thinking: bool = False


# =============================================================================
# Message Parts
# =============================================================================

class TextPart(TypedDict):
    """
    Plain text content.
    """
    type: Literal["text"]
    text: str


class ToolCallPart(TypedDict):
    """
    A tool invocation requested by the assistant.
    """
    type: Literal["tool_call"]
    call_id: str
    name: str
    input: Dict[str, Any]


class ToolResultPart(TypedDict):
    """
    The result of a tool invocation, sent back in a user message.
    """
    type: Literal["tool_result"]
    call_id: str
    content: Union[str, List[TextPart]]


class ImagePart(TypedDict, total=False):
    """
    Image content. Carries either base64 `data` or a remote `url`.
    """
    type: Literal["image"]
    mime_type: str
    data: str
    url: str


class ThinkingMetadata(TypedDict, total=False):
    """
    Finalization data for a thinking block.

    Either {"complete": True, "signature": ...} for a signed block or
    {"redacted": True, "data": ...} for a block whose content was withheld.
    """
    complete: bool
    signature: str
    redacted: bool
    data: str


class ThinkingPart(TypedDict):
    """
    Model deliberation. `metadata` is None while the block is still streaming.
    """
    type: Literal["thinking"]
    value: str
    metadata: Optional[ThinkingMetadata]


Part = Union[TextPart, ToolCallPart, ToolResultPart, ImagePart, ThinkingPart]


class Message(TypedDict):
    """
    Format-agnostic chat message.

    Roles:
    - "system": Instructions
    - "user": User content and tool results
    - "assistant": Model output, tool calls and thinking
    """
    role: Role
    parts: List[Part]


class ToolDefinition(TypedDict, total=False):
    """
    A tool the model may call. `input_schema` is a JSON Schema object.
    """
    name: str
    description: str
    input_schema: Dict[str, Any]


class RequestOptions(TypedDict, total=False):
    """
    Per-request options passed to a converter.

    `tool_choice` accepts "auto", "none", "required" or a tool name.
    `thinking` enables extended thinking / reasoning for the request.
    """
    model: str
    max_tokens: int
    temperature: float
    top_p: float
    stop: List[str]
    tool_choice: str
    thinking: bool
    thinking_budget: int
    reasoning_effort: str


# =============================================================================
# Stream Deltas
# =============================================================================

class TextDelta(TypedDict):
    type: Literal["text"]
    text: str


class ToolCallStartDelta(TypedDict):
    type: Literal["tool_call_start"]
    call_id: str
    name: str


class ToolCallArgsDelta(TypedDict):
    type: Literal["tool_call_args_delta"]
    call_id: str
    delta: str


class ToolCallEndDelta(TypedDict):
    type: Literal["tool_call_end"]
    call_id: str
    name: str
    input: Dict[str, Any]


class ThinkingDelta(TypedDict):
    type: Literal["thinking_delta"]
    text: str


class ThinkingSignatureDelta(TypedDict):
    type: Literal["thinking_signature"]
    signature: str


class ThinkingDoneDelta(TypedDict):
    type: Literal["thinking_done"]
    part: ThinkingPart


class DoneDelta(TypedDict):
    type: Literal["done"]
    finish_reason: Optional[str]
    usage: Optional[Dict[str, Any]]


class ErrorDelta(TypedDict):
    type: Literal["error"]
    message: str


StreamDelta = Union[
    TextDelta,
    ToolCallStartDelta,
    ToolCallArgsDelta,
    ToolCallEndDelta,
    ThinkingDelta,
    ThinkingSignatureDelta,
    ThinkingDoneDelta,
    DoneDelta,
    ErrorDelta,
]


# =============================================================================
# Part Detection
# =============================================================================
# Parts may be plain dicts or objects created in another execution context,
# so detection never relies on class identity. The `type` discriminant is
# checked first, then the structurally distinguishing fields.

_MISSING = object()


def _field(part: Any, name: str) -> Any:
    if isinstance(part, dict):
        return part.get(name, _MISSING)
    return getattr(part, name, _MISSING)


def _has(part: Any, *names: str) -> bool:
    return all(_field(part, name) is not _MISSING for name in names)


def _kind(part: Any) -> Optional[str]:
    kind = _field(part, "type")
    return kind if isinstance(kind, str) else None


def get_field(part: Any, name: str, default: Any = None) -> Any:
    """
    Read a field from a dict part or an attribute from an object part.
    """
    value = _field(part, name)
    return default if value is _MISSING else value


def is_thinking_part(part: Any) -> bool:
    kind = _kind(part)
    if kind is not None:
        return kind == "thinking"
    # `metadata` is optional: absent or None while the block is still streaming
    return _has(part, "value") and not _has(part, "text")


def is_tool_call_part(part: Any) -> bool:
    kind = _kind(part)
    if kind is not None:
        return kind == "tool_call"
    return _has(part, "call_id", "name", "input") or _has(part, "callId", "name", "input")


def is_tool_result_part(part: Any) -> bool:
    kind = _kind(part)
    if kind is not None:
        return kind == "tool_result"
    return (_has(part, "call_id", "content") or _has(part, "callId", "content")) and not _has(part, "name")


def is_image_part(part: Any) -> bool:
    kind = _kind(part)
    if kind is not None:
        return kind == "image"
    return _has(part, "mime_type") and (_has(part, "data") or _has(part, "url"))


def is_text_part(part: Any) -> bool:
    kind = _kind(part)
    if kind is not None:
        return kind == "text"
    return _has(part, "text") and not _has(part, "metadata")


def get_call_id(part: Any) -> str:
    """
    Return the call id of a tool call/result part, accepting `callId` too.
    """
    value = get_field(part, "call_id")
    if value is None:
        value = get_field(part, "callId", "")
    return value or ""


def tool_result_text(part: Any) -> str:
    """
    Flatten a tool result's content into a single string.
    """
    content = get_field(part, "content", "")
    if isinstance(content, str):
        return content
    pieces = []
    for item in content or []:
        if isinstance(item, str):
            pieces.append(item)
        else:
            text = get_field(item, "text")
            if text is None:
                text = get_field(item, "value", "")
            pieces.append(str(text))
    return "".join(pieces)
