import base64
import httpx
from pathlib import Path
from typing import Union, List, Optional, Dict, Any, Literal, Tuple

from .types import (
    Message, Part, TextPart, ImagePart, ToolCallPart, ToolResultPart,
    ToolDefinition, StreamDelta, ThinkingPart,
)

# =============================================================================
# Image Helpers
# =============================================================================

def encode_image_file(image_path: Union[str, Path]) -> Tuple[str, str]:
    """
    Encode a local image file to base64.

    Reads the file from the given path, determines its MIME type based on extension,
    and returns a tuple of the base64-encoded data and the MIME type.

    Args:
        image_path (Union[str, Path]): Path to the image file.

    Returns:
        Tuple[str, str]: (b64_data, mime_type)

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    mime_types = {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".gif": "image/gif",
        ".webp": "image/webp",
        ".bmp": "image/bmp",
    }
    mime_type = mime_types.get(path.suffix.lower(), "image/jpeg")

    with open(path, "rb") as f:
        b64_data = base64.b64encode(f.read()).decode("utf-8")

    return b64_data, mime_type


async def encode_image_url(url: str, *, timeout: float = 30.0) -> Tuple[str, str]:
    """
    Download an image and encode it to base64.

    For endpoints that cannot fetch remote images themselves.

    Returns:
        Tuple[str, str]: (b64_data, mime_type taken from the Content-Type header)

    Raises:
        httpx.HTTPError: If the download fails.
    """
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as http_client:
        response = await http_client.get(url)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "image/jpeg")
        mime_type = content_type.split(";")[0].strip()
        b64_data = base64.b64encode(response.content).decode("utf-8")

    return b64_data, mime_type


def create_image_part(source: str, *, mime_type: Optional[str] = None) -> ImagePart:
    """
    Create an image part from a file path, URL, data URI or raw base64.

    Args:
        source (str): Can be:
            - A local file path (e.g., "/path/to/image.png")
            - A remote URL (e.g., "https://example.com/image.jpg")
            - A data URI (e.g., "data:image/png;base64,...")
            - Raw base64 data (requires `mime_type`)
        mime_type (str, optional): Required if `source` is raw base64 data.

    Raises:
        ValueError: If the source type cannot be determined.
    """
    if source.startswith("data:"):
        header, data = source.split(",", 1)
        detected = header.split(":")[1].split(";")[0]
        return {"type": "image", "mime_type": mime_type or detected, "data": data}
    if source.startswith(("http://", "https://")):
        return {"type": "image", "mime_type": mime_type or "image/jpeg", "url": source}
    if mime_type:
        return {"type": "image", "mime_type": mime_type, "data": source}
    if len(source) < 260 and Path(source).exists():
        b64_data, detected = encode_image_file(source)
        return {"type": "image", "mime_type": detected, "data": b64_data}
    raise ValueError(
        f"Cannot determine image source type for: {source[:50]}... "
        "Provide mime_type for raw base64 data."
    )


# =============================================================================
# Message Helpers
# =============================================================================

def create_text_part(text: str) -> TextPart:
    return {"type": "text", "text": text}


def create_message(
    role: Literal["system", "user", "assistant"],
    content: Union[str, List[Union[str, Part]]],
) -> Message:
    """
    Create a Message from a string or a list of parts.

    String elements within a list become text parts.
    """
    if isinstance(content, str):
        return {"role": role, "parts": [create_text_part(content)]}

    parts: List[Part] = []
    for item in content:
        if isinstance(item, str):
            parts.append(create_text_part(item))
        else:
            parts.append(item)
    return {"role": role, "parts": parts}


# =============================================================================
# Tool Calling Helpers
# =============================================================================

def create_tool(
    name: str,
    description: str,
    parameters: Dict[str, Any],
    required: Optional[List[str]] = None,
) -> ToolDefinition:
    """
    Create a tool definition.

    Args:
        name (str): The name of the tool.
        description (str): What the tool does.
        parameters (Dict): JSON Schema properties of the arguments.
        required (List[str], optional): Names of required arguments.
    """
    return {
        "name": name,
        "description": description,
        "input_schema": {
            "type": "object",
            "properties": parameters,
            "required": required or [],
        },
    }


def create_tool_call(call_id: str, name: str, arguments: Dict[str, Any]) -> ToolCallPart:
    return {"type": "tool_call", "call_id": call_id, "name": name, "input": arguments}


def create_tool_result(call_id: str, content: str) -> Message:
    """
    Create the user message that returns a tool's output to the model.
    """
    part: ToolResultPart = {"type": "tool_result", "call_id": call_id, "content": content}
    return {"role": "user", "parts": [part]}


# =============================================================================
# Response Assembly
# =============================================================================

class ResponseAccumulator:
    """
    Folds a delta stream into the assistant message to replay next turn.

    Finalized thinking parts are kept exactly as the parser produced them,
    so signatures and redaction data survive into the following request.
    Thinking that never finalized is not kept.
    """

    def __init__(self):
        self.parts: List[Part] = []
        self.tool_calls: List[ToolCallPart] = []
        self.thinking: List[ThinkingPart] = []
        self.errors: List[str] = []
        self.finish_reason: Optional[str] = None
        self.usage: Optional[Dict[str, Any]] = None
        self._text: List[str] = []

    def add(self, delta: StreamDelta) -> None:
        kind = delta["type"]
        if kind == "text":
            self._text.append(delta["text"])
        elif kind == "thinking_done":
            self._flush_text()
            self.thinking.append(delta["part"])
            self.parts.append(delta["part"])
        elif kind == "tool_call_end":
            self._flush_text()
            call = create_tool_call(delta["call_id"], delta["name"], delta["input"])
            self.tool_calls.append(call)
            self.parts.append(call)
        elif kind == "done":
            self.finish_reason = delta["finish_reason"]
            self.usage = delta["usage"]
        elif kind == "error":
            self.errors.append(delta["message"])

    @property
    def text(self) -> str:
        return "".join(
            p["text"] for p in self.parts if p.get("type") == "text"
        ) + "".join(self._text)

    def _flush_text(self) -> None:
        if self._text:
            self.parts.append(create_text_part("".join(self._text)))
            self._text = []

    def to_message(self) -> Message:
        self._flush_text()
        return {"role": "assistant", "parts": list(self.parts)}
