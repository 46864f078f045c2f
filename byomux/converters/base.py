import json
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from ..errors import ConversionError
from ..types import (
    Message,
    ToolDefinition,
    RequestOptions,
    get_call_id,
    get_field,
    is_text_part,
    is_tool_result_part,
)

DEFAULT_INPUT_SCHEMA: Dict[str, Any] = {"type": "object", "properties": {}}


class MessageConverter(ABC):
    """
    Abstract base class for wire-format converters.

    A converter is stateless; it turns a format-agnostic conversation into the
    JSON body one wire format expects. Anything that cannot be expressed in
    the target format raises ConversionError before a request is sent.
    """

    api_format: str = ""

    @abstractmethod
    def to_wire_request(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDefinition]] = None,
        options: Optional[RequestOptions] = None,
    ) -> Dict[str, Any]:
        """
        Build the request body.

        Args:
            messages (List[Message]): Conversation history.
            tools (List[ToolDefinition], optional): Tools the model may call.
            options (RequestOptions, optional): Model, limits and thinking flags.

        Returns:
            Dict[str, Any]: JSON-serializable request body.
        """
        pass

    def _error(self, message: str, options: Optional[RequestOptions] = None) -> ConversionError:
        return ConversionError(
            message,
            provider=self.api_format,
            model=(options or {}).get("model"),
        )

    def _check_role(self, message: Message, options: Optional[RequestOptions] = None) -> str:
        role = get_field(message, "role")
        if role not in ("system", "user", "assistant"):
            raise self._error(f"Unknown message role: {role!r}", options)
        return role

    def _require_model(self, options: RequestOptions) -> str:
        model = options.get("model")
        if not model:
            raise self._error("Request options are missing the model id", options)
        return model

    def _call_id(self, part: Any, options: Optional[RequestOptions] = None) -> str:
        """
        Return the call id of a tool call or result part, which every format
        requires to pair calls with their results.
        """
        call_id = get_call_id(part)
        if not call_id:
            kind = "Tool result" if is_tool_result_part(part) else "Tool call"
            name = get_field(part, "name")
            raise self._error(f"{kind}{f' {name!r}' if name else ''} has no call id", options)
        return call_id

    @staticmethod
    def _system_text(messages: List[Message]) -> Optional[str]:
        """
        Join the text of all system messages, or None if there is none.
        """
        pieces = []
        for msg in messages:
            if get_field(msg, "role") != "system":
                continue
            for part in get_field(msg, "parts", []):
                if is_text_part(part):
                    text = get_field(part, "text", "")
                    if text:
                        pieces.append(text)
        return "\n\n".join(pieces) if pieces else None

    @staticmethod
    def _optional(body: Dict[str, Any], **params: Any) -> None:
        body.update({k: v for k, v in params.items() if v is not None})

    @staticmethod
    def _dump_arguments(value: Any) -> str:
        return json.dumps(value if value is not None else {})

    def _image_url(self, part: Any, options: Optional[RequestOptions] = None) -> str:
        """
        Return a remote URL or a base64 data URI for an image part.
        """
        url = get_field(part, "url")
        if url:
            return url
        data = get_field(part, "data")
        if not data:
            raise self._error("Image part has neither data nor url", options)
        mime_type = get_field(part, "mime_type") or "image/jpeg"
        return f"data:{mime_type};base64,{data}"
