from typing import Dict, Any, List, Optional, Union

from .base import MessageConverter, DEFAULT_INPUT_SCHEMA
from ..types import (
    Message,
    ToolDefinition,
    RequestOptions,
    get_field,
    is_image_part,
    is_text_part,
    is_tool_call_part,
    is_tool_result_part,
    tool_result_text,
)


class OpenAIChatConverter(MessageConverter):
    """
    Converter for the OpenAI Chat Completions format.
    """

    api_format = "openai-chat"

    def to_wire_request(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDefinition]] = None,
        options: Optional[RequestOptions] = None,
    ) -> Dict[str, Any]:
        options = options or {}
        body: Dict[str, Any] = {
            "model": self._require_model(options),
            "messages": self._convert_messages(messages, options),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        self._optional(
            body,
            max_tokens=options.get("max_tokens"),
            temperature=options.get("temperature"),
            top_p=options.get("top_p"),
            stop=options.get("stop"),
        )

        if tools:
            body["tools"] = self._convert_tools(tools)
            tool_choice = self._convert_tool_choice(options.get("tool_choice"))
            if tool_choice is not None:
                body["tool_choice"] = tool_choice

        return body

    def _convert_messages(self, messages: List[Message], options: RequestOptions) -> List[Dict[str, Any]]:
        """
        Convert internal messages to OpenAI's expected format.

        Handles:
        - Tool results (sent as separate messages with role "tool").
        - Assistant messages with tool calls (preserving the tool_calls field).
        - Multimodal content (text + images).
        - Thinking parts, which this format cannot carry and are dropped.
        """
        converted = []
        for msg in messages:
            role = self._check_role(msg, options)
            parts = get_field(msg, "parts", [])

            if role == "system":
                content = self._text_content(parts)
                if content:
                    converted.append({"role": "system", "content": content})
                continue

            if role == "assistant":
                content = self._text_content(parts)
                tool_calls = [
                    {
                        "id": self._call_id(p, options),
                        "type": "function",
                        "function": {
                            "name": get_field(p, "name", ""),
                            "arguments": self._dump_arguments(get_field(p, "input")),
                        },
                    }
                    for p in parts
                    if is_tool_call_part(p)
                ]
                if not content and not tool_calls:
                    continue
                assistant_msg: Dict[str, Any] = {"role": "assistant", "content": content}
                if tool_calls:
                    assistant_msg["tool_calls"] = tool_calls
                converted.append(assistant_msg)
                continue

            # Tool results must directly follow the assistant message that
            # made the calls, so they go ahead of the user's own content.
            content = []
            for part in parts:
                if is_tool_result_part(part):
                    converted.append({
                        "role": "tool",
                        "tool_call_id": self._call_id(part, options),
                        "content": tool_result_text(part),
                    })
                elif is_text_part(part):
                    text = get_field(part, "text", "")
                    if text:
                        content.append({"type": "text", "text": text})
                elif is_image_part(part):
                    content.append({
                        "type": "image_url",
                        "image_url": {"url": self._image_url(part, options)},
                    })

            if not content:
                continue
            if len(content) == 1 and content[0]["type"] == "text":
                converted.append({"role": "user", "content": content[0]["text"]})
            else:
                converted.append({"role": "user", "content": content})

        return converted

    @staticmethod
    def _text_content(parts: List[Any]) -> Optional[Union[str, List[Dict[str, str]]]]:
        """
        Content of a text-only message: None when empty, a string for a
        single text part, otherwise one text content part per text part.
        """
        texts = [get_field(p, "text", "") for p in parts if is_text_part(p)]
        texts = [t for t in texts if t]
        if not texts:
            return None
        if len(texts) == 1:
            return texts[0]
        return [{"type": "text", "text": t} for t in texts]

    @staticmethod
    def _convert_tools(tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.get("name", ""),
                    "description": tool.get("description", ""),
                    "parameters": tool.get("input_schema") or DEFAULT_INPUT_SCHEMA,
                },
            }
            for tool in tools
        ]

    @staticmethod
    def _convert_tool_choice(tool_choice: Optional[str]) -> Optional[Any]:
        if not tool_choice:
            return None
        if tool_choice in ("auto", "none", "required"):
            return tool_choice
        return {"type": "function", "function": {"name": tool_choice}}
