from typing import Dict, Any, List, Optional

from .base import MessageConverter, DEFAULT_INPUT_SCHEMA
from ..config import DEFAULT_REASONING_EFFORT
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


class OpenAIResponsesConverter(MessageConverter):
    """
    Converter for the OpenAI Responses format.

    System text becomes `instructions`. Tool calls and tool results are not
    nested inside messages but emitted as top-level `function_call` and
    `function_call_output` items of `input[]`, in conversation order.
    """

    api_format = "openai-responses"

    def to_wire_request(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDefinition]] = None,
        options: Optional[RequestOptions] = None,
    ) -> Dict[str, Any]:
        options = options or {}
        body: Dict[str, Any] = {
            "model": self._require_model(options),
            "input": self._convert_input(messages, options),
            "stream": True,
        }
        self._optional(
            body,
            instructions=self._system_text(messages),
            max_output_tokens=options.get("max_tokens"),
            temperature=options.get("temperature"),
            top_p=options.get("top_p"),
        )

        if tools:
            body["tools"] = [
                {
                    "type": "function",
                    "name": tool.get("name", ""),
                    "description": tool.get("description", ""),
                    "parameters": tool.get("input_schema") or DEFAULT_INPUT_SCHEMA,
                }
                for tool in tools
            ]
            tool_choice = options.get("tool_choice")
            if tool_choice in ("auto", "none", "required"):
                body["tool_choice"] = tool_choice
            elif tool_choice:
                body["tool_choice"] = {"type": "function", "name": tool_choice}

        if options.get("thinking"):
            body["reasoning"] = {
                "effort": options.get("reasoning_effort") or DEFAULT_REASONING_EFFORT,
                "summary": "auto",
            }

        return body

    def _convert_input(self, messages: List[Message], options: RequestOptions) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []

        for msg in messages:
            role = self._check_role(msg, options)
            if role == "system":
                continue

            text_type = "output_text" if role == "assistant" else "input_text"
            content: List[Dict[str, Any]] = []

            def flush_content():
                if not content:
                    return
                if role == "user" and len(content) == 1 and content[0]["type"] == "input_text":
                    items.append({"role": role, "content": content[0]["text"]})
                else:
                    items.append({"role": role, "content": list(content)})
                content.clear()

            for part in get_field(msg, "parts", []):
                if is_text_part(part):
                    text = get_field(part, "text", "")
                    if text:
                        content.append({"type": text_type, "text": text})
                elif is_image_part(part):
                    content.append({"type": "input_image", "image_url": self._image_url(part, options)})
                elif is_tool_call_part(part):
                    flush_content()
                    items.append({
                        "type": "function_call",
                        "call_id": self._call_id(part, options),
                        "name": get_field(part, "name", ""),
                        "arguments": self._dump_arguments(get_field(part, "input")),
                    })
                elif is_tool_result_part(part):
                    flush_content()
                    items.append({
                        "type": "function_call_output",
                        "call_id": self._call_id(part, options),
                        "output": tool_result_text(part),
                    })
                # Reasoning items are not replayed

            flush_content()

        return items
