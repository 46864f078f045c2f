from typing import Dict, Any, List, Optional, Tuple

from anthropic.types import MessageParam, ToolParam

from .base import MessageConverter, DEFAULT_INPUT_SCHEMA
from ..config import DEFAULT_MAX_OUTPUT_TOKENS, DEFAULT_THINKING_BUDGET
from ..types import (
    Message,
    ToolDefinition,
    RequestOptions,
    get_field,
    is_image_part,
    is_text_part,
    is_thinking_part,
    is_tool_call_part,
    is_tool_result_part,
    tool_result_text,
)

# Stands in for thinking that was stripped from history (e.g. after context
# summarization). The API accepts an empty redacted block as the required
# leading thinking block of a tool-using assistant turn.
REDACTED_THINKING_PLACEHOLDER: Dict[str, Any] = {"type": "redacted_thinking", "data": ""}


def replayable_thinking_block(part: Any) -> Optional[Dict[str, Any]]:
    """
    Convert a finalized thinking part into a Claude content block.

    Returns None for parts that may not be sent back: still streaming
    (no metadata), or complete but unsigned.
    """
    metadata = get_field(part, "metadata")
    if not metadata:
        return None
    if metadata.get("redacted"):
        return {"type": "redacted_thinking", "data": metadata.get("data", "")}
    signature = metadata.get("signature")
    if metadata.get("complete") and signature:
        return {"type": "thinking", "thinking": get_field(part, "value", ""), "signature": signature}
    return None


class ClaudeConverter(MessageConverter):
    """
    Converter for the Anthropic Messages format.

    With extended thinking enabled the API requires every assistant turn that
    uses a tool to start with a thinking block, and thinking blocks must be
    echoed verbatim with their signature. The converter enforces this at
    translation time so callers never have to repair history themselves.
    """

    api_format = "claude"

    def to_wire_request(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDefinition]] = None,
        options: Optional[RequestOptions] = None,
    ) -> Dict[str, Any]:
        options = options or {}
        thinking = bool(options.get("thinking"))
        max_tokens = options.get("max_tokens") or DEFAULT_MAX_OUTPUT_TOKENS

        system_text, converted = self.convert_messages(messages, thinking_enabled=thinking, options=options)

        body: Dict[str, Any] = {
            "model": self._require_model(options),
            "messages": converted,
            "max_tokens": max_tokens,
            "stream": True,
        }
        self._optional(
            body,
            system=system_text,
            top_p=options.get("top_p"),
            stop_sequences=options.get("stop"),
        )

        if thinking:
            budget = options.get("thinking_budget") or DEFAULT_THINKING_BUDGET
            if max_tokens <= budget:
                raise self._error(
                    f"max_tokens ({max_tokens}) must be greater than the thinking budget ({budget})",
                    options,
                )
            body["thinking"] = {"type": "enabled", "budget_tokens": budget}
        elif options.get("temperature") is not None:
            body["temperature"] = options["temperature"]

        if tools:
            body["tools"] = self._convert_tools(tools)
            tool_choice = options.get("tool_choice")
            if tool_choice == "auto":
                body["tool_choice"] = {"type": "auto"}
            elif tool_choice == "required":
                body["tool_choice"] = {"type": "any"}
            elif tool_choice and tool_choice != "none":
                body["tool_choice"] = {"type": "tool", "name": tool_choice}

        return body

    def convert_messages(
        self,
        messages: List[Message],
        *,
        thinking_enabled: bool,
        options: Optional[RequestOptions] = None,
    ) -> Tuple[Optional[str], List[MessageParam]]:
        """
        Convert messages to Claude format.

        System messages are returned separately because the API takes them as
        a top-level parameter.

        Args:
            messages (List[Message]): Internal message list.
            thinking_enabled (bool): Whether the request enables extended thinking.

        Returns:
            Tuple containing:
            - system_text: Joined system prompt (or None)
            - converted: List of message dicts suitable for the API
        """
        converted: List[MessageParam] = []
        for msg in messages:
            role = self._check_role(msg, options)
            if role == "system":
                continue

            parts = get_field(msg, "parts", [])
            if role == "assistant":
                content = self._convert_assistant(parts, thinking_enabled, options)
            else:
                content = self._convert_user(parts, options)

            if content:
                converted.append({"role": role, "content": content})

        return self._system_text(messages), converted

    def _convert_assistant(self, parts: List[Any], thinking_enabled: bool, options) -> List[Dict[str, Any]]:
        thinking_blocks = []
        blocks = []
        has_tool_call = False

        for part in parts:
            if is_thinking_part(part):
                if thinking_enabled:
                    block = replayable_thinking_block(part)
                    if block is not None:
                        thinking_blocks.append(block)
            elif is_text_part(part):
                text = get_field(part, "text", "")
                if text:
                    blocks.append({"type": "text", "text": text})
            elif is_tool_call_part(part):
                has_tool_call = True
                blocks.append({
                    "type": "tool_use",
                    "id": self._call_id(part, options),
                    "name": get_field(part, "name", ""),
                    "input": get_field(part, "input") or {},
                })
            elif is_image_part(part):
                blocks.append(self._convert_image(part, options))

        if thinking_enabled and has_tool_call and not thinking_blocks:
            thinking_blocks.append(dict(REDACTED_THINKING_PLACEHOLDER))

        return thinking_blocks + blocks

    def _convert_user(self, parts: List[Any], options) -> List[Dict[str, Any]]:
        tool_results = []
        blocks = []

        for part in parts:
            if is_tool_result_part(part):
                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": self._call_id(part, options),
                    "content": tool_result_text(part),
                })
            elif is_text_part(part):
                text = get_field(part, "text", "")
                if text:
                    blocks.append({"type": "text", "text": text})
            elif is_image_part(part):
                blocks.append(self._convert_image(part, options))

        return tool_results + blocks

    def _convert_image(self, part: Any, options) -> Dict[str, Any]:
        data = get_field(part, "data")
        if data:
            return {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": get_field(part, "mime_type") or "image/jpeg",
                    "data": data,
                },
            }
        url = get_field(part, "url")
        if url:
            return {"type": "image", "source": {"type": "url", "url": url}}
        raise self._error("Image part has neither data nor url", options)

    @staticmethod
    def _convert_tools(tools: List[ToolDefinition]) -> List[ToolParam]:
        """
        Claude uses 'input_schema' directly.
        """
        return [
            {
                "name": tool.get("name", ""),
                "description": tool.get("description", ""),
                "input_schema": tool.get("input_schema") or DEFAULT_INPUT_SCHEMA,
            }
            for tool in tools
        ]
