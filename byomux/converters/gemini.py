from typing import Dict, Any, List, Optional

from .base import MessageConverter, DEFAULT_INPUT_SCHEMA
from ..config import DEFAULT_THINKING_BUDGET
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

# JSON Schema keywords the Gemini API rejects
UNSUPPORTED_SCHEMA_KEYS = frozenset({
    "$schema",
    "additionalProperties",
    "$id",
    "$ref",
    "$defs",
    "definitions",
    "cache_control",
    "mimeType",
})


def clean_schema_for_gemini(schema: Any) -> Any:
    """
    Recursively strip schema keywords Gemini does not accept.

    Nested objects and lists (properties, items, anyOf, ...) are cleaned at
    every depth. Non-dict values are returned unchanged.
    """
    if isinstance(schema, list):
        return [clean_schema_for_gemini(item) for item in schema]
    if not isinstance(schema, dict):
        return schema
    return {
        key: clean_schema_for_gemini(value)
        for key, value in schema.items()
        if key not in UNSUPPORTED_SCHEMA_KEYS
    }


class GeminiConverter(MessageConverter):
    """
    Converter for the Google Gemini `generateContent` format.

    The model id is part of the request URL, so it is not written to the body.
    """

    api_format = "gemini"

    def to_wire_request(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDefinition]] = None,
        options: Optional[RequestOptions] = None,
    ) -> Dict[str, Any]:
        options = options or {}
        body: Dict[str, Any] = {"contents": self._convert_contents(messages, options)}

        system_text = self._system_text(messages)
        if system_text:
            body["systemInstruction"] = {"parts": [{"text": system_text}]}

        generation_config: Dict[str, Any] = {}
        self._optional(
            generation_config,
            maxOutputTokens=options.get("max_tokens"),
            temperature=options.get("temperature"),
            topP=options.get("top_p"),
            stopSequences=options.get("stop"),
        )
        if options.get("thinking"):
            generation_config["thinkingConfig"] = {
                "thinkingBudget": options.get("thinking_budget") or DEFAULT_THINKING_BUDGET,
                "includeThoughts": True,
            }
        if generation_config:
            body["generationConfig"] = generation_config

        if tools:
            body["tools"] = [{
                "functionDeclarations": [
                    {
                        "name": tool.get("name", ""),
                        "description": tool.get("description", ""),
                        "parameters": clean_schema_for_gemini(tool.get("input_schema") or DEFAULT_INPUT_SCHEMA),
                    }
                    for tool in tools
                ]
            }]
            tool_config = self._convert_tool_choice(options.get("tool_choice"))
            if tool_config:
                body["toolConfig"] = tool_config

        return body

    def _convert_contents(self, messages: List[Message], options: RequestOptions) -> List[Dict[str, Any]]:
        """
        Convert messages to Gemini `contents`.

        Thinking parts are moved to the front of their message. A tool result
        needs the function name, which Gemini requires but the internal part
        does not carry, so it is looked up from the earlier tool call.
        """
        contents = []
        call_names: Dict[str, str] = {}

        for msg in messages:
            role = self._check_role(msg, options)
            if role == "system":
                continue

            thought_parts = []
            other_parts = []
            for part in get_field(msg, "parts", []):
                if is_thinking_part(part):
                    converted = self._convert_thinking(part)
                    if converted:
                        thought_parts.append(converted)
                elif is_text_part(part):
                    text = get_field(part, "text", "")
                    if text:
                        other_parts.append({"text": text})
                elif is_image_part(part):
                    other_parts.append(self._convert_image(part, options))
                elif is_tool_call_part(part):
                    call_id = self._call_id(part, options)
                    name = get_field(part, "name", "")
                    call_names[call_id] = name
                    other_parts.append({
                        "functionCall": {
                            "id": call_id,
                            "name": name,
                            "args": get_field(part, "input") or {},
                        }
                    })
                elif is_tool_result_part(part):
                    call_id = self._call_id(part, options)
                    if call_id not in call_names:
                        raise self._error(
                            f"Tool result {call_id!r} has no preceding tool call to take the function name from",
                            options,
                        )
                    other_parts.append({
                        "functionResponse": {
                            "id": call_id,
                            "name": call_names[call_id],
                            "response": {"content": tool_result_text(part)},
                        }
                    })

            parts = thought_parts + other_parts
            if parts:
                contents.append({"role": "model" if role == "assistant" else "user", "parts": parts})

        return contents

    @staticmethod
    def _convert_thinking(part: Any) -> Optional[Dict[str, Any]]:
        metadata = get_field(part, "metadata") or {}
        if metadata.get("redacted"):
            return None
        text = get_field(part, "value", "")
        signature = metadata.get("signature")
        if not text and not signature:
            return None
        converted: Dict[str, Any] = {"text": text, "thought": True}
        if signature:
            converted["thoughtSignature"] = signature
        return converted

    def _convert_image(self, part: Any, options: RequestOptions) -> Dict[str, Any]:
        mime_type = get_field(part, "mime_type") or "image/jpeg"
        data = get_field(part, "data")
        if data:
            return {"inlineData": {"mimeType": mime_type, "data": data}}
        url = get_field(part, "url")
        if url:
            return {"fileData": {"mimeType": mime_type, "fileUri": url}}
        raise self._error("Image part has neither data nor url", options)

    @staticmethod
    def _convert_tool_choice(tool_choice: Optional[str]) -> Optional[Dict[str, Any]]:
        if not tool_choice:
            return None
        if tool_choice == "auto":
            return {"functionCallingConfig": {"mode": "AUTO"}}
        if tool_choice == "none":
            return {"functionCallingConfig": {"mode": "NONE"}}
        if tool_choice == "required":
            return {"functionCallingConfig": {"mode": "ANY"}}
        return {"functionCallingConfig": {"mode": "ANY", "allowedFunctionNames": [tool_choice]}}
