from typing import Dict, Any, List

from .base import StreamParser
from ..sse import ServerSentEvent
from ..types import StreamDelta


class OpenAIChatStreamParser(StreamParser):
    """
    Parser for OpenAI Chat Completions chunks.

    Tool calls arrive as fragments keyed by `index`: the first fragment
    carries the id and name, later ones only argument text. All pending
    calls are closed when a `finish_reason` arrives. With
    `stream_options.include_usage` the usage comes in a final chunk with an
    empty `choices` list, so `done` is held back until `[DONE]` or the end
    of the stream.
    """

    api_format = "openai-chat"

    def __init__(self, model=None):
        super().__init__(model)
        self._tool_calls: Dict[int, Dict[str, Any]] = {}

    def from_wire_event(self, event: ServerSentEvent) -> List[StreamDelta]:
        data = event.data.strip()
        if not data:
            return []
        if data == "[DONE]":
            return self._flush() + self._done_delta()

        chunk = self._load_json(data)

        if chunk.get("error"):
            error = chunk["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            return [{"type": "error", "message": message or "Unknown OpenAI stream error"}]

        usage = chunk.get("usage")
        if isinstance(usage, dict):
            self.usage = self.normalize_usage(
                "openai-chat",
                input_tokens=usage.get("prompt_tokens"),
                output_tokens=usage.get("completion_tokens"),
                total_tokens=usage.get("total_tokens"),
                raw=usage,
            )

        deltas: List[StreamDelta] = []
        choices = chunk.get("choices") or []
        if not choices:
            return deltas

        choice = choices[0]
        delta = choice.get("delta") or {}

        content = delta.get("content")
        if isinstance(content, list):
            content = "".join(p.get("text", "") for p in content if isinstance(p, dict))
        if content:
            deltas.append({"type": "text", "text": str(content)})

        for tool_call in delta.get("tool_calls") or []:
            deltas.extend(self._on_tool_call(tool_call))

        if choice.get("finish_reason"):
            self.finish_reason = choice["finish_reason"]
            deltas.extend(self._flush())

        return deltas

    def _on_tool_call(self, tool_call: Dict[str, Any]) -> List[StreamDelta]:
        index = tool_call.get("index", 0)
        function = tool_call.get("function") or {}
        state = self._tool_calls.setdefault(
            index, {"id": None, "name": None, "arguments": "", "started": False}
        )

        if tool_call.get("id") and not state["started"]:
            state["id"] = tool_call["id"]
        if function.get("name") and not state["started"]:
            state["name"] = function["name"]

        deltas: List[StreamDelta] = []
        piece = function.get("arguments") or ""
        state["arguments"] += piece

        if not state["started"] and state["name"]:
            state["started"] = True
            state["id"] = state["id"] or self._new_call_id()
            deltas.append({"type": "tool_call_start", "call_id": state["id"], "name": state["name"]})
            # Argument text that arrived ahead of the name
            if state["arguments"]:
                deltas.append({"type": "tool_call_args_delta", "call_id": state["id"], "delta": state["arguments"]})
        elif state["started"] and piece:
            deltas.append({"type": "tool_call_args_delta", "call_id": state["id"], "delta": piece})

        return deltas

    def _flush(self) -> List[StreamDelta]:
        deltas: List[StreamDelta] = []
        for index in sorted(self._tool_calls):
            state = self._tool_calls[index]
            if not state["started"]:
                continue
            deltas.append({
                "type": "tool_call_end",
                "call_id": state["id"],
                "name": state["name"],
                "input": self._parse_arguments(state["arguments"]),
            })
        self._tool_calls.clear()
        return deltas
