from typing import Dict, Any, List, Optional

from .base import StreamParser
from ..sse import ServerSentEvent
from ..types import StreamDelta

THINKING_DELTA_EVENTS = (
    "response.reasoning_summary_text.delta",
    "response.reasoning.delta",
    "response.thinking.delta",
)

# Emitted by proxies fronting Claude/Gemini; they carry the signature or
# redaction data of the block being closed.
THINKING_DONE_EVENTS = (
    "response.reasoning.done",
    "response.thinking.done",
    "response.reasoning_summary.done",
)


class OpenAIResponsesStreamParser(StreamParser):
    """
    Parser for OpenAI Responses API typed events.
    """

    api_format = "openai-responses"

    def __init__(self, model=None):
        super().__init__(model)
        self._thinking: Optional[Dict[str, Any]] = None
        self._tool_calls: Dict[str, Dict[str, Any]] = {}
        self._saw_tool_call = False
        self._reasoning_finalized = False

    def from_wire_event(self, event: ServerSentEvent) -> List[StreamDelta]:
        data = event.data.strip()
        if not data:
            return []
        if data == "[DONE]":
            return self.finish()

        chunk = self._load_json(data)
        kind = chunk.get("type") or event.event or ""

        if kind in THINKING_DELTA_EVENTS:
            text = chunk.get("delta") or ""
            if self._thinking is None:
                self._thinking = {"text": "", "signature": None, "redacted_data": None}
            self._thinking["text"] += text
            return [{"type": "thinking_delta", "text": text}] if text else []

        if kind in THINKING_DONE_EVENTS:
            if self._thinking is None:
                return []
            if chunk.get("signature"):
                self._thinking["signature"] = chunk["signature"]
            if chunk.get("redacted_data"):
                self._thinking["redacted_data"] = chunk["redacted_data"]
            return self._flush_thinking()

        if kind == "response.output_text.delta":
            text = chunk.get("delta") or ""
            deltas = self._flush_thinking()
            if text:
                deltas.append({"type": "text", "text": text})
            return deltas

        if kind == "response.output_item.added":
            return self._on_item_added(chunk.get("item") or {})

        if kind == "response.output_item.done":
            return self._on_item_done(chunk.get("item") or {})

        if kind == "response.function_call_arguments.delta":
            state = self._tool_calls.get(chunk.get("item_id"))
            piece = chunk.get("delta") or ""
            if state is None or not piece:
                return []
            state["arguments"] += piece
            return [{"type": "tool_call_args_delta", "call_id": state["call_id"], "delta": piece}]

        if kind == "response.function_call_arguments.done":
            state = self._tool_calls.pop(chunk.get("item_id"), None)
            if state is None:
                return []
            arguments = chunk.get("arguments") or state["arguments"]
            return [self._end_tool_call(state, arguments)]

        if kind in ("response.completed", "response.incomplete"):
            return self._on_completed(kind, chunk.get("response") or {})

        if kind == "response.failed":
            error = (chunk.get("response") or {}).get("error") or {}
            return [{"type": "error", "message": error.get("message") or "Request failed"}]

        if kind == "error":
            error = chunk.get("error")
            message = chunk.get("message")
            if not message and isinstance(error, dict):
                message = error.get("message")
            return [{"type": "error", "message": message or "Unknown Responses stream error"}]

        return []

    def _on_item_added(self, item: Dict[str, Any]) -> List[StreamDelta]:
        item_type = item.get("type")

        if item_type == "reasoning":
            deltas = self._flush_thinking()
            self._reasoning_finalized = False
            self._thinking = {"text": "", "signature": None, "redacted_data": None}
            return deltas

        if item_type == "function_call":
            deltas = self._flush_thinking()
            item_id = item.get("id") or item.get("call_id")
            call_id = item.get("call_id") or item_id or self._new_call_id()
            state = {"call_id": call_id, "name": item.get("name", ""), "arguments": item.get("arguments") or ""}
            self._tool_calls[item_id] = state
            self._saw_tool_call = True
            deltas.append({"type": "tool_call_start", "call_id": call_id, "name": state["name"]})
            return deltas

        return []

    def _on_item_done(self, item: Dict[str, Any]) -> List[StreamDelta]:
        item_type = item.get("type")

        if item_type == "reasoning":
            if self._thinking is None:
                if self._reasoning_finalized:
                    return []
                summary = "".join(s.get("text", "") for s in item.get("summary") or [] if isinstance(s, dict))
                if not summary and not item.get("encrypted_content"):
                    return []
                self._thinking = {"text": summary, "signature": None, "redacted_data": None}
            if item.get("encrypted_content"):
                self._thinking["signature"] = item["encrypted_content"]
            return self._flush_thinking()

        if item_type == "function_call":
            state = self._tool_calls.pop(item.get("id") or item.get("call_id"), None)
            if state is None:
                return []
            return [self._end_tool_call(state, item.get("arguments") or state["arguments"])]

        return []

    def _on_completed(self, kind: str, response: Dict[str, Any]) -> List[StreamDelta]:
        usage = response.get("usage")
        if isinstance(usage, dict):
            self.usage = self.normalize_usage(
                "openai-responses",
                input_tokens=usage.get("input_tokens"),
                output_tokens=usage.get("output_tokens"),
                total_tokens=usage.get("total_tokens"),
                raw=usage,
            )

        if kind == "response.incomplete":
            details = response.get("incomplete_details") or {}
            self.finish_reason = details.get("reason") or "incomplete"
        else:
            self.finish_reason = "tool_calls" if self._saw_tool_call else "stop"

        return self.finish()

    def _end_tool_call(self, state: Dict[str, Any], arguments: str) -> StreamDelta:
        return {
            "type": "tool_call_end",
            "call_id": state["call_id"],
            "name": state["name"],
            "input": self._parse_arguments(arguments),
        }

    def _flush_thinking(self) -> List[StreamDelta]:
        if self._thinking is None:
            return []
        pending, self._thinking = self._thinking, None
        self._reasoning_finalized = True
        if not (pending["text"] or pending["signature"] or pending["redacted_data"]):
            return []
        if pending["redacted_data"]:
            return self._finalize_thinking(pending["text"], redacted_data=pending["redacted_data"])
        return self._finalize_thinking(pending["text"], signature=pending["signature"])

    def _flush(self) -> List[StreamDelta]:
        # Function calls never closed by the server are incomplete; drop them.
        self._tool_calls.clear()
        return self._flush_thinking()
