import json
from typing import Dict, Any, List

from .base import StreamParser
from ..sse import ServerSentEvent
from ..types import StreamDelta


class ClaudeStreamParser(StreamParser):
    """
    Parser for Anthropic Messages streaming events.

    Content blocks are tracked by index. Thinking and redacted thinking are
    only finalized at `content_block_stop`, when text and signature are both
    known; a stream cut short before that never yields a finalized part.
    """

    api_format = "claude"

    def __init__(self, model=None):
        super().__init__(model)
        self._blocks: Dict[int, Dict[str, Any]] = {}
        self._input_tokens = None
        self._output_tokens = None
        self._raw_usage: Dict[str, Any] = {}

    def from_wire_event(self, event: ServerSentEvent) -> List[StreamDelta]:
        data = event.data.strip()
        if not data:
            return []
        if data == "[DONE]":
            return self._done_delta()

        chunk = self._load_json(data)
        kind = chunk.get("type") or event.event

        if kind == "message_start":
            self._record_usage((chunk.get("message") or {}).get("usage"))
            return []
        if kind == "content_block_start":
            return self._on_block_start(chunk)
        if kind == "content_block_delta":
            return self._on_block_delta(chunk)
        if kind == "content_block_stop":
            return self._on_block_stop(chunk)
        if kind == "message_delta":
            delta = chunk.get("delta") or {}
            if delta.get("stop_reason"):
                self.finish_reason = delta["stop_reason"]
            self._record_usage(chunk.get("usage"))
            return []
        if kind == "message_stop":
            return self._done_delta()
        if kind == "error":
            error = chunk.get("error") or {}
            return [{"type": "error", "message": error.get("message") or "Unknown Claude stream error"}]

        # ping and unknown event types
        return []

    def _on_block_start(self, chunk: Dict[str, Any]) -> List[StreamDelta]:
        index = chunk.get("index", 0)
        block = chunk.get("content_block") or {}
        block_type = block.get("type")

        if block_type == "tool_use":
            call_id = block.get("id") or self._new_call_id("toolu")
            name = block.get("name", "")
            self._blocks[index] = {"type": "tool_use", "id": call_id, "name": name, "input": ""}
            return [{"type": "tool_call_start", "call_id": call_id, "name": name}]

        if block_type == "thinking":
            self._blocks[index] = {
                "type": "thinking",
                "text": block.get("thinking") or "",
                "signature": block.get("signature") or "",
            }
            if block.get("thinking"):
                return [{"type": "thinking_delta", "text": block["thinking"]}]
            return []

        if block_type == "redacted_thinking":
            self._blocks[index] = {"type": "redacted_thinking", "data": block.get("data") or ""}
            return []

        self._blocks[index] = {"type": "text"}
        if block.get("text"):
            return [{"type": "text", "text": block["text"]}]
        return []

    def _on_block_delta(self, chunk: Dict[str, Any]) -> List[StreamDelta]:
        block = self._blocks.get(chunk.get("index", 0))
        delta = chunk.get("delta") or {}
        delta_type = delta.get("type")

        if delta_type == "text_delta":
            text = delta.get("text") or ""
            return [{"type": "text", "text": text}] if text else []

        if block is None:
            raise self._violation(f"Delta for unknown content block {chunk.get('index')}", json.dumps(chunk))

        if delta_type == "input_json_delta" and block["type"] == "tool_use":
            piece = delta.get("partial_json") or ""
            block["input"] += piece
            if piece:
                return [{"type": "tool_call_args_delta", "call_id": block["id"], "delta": piece}]
            return []

        if delta_type == "thinking_delta" and block["type"] == "thinking":
            text = delta.get("thinking") or ""
            block["text"] += text
            return [{"type": "thinking_delta", "text": text}] if text else []

        if delta_type == "signature_delta" and block["type"] == "thinking":
            block["signature"] += delta.get("signature") or ""
            return []

        return []

    def _on_block_stop(self, chunk: Dict[str, Any]) -> List[StreamDelta]:
        block = self._blocks.pop(chunk.get("index", 0), None)
        if block is None:
            return []

        if block["type"] == "tool_use":
            args = self._parse_arguments(block["input"])
            return [{"type": "tool_call_end", "call_id": block["id"], "name": block["name"], "input": args}]

        if block["type"] == "thinking":
            return self._finalize_thinking(block["text"], signature=block["signature"])

        if block["type"] == "redacted_thinking":
            return self._finalize_thinking("", redacted_data=block["data"])

        return []

    def _record_usage(self, usage: Any) -> None:
        if not isinstance(usage, dict):
            return
        self._raw_usage.update(usage)
        if usage.get("input_tokens") is not None:
            self._input_tokens = usage["input_tokens"]
        if usage.get("output_tokens") is not None:
            self._output_tokens = usage["output_tokens"]
        self.usage = self.normalize_usage(
            "claude",
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            total_tokens=None,
            raw=dict(self._raw_usage),
        )

    def _flush(self) -> List[StreamDelta]:
        # Blocks never closed by content_block_stop are incomplete; drop them.
        self._blocks.clear()
        return []
