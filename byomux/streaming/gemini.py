import json
from typing import Dict, Any, List, Optional

from .base import StreamParser
from ..sse import ServerSentEvent
from ..types import StreamDelta


class GeminiStreamParser(StreamParser):
    """
    Parser for Gemini `streamGenerateContent?alt=sse` chunks.

    Thought parts (`thought: true`) accumulate into one pending block, which is
    finalized when the first non-thought part arrives or at end of stream.
    A `thoughtSignature` attaches to the pending block; a signature carried
    by a non-thought part with nothing pending (function calls on newer
    models) becomes an empty signed thinking part ahead of that content.
    Function calls arrive whole and are emitted as start, args, end at once.
    """

    api_format = "gemini"

    def __init__(self, model=None):
        super().__init__(model)
        self._thinking: Optional[Dict[str, Any]] = None

    def from_wire_event(self, event: ServerSentEvent) -> List[StreamDelta]:
        data = event.data.strip()
        if not data:
            return []
        if data == "[DONE]":
            return self.finish()

        chunk = self._load_json(data)

        if chunk.get("error"):
            error = chunk["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            return [{"type": "error", "message": message or "Unknown Gemini stream error"}]

        deltas: List[StreamDelta] = []
        candidates = chunk.get("candidates") or []
        if candidates:
            candidate = candidates[0]
            for part in (candidate.get("content") or {}).get("parts") or []:
                deltas.extend(self._on_part(part))
            if candidate.get("finishReason"):
                self.finish_reason = candidate["finishReason"]

        usage = chunk.get("usageMetadata")
        if isinstance(usage, dict):
            self.usage = self.normalize_usage(
                "gemini",
                input_tokens=usage.get("promptTokenCount"),
                output_tokens=usage.get("candidatesTokenCount"),
                total_tokens=usage.get("totalTokenCount"),
                raw=usage,
            )

        return deltas

    def _on_part(self, part: Dict[str, Any]) -> List[StreamDelta]:
        signature = part.get("thoughtSignature")

        if part.get("thought") is True:
            if self._thinking is None:
                self._thinking = {"text": "", "signature": None}
            if signature:
                self._thinking["signature"] = signature
            text = part.get("text") or ""
            self._thinking["text"] += text
            return [{"type": "thinking_delta", "text": text}] if text else []

        deltas: List[StreamDelta] = []
        if signature:
            if self._thinking is None:
                self._thinking = {"text": "", "signature": signature}
            elif not self._thinking["signature"]:
                self._thinking["signature"] = signature
        deltas.extend(self._flush())

        if part.get("text"):
            deltas.append({"type": "text", "text": part["text"]})
        elif part.get("functionCall"):
            call = part["functionCall"]
            call_id = call.get("id") or self._new_call_id(call.get("name") or "call")
            name = call.get("name", "")
            args = call.get("args") or {}
            deltas.append({"type": "tool_call_start", "call_id": call_id, "name": name})
            deltas.append({"type": "tool_call_args_delta", "call_id": call_id, "delta": json.dumps(args)})
            deltas.append({"type": "tool_call_end", "call_id": call_id, "name": name, "input": args})

        return deltas

    def _flush(self) -> List[StreamDelta]:
        if self._thinking is None:
            return []
        pending, self._thinking = self._thinking, None
        return self._finalize_thinking(pending["text"], signature=pending["signature"])
