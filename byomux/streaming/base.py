import json
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from ..errors import ProtocolViolationError
from ..sse import ServerSentEvent
from ..types import StreamDelta, ThinkingMetadata, ThinkingPart


class StreamParser(ABC):
    """
    Abstract base class for per-format streaming response parsers.

    A parser is created per request and is fed SSE events in wire order.
    Each call returns the deltas that event produced, possibly none. Once the
    transport is exhausted, `finish()` flushes pending state and guarantees a
    single trailing `done` delta.
    """

    api_format: str = ""

    def __init__(self, model: Optional[str] = None):
        self.model = model
        self.finish_reason: Optional[str] = None
        self.usage: Optional[Dict[str, Any]] = None
        self._done = False

    @property
    def is_done(self) -> bool:
        return self._done

    @abstractmethod
    def from_wire_event(self, event: ServerSentEvent) -> List[StreamDelta]:
        """
        Translate one server-sent event into stream deltas.

        Raises:
            ProtocolViolationError: If the payload is not valid for the format.
        """
        pass

    def finish(self) -> List[StreamDelta]:
        """
        Flush pending state at end of stream and emit `done` if not yet sent.
        """
        return self._flush() + self._done_delta()

    def _flush(self) -> List[StreamDelta]:
        return []

    def _done_delta(self) -> List[StreamDelta]:
        if self._done:
            return []
        self._done = True
        return [{"type": "done", "finish_reason": self.finish_reason, "usage": self.usage}]

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _violation(self, message: str, payload: Optional[str] = None) -> ProtocolViolationError:
        return ProtocolViolationError(
            message,
            api_format=self.api_format,
            payload=payload,
            provider=self.api_format,
            model=self.model,
        )

    def _load_json(self, data: str) -> Dict[str, Any]:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise self._violation(f"Malformed JSON in stream event: {e}", data) from e
        if not isinstance(payload, dict):
            raise self._violation("Stream event is not a JSON object", data)
        return payload

    def _parse_arguments(self, raw: str) -> Dict[str, Any]:
        """
        Parse accumulated tool-call arguments. Empty arguments mean `{}`.
        """
        if not raw or not raw.strip():
            return {}
        try:
            args = json.loads(raw)
        except json.JSONDecodeError as e:
            raise self._violation(f"Tool call arguments are not valid JSON: {e}", raw) from e
        if not isinstance(args, dict):
            raise self._violation("Tool call arguments are not a JSON object", raw)
        return args

    @staticmethod
    def _new_call_id(prefix: str = "call") -> str:
        return f"{prefix}_{uuid.uuid4().hex[:24]}"

    @staticmethod
    def _finalize_thinking(
        text: str,
        *,
        signature: Optional[str] = None,
        redacted_data: Optional[str] = None,
    ) -> List[StreamDelta]:
        """
        Build the deltas that close a thinking block.

        A `thinking_signature` delta precedes `thinking_done` only when a
        signature exists.
        """
        deltas: List[StreamDelta] = []
        if redacted_data is not None:
            metadata: ThinkingMetadata = {"redacted": True, "data": redacted_data}
        else:
            metadata = {"complete": True}
            if signature:
                metadata["signature"] = signature
                deltas.append({"type": "thinking_signature", "signature": signature})

        part: ThinkingPart = {"type": "thinking", "value": text, "metadata": metadata}
        deltas.append({"type": "thinking_done", "part": part})
        return deltas

    @staticmethod
    def normalize_usage(
        provider: str,
        *,
        input_tokens: Optional[int],
        output_tokens: Optional[int],
        total_tokens: Optional[int],
        raw: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Normalize token usage information across formats.

        Creates a standardized dictionary structure for token usage statistics,
        calculating the total if missing.

        Args:
            provider (str): Wire format the usage was reported by.
            input_tokens (int, optional): Number of prompt tokens.
            output_tokens (int, optional): Number of generated tokens.
            total_tokens (int, optional): Total token count.
            raw (dict, optional): Raw usage data from the response.

        Returns:
            Dict[str, Any]: Standardized usage dictionary.
        """
        if total_tokens is None and input_tokens is not None and output_tokens is not None:
            total_tokens = input_tokens + output_tokens

        return {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": total_tokens,
            "raw": {
                "provider": provider,
                **(raw or {}),
            } if raw is not None else None,
        }
