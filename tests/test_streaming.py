import pytest

from byomux.errors import ProtocolViolationError
from byomux.streaming import (
    ClaudeStreamParser,
    GeminiStreamParser,
    OpenAIChatStreamParser,
    OpenAIResponsesStreamParser,
)

from conftest import feed, sse_event


def types_of(deltas):
    return [d["type"] for d in deltas]


class TestClaudeStreamParser:

    def test_full_stream(self):
        deltas = feed(
            ClaudeStreamParser("claude-sonnet-4"),
            {"type": "message_start", "message": {"usage": {"input_tokens": 10, "output_tokens": 1}}},
            {"type": "content_block_start", "index": 0, "content_block": {"type": "thinking", "thinking": ""}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": "Let me"}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": " think"}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "signature_delta", "signature": "sig"}},
            {"type": "content_block_stop", "index": 0},
            {"type": "content_block_start", "index": 1, "content_block": {"type": "text", "text": ""}},
            {"type": "content_block_delta", "index": 1, "delta": {"type": "text_delta", "text": "Hi"}},
            {"type": "content_block_stop", "index": 1},
            {"type": "content_block_start", "index": 2,
             "content_block": {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {}}},
            {"type": "content_block_delta", "index": 2, "delta": {"type": "input_json_delta", "partial_json": '{"city":'}},
            {"type": "content_block_delta", "index": 2, "delta": {"type": "input_json_delta", "partial_json": '"Paris"}'}},
            {"type": "content_block_stop", "index": 2},
            {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 20}},
            {"type": "message_stop"},
        )

        assert types_of(deltas) == [
            "thinking_delta", "thinking_delta", "thinking_signature", "thinking_done",
            "text", "tool_call_start", "tool_call_args_delta", "tool_call_args_delta",
            "tool_call_end", "done",
        ]
        assert deltas[3]["part"] == {
            "type": "thinking",
            "value": "Let me think",
            "metadata": {"complete": True, "signature": "sig"},
        }
        assert deltas[8]["input"] == {"city": "Paris"}
        done = deltas[-1]
        assert done["finish_reason"] == "tool_use"
        assert done["usage"]["input_tokens"] == 10
        assert done["usage"]["output_tokens"] == 20
        assert done["usage"]["total_tokens"] == 30
        assert done["usage"]["raw"]["provider"] == "claude"

    def test_thinking_not_finalized_before_block_stop(self):
        parser = ClaudeStreamParser()
        parser.from_wire_event(sse_event(
            {"type": "content_block_start", "index": 0, "content_block": {"type": "thinking", "thinking": ""}}
        ))
        deltas = parser.from_wire_event(sse_event(
            {"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": "x"}}
        ))
        assert types_of(deltas) == ["thinking_delta"]

    def test_truncated_stream_yields_no_finalized_thinking(self):
        deltas = feed(
            ClaudeStreamParser(),
            {"type": "content_block_start", "index": 0, "content_block": {"type": "thinking", "thinking": ""}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": "partial"}},
        )
        assert types_of(deltas) == ["thinking_delta", "done"]

    def test_unsigned_thinking_has_no_signature_delta(self):
        deltas = feed(
            ClaudeStreamParser(),
            {"type": "content_block_start", "index": 0, "content_block": {"type": "thinking", "thinking": "t"}},
            {"type": "content_block_stop", "index": 0},
        )
        assert types_of(deltas) == ["thinking_delta", "thinking_done", "done"]
        assert deltas[1]["part"]["metadata"] == {"complete": True}

    def test_redacted_thinking(self):
        deltas = feed(
            ClaudeStreamParser(),
            {"type": "content_block_start", "index": 0, "content_block": {"type": "redacted_thinking", "data": "abc"}},
            {"type": "content_block_stop", "index": 0},
        )
        assert deltas[0]["part"]["metadata"] == {"redacted": True, "data": "abc"}

    def test_invalid_tool_arguments(self):
        parser = ClaudeStreamParser()
        parser.from_wire_event(sse_event(
            {"type": "content_block_start", "index": 0,
             "content_block": {"type": "tool_use", "id": "t", "name": "f", "input": {}}}
        ))
        parser.from_wire_event(sse_event(
            {"type": "content_block_delta", "index": 0, "delta": {"type": "input_json_delta", "partial_json": "{oops"}}
        ))
        with pytest.raises(ProtocolViolationError):
            parser.from_wire_event(sse_event({"type": "content_block_stop", "index": 0}))

    def test_delta_for_unknown_block(self):
        with pytest.raises(ProtocolViolationError):
            ClaudeStreamParser().from_wire_event(sse_event(
                {"type": "content_block_delta", "index": 5, "delta": {"type": "input_json_delta", "partial_json": "{}"}}
            ))

    def test_malformed_json(self):
        with pytest.raises(ProtocolViolationError):
            ClaudeStreamParser().from_wire_event(sse_event("{not json"))

    def test_error_event(self):
        deltas = ClaudeStreamParser().from_wire_event(sse_event(
            {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}
        ))
        assert deltas == [{"type": "error", "message": "Overloaded"}]

    def test_single_done(self):
        parser = ClaudeStreamParser()
        first = parser.from_wire_event(sse_event({"type": "message_stop"}))
        assert types_of(first) == ["done"]
        assert parser.is_done
        assert parser.finish() == []


class TestOpenAIChatStreamParser:

    def test_text_and_tool_calls(self):
        deltas = feed(
            OpenAIChatStreamParser("gpt-4o"),
            {"choices": [{"delta": {"content": "Hel"}}]},
            {"choices": [{"delta": {"content": "lo"}}]},
            {"choices": [{"delta": {"tool_calls": [
                {"index": 0, "id": "call_a", "function": {"name": "search", "arguments": ""}}]}}]},
            {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": {"arguments": '{"q":'}}]}}]},
            {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": {"arguments": '"x"}'}}]}}]},
            {"choices": [{"delta": {}, "finish_reason": "tool_calls"}]},
            {"choices": [], "usage": {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12}},
            "[DONE]",
        )

        assert types_of(deltas) == [
            "text", "text", "tool_call_start", "tool_call_args_delta", "tool_call_args_delta",
            "tool_call_end", "done",
        ]
        assert deltas[2] == {"type": "tool_call_start", "call_id": "call_a", "name": "search"}
        assert deltas[5]["input"] == {"q": "x"}
        assert deltas[-1]["finish_reason"] == "tool_calls"
        assert deltas[-1]["usage"]["total_tokens"] == 12

    def test_arguments_before_name_are_replayed(self):
        parser = OpenAIChatStreamParser()
        first = parser.from_wire_event(sse_event(
            {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": {"arguments": "{}"}}]}}]}
        ))
        assert first == []
        second = parser.from_wire_event(sse_event(
            {"choices": [{"delta": {"tool_calls": [{"index": 0, "id": "c", "function": {"name": "n"}}]}}]}
        ))
        assert second == [
            {"type": "tool_call_start", "call_id": "c", "name": "n"},
            {"type": "tool_call_args_delta", "call_id": "c", "delta": "{}"},
        ]

    def test_pending_calls_closed_at_end_of_stream(self):
        deltas = feed(
            OpenAIChatStreamParser(),
            {"choices": [{"delta": {"tool_calls": [
                {"index": 0, "id": "c", "function": {"name": "n", "arguments": '{"a": 1}'}}]}}]},
        )
        assert types_of(deltas) == ["tool_call_start", "tool_call_args_delta", "tool_call_end", "done"]
        assert deltas[2]["input"] == {"a": 1}

    def test_non_object_arguments(self):
        parser = OpenAIChatStreamParser()
        parser.from_wire_event(sse_event(
            {"choices": [{"delta": {"tool_calls": [
                {"index": 0, "id": "c", "function": {"name": "n", "arguments": "[1, 2]"}}]}}]}
        ))
        with pytest.raises(ProtocolViolationError):
            parser.finish()

    def test_error_chunk(self):
        deltas = OpenAIChatStreamParser().from_wire_event(sse_event({"error": {"message": "rate limited"}}))
        assert deltas == [{"type": "error", "message": "rate limited"}]


class TestGeminiStreamParser:

    def test_thoughts_then_text(self):
        deltas = feed(
            GeminiStreamParser("gemini-2.5-pro"),
            {"candidates": [{"content": {"parts": [{"text": "Hmm", "thought": True}]}}]},
            {"candidates": [{"content": {"parts": [{"text": "more", "thought": True, "thoughtSignature": "sigG"}]}}]},
            {"candidates": [{"content": {"parts": [{"text": "Answer"}]}, "finishReason": "STOP"}],
             "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 4, "totalTokenCount": 9}},
        )

        assert types_of(deltas) == [
            "thinking_delta", "thinking_delta", "thinking_signature", "thinking_done", "text", "done",
        ]
        assert deltas[3]["part"]["value"] == "Hmmmore"
        assert deltas[3]["part"]["metadata"] == {"complete": True, "signature": "sigG"}
        assert deltas[-1]["finish_reason"] == "STOP"
        assert deltas[-1]["usage"]["total_tokens"] == 9

    def test_signature_on_function_call(self):
        deltas = feed(
            GeminiStreamParser(),
            {"candidates": [{"content": {"parts": [
                {"functionCall": {"name": "get_weather", "args": {"city": "Paris"}}, "thoughtSignature": "sigF"},
            ]}}]},
        )
        assert types_of(deltas) == [
            "thinking_signature", "thinking_done", "tool_call_start", "tool_call_args_delta", "tool_call_end", "done",
        ]
        assert deltas[1]["part"] == {
            "type": "thinking", "value": "", "metadata": {"complete": True, "signature": "sigF"},
        }
        assert deltas[2]["call_id"].startswith("get_weather_")
        assert deltas[4]["input"] == {"city": "Paris"}

    def test_function_call_keeps_server_id(self):
        deltas = feed(
            GeminiStreamParser(),
            {"candidates": [{"content": {"parts": [{"functionCall": {"id": "fc-1", "name": "f", "args": {}}}]}}]},
        )
        assert deltas[0] == {"type": "tool_call_start", "call_id": "fc-1", "name": "f"}

    def test_pending_thought_flushed_at_finish(self):
        deltas = feed(
            GeminiStreamParser(),
            {"candidates": [{"content": {"parts": [{"text": "only thoughts", "thought": True}]}}]},
        )
        assert types_of(deltas) == ["thinking_delta", "thinking_done", "done"]


class TestOpenAIResponsesStreamParser:

    def test_native_stream(self):
        deltas = feed(
            OpenAIResponsesStreamParser("o3"),
            {"type": "response.output_item.added", "item": {"type": "reasoning", "id": "rs_1"}},
            {"type": "response.reasoning_summary_text.delta", "delta": "Plan"},
            {"type": "response.output_item.done",
             "item": {"type": "reasoning", "id": "rs_1", "summary": [{"text": "Plan"}], "encrypted_content": "enc"}},
            {"type": "response.output_item.added", "item": {"type": "message", "id": "msg_1"}},
            {"type": "response.output_text.delta", "delta": "Hi"},
            {"type": "response.output_item.added",
             "item": {"type": "function_call", "id": "fc_1", "call_id": "call_9", "name": "search"}},
            {"type": "response.function_call_arguments.delta", "item_id": "fc_1", "delta": '{"q": 1}'},
            {"type": "response.function_call_arguments.done", "item_id": "fc_1", "arguments": '{"q": 1}'},
            {"type": "response.output_item.done",
             "item": {"type": "function_call", "id": "fc_1", "call_id": "call_9", "arguments": '{"q": 1}'}},
            {"type": "response.completed",
             "response": {"usage": {"input_tokens": 2, "output_tokens": 3, "total_tokens": 5}}},
        )

        assert types_of(deltas) == [
            "thinking_delta", "thinking_signature", "thinking_done", "text",
            "tool_call_start", "tool_call_args_delta", "tool_call_end", "done",
        ]
        assert deltas[2]["part"]["value"] == "Plan"
        assert deltas[4] == {"type": "tool_call_start", "call_id": "call_9", "name": "search"}
        assert deltas[6]["input"] == {"q": 1}
        assert deltas[-1]["finish_reason"] == "tool_calls"
        assert deltas[-1]["usage"]["total_tokens"] == 5

    def test_proxy_done_event_finalizes_once(self):
        deltas = feed(
            OpenAIResponsesStreamParser(),
            {"type": "response.output_item.added", "item": {"type": "reasoning", "id": "rs_1"}},
            {"type": "response.thinking.delta", "delta": "abc"},
            {"type": "response.thinking.done", "signature": "sigP"},
            {"type": "response.output_item.done", "item": {"type": "reasoning", "id": "rs_1", "summary": [{"text": "abc"}]}},
            {"type": "response.output_text.delta", "delta": "ok"},
            {"type": "response.completed", "response": {}},
        )
        assert types_of(deltas) == ["thinking_delta", "thinking_signature", "thinking_done", "text", "done"]
        assert deltas[2]["part"]["metadata"] == {"complete": True, "signature": "sigP"}
        assert deltas[-1]["finish_reason"] == "stop"

    def test_proxy_redacted_thinking(self):
        deltas = feed(
            OpenAIResponsesStreamParser(),
            {"type": "response.output_item.added", "item": {"type": "reasoning"}},
            {"type": "response.reasoning.done", "redacted_data": "xyz"},
        )
        assert deltas[0]["part"]["metadata"] == {"redacted": True, "data": "xyz"}

    def test_thinking_finalized_by_first_text(self):
        deltas = feed(
            OpenAIResponsesStreamParser(),
            {"type": "response.reasoning.delta", "delta": "t"},
            {"type": "response.output_text.delta", "delta": "answer"},
        )
        assert types_of(deltas) == ["thinking_delta", "thinking_done", "text", "done"]
        assert deltas[1]["part"]["metadata"] == {"complete": True}

    def test_incomplete_response(self):
        deltas = feed(
            OpenAIResponsesStreamParser(),
            {"type": "response.incomplete", "response": {"incomplete_details": {"reason": "max_output_tokens"}}},
        )
        assert deltas == [{"type": "done", "finish_reason": "max_output_tokens", "usage": None}]

    def test_failed_response(self):
        deltas = OpenAIResponsesStreamParser().from_wire_event(sse_event(
            {"type": "response.failed", "response": {"error": {"message": "boom"}}}
        ))
        assert deltas == [{"type": "error", "message": "boom"}]

    def test_unclosed_function_call_dropped(self):
        deltas = feed(
            OpenAIResponsesStreamParser(),
            {"type": "response.output_item.added", "item": {"type": "function_call", "id": "fc", "name": "f"}},
            {"type": "response.function_call_arguments.delta", "item_id": "fc", "delta": '{"a"'},
        )
        assert types_of(deltas) == ["tool_call_start", "tool_call_args_delta", "done"]
