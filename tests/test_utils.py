import io

import pytest
from unittest.mock import patch, mock_open
from rich.console import Console

from byomux.rich_llm_printer import RichPrinter, RichStreamPrinter
from byomux.utils import (
    ResponseAccumulator,
    create_image_part,
    create_message,
    create_tool,
    create_tool_call,
    create_tool_result,
    encode_image_file,
)


class TestUtils:

    def test_create_message_text(self):
        msg = create_message("user", "Hello world")
        assert msg == {"role": "user", "parts": [{"type": "text", "text": "Hello world"}]}

    def test_create_message_multimodal(self):
        msg = create_message("user", ["Look at this", create_image_part("https://example.com/cat.jpg")])
        assert msg["role"] == "user"
        assert len(msg["parts"]) == 2
        assert msg["parts"][0] == {"type": "text", "text": "Look at this"}
        assert msg["parts"][1]["url"] == "https://example.com/cat.jpg"

    def test_create_image_part_from_data_uri(self):
        part = create_image_part("data:image/png;base64,SGVsbG8=")
        assert part == {"type": "image", "mime_type": "image/png", "data": "SGVsbG8="}

    def test_create_image_part_from_base64(self):
        part = create_image_part("SGVsbG8=", mime_type="image/webp")
        assert part["data"] == "SGVsbG8="
        assert part["mime_type"] == "image/webp"

    def test_create_image_part_unknown_source(self):
        with pytest.raises(ValueError):
            create_image_part("definitely-not-a-file-or-url")

    @patch("pathlib.Path.exists")
    @patch("builtins.open", new_callable=mock_open, read_data=b"image data")
    def test_encode_image_file(self, mock_file, mock_exists):
        mock_exists.return_value = True

        b64_data, mime_type = encode_image_file("test.png")

        assert mime_type == "image/png"
        # "image data" in base64 is "aW1hZ2UgZGF0YQ=="
        assert b64_data == "aW1hZ2UgZGF0YQ=="

    @patch("pathlib.Path.exists")
    def test_encode_image_file_missing(self, mock_exists):
        mock_exists.return_value = False
        with pytest.raises(FileNotFoundError):
            encode_image_file("missing.jpg")

    def test_create_tool(self):
        tool = create_tool(
            name="get_weather",
            description="Get weather",
            parameters={"location": {"type": "string"}},
            required=["location"],
        )
        assert tool["name"] == "get_weather"
        assert tool["input_schema"]["type"] == "object"
        assert tool["input_schema"]["required"] == ["location"]

    def test_create_tool_result(self):
        result = create_tool_result("call_123", "result content")
        assert result == {
            "role": "user",
            "parts": [{"type": "tool_result", "call_id": "call_123", "content": "result content"}],
        }


class TestResponseAccumulator:

    def test_assembles_replayable_message(self):
        thinking = {"type": "thinking", "value": "hmm", "metadata": {"complete": True, "signature": "s"}}
        acc = ResponseAccumulator()
        for delta in [
            {"type": "thinking_delta", "text": "hmm"},
            {"type": "thinking_signature", "signature": "s"},
            {"type": "thinking_done", "part": thinking},
            {"type": "text", "text": "Let me "},
            {"type": "text", "text": "check."},
            {"type": "tool_call_start", "call_id": "c1", "name": "get_weather"},
            {"type": "tool_call_args_delta", "call_id": "c1", "delta": '{"city": "Paris"}'},
            {"type": "tool_call_end", "call_id": "c1", "name": "get_weather", "input": {"city": "Paris"}},
            {"type": "done", "finish_reason": "tool_use", "usage": {"total_tokens": 9}},
        ]:
            acc.add(delta)

        message = acc.to_message()
        assert message["role"] == "assistant"
        assert message["parts"] == [
            thinking,
            {"type": "text", "text": "Let me check."},
            create_tool_call("c1", "get_weather", {"city": "Paris"}),
        ]
        assert acc.text == "Let me check."
        assert acc.thinking == [thinking]
        assert acc.finish_reason == "tool_use"
        assert acc.usage == {"total_tokens": 9}

    def test_unfinalized_thinking_not_kept(self):
        acc = ResponseAccumulator()
        acc.add({"type": "thinking_delta", "text": "partial"})
        acc.add({"type": "text", "text": "answer"})
        assert acc.to_message()["parts"] == [{"type": "text", "text": "answer"}]

    def test_errors_collected(self):
        acc = ResponseAccumulator()
        acc.add({"type": "error", "message": "Overloaded"})
        assert acc.errors == ["Overloaded"]


class TestRichPrinters:

    @pytest.mark.asyncio
    async def test_print_stream(self):
        async def deltas():
            yield {"type": "thinking_delta", "text": "pondering"}
            yield {"type": "text", "text": "**Sunny**"}
            yield {"type": "tool_call_end", "call_id": "c", "name": "get_weather", "input": {"city": "Paris"}}
            yield {"type": "done", "finish_reason": "stop", "usage": None}

        buffer = io.StringIO()
        printer = RichStreamPrinter(model="custom-x:gpt-4o", output=Console(file=buffer, width=100))
        result = await printer.print_stream(deltas())

        assert result["text"] == "**Sunny**"
        assert result["thinking"] == "pondering"
        assert result["tool_calls"][0]["name"] == "get_weather"
        assert result["meta"]["finish_reason"] == "stop"
        assert printer.get_full_text() == "**Sunny**"
        assert "get_weather" in buffer.getvalue()

    def test_print_chat(self):
        buffer = io.StringIO()
        response = {"text": "Hello", "meta": {"model": "custom-x:gpt-4o", "usage": None}}
        assert RichPrinter(output=Console(file=buffer, width=100)).print_chat(response) is response
        assert "Hello" in buffer.getvalue()
