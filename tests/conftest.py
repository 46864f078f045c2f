import json

import httpx
import pytest

from byomux.config import Settings
from byomux.sse import ServerSentEvent
from byomux.types import ProviderConfig


def sse_event(data, event=None) -> ServerSentEvent:
    """Build a decoded event from a dict payload or raw string."""
    if not isinstance(data, str):
        data = json.dumps(data)
    return ServerSentEvent(event=event, data=data)


def sse_body(*payloads, named=False) -> bytes:
    """Encode payloads as an SSE response body.

    With `named=True` each dict payload also gets an `event:` line from its
    `type` field, as the Claude and Responses APIs send.
    """
    lines = []
    for payload in payloads:
        if isinstance(payload, str):
            lines.append(f"data: {payload}\n\n")
            continue
        if named and "type" in payload:
            lines.append(f"event: {payload['type']}\n")
        lines.append(f"data: {json.dumps(payload)}\n\n")
    return "".join(lines).encode("utf-8")


def feed(parser, *payloads):
    """Run payloads through a parser and return all deltas including finish()."""
    deltas = []
    for payload in payloads:
        deltas.extend(parser.from_wire_event(sse_event(payload)))
    deltas.extend(parser.finish())
    return deltas


def mock_http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def openai_config():
    return ProviderConfig(name="My Proxy", base_url="https://proxy.example.com/", api_format="openai-chat")


@pytest.fixture
def claude_config():
    return ProviderConfig(name="Claude Proxy", base_url="https://claude.example.com", api_format="claude")


@pytest.fixture
def gemini_config():
    return ProviderConfig(name="Gemini Proxy", base_url="https://gemini.example.com", api_format="gemini")


@pytest.fixture
def responses_config():
    return ProviderConfig(name="Responses Proxy", base_url="https://responses.example.com", api_format="openai-responses")


@pytest.fixture
def conversation():
    """A short tool-using exchange."""
    return [
        {"role": "system", "parts": [{"type": "text", "text": "Be brief."}]},
        {"role": "user", "parts": [{"type": "text", "text": "Weather in Paris?"}]},
        {"role": "assistant", "parts": [
            {"type": "text", "text": "Let me check."},
            {"type": "tool_call", "call_id": "call_1", "name": "get_weather", "input": {"city": "Paris"}},
        ]},
        {"role": "user", "parts": [
            {"type": "tool_result", "call_id": "call_1", "content": "Sunny, 22C"},
        ]},
    ]


@pytest.fixture
def weather_tool():
    return {
        "name": "get_weather",
        "description": "Get the weather",
        "input_schema": {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "type": "object",
            "properties": {"city": {"type": "string"}},
            "required": ["city"],
            "additionalProperties": False,
        },
    }
