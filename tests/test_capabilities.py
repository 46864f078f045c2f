import pytest

from byomux.capabilities import (
    detect_thinking_capability,
    detect_tool_calling_capability,
    detect_vision_capability,
    parse_model_capabilities,
)
from byomux.formats import (
    classify_model_format,
    filter_models_by_api_format,
    is_model_matching_api_format,
)


class TestCapabilityDetection:

    def test_thinking_by_keyword(self):
        assert detect_thinking_capability({}, "o1-preview")
        assert detect_thinking_capability({}, "deepseek-r1-distill")
        assert not detect_thinking_capability({}, "gpt-4")

    def test_thinking_explicit_field(self):
        assert detect_thinking_capability({"capabilities": {"reasoning": True}}, "my-model")
        assert detect_thinking_capability({"thinking": True}, "my-model")

    def test_vision_by_keyword(self):
        assert detect_vision_capability({}, "claude-3-opus-20240229")
        assert detect_vision_capability({}, "gpt-4o-mini")
        assert not detect_vision_capability({}, "gpt-3.5-turbo")

    def test_vision_by_input_modalities(self):
        assert detect_vision_capability({"input_modalities": ["text", "IMAGE"]}, "custom-1")
        assert detect_vision_capability({"supported_input_types": ["image"]}, "custom-1")
        assert detect_vision_capability({"capabilities": {"vision": True}}, "custom-1")

    def test_vision_by_display_name(self):
        assert detect_vision_capability({"name": "LLaVA 13B"}, "local-13b")

    def test_tool_calling_defaults(self):
        assert detect_tool_calling_capability({}, "some-chat-model")
        assert not detect_tool_calling_capability({}, "text-embedding-3-small")
        assert not detect_tool_calling_capability({}, "whisper-1")
        assert detect_tool_calling_capability({"capabilities": {"tools": True}}, "text-embedding-x")

    def test_parse_model_capabilities_defaults(self):
        descriptor = parse_model_capabilities({}, "gpt-4")
        assert descriptor.id == "gpt-4"
        assert descriptor.display_name == "gpt-4"
        assert descriptor.max_input_tokens == 128000
        assert descriptor.max_output_tokens == 16000
        assert descriptor.supports_tools is True
        assert descriptor.supports_thinking is False

    def test_parse_model_capabilities_gemini_fields(self):
        raw = {
            "name": "models/gemini-2.5-pro",
            "displayName": "Gemini 2.5 Pro",
            "inputTokenLimit": 1048576,
            "outputTokenLimit": 65536,
            "thinking": True,
        }
        descriptor = parse_model_capabilities(raw, "gemini-2.5-pro")
        assert descriptor.display_name == "Gemini 2.5 Pro"
        assert descriptor.max_input_tokens == 1048576
        assert descriptor.max_output_tokens == 65536
        assert descriptor.supports_thinking
        assert descriptor.supports_vision

    def test_parse_model_capabilities_ignores_invalid_limits(self):
        descriptor = parse_model_capabilities({"context_length": "big", "max_output_tokens": 0}, "m")
        assert descriptor.max_input_tokens == 128000
        assert descriptor.max_output_tokens == 16000


class TestFormatMatching:

    @pytest.mark.parametrize("model_id,expected", [
        ("gemini-claude-2.0", "claude"),
        ("claude-sonnet-4", "claude"),
        ("gpt-oss-20b", "gemini"),
        ("gemini-2.5-flash", "gemini"),
        ("gpt-4o", "openai"),
        ("o3-mini", "openai"),
        ("chatgpt-4o-latest", "openai"),
        ("azure-openai-deployment", "openai"),
        ("llama-3-70b", None),
    ])
    def test_classify(self, model_id, expected):
        assert classify_model_format(model_id) == expected

    def test_both_openai_formats_accept_openai_models(self):
        assert is_model_matching_api_format("gpt-4o", "openai-chat")
        assert is_model_matching_api_format("gpt-4o", "openai-responses")
        assert not is_model_matching_api_format("gpt-4o", "claude")
        assert not is_model_matching_api_format("llama-3", "gemini")

    def test_filter_models(self):
        models = {"gpt-4o": 1, "claude-3-haiku": 2, "gemini-pro": 3, "mistral": 4}
        assert filter_models_by_api_format(models, "claude") == {"claude-3-haiku": 2}
        assert filter_models_by_api_format(models, "openai-chat") == {"gpt-4o": 1}
