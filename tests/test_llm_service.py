import asyncio
from contextlib import asynccontextmanager

import aiohttp
import pytest

from services import llm_service
from services.llm_service import LLMService, LLMServiceError, OptimizeOptions, clean_optimized_text

CONFIG = {
    "provider": "openai",
    "openai": {"endpoint": "https://llm.example.com/v1/", "apiKey": "sk-test", "model": "gpt-test"},
    "gemini": {"apiKey": "AIza-test", "model": "gemini-2.5-flash"},
    "vllm": {"endpoint": "http://localhost:9000", "model": "local"},
    "optimize": {"temperature": 0.5, "topP": 0.8, "maxTokens": 1000},
}


@pytest.fixture
def no_sleep(monkeypatch):
    async def _sleep(_seconds):
        return None

    monkeypatch.setattr(llm_service.asyncio, "sleep", _sleep)


class TestConfig:
    def test_openai_endpoint(self):
        model, url, headers = LLMService(CONFIG)._get_openai_config(None)
        assert model == "gpt-test"
        assert url == "https://llm.example.com/v1/chat/completions"
        assert headers["Authorization"] == "Bearer sk-test"

    def test_request_model_overrides_config(self):
        model, _, _ = LLMService(CONFIG)._get_openai_config("gpt-other")
        assert model == "gpt-other"

    def test_vllm_without_key(self):
        _, url, headers = LLMService(CONFIG, provider="vllm")._get_vllm_config(None)
        assert url == "http://localhost:9000/v1/chat/completions"
        assert "Authorization" not in headers

    def test_missing_key(self):
        with pytest.raises(LLMServiceError):
            LLMService({"openai": {}})._get_openai_config(None)

    def test_unsupported_provider(self):
        with pytest.raises(LLMServiceError):
            asyncio.run(LLMService(CONFIG, provider="nope").generate_response("hi"))


class TestPayloads:
    def test_openai_payload_uses_config_defaults(self):
        payload = LLMService(CONFIG)._build_openai_payload("gpt-test", "hi", OptimizeOptions())
        assert payload["temperature"] == 0.5
        assert payload["top_p"] == 0.8
        assert payload["max_tokens"] == 1000
        assert payload["messages"] == [{"role": "user", "content": "hi"}]

    def test_openai_payload_request_overrides(self):
        options = OptimizeOptions(temperature=0.0, top_p=1.0, max_tokens=50)
        payload = LLMService(CONFIG)._build_openai_payload("gpt-test", "hi", options, stream=True)
        assert (payload["temperature"], payload["top_p"], payload["max_tokens"]) == (0.0, 1.0, 50)
        assert payload["stream"] is True

    def test_gemini_thinking_budget(self):
        service = LLMService(CONFIG, provider="gemini")
        deep = service._build_gemini_payload("gemini-2.5-flash", "hi", OptimizeOptions(deep_thinking=True))
        fast = service._build_gemini_payload("gemini-2.5-flash", "hi", OptimizeOptions())
        older = service._build_gemini_payload("gemini-1.5-pro", "hi", OptimizeOptions(deep_thinking=True))

        assert deep["generationConfig"]["thinkingConfig"] == {"thinkingBudget": 8192}
        assert fast["generationConfig"]["thinkingConfig"] == {"thinkingBudget": 0}
        assert "thinkingConfig" not in older["generationConfig"]

    def test_optimize_prompt_includes_user_requirements(self):
        prompt = LLMService(CONFIG).build_optimize_prompt("Summarize {text}", "Keep it short")
        assert "Keep it short" in prompt
        assert "<prompt>\nSummarize {text}\n</prompt>" in prompt


class TestParsers:
    def test_openai_response(self):
        data = {"choices": [{"message": {"content": "done"}}]}
        assert LLMService(CONFIG)._parse_openai_response(data) == "done"

    def test_openai_response_empty(self):
        with pytest.raises(LLMServiceError):
            LLMService(CONFIG)._parse_openai_response({"choices": []})

    def test_gemini_response_skips_thoughts(self):
        data = {"candidates": [{"content": {"parts": [{"text": "thinking", "thought": True}, {"text": "answer"}]}}]}
        assert LLMService(CONFIG)._parse_gemini_response(data) == "answer"

    def test_stream_lines(self):
        service = LLMService(CONFIG)
        assert service._parse_openai_stream_line('data: {"choices": [{"delta": {"content": "Hi"}}]}') == "Hi"
        assert service._parse_openai_stream_line("data: [DONE]") is None
        assert service._parse_openai_stream_line(": keep-alive") is None
        assert service._parse_openai_stream_line("data: {broken") is None


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("  Better prompt \n", "Better prompt"),
        ("```\nBetter prompt\n```", "Better prompt"),
        ("```markdown\n# Role\nYou are helpful\n```", "# Role\nYou are helpful"),
        ("Use ```code``` inline", "Use ```code``` inline"),
    ],
)
def test_clean_optimized_text(raw, expected):
    assert clean_optimized_text(raw) == expected


class TestRetry:
    def test_retries_rate_limit(self, no_sleep):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise LLMServiceError("OpenAI API error (429): slow down")
            return "ok"

        assert asyncio.run(LLMService(CONFIG)._retry_with_backoff(operation)) == "ok"
        assert len(calls) == 3

    def test_other_errors_fail_fast(self, no_sleep):
        calls = []

        async def operation():
            calls.append(1)
            raise LLMServiceError("OpenAI API error (401): bad key")

        with pytest.raises(LLMServiceError):
            asyncio.run(LLMService(CONFIG)._retry_with_backoff(operation))
        assert len(calls) == 1

    def test_timeout_exhausts_retries(self, no_sleep):
        async def operation():
            raise asyncio.TimeoutError()

        with pytest.raises(LLMServiceError, match="timeout"):
            asyncio.run(LLMService(CONFIG)._retry_with_backoff(operation, max_retries=2))


def test_optimize_cleans_response(monkeypatch):
    captured = {}

    async def fake_generate(self, prompt, options=None):
        captured["prompt"] = prompt
        return "```\nImproved\n```"

    monkeypatch.setattr(LLMService, "generate_response", fake_generate)

    result = asyncio.run(LLMService(CONFIG).optimize("Original", "Be formal"))

    assert result == "Improved"
    assert "Original" in captured["prompt"]
    assert "Be formal" in captured["prompt"]


def _failing_request(error):
    @asynccontextmanager
    async def _request(self, url, payload, headers=None, provider="API"):
        raise error
        yield

    return _request


async def _collect(service):
    return [chunk async for chunk in service.generate_response_stream("hi")]


class TestStreaming:
    def test_network_error_becomes_service_error(self, monkeypatch):
        refused = aiohttp.ClientConnectionError("Cannot connect to host 127.0.0.1:9")
        monkeypatch.setattr(LLMService, "_request", _failing_request(refused))

        with pytest.raises(LLMServiceError, match="Network error"):
            asyncio.run(_collect(LLMService(CONFIG, provider="vllm")))

    def test_timeout_becomes_service_error(self, monkeypatch):
        monkeypatch.setattr(LLMService, "_request", _failing_request(asyncio.TimeoutError()))

        with pytest.raises(LLMServiceError, match="timeout"):
            asyncio.run(_collect(LLMService(CONFIG, provider="vllm")))
