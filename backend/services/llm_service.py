"""
LLM Service - Prompt optimization through third-party model APIs

Supports Google Gemini and any OpenAI-compatible chat completions endpoint
(OpenAI itself, or a local vLLM server).
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)

OPTIMIZE_INSTRUCTION = """You are an expert prompt engineer. Improve the prompt below so that it is clearer, \
better structured and more effective for a large language model, while keeping its original intent, \
language and any placeholders or variables intact.

Return ONLY the optimized prompt text, without explanations or surrounding commentary."""

_FENCE_RE = re.compile(r"^```[\w-]*\n([\s\S]*?)\n?```$")


class LLMServiceError(Exception):
    """Upstream model API failure"""


@dataclass
class OptimizeOptions:
    """Per-request generation settings; None falls back to config"""

    model: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    deep_thinking: bool = False


class LLMService:
    """Service for interacting with various LLM providers"""

    def __init__(self, config: dict[str, Any], provider: str | None = None):
        self.config = config
        self.provider = provider or config.get("provider", "openai")
        self.defaults = config.get("optimize", {})

    # ========== Config Helpers ==========

    def _get_gemini_config(self, model: str | None) -> tuple[str, str, str]:
        """Get Gemini config: (api_key, model, base_url). Raises if api_key missing."""
        cfg = self.config.get("gemini", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise LLMServiceError("Gemini API key not configured")
        model = model or cfg.get("model", "gemini-2.5-flash")
        base_url = f"https://generativelanguage.googleapis.com/v1beta/models/{model}"
        return api_key, model, base_url

    def _get_openai_config(self, model: str | None) -> tuple[str, str, dict[str, str]]:
        """Get OpenAI config: (model, url, headers). Raises if api_key missing."""
        cfg = self.config.get("openai", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise LLMServiceError("OpenAI API key not configured")
        model = model or cfg.get("model", "gpt-4o-mini")
        endpoint = cfg.get("endpoint", "https://api.openai.com/v1").rstrip("/")
        url = f"{endpoint}/chat/completions"
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        return model, url, headers

    def _get_vllm_config(self, model: str | None) -> tuple[str, str, dict[str, str]]:
        """Get vLLM config: (model, url, headers)."""
        cfg = self.config.get("vllm", {})
        endpoint = cfg.get("endpoint", "http://localhost:8000").rstrip("/")
        model = model or cfg.get("model", "default")
        url = f"{endpoint}/v1/chat/completions"
        headers = {"Content-Type": "application/json"}
        if cfg.get("apiKey"):
            headers["Authorization"] = f"Bearer {cfg['apiKey']}"
        return model, url, headers

    def _chat_config(self, model: str | None) -> tuple[str, str, dict[str, str]]:
        if self.provider == "openai":
            return self._get_openai_config(model)
        if self.provider == "vllm":
            return self._get_vllm_config(model)
        raise LLMServiceError(f"Unsupported provider: {self.provider}")

    def _timeout(self) -> int:
        return int(self.defaults.get("timeoutSeconds", 120))

    # ========== Message/Payload Builders ==========

    def build_optimize_prompt(self, content: str, user_prompt: str | None = None) -> str:
        """Wrap the prompt to optimize in the optimization instruction"""
        parts = [OPTIMIZE_INSTRUCTION]
        if user_prompt:
            parts.append(f"Additional requirements from the user:\n{user_prompt}")
        parts.append(f"Prompt to optimize:\n<prompt>\n{content}\n</prompt>")
        return "\n\n".join(parts)

    def _resolve(self, options: OptimizeOptions) -> tuple[float, float, int]:
        temperature = options.temperature if options.temperature is not None else self.defaults.get("temperature", 0.7)
        top_p = options.top_p if options.top_p is not None else self.defaults.get("topP", 0.9)
        max_tokens = options.max_tokens if options.max_tokens is not None else self.defaults.get("maxTokens", 4096)
        return temperature, top_p, max_tokens

    def _build_openai_payload(
        self,
        model: str,
        prompt: str,
        options: OptimizeOptions,
        stream: bool = False,
    ) -> dict[str, Any]:
        """Build OpenAI-compatible request payload"""
        temperature, top_p, max_tokens = self._resolve(options)
        return {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": top_p,
            "stream": stream,
        }

    def _build_gemini_payload(self, model: str, prompt: str, options: OptimizeOptions) -> dict[str, Any]:
        """Build Gemini API request payload"""
        temperature, top_p, max_tokens = self._resolve(options)
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "topP": top_p,
                "maxOutputTokens": max_tokens,
            },
        }

        # Only 2.5 models accept a thinking budget
        if "2.5" in model or "2-5" in model:
            budget = 8192 if options.deep_thinking else 0
            payload["generationConfig"]["thinkingConfig"] = {"thinkingBudget": budget}

        return payload

    async def _retry_with_backoff(self, operation, max_retries: int = 3, provider: str = "API"):
        """Execute operation with exponential backoff retry logic"""
        for attempt in range(max_retries):
            try:
                return await operation()
            except asyncio.TimeoutError:
                if attempt < max_retries - 1:
                    wait_time = (2**attempt) * 3
                    logger.warning(
                        "[LLMService] %s request timeout. Retrying in %ss... (attempt %d/%d)",
                        provider, wait_time, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise LLMServiceError(f"Request timeout after {max_retries} retries")
            except LLMServiceError as e:
                error_msg = str(e)
                # Rate limit (429) or overloaded (503)
                if "(429)" in error_msg or "(503)" in error_msg:
                    if attempt < max_retries - 1:
                        wait_time = (2**attempt) * 5
                        logger.warning(
                            "[LLMService] %s unavailable. Retrying in %ss... (attempt %d/%d)",
                            provider, wait_time, attempt + 1, max_retries,
                        )
                        await asyncio.sleep(wait_time)
                        continue
                raise
            except aiohttp.ClientError as e:
                # Network errors - retry
                if attempt < max_retries - 1:
                    wait_time = (2**attempt) * 2
                    logger.warning(
                        "[LLMService] Network error: %s. Retrying in %ss... (attempt %d/%d)",
                        e, wait_time, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise LLMServiceError(f"Network error: {e}") from e

    @asynccontextmanager
    async def _request(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        provider: str = "API",
    ):
        """Context manager for HTTP POST requests with automatic session cleanup"""
        timeout = aiohttp.ClientTimeout(total=self._timeout())
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error("[LLMService] %s API error (%d): %s", provider, response.status, error_text)
                    raise LLMServiceError(f"{provider} API error ({response.status}): {error_text}")
                yield response

    async def _request_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        provider: str = "API",
    ) -> dict[str, Any]:
        """Make request and return JSON response"""
        async with self._request(url, payload, headers, provider) as response:
            return await response.json()

    async def _stream_response(
        self, url: str, payload: dict[str, Any], headers: dict[str, str] | None, provider: str, line_parser
    ):
        """Stream response and yield parsed content; transport failures become LLMServiceError"""
        try:
            async with self._request(url, payload, headers, provider=provider) as response:
                async for line in response.content:
                    content = line_parser(line.decode("utf-8").strip())
                    if content:
                        yield content
        except asyncio.TimeoutError as e:
            logger.error("[LLMService] %s stream timeout", provider)
            raise LLMServiceError(f"{provider} stream timeout") from e
        except aiohttp.ClientError as e:
            logger.error("[LLMService] %s stream network error: %s", provider, e)
            raise LLMServiceError(f"Network error: {e}") from e

    # ========== Response Parsers ==========

    def _parse_openai_response(self, data: dict[str, Any]) -> str:
        """Parse OpenAI-compatible response format"""
        if "choices" in data and len(data["choices"]) > 0:
            choice = data["choices"][0]
            if "message" in choice and "content" in choice["message"]:
                return choice["message"]["content"]
            elif "text" in choice:
                return choice["text"]
        raise LLMServiceError("No valid response from API")

    def _extract_gemini_text(self, data: dict[str, Any]) -> str | None:
        """Extract text from Gemini response data, skipping thought parts"""
        if "candidates" in data and len(data["candidates"]) > 0:
            candidate = data["candidates"][0]
            parts = candidate.get("content", {}).get("parts", [])
            texts = [p["text"] for p in parts if "text" in p and not p.get("thought")]
            if texts:
                return "".join(texts)
        return None

    def _parse_gemini_response(self, data: dict[str, Any]) -> str:
        text = self._extract_gemini_text(data)
        if text is not None:
            return text
        raise LLMServiceError("No valid response from Gemini API")

    def _parse_sse_line(self, line_text: str, extractor) -> str | None:
        """Parse SSE line with given extractor function"""
        if not line_text.startswith("data: "):
            return None
        data_str = line_text[6:]
        if data_str == "[DONE]":
            return None
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            return None
        return extractor(data)

    def _extract_openai_delta(self, data: dict[str, Any]) -> str | None:
        if "choices" in data and len(data["choices"]) > 0:
            delta = data["choices"][0].get("delta", {})
            return delta.get("content", "") or None
        return None

    def _parse_openai_stream_line(self, line_text: str) -> str | None:
        return self._parse_sse_line(line_text, self._extract_openai_delta)

    def _parse_gemini_stream_line(self, line_text: str) -> str | None:
        return self._parse_sse_line(line_text, self._extract_gemini_text)

    # ========== Public API ==========

    async def generate_response(self, prompt: str, options: OptimizeOptions | None = None) -> str:
        """Generate a response from the configured LLM provider"""
        options = options or OptimizeOptions()

        if self.provider == "gemini":
            api_key, model, base_url = self._get_gemini_config(options.model)
            url = f"{base_url}:generateContent?key={api_key}"
            payload = self._build_gemini_payload(model, prompt, options)

            async def _execute():
                data = await self._request_json(url, payload, provider="Gemini")
                return self._parse_gemini_response(data)

            logger.info("[LLMService] Calling Gemini API with model: %s", model)
            return await self._retry_with_backoff(_execute, provider="Gemini")

        model, url, headers = self._chat_config(options.model)
        payload = self._build_openai_payload(model, prompt, options)
        provider_name = "vLLM" if self.provider == "vllm" else "OpenAI"

        async def _execute_chat():
            data = await self._request_json(url, payload, headers, provider=provider_name)
            return self._parse_openai_response(data)

        logger.info("[LLMService] Calling %s API with model: %s", provider_name, model)
        return await self._retry_with_backoff(_execute_chat, provider=provider_name)

    async def generate_response_stream(self, prompt: str, options: OptimizeOptions | None = None):
        """Generate a streaming response from the configured LLM provider"""
        options = options or OptimizeOptions()

        if self.provider == "gemini":
            api_key, model, base_url = self._get_gemini_config(options.model)
            url = f"{base_url}:streamGenerateContent?key={api_key}&alt=sse"
            payload = self._build_gemini_payload(model, prompt, options)
            async for chunk in self._stream_response(url, payload, None, "Gemini", self._parse_gemini_stream_line):
                yield chunk
            return

        model, url, headers = self._chat_config(options.model)
        payload = self._build_openai_payload(model, prompt, options, stream=True)
        provider_name = "vLLM" if self.provider == "vllm" else "OpenAI"
        async for chunk in self._stream_response(url, payload, headers, provider_name, self._parse_openai_stream_line):
            yield chunk

    async def optimize(self, content: str, user_prompt: str | None = None, options: OptimizeOptions | None = None) -> str:
        """Return an optimized version of the prompt"""
        response = await self.generate_response(self.build_optimize_prompt(content, user_prompt), options)
        optimized = clean_optimized_text(response)
        logger.info("[LLMService] Optimized prompt (%d -> %d chars)", len(content), len(optimized))
        return optimized

    async def optimize_stream(self, content: str, user_prompt: str | None = None, options: OptimizeOptions | None = None):
        async for chunk in self.generate_response_stream(self.build_optimize_prompt(content, user_prompt), options):
            yield chunk


def clean_optimized_text(text: str) -> str:
    """Strip surrounding whitespace and a single wrapping Markdown code fence"""
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text
