"""
LLM Service - Handles interactions with different LLM providers
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"


class LLMError(Exception):
    """Provider returned an error or an unusable response"""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class LLMService:
    """Service for interacting with various LLM providers"""

    def __init__(self, config: dict[str, Any]):
        self.config = config
        self.provider = config.get("provider", "gemini")

    # ========== Config Helpers ==========

    def _get_gemini_config(self) -> tuple[str, str]:
        """Get Gemini config: (model, url). Raises if api_key missing."""
        cfg = self.config.get("gemini", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise ValueError("Gemini API key not configured")
        model = cfg.get("model", "gemini-2.5-flash")
        return model, f"{GEMINI_BASE_URL}/{model}:generateContent?key={api_key}"

    def _get_openai_config(self) -> tuple[str, str, dict[str, str]]:
        """Get OpenAI config: (model, url, headers). Raises if api_key missing."""
        cfg = self.config.get("openai", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise ValueError("OpenAI API key not configured")
        model = cfg.get("model", "gpt-4o-mini")
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        return model, OPENAI_URL, headers

    def _get_vllm_config(self) -> tuple[str, str, dict[str, str]]:
        """Get vLLM config: (model, url, headers)."""
        cfg = self.config.get("vllm", {})
        endpoint = cfg.get("endpoint", "http://localhost:8000")
        model = cfg.get("model", "default")
        headers = {"Content-Type": "application/json"}
        if cfg.get("apiKey"):
            headers["Authorization"] = f"Bearer {cfg['apiKey']}"
        return model, f"{endpoint}/v1/chat/completions", headers

    # ========== Payload Builders ==========

    def _build_openai_payload(
        self,
        model: str,
        prompt: str,
        max_tokens: int = 8192,
        temperature: float = 0.0,
        json_mode: bool = False,
    ) -> dict[str, Any]:
        """Build OpenAI-compatible request payload"""
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    def _build_gemini_payload(self, prompt: str, json_mode: bool = False) -> dict[str, Any]:
        """Build Gemini API request payload"""
        cfg = self.config.get("gemini", {})
        generation_config = {
            "temperature": cfg.get("temperature", 0.0),
            "maxOutputTokens": 32768,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

    # ========== Response Parsers ==========

    def _parse_openai_response(self, data: dict[str, Any]) -> str:
        """Parse OpenAI-compatible response format"""
        choices = data.get("choices") or []
        if choices:
            choice = choices[0]
            if "message" in choice and "content" in choice["message"]:
                return choice["message"]["content"]
            if "text" in choice:
                return choice["text"]
        raise LLMError("No valid response from API")

    def _parse_gemini_response(self, data: dict[str, Any]) -> str:
        """Parse Gemini API response format"""
        candidates = data.get("candidates") or []
        if candidates:
            parts = candidates[0].get("content", {}).get("parts") or []
            if parts and "text" in parts[0]:
                return parts[0]["text"]
        raise LLMError("No valid response from Gemini API")

    # ========== Transport ==========

    async def _retry_with_backoff(self, operation, max_retries: int = 3, provider: str = "API"):
        """Execute operation with exponential backoff on timeouts, 429 and 503"""
        for attempt in range(max_retries):
            try:
                return await operation()
            except asyncio.TimeoutError:
                if attempt < max_retries - 1:
                    wait_time = (2**attempt) * 3
                    logger.warning(
                        f"[LLMService] {provider} request timeout. Retrying in {wait_time}s... "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise LLMError(f"Request timeout after {max_retries} retries")
            except LLMError as e:
                if e.status not in (429, 503) or attempt == max_retries - 1:
                    raise
                wait_time = (2**attempt) * (10 if e.status == 429 else 5)
                logger.warning(
                    f"[LLMService] {provider} returned {e.status}. Retrying in {wait_time}s... "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                await asyncio.sleep(wait_time)
            except aiohttp.ClientError as e:
                if attempt == max_retries - 1:
                    raise LLMError(f"{provider} network error: {e}") from e
                wait_time = (2**attempt) * 2
                logger.warning(f"[LLMService] Network error: {e}. Retrying in {wait_time}s...")
                await asyncio.sleep(wait_time)

    @asynccontextmanager
    async def _request(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_seconds: int = 120,
        provider: str = "API",
    ):
        """Context manager for HTTP POST requests with automatic session cleanup"""
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(f"[LLMService] {provider} API error ({response.status}): {error_text}")
                    raise LLMError(f"{provider} API error ({response.status}): {error_text}", response.status)
                yield response

    async def _request_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        provider: str = "API",
    ) -> dict[str, Any]:
        """Make request (with retries) and return JSON response"""

        async def _execute():
            async with self._request(url, payload, headers, provider=provider) as response:
                return await response.json()

        return await self._retry_with_backoff(_execute, provider=provider)

    # ========== Public API ==========

    async def generate_response(self, prompt: str, json_mode: bool = False) -> str:
        """Generate a response from the configured LLM provider"""
        if self.provider == "gemini":
            model, url = self._get_gemini_config()
            data = await self._request_json(url, self._build_gemini_payload(prompt, json_mode), provider="Gemini")
            text = self._parse_gemini_response(data)
        elif self.provider in ("openai", "vllm"):
            if self.provider == "openai":
                model, url, headers = self._get_openai_config()
            else:
                model, url, headers = self._get_vllm_config()
            payload = self._build_openai_payload(model, prompt, json_mode=json_mode)
            data = await self._request_json(url, payload, headers, provider=self.provider)
            text = self._parse_openai_response(data)
        else:
            raise ValueError(f"Unsupported provider: {self.provider}")

        logger.info(f"[LLMService] Received response from {model} (length: {len(text)} chars)")
        return text
