"""
Completion client for OpenAI-compatible chat APIs.

Used by the tools that need a model's judgement of their own: tag
generation and AI table columns. Works with any OpenAI-compatible
endpoint (vLLM, Ollama, OpenAI itself).
"""

import logging
from typing import Any

import httpx

from bibliotool.config import ServiceConfig
from bibliotool.services.http import ServiceError, default_timeout, json_body, request_with_retry

logger = logging.getLogger(__name__)

DEFAULT_READ_TIMEOUT = 180.0  # completions can take a while


class LLMError(ServiceError):
    """Error from the completion endpoint."""
    pass


class CompletionClient:
    """Async client for ``/chat/completions``."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000/v1",
        api_key: str = "",
        model: str = "",
        temperature: float = 0.3,
        max_tokens: int = 1024,
        client: httpx.AsyncClient | None = None,
        max_retries: int = 3,
        retry_delay: float = 5.0,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=default_timeout(read=DEFAULT_READ_TIMEOUT),
        )

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "CompletionClient":
        return cls(
            base_url=config.llm_base_url,
            api_key=config.llm_api_key,
            model=config.llm_model,
            temperature=config.llm_temperature,
        )

    async def chat(self, messages: list[dict[str, Any]]) -> str:
        """
        Send a chat completion request and return the assistant's text.

        Raises:
            LLMError: If all retries are exhausted, a non-retryable error
                occurs, or the response has no content
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        logger.debug(f"Sending chat request with {len(messages)} messages")
        response = await request_with_retry(
            self._client,
            "POST",
            "/chat/completions",
            json=payload,
            error_cls=LLMError,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )
        data = json_body(response, LLMError)
        try:
            content = data["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Malformed completion response: {e}") from e
        if not content:
            raise LLMError("Completion response has no content")
        return content

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Single-turn convenience wrapper around chat()."""
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages)

    async def aclose(self) -> None:
        await self._client.aclose()
