"""
OpenRouter Client - Chat completions in JSON mode.

This is the ONLY place that calls the LLM API.
The extraction domain reaches it through the ExtractionTransport contract.

Features:
- Async HTTP client (httpx)
- JSON response format
- One retry after a fixed backoff (tenacity)
- Per-attempt timeout that aborts the in-flight request
- Uniform LLMError with a machine-readable code
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from docuspec.config.errors import ErrorCode, LLMError
from docuspec.config.settings import get_settings

from .models import ChatMessage, CompletionResponse, MessageRole, OpenRouterConfig

logger = logging.getLogger(__name__)

__all__ = ["OpenRouterClient"]


class OpenRouterClient:
    """
    OpenRouter chat-completions client.

    Example:
        >>> client = OpenRouterClient()  # Reads OPENROUTER_API_KEY from env/.env
        >>> content = await client.complete_json(system_prompt, user_prompt)
        >>> data = json.loads(content)
    """

    def __init__(
        self,
        config: OpenRouterConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize OpenRouter client.

        Args:
            config: Client configuration. Built from settings if None.
            transport: Optional httpx transport (used by tests)
        """
        self.config = config or OpenRouterConfig.from_settings(get_settings())
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport)
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.config.referer,
            "X-Title": self.config.app_title,
        }

    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        timeout: float | None = None,
        json_mode: bool = True,
    ) -> CompletionResponse:
        """
        Run a chat completion.

        Args:
            messages: Conversation messages
            temperature: Sampling temperature (config default if None)
            timeout: Seconds per attempt (config default if None)
            json_mode: Request `response_format: json_object`

        Returns:
            CompletionResponse with the message content

        Raises:
            LLMError: API key missing, or every attempt failed
        """
        if not self.config.api_key:
            raise LLMError(
                "OpenRouter API key is not configured (set OPENROUTER_API_KEY)",
                code=ErrorCode.LLM_AUTH_FAILED,
            )

        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.model_dump(mode="json") for m in messages],
            "temperature": self.config.temperature if temperature is None else temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        attempt_timeout = self.config.timeout_seconds if timeout is None else timeout

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_fixed(self.config.retry_backoff_seconds),
            retry=retry_if_exception_type(LLMError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = await self._post(payload, attempt_timeout)

        return response

    async def complete_json(
        self,
        system: str,
        user: str,
        *,
        temperature: float = 0.1,
        timeout: float | None = None,
    ) -> str:
        """
        Send a system instruction and user content in JSON mode.

        Returns:
            Raw message content (expected to be JSON)
        """
        response = await self.complete(
            [
                ChatMessage(role=MessageRole.SYSTEM, content=system),
                ChatMessage(role=MessageRole.USER, content=user),
            ],
            temperature=temperature,
            timeout=timeout,
        )
        return response.content

    async def _post(self, payload: dict[str, Any], timeout: float) -> CompletionResponse:
        """Single request attempt."""
        client = await self._get_client()

        try:
            response = await asyncio.wait_for(
                client.post(self.config.url, json=payload, headers=self._headers()),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(
                f"OpenRouter request timed out after {timeout}s",
                code=ErrorCode.LLM_TIMEOUT,
            ) from e
        except httpx.HTTPError as e:
            raise LLMError(f"OpenRouter request failed: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise LLMError(
                f"OpenRouter rejected credentials ({status})",
                details={"status": status},
                code=ErrorCode.LLM_AUTH_FAILED,
            )
        if status == 429:
            raise LLMError(
                "OpenRouter rate limit exceeded",
                details={"status": status},
                code=ErrorCode.LLM_RATE_LIMITED,
            )
        if response.is_error:
            raise LLMError(
                f"OpenRouter API error {status}: {response.text[:500]}",
                details={"status": status},
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMError(
                "No content in LLM response",
                code=ErrorCode.LLM_INVALID_RESPONSE,
            ) from e

        if not content:
            raise LLMError("No content in LLM response", code=ErrorCode.LLM_INVALID_RESPONSE)

        completion = CompletionResponse(
            content=content,
            model=data.get("model") or self.config.model,
            usage=data.get("usage") or {},
        )
        logger.debug("OpenRouter %s: %d tokens", completion.model, completion.total_tokens)
        return completion

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> OpenRouterClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
