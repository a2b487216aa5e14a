"""
Gemini client over the OpenAI-compatible endpoint.

Uses the ``openai`` SDK with its own retries disabled; this module owns the
retry policy instead:
    - Retry only rate-limit/unavailable responses (HTTP 429 and 503)
    - Exponential backoff: ``backoff_seconds * 2**attempt``
    - Every other failure is raised immediately as ``LLMError``

Usage:
    client = GeminiClient.from_resolver(resolver)
    if client:
        text = await client.generate(prompt)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import openai
from openai import AsyncOpenAI

from ..errors import LLMError, RateLimitError
from ..services.credentials import CredentialResolver, GeminiConfig

logger = logging.getLogger("opsbrief.gemini")

RETRYABLE_STATUS_CODES = frozenset({429, 503})

# Only consulted when the error carries no HTTP status
_RATE_LIMIT_HINTS = ("resource_exhausted", "quota", "rate limit", "overloaded")


def classify_error(exc: Exception) -> LLMError:
    """Map an SDK/transport exception onto RateLimitError or LLMError."""
    # Primary check: the documented HTTP status
    if isinstance(exc, openai.APIStatusError):
        status = exc.status_code
        if status in RETRYABLE_STATUS_CODES:
            return RateLimitError(f"Gemini unavailable or rate limited (HTTP {status})", status_code=status)
        return LLMError(f"Gemini API error (HTTP {status})", status_code=status)
    if isinstance(exc, openai.APITimeoutError):
        return LLMError("Gemini request timed out")
    if isinstance(exc, openai.APIConnectionError):
        return LLMError("Gemini connection failed")

    # Fallback: no status available, inspect the message text
    text = str(exc).lower()
    if any(hint in text for hint in _RATE_LIMIT_HINTS):
        return RateLimitError(f"Gemini rate limited ({type(exc).__name__})")
    return LLMError(f"Gemini error: {type(exc).__name__}")


def _first_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return (getattr(message, "content", None) or "").strip()


class GeminiClient:
    """Text generation with bounded retry on 429/503."""

    def __init__(
        self,
        config: GeminiConfig,
        client: Optional[AsyncOpenAI] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self._client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=0,
        )
        self._sleep = sleep

    @classmethod
    def from_resolver(cls, resolver: CredentialResolver) -> Optional["GeminiClient"]:
        config = resolver.gemini()
        if config is None:
            logger.info("GEMINI_API_KEY not set; LLM features disabled")
            return None
        return cls(config)

    @property
    def model(self) -> str:
        return self.config.model

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.2,
    ) -> str:
        """
        Generate text for ``prompt``.

        Raises:
            RateLimitError: still rate limited after the last retry
            LLMError: any other failure, including an empty reply
        """
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        attempts = max(self.config.max_retries, 0) + 1
        for attempt in range(attempts):
            try:
                response = await self._client.chat.completions.create(
                    model=self.config.model,
                    messages=messages,
                    temperature=temperature,
                )
            except Exception as e:
                error = classify_error(e)
                if isinstance(error, RateLimitError) and attempt + 1 < attempts:
                    delay = self.config.backoff_seconds * (2 ** attempt)
                    logger.warning(
                        "%s (attempt %d/%d). Waiting %.1fs before retry...",
                        error.message,
                        attempt + 1,
                        attempts,
                        delay,
                    )
                    await self._sleep(delay)
                    continue
                raise error from e

            text = _first_text(response)
            if not text:
                raise LLMError("Gemini returned empty text")
            return text

        raise LLMError("Gemini retries exhausted")

    async def close(self) -> None:
        await self._client.close()
