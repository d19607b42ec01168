"""
Chat completion client for the Gemini ``generateContent`` endpoint.

The API key travels as the ``key`` query parameter; the prompt is sent as a
single text part and the reply is read from
``candidates[0].content.parts[0].text``.
"""

import logging
from typing import Optional

import httpx

from nurseai.config import settings
from nurseai.utils.exceptions import ProviderUnavailable
from nurseai.utils.rate_limiter import ProviderRateLimiter


logger = logging.getLogger(__name__)


class GeminiChatClient:
    """Async client for single-prompt text generation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[ProviderRateLimiter] = None
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_API_BASE).rstrip("/")
        self._client = http_client
        self._rate_limiter = rate_limiter or ProviderRateLimiter.for_chat()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_SECONDS)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def generate(self, prompt: str) -> str:
        """
        Generate a reply for ``prompt``.

        Raises:
            ProviderUnavailable: missing key, network error, non-2xx status or
                a response without candidate text
        """
        if not self.is_configured:
            raise ProviderUnavailable("Chat completion API key not configured")

        body = {"contents": [{"parts": [{"text": prompt}]}]}

        try:
            async with self._rate_limiter.acquire():
                response = await self.client.post(
                    self.endpoint,
                    params={"key": self.api_key},
                    json=body,
                )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Chat completion returned HTTP {e.response.status_code}")
            raise ProviderUnavailable(
                f"Chat completion failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Chat completion request failed: {e}")
            raise ProviderUnavailable(f"Chat completion request failed: {e}") from e
        except ValueError as e:
            raise ProviderUnavailable("Chat completion returned invalid JSON") from e

        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderUnavailable("Chat completion response had no text") from e


_chat_client: Optional[GeminiChatClient] = None


def get_shared_chat_client() -> GeminiChatClient:
    """Process-wide chat client; its connection pool is closed at shutdown."""
    global _chat_client
    if _chat_client is None:
        _chat_client = GeminiChatClient()
    return _chat_client


async def close_shared_chat_client():
    global _chat_client
    if _chat_client is not None:
        await _chat_client.close()
        _chat_client = None
