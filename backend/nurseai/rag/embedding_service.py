"""
Embedding Service for generating vector embeddings.

Talks to an OpenAI-compatible ``/embeddings`` endpoint through the ``openai``
SDK. Model name and dimensionality are read from the runtime configuration on
every call, so a config refresh takes effect without a restart. Changing the
dimensionality without re-embedding stored vectors breaks similarity queries.

Provider errors are wrapped in ``ProviderUnavailable`` and never retried here.
"""

import logging
from typing import List, Optional

import openai
import tiktoken
from openai import AsyncOpenAI

from nurseai.config import settings
from nurseai.services.app_config_service import RuntimeConfigService, runtime_config
from nurseai.utils.exceptions import InvalidInput, ProviderUnavailable
from nurseai.utils.rate_limiter import ProviderRateLimiter


logger = logging.getLogger(__name__)


class EmbeddingService:
    """Service for generating text embeddings with rate limiting."""

    OPENAI_BASE_URL = "https://api.openai.com/v1"
    OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
    OPENROUTER_KEY_PREFIX = "sk-or-"

    MAX_TOKENS = 8191  # Max input tokens for text-embedding-3 models

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[RuntimeConfigService] = None,
        client: Optional[AsyncOpenAI] = None,
        base_url: Optional[str] = None,
        rate_limiter: Optional[ProviderRateLimiter] = None
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.config = config or runtime_config
        self.base_url = self.resolve_base_url(
            self.api_key,
            base_url if base_url is not None else settings.EMBEDDING_BASE_URL
        )
        if client is not None:
            self.client = client
        elif self.api_key:
            self.client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=settings.PROVIDER_TIMEOUT_SECONDS,
                max_retries=0,
            )
        else:
            self.client = None
            logger.warning("Embedding API key not configured; embedding calls will fail")
        self._tokenizer = None
        self._rate_limiter = rate_limiter or ProviderRateLimiter.for_embeddings()

    @classmethod
    def resolve_base_url(cls, api_key: str, override: Optional[str] = None) -> str:
        """Pick the provider from the key prefix unless a base URL is configured."""
        if override:
            return override.rstrip("/")
        if api_key and api_key.startswith(cls.OPENROUTER_KEY_PREFIX):
            return cls.OPENROUTER_BASE_URL
        return cls.OPENAI_BASE_URL

    @property
    def model(self) -> str:
        return self.config.current.embedding_model

    @property
    def dimensions(self) -> int:
        return self.config.current.embedding_dimensions

    @property
    def tokenizer(self):
        """Lazy load tokenizer."""
        if self._tokenizer is None:
            self._tokenizer = tiktoken.get_encoding("cl100k_base")
        return self._tokenizer

    async def generate_embedding(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Raises:
            InvalidInput: If the text is empty after trimming
            ProviderUnavailable: If the provider is not configured or the call fails
        """
        if not text or not text.strip():
            raise InvalidInput("Text cannot be empty")

        embeddings = await self._create([self._truncate_text(text.strip())])
        return embeddings[0]

    async def generate_embeddings_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for several texts in one call.

        Empty entries are dropped before the call, so the result lines up with
        the filtered list, not with ``texts``.
        """
        valid_texts = [t.strip() for t in texts or [] if t and t.strip()]
        if not valid_texts:
            return []

        return await self._create([self._truncate_text(t) for t in valid_texts])

    async def generate_query_embedding(self, query: str) -> List[float]:
        """Embedding for a search query (same model and dimensions as stored records)."""
        return await self.generate_embedding(query)

    async def _create(self, inputs: List[str]) -> List[List[float]]:
        if not self.client:
            raise ProviderUnavailable("Embedding API key not configured")

        model = self.model
        dimensions = self.dimensions
        payload = inputs[0] if len(inputs) == 1 else inputs

        try:
            async with self._rate_limiter.acquire():
                response = await self.client.embeddings.create(
                    model=model,
                    input=payload,
                    dimensions=dimensions
                )
        except openai.APIError as e:
            logger.error(f"Embedding request to {self.base_url} failed: {e}")
            raise ProviderUnavailable(f"Failed to generate embedding: {e}") from e

        # Sort by index to maintain order
        data = sorted(response.data, key=lambda item: item.index)
        embeddings = [list(item.embedding) for item in data]

        if len(embeddings) != len(inputs):
            raise ProviderUnavailable(
                f"Embedding provider returned {len(embeddings)} vectors for {len(inputs)} inputs"
            )
        for embedding in embeddings:
            if len(embedding) != dimensions:
                raise ProviderUnavailable(
                    f"Embedding provider returned {len(embedding)} dimensions, expected {dimensions}"
                )

        return embeddings

    def _truncate_text(self, text: str) -> str:
        """Truncate text to max tokens if needed."""
        # cl100k tokens cover at least one UTF-8 byte each
        if len(text.encode("utf-8")) <= self.MAX_TOKENS:
            return text

        tokens = self.tokenizer.encode(text)
        if len(tokens) > self.MAX_TOKENS:
            text = self.tokenizer.decode(tokens[:self.MAX_TOKENS])
        return text
