"""
Semantic search across every record kind.

The query is embedded once and fanned out to the registered entity adapters
concurrently. Results are merged, ranked by similarity and truncated. A slow
or failing adapter is skipped so the remaining kinds still answer; failing to
embed the query fails the whole search.
"""

import asyncio
import logging
import uuid
from typing import List, Dict, Optional

from nurseai.config import settings
from nurseai.rag.embedding_service import EmbeddingService
from nurseai.rag.search_adapters import EntitySearchAdapter, default_adapters
from nurseai.schemas.search import SearchResult
from nurseai.services.app_config_service import RuntimeConfigService, runtime_config
from nurseai.utils.exceptions import InvalidInput


logger = logging.getLogger(__name__)


class SemanticSearchEngine:
    """Multi-entity similarity search with per-adapter fault isolation."""

    def __init__(
        self,
        embedding_service: Optional[EmbeddingService] = None,
        adapters: Optional[Dict[str, EntitySearchAdapter]] = None,
        config: Optional[RuntimeConfigService] = None,
        adapter_timeout: Optional[float] = None
    ):
        self._embedding_service = embedding_service
        self.adapters = adapters if adapters is not None else default_adapters()
        self.config = config or runtime_config
        self.adapter_timeout = (
            adapter_timeout if adapter_timeout is not None
            else settings.SEARCH_ADAPTER_TIMEOUT_SECONDS
        )

    @property
    def embedding_service(self) -> EmbeddingService:
        """Lazy load embedding service."""
        if self._embedding_service is None:
            self._embedding_service = EmbeddingService(config=self.config)
        return self._embedding_service

    async def search_all(
        self,
        query: str,
        owner_id: Optional[uuid.UUID] = None,
        entity_type: Optional[str] = None,
        threshold: Optional[float] = None,
        limit: Optional[int] = None
    ) -> List[SearchResult]:
        """
        Search one or all entity kinds.

        Args:
            query: Natural-language query
            owner_id: Patient to scope the search to (unscoped when None)
            entity_type: Restrict to a single registered kind
            threshold: Minimum similarity, defaults to the runtime setting
            limit: Maximum merged results, defaults to DEFAULT_SEARCH_LIMIT

        Raises:
            InvalidInput: Empty query or unknown entity kind
            ProviderUnavailable: The query could not be embedded
        """
        if entity_type is not None and entity_type not in self.adapters:
            raise InvalidInput(f"Unknown entity type: {entity_type}")

        threshold = self.config.current.search_threshold if threshold is None else threshold
        limit = settings.DEFAULT_SEARCH_LIMIT if limit is None else limit

        query_embedding = await self.embedding_service.generate_query_embedding(query)

        if entity_type is not None:
            selected = [(entity_type, self.adapters[entity_type])]
        else:
            selected = list(self.adapters.items())

        batches = await asyncio.gather(*[
            self._run_adapter(kind, adapter, query_embedding, owner_id, threshold, limit)
            for kind, adapter in selected
        ])

        results: List[SearchResult] = []
        for batch in batches:
            results.extend(batch)

        # sorted() is stable: ties keep adapter registration order
        results = sorted(results, key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    async def _run_adapter(
        self,
        kind: str,
        adapter: EntitySearchAdapter,
        query_embedding: List[float],
        owner_id: Optional[uuid.UUID],
        threshold: float,
        limit: int
    ) -> List[SearchResult]:
        try:
            return await asyncio.wait_for(
                adapter.search(query_embedding, owner_id=owner_id, threshold=threshold, limit=limit),
                timeout=self.adapter_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Search adapter {kind} timed out after {self.adapter_timeout}s; skipping")
            return []
        except Exception as e:
            logger.warning(f"Search adapter {kind} failed: {e}; skipping")
            return []
