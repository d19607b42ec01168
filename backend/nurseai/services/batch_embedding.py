"""
Batch embedding backfill.

Walks every embeddable (kind, column) pair and fills in vectors that are
still null. Rows with empty text are skipped; a failing row is logged with its
id and counted, and the sweep moves on.

``embed_record`` is the single-row path used right after a record is created or
its text is edited; its errors propagate to the caller.
"""

import logging
import uuid
from typing import Dict, List, Optional

from nurseai.rag.embedding_service import EmbeddingService
from nurseai.rag.vector_service import (
    VectorService,
    EmbeddingTarget,
    EMBEDDING_TARGETS,
    get_embedding_target,
    targets_for_kind,
)
from nurseai.services.batch_report import BatchReport


logger = logging.getLogger(__name__)


class BatchEmbeddingService:
    """Backfills missing embeddings kind by kind."""

    def __init__(
        self,
        embedding_service: Optional[EmbeddingService] = None,
        vector_service: Optional[VectorService] = None
    ):
        self._embedding_service = embedding_service
        self._vector_service = vector_service

    @property
    def embedding_service(self) -> EmbeddingService:
        """Lazy load embedding service."""
        if self._embedding_service is None:
            self._embedding_service = EmbeddingService()
        return self._embedding_service

    @property
    def vector_service(self) -> VectorService:
        """Lazy load vector service."""
        if self._vector_service is None:
            self._vector_service = VectorService()
        return self._vector_service

    @property
    def kinds(self) -> List[str]:
        seen = []
        for target in EMBEDDING_TARGETS:
            if target.kind.value not in seen:
                seen.append(target.kind.value)
        return seen

    async def process_kind(self, kind, batch_size: int = 100) -> BatchReport:
        """Backfill every embeddable column of one entity kind."""
        targets = targets_for_kind(kind)
        report = BatchReport(name=targets[0].kind.value)

        for target in targets:
            await self._process_target(target, batch_size, report)

        logger.info(
            f"Completed batch embedding for {report.name}: {report.processed} processed, "
            f"{report.skipped} skipped, {report.failed} failed"
        )
        return report

    async def process_all(self, batch_size: int = 100) -> Dict[str, BatchReport]:
        reports = {}
        for kind in self.kinds:
            reports[kind] = await self.process_kind(kind, batch_size)
        return reports

    async def _process_target(self, target: EmbeddingTarget, batch_size: int, report: BatchReport):
        pending = await self.vector_service.count_missing_embeddings(target)
        if not pending:
            logger.debug(f"No rows missing {target.name}")
            return
        logger.info(f"Backfilling {pending} rows missing {target.name}")

        last_id = None

        while True:
            rows = await self.vector_service.fetch_missing_embeddings(
                target, after_id=last_id, batch_size=batch_size
            )
            if not rows:
                break

            for row in rows:
                text = target.text(row)
                if not text or not text.strip():
                    report.skipped += 1
                    continue

                try:
                    await self._store(target, row.id, text)
                    report.processed += 1
                except Exception as e:
                    logger.error(f"Error embedding {target.name} for row {row.id}: {e}")
                    report.record_failure(f"{target.name}:{row.id}", e)

            last_id = rows[-1].id
            if len(rows) < batch_size:
                break

    async def embed_record(self, kind, record_id: uuid.UUID, column: str, text: Optional[str]) -> bool:
        """
        Embed one record's text and store it on the record.

        Returns:
            False when the text is empty or the record no longer exists

        Raises:
            InvalidInput: ``column`` is not an embeddable column of ``kind``
            ProviderUnavailable: The text could not be embedded
        """
        target = get_embedding_target(kind, column)
        if not text or not text.strip():
            logger.debug(f"Skipping {target.name} for {record_id}: empty text")
            return False

        stored = await self._store(target, record_id, text)
        if not stored:
            logger.warning(f"{target.kind.value} {record_id} not found; embedding discarded")
        return stored

    async def _store(self, target: EmbeddingTarget, record_id: uuid.UUID, text: str) -> bool:
        embedding = await self.embedding_service.generate_embedding(text)
        return await self.vector_service.set_embedding(target.kind, record_id, target.column, embedding)
