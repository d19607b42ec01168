"""
Vector Service for pgvector operations.

Provides the embedding write path and document chunk storage:
- Whitelisted per-kind embedding column updates
- Keyset scans over rows still missing an embedding
- Atomic replacement of a document's chunk set
- Document-scoped chunk similarity search
"""

import uuid
import logging
from dataclasses import dataclass
from typing import List, Optional, Callable, Any

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from nurseai.database import AsyncSessionLocal
from nurseai.models.caregiver_note import CaregiverNote
from nurseai.models.medication import Medication
from nurseai.models.vital_measurement import VitalMeasurement
from nurseai.models.lifestyle import DietLog, ExerciseLog
from nurseai.models.document import UserDocument, DocumentChunk
from nurseai.models.insight import Insight
from nurseai.rag.search_adapters import DocumentChunkSearchAdapter
from nurseai.schemas.search import SearchResult
from nurseai.utils.enums import EntityType
from nurseai.utils.exceptions import InvalidInput


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingTarget:
    """One embeddable (kind, vector column) pair and the text it is built from."""
    kind: EntityType
    model: Any
    column: str
    text: Callable[[Any], Optional[str]]

    @property
    def name(self) -> str:
        return f"{self.kind.value}.{self.column}"


EMBEDDING_TARGETS: List[EmbeddingTarget] = [
    EmbeddingTarget(EntityType.caregiver_notes, CaregiverNote, "embedding", lambda r: r.note_text),
    EmbeddingTarget(EntityType.medications, Medication, "notes_embedding", lambda r: r.embedding_text()),
    EmbeddingTarget(EntityType.vital_measurements, VitalMeasurement, "notes_embedding", lambda r: r.notes),
    EmbeddingTarget(EntityType.diet_logs, DietLog, "food_items_embedding", lambda r: r.food_items),
    EmbeddingTarget(EntityType.diet_logs, DietLog, "notes_embedding", lambda r: r.notes),
    EmbeddingTarget(EntityType.exercise_logs, ExerciseLog, "description_embedding", lambda r: r.description),
    EmbeddingTarget(EntityType.exercise_logs, ExerciseLog, "notes_embedding", lambda r: r.notes),
    EmbeddingTarget(EntityType.ai_insights, Insight, "embedding", lambda r: f"{r.title} {r.content}"),
]


def get_embedding_target(kind, column: str) -> EmbeddingTarget:
    """Look up a whitelisted target; anything else is rejected."""
    kind_value = kind.value if isinstance(kind, EntityType) else kind
    for target in EMBEDDING_TARGETS:
        if target.kind.value == kind_value and target.column == column:
            return target
    raise InvalidInput(f"No embeddable column {column!r} for {kind_value!r}")


def targets_for_kind(kind) -> List[EmbeddingTarget]:
    kind_value = kind.value if isinstance(kind, EntityType) else kind
    targets = [t for t in EMBEDDING_TARGETS if t.kind.value == kind_value]
    if not targets:
        raise InvalidInput(f"Entity kind {kind_value!r} has no embeddable columns")
    return targets


class VectorService:
    """Low-level vector operations with pgvector."""

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        chunk_adapter: Optional[DocumentChunkSearchAdapter] = None
    ):
        self.session_factory = session_factory
        self.chunk_adapter = chunk_adapter or DocumentChunkSearchAdapter(session_factory)

    async def set_embedding(
        self,
        kind,
        record_id: uuid.UUID,
        column: str,
        embedding: List[float]
    ) -> bool:
        """
        Store an embedding on an existing record.

        Returns:
            True if the record exists and was updated
        """
        target = get_embedding_target(kind, column)

        async with self.session_factory() as db:
            result = await db.execute(
                update(target.model)
                .where(target.model.id == record_id)
                .values({column: embedding})
            )
            await db.commit()
            return result.rowcount > 0

    async def fetch_missing_embeddings(
        self,
        target: EmbeddingTarget,
        after_id: Optional[uuid.UUID] = None,
        batch_size: int = 100
    ) -> list:
        """
        Next page of rows whose target column is still null, ordered by id.

        Paging continues from ``after_id`` rather than an offset, so rows
        that stay null (empty text, failed calls) are not revisited.
        """
        model = target.model
        stmt = select(model).where(getattr(model, target.column).is_(None))
        if after_id is not None:
            stmt = stmt.where(model.id > after_id)
        stmt = stmt.order_by(model.id).limit(batch_size)

        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def count_missing_embeddings(self, target: EmbeddingTarget) -> int:
        model = target.model
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.count(model.id)).where(getattr(model, target.column).is_(None))
            )
            return result.scalar() or 0

    async def document_exists(self, document_id: uuid.UUID) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.count(UserDocument.id)).where(UserDocument.id == document_id)
            )
            return (result.scalar() or 0) > 0

    async def replace_document_chunks(
        self,
        document_id: uuid.UUID,
        chunks: List[DocumentChunk]
    ) -> int:
        """
        Swap a document's chunk set in one transaction.

        Concurrent readers see either the old set or the new one.
        """
        async with self.session_factory() as db:
            async with db.begin():
                await db.execute(
                    delete(DocumentChunk).where(DocumentChunk.document_id == document_id)
                )
                db.add_all(chunks)

        logger.info(f"Stored {len(chunks)} chunks for document {document_id}")
        return len(chunks)

    async def delete_document_chunks(self, document_id: uuid.UUID) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                delete(DocumentChunk).where(DocumentChunk.document_id == document_id)
            )
            await db.commit()
            return result.rowcount

    async def search_document_chunks(
        self,
        document_id: uuid.UUID,
        query_embedding: List[float],
        threshold: float = 0.7,
        limit: int = 5
    ) -> List[SearchResult]:
        return await self.chunk_adapter.search(
            query_embedding,
            threshold=threshold,
            limit=limit,
            document_id=document_id,
        )
