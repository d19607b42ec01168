"""
Per-entity similarity search over pgvector columns.

Each adapter owns exactly one table. Similarity is ``1 - cosine_distance``;
rows without an embedding are never considered. Adapters with two embeddable
fields score a row by the larger of the two similarities, counting a missing
vector as 0, so a row is kept as long as either field is embedded.

Every adapter opens its own session, so several can run concurrently.
"""

import uuid
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Tuple

from sqlalchemy import select, func, or_, Select
from sqlalchemy.ext.asyncio import async_sessionmaker

from nurseai.database import AsyncSessionLocal
from nurseai.models.caregiver_note import CaregiverNote
from nurseai.models.medication import Medication
from nurseai.models.vital_measurement import VitalMeasurement
from nurseai.models.lifestyle import DietLog, ExerciseLog
from nurseai.models.document import DocumentChunk
from nurseai.models.insight import Insight
from nurseai.schemas.search import SearchResult
from nurseai.utils.enums import EntityType


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _join_text(*parts: Optional[str]) -> str:
    return "\n".join(p.strip() for p in parts if p and p.strip())


class EntitySearchAdapter(ABC):
    """
    Similarity search over one record table.

    Subclasses declare the model, its vector column(s) and how a row is
    shaped into a ``SearchResult``.
    """

    entity_type: EntityType
    model = None
    embedding_columns: Tuple[str, ...] = ()
    owner_column: str = "patient_id"

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    def similarity_expression(self, query_embedding: List[float]):
        columns = [getattr(self.model, name) for name in self.embedding_columns]
        if len(columns) == 1:
            return 1 - columns[0].cosine_distance(query_embedding)
        return func.greatest(*[
            func.coalesce(1 - column.cosine_distance(query_embedding), 0)
            for column in columns
        ])

    def has_embedding(self):
        columns = [getattr(self.model, name) for name in self.embedding_columns]
        if len(columns) == 1:
            return columns[0].is_not(None)
        return or_(*[column.is_not(None) for column in columns])

    def build_query(
        self,
        query_embedding: List[float],
        threshold: float,
        limit: int,
        owner_id: Optional[uuid.UUID] = None,
        **filters
    ) -> Select:
        """Statement returning ``(record, similarity)`` rows, best first."""
        similarity = self.similarity_expression(query_embedding)

        stmt = (
            select(self.model, similarity.label("similarity"))
            .where(self.has_embedding())
            .where(similarity >= threshold)
        )
        if owner_id is not None:
            stmt = stmt.where(getattr(self.model, self.owner_column) == owner_id)

        stmt = self.apply_filters(stmt, **filters)
        return stmt.order_by(similarity.desc()).limit(limit)

    def apply_filters(self, stmt: Select, **filters) -> Select:
        """Hook for adapter-specific filters (document id, archived flag)."""
        return stmt

    async def search(
        self,
        query_embedding: List[float],
        owner_id: Optional[uuid.UUID] = None,
        threshold: float = 0.7,
        limit: int = 10,
        **filters
    ) -> List[SearchResult]:
        stmt = self.build_query(query_embedding, threshold, limit, owner_id, **filters)

        async with self.session_factory() as db:
            result = await db.execute(stmt)
            rows = result.all()

        return [self.to_result(record, similarity) for record, similarity in rows]

    def to_result(self, record, similarity: float) -> SearchResult:
        # Float error on identical vectors can land just outside [0, 1]
        score = min(max(float(similarity), 0.0), 1.0)
        return SearchResult(
            id=str(record.id),
            entity_type=self.entity_type.value,
            content=self.content(record),
            similarity=score,
            metadata=self.metadata(record),
        )

    @abstractmethod
    def content(self, record) -> str:
        ...

    @abstractmethod
    def metadata(self, record) -> Dict[str, Any]:
        ...


class CaregiverNoteSearchAdapter(EntitySearchAdapter):
    entity_type = EntityType.caregiver_notes
    model = CaregiverNote
    embedding_columns = ("embedding",)

    def content(self, record: CaregiverNote) -> str:
        return record.note_text

    def metadata(self, record: CaregiverNote) -> Dict[str, Any]:
        return {
            "patient_id": str(record.patient_id),
            "caregiver_id": str(record.caregiver_id) if record.caregiver_id else None,
            "created_at": _iso(record.created_at),
        }


class MedicationSearchAdapter(EntitySearchAdapter):
    entity_type = EntityType.medications
    model = Medication
    embedding_columns = ("notes_embedding",)

    def content(self, record: Medication) -> str:
        details = record.embedding_text()
        header = record.medication_name
        if record.dosage:
            header = f"{header} ({record.dosage})"
        return f"{header}: {details}" if details else header

    def metadata(self, record: Medication) -> Dict[str, Any]:
        return {
            "patient_id": str(record.patient_id),
            "medication_name": record.medication_name,
            "dosage": record.dosage,
            "created_at": _iso(record.created_at),
        }


class VitalMeasurementSearchAdapter(EntitySearchAdapter):
    entity_type = EntityType.vital_measurements
    model = VitalMeasurement
    embedding_columns = ("notes_embedding",)

    def content(self, record: VitalMeasurement) -> str:
        return record.notes or ""

    def metadata(self, record: VitalMeasurement) -> Dict[str, Any]:
        return {
            "patient_id": str(record.patient_id),
            "kind_code": record.kind_code,
            "value1": record.value1,
            "value2": record.value2,
            "value_text": record.value_text,
            "recorded_at": _iso(record.recorded_at),
        }


class DietLogSearchAdapter(EntitySearchAdapter):
    entity_type = EntityType.diet_logs
    model = DietLog
    embedding_columns = ("food_items_embedding", "notes_embedding")

    def content(self, record: DietLog) -> str:
        return _join_text(record.food_items, record.notes)

    def metadata(self, record: DietLog) -> Dict[str, Any]:
        return {
            "patient_id": str(record.patient_id),
            "meal_type": record.meal_type,
            "calories": record.calories,
            "log_date": _iso(record.log_date),
        }


class ExerciseLogSearchAdapter(EntitySearchAdapter):
    entity_type = EntityType.exercise_logs
    model = ExerciseLog
    embedding_columns = ("description_embedding", "notes_embedding")

    def content(self, record: ExerciseLog) -> str:
        return _join_text(record.description, record.notes)

    def metadata(self, record: ExerciseLog) -> Dict[str, Any]:
        return {
            "patient_id": str(record.patient_id),
            "exercise_type": record.exercise_type,
            "duration_minutes": record.duration_minutes,
            "calories_burned": record.calories_burned,
            "log_date": _iso(record.log_date),
        }


class DocumentChunkSearchAdapter(EntitySearchAdapter):
    entity_type = EntityType.document_chunks
    model = DocumentChunk
    embedding_columns = ("chunk_embedding",)

    def apply_filters(self, stmt: Select, document_id: Optional[uuid.UUID] = None, **filters) -> Select:
        if document_id is not None:
            stmt = stmt.where(DocumentChunk.document_id == document_id)
        return stmt

    def content(self, record: DocumentChunk) -> str:
        return record.chunk_text

    def metadata(self, record: DocumentChunk) -> Dict[str, Any]:
        return {
            "patient_id": str(record.patient_id),
            "document_id": str(record.document_id),
            "chunk_index": record.chunk_index,
            "start_char": record.start_char,
            "end_char": record.end_char,
        }


class InsightSearchAdapter(EntitySearchAdapter):
    entity_type = EntityType.ai_insights
    model = Insight
    embedding_columns = ("embedding",)

    def apply_filters(self, stmt: Select, **filters) -> Select:
        return stmt.where(Insight.is_archived.is_(False))

    def content(self, record: Insight) -> str:
        return f"{record.title} {record.content}"

    def metadata(self, record: Insight) -> Dict[str, Any]:
        return {
            "patient_id": str(record.patient_id),
            "insight_type": record.insight_type.value,
            "priority": record.priority.value if record.priority else None,
            "category": record.category.value if record.category else None,
            "generated_at": _iso(record.generated_at),
        }


ADAPTER_CLASSES = (
    CaregiverNoteSearchAdapter,
    MedicationSearchAdapter,
    VitalMeasurementSearchAdapter,
    DietLogSearchAdapter,
    ExerciseLogSearchAdapter,
    DocumentChunkSearchAdapter,
    InsightSearchAdapter,
)


def default_adapters(
    session_factory: async_sessionmaker = AsyncSessionLocal
) -> Dict[str, EntitySearchAdapter]:
    """All adapters keyed by entity kind, in registration order."""
    return {
        cls.entity_type.value: cls(session_factory)
        for cls in ADAPTER_CLASSES
    }
