import re
import uuid
from datetime import datetime
from types import SimpleNamespace

from sqlalchemy.dialects import postgresql

from nurseai.models.caregiver_note import CaregiverNote
from nurseai.rag.search_adapters import (
    CaregiverNoteSearchAdapter,
    DietLogSearchAdapter,
    DocumentChunkSearchAdapter,
    ExerciseLogSearchAdapter,
    InsightSearchAdapter,
    default_adapters,
)


QUERY = [0.1, 0.2, 0.3]


def compile_sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect())).lower()


class FakeSession:
    def __init__(self, rows):
        self.rows = rows
        self.statements = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, stmt):
        self.statements.append(stmt)
        return SimpleNamespace(all=lambda: self.rows)


def test_single_column_query_shape():
    stmt = CaregiverNoteSearchAdapter().build_query(QUERY, 0.7, 5, owner_id=uuid.uuid4())
    sql = compile_sql(stmt)

    assert "<=>" in sql
    assert "caregiver_notes.embedding is not null" in sql
    assert "caregiver_notes.patient_id =" in sql
    assert ">=" in sql
    assert "order by" in sql and "desc" in sql
    assert "limit" in sql


def test_unscoped_query_has_no_owner_filter():
    sql = compile_sql(CaregiverNoteSearchAdapter().build_query(QUERY, 0.7, 5))

    assert "patient_id =" not in sql


def test_composite_adapters_take_the_larger_similarity():
    cases = (
        (DietLogSearchAdapter(), "diet_logs", ("food_items_embedding", "notes_embedding")),
        (ExerciseLogSearchAdapter(), "exercise_logs", ("description_embedding", "notes_embedding")),
    )
    for adapter, table, columns in cases:
        sql = compile_sql(adapter.build_query(QUERY, 0.7, 5))

        assert "greatest(" in sql
        for column in columns:
            # A missing vector scores zero instead of nulling the whole score
            term = rf"coalesce\(\S+ - \(?{table}\.{column} <=> [^,]+, \S+\)"
            assert re.search(term, sql), f"no coalesced term for {column}"
        first, second = columns
        assert f"{table}.{first} is not null or {table}.{second} is not null" in sql


def test_document_chunk_query_can_be_scoped_to_a_document():
    document_id = uuid.uuid4()
    sql = compile_sql(DocumentChunkSearchAdapter().build_query(QUERY, 0.6, 5, document_id=document_id))

    assert "document_chunks.document_id =" in sql


def test_insight_query_excludes_archived_rows():
    sql = compile_sql(InsightSearchAdapter().build_query(QUERY, 0.7, 5))

    assert "ai_insights.is_archived is false" in sql


async def test_search_shapes_rows_and_clamps_similarity():
    patient_id = uuid.uuid4()
    note = CaregiverNote(
        id=uuid.uuid4(),
        patient_id=patient_id,
        note_text="Refused breakfast, drank water",
        created_at=datetime(2026, 3, 1, 8, 30),
    )
    session = FakeSession([(note, 1.0000001)])
    adapter = CaregiverNoteSearchAdapter(session_factory=lambda: session)

    results = await adapter.search(QUERY, owner_id=patient_id, threshold=0.5, limit=3)

    assert len(session.statements) == 1
    assert len(results) == 1
    result = results[0]
    assert result.entity_type == "caregiver_notes"
    assert result.content == "Refused breakfast, drank water"
    assert result.similarity == 1.0
    assert result.metadata["patient_id"] == str(patient_id)


def test_default_registry_covers_every_kind():
    adapters = default_adapters(session_factory=lambda: None)

    assert list(adapters) == [
        "caregiver_notes",
        "medications",
        "vital_measurements",
        "diet_logs",
        "exercise_logs",
        "document_chunks",
        "ai_insights",
    ]
