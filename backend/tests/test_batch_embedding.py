import uuid
from types import SimpleNamespace

import pytest

from nurseai.services.batch_embedding import BatchEmbeddingService
from nurseai.utils.enums import EntityType
from nurseai.utils.exceptions import InvalidInput, ProviderUnavailable

from tests.fakes import FakeEmbeddingService, FakeVectorService


def diet_row(food_items=None, notes=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        food_items=food_items,
        notes=notes,
        food_items_embedding=None,
        notes_embedding=None,
    )


def make_service(rows, fail_on=None):
    embedding = FakeEmbeddingService(fail_on=fail_on)
    vector = FakeVectorService(rows=rows)
    return BatchEmbeddingService(embedding_service=embedding, vector_service=vector), embedding, vector


async def test_backfills_every_column_of_a_kind():
    rows = [diet_row("oatmeal", "ate slowly"), diet_row("soup"), diet_row("rice", "felt full")]
    service, _, vector = make_service({
        "diet_logs.food_items_embedding": rows,
        "diet_logs.notes_embedding": rows,
    })

    report = await service.process_kind("diet_logs", batch_size=2)

    assert report.processed == 5
    assert report.skipped == 1
    assert report.failed == 0
    assert all(r.food_items_embedding for r in rows)
    assert len(vector.stored) == 5


async def test_failing_row_is_counted_and_attempted_once():
    rows = [diet_row("toast"), diet_row("bad batch item"), diet_row("salad")]
    service, embedding, _ = make_service({"diet_logs.food_items_embedding": rows}, fail_on="bad")

    report = await service.process_kind("diet_logs", batch_size=2)

    assert report.processed == 2
    assert report.failed == 1
    bad = next(r for r in rows if r.food_items == "bad batch item")
    assert f"diet_logs.food_items_embedding:{bad.id}" in report.failures
    assert sorted(embedding.texts) == ["salad", "toast"]


async def test_process_all_reports_each_kind():
    service, _, _ = make_service({})

    reports = await service.process_all()

    assert set(reports) == set(service.kinds)
    assert "ai_insights" in reports
    assert all(r.processed == 0 for r in reports.values())


async def test_unknown_kind_is_rejected():
    service, _, _ = make_service({})

    with pytest.raises(InvalidInput):
        await service.process_kind("user_documents")


async def test_embed_record_stores_a_vector_for_new_text():
    row = diet_row("grilled fish")
    service, embedding, vector = make_service({"diet_logs.food_items_embedding": [row]})

    stored = await service.embed_record("diet_logs", row.id, "food_items_embedding", "grilled fish")

    assert stored is True
    assert row.food_items_embedding == [float(len("grilled fish") % 7 + 1)] * 3
    assert vector.stored == [(EntityType.diet_logs, row.id, "food_items_embedding")]


@pytest.mark.parametrize("text", [None, "", "   "])
async def test_embed_record_skips_empty_text(text):
    row = diet_row()
    service, embedding, vector = make_service({"diet_logs.notes_embedding": [row]})

    assert await service.embed_record("diet_logs", row.id, "notes_embedding", text) is False
    assert embedding.texts == []
    assert vector.stored == []


async def test_embed_record_rejects_columns_outside_the_whitelist():
    service, embedding, _ = make_service({})

    with pytest.raises(InvalidInput):
        await service.embed_record("diet_logs", uuid.uuid4(), "calories", "320")
    assert embedding.texts == []


async def test_embed_record_propagates_provider_errors():
    row = diet_row("toast")
    service = BatchEmbeddingService(
        embedding_service=FakeEmbeddingService(error=ProviderUnavailable("down")),
        vector_service=FakeVectorService(rows={"diet_logs.food_items_embedding": [row]}),
    )

    with pytest.raises(ProviderUnavailable):
        await service.embed_record("diet_logs", row.id, "food_items_embedding", "toast")
    assert row.food_items_embedding is None


async def test_embed_record_for_a_deleted_row_reports_false():
    service, _, vector = make_service({})

    assert await service.embed_record("caregiver_notes", uuid.uuid4(), "embedding", "Slept well") is False
    assert vector.stored == []
