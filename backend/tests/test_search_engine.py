import asyncio
import uuid

import pytest

from nurseai.rag.search_engine import SemanticSearchEngine
from nurseai.utils.exceptions import InvalidInput, ProviderUnavailable

from tests.fakes import FakeAdapter, FakeEmbeddingService, make_result, runtime


KINDS = ["caregiver_notes", "medications", "vital_measurements", "diet_logs", "exercise_logs"]


def make_engine(adapters, embedding_service=None, threshold=0.7, timeout=1.0):
    return SemanticSearchEngine(
        embedding_service=embedding_service or FakeEmbeddingService(),
        adapters={a.entity_type: a for a in adapters},
        config=runtime(threshold=threshold),
        adapter_timeout=timeout,
    )


async def test_entity_filter_only_runs_that_adapter():
    adapters = [FakeAdapter(kind, [make_result(kind, 0.9)]) for kind in KINDS]
    engine = make_engine(adapters)

    results = await engine.search_all("metformin side effects", entity_type="medications")

    assert [r.entity_type for r in results] == ["medications"]
    for adapter in adapters:
        assert len(adapter.calls) == (1 if adapter.entity_type == "medications" else 0)


async def test_results_are_merged_sorted_and_truncated():
    adapters = [
        FakeAdapter("caregiver_notes", [make_result("caregiver_notes", 0.75), make_result("caregiver_notes", 0.95)]),
        FakeAdapter("medications", [make_result("medications", 0.85)]),
        FakeAdapter("vital_measurements", [make_result("vital_measurements", 0.8)]),
    ]
    engine = make_engine(adapters)

    results = await engine.search_all("evening dizziness", limit=3)

    assert [r.similarity for r in results] == [0.95, 0.85, 0.8]


async def test_query_is_embedded_once_for_all_adapters():
    embedding_service = FakeEmbeddingService()
    adapters = [FakeAdapter(kind) for kind in KINDS]
    engine = make_engine(adapters, embedding_service=embedding_service)

    await engine.search_all("sleep quality")

    assert embedding_service.texts == ["sleep quality"]
    assert all(len(a.calls) == 1 for a in adapters)


async def test_threshold_defaults_to_runtime_setting_and_is_inclusive():
    adapter = FakeAdapter("caregiver_notes", [
        make_result("caregiver_notes", 0.6),
        make_result("caregiver_notes", 0.6001),
        make_result("caregiver_notes", 0.59),
    ])
    engine = make_engine([adapter], threshold=0.6)

    results = await engine.search_all("appetite")

    assert adapter.calls[0]["threshold"] == 0.6
    assert sorted(r.similarity for r in results) == [0.6, 0.6001]


async def test_owner_filter_is_forwarded():
    patient_id = uuid.uuid4()
    adapter = FakeAdapter("caregiver_notes")
    engine = make_engine([adapter])

    await engine.search_all("bruising", owner_id=patient_id)

    assert adapter.calls[0]["owner_id"] == patient_id


async def test_ties_keep_adapter_registration_order():
    first = make_result("caregiver_notes", 0.8, content="note")
    second = make_result("medications", 0.8, content="medication")
    engine = make_engine([FakeAdapter("caregiver_notes", [first]), FakeAdapter("medications", [second])])

    results = await engine.search_all("tie")

    assert [r.id for r in results] == [first.id, second.id]


async def test_failing_adapter_is_skipped():
    healthy = FakeAdapter("medications", [make_result("medications", 0.9)])
    broken = FakeAdapter("caregiver_notes", error=RuntimeError("connection reset"))
    engine = make_engine([broken, healthy])

    results = await engine.search_all("lisinopril")

    assert [r.entity_type for r in results] == ["medications"]


async def test_slow_adapter_is_skipped_after_timeout():
    slow = FakeAdapter("diet_logs", [make_result("diet_logs", 0.99)], delay=0.5)
    fast = FakeAdapter("exercise_logs", [make_result("exercise_logs", 0.8)])
    engine = make_engine([slow, fast], timeout=0.05)

    results = await engine.search_all("walking")

    assert [r.entity_type for r in results] == ["exercise_logs"]


async def test_embedding_failure_fails_the_search():
    adapter = FakeAdapter("caregiver_notes")
    engine = make_engine([adapter], embedding_service=FakeEmbeddingService(error=ProviderUnavailable("down")))

    with pytest.raises(ProviderUnavailable):
        await engine.search_all("anything")
    assert adapter.calls == []


async def test_unknown_entity_type_is_rejected():
    engine = make_engine([FakeAdapter("caregiver_notes")])

    with pytest.raises(InvalidInput):
        await engine.search_all("anything", entity_type="sleep_logs")


async def test_cancellation_propagates():
    engine = make_engine([FakeAdapter("caregiver_notes", delay=5.0)], timeout=10.0)

    task = asyncio.create_task(engine.search_all("slow"))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
