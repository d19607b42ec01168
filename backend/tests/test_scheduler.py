import uuid
from datetime import datetime

import pytest

from nurseai.services.scheduler import InsightScheduler
from nurseai.utils.enums import InsightType

from tests.fakes import FakeRecordRepository, runtime


class FakeInsightsService:
    def __init__(self, failing_users=()):
        self.failing_users = set(failing_users)
        self.calls = []
        self.cleanups = 0

    async def generate_insight(self, kind, patient_id, requesting_user_id, priority=None,
                               category=None, metadata=None, expires_at=None):
        if patient_id in self.failing_users:
            raise RuntimeError("analysis exploded")
        self.calls.append((kind, patient_id, priority, category, expires_at))
        return object()

    async def delete_expired_insights(self):
        self.cleanups += 1
        return 4


def make_scheduler(users, failing=(), insights_enabled=True, concurrency=1):
    service = FakeInsightsService(failing)
    scheduler = InsightScheduler(
        insights_service=service,
        records=FakeRecordRepository(active_user_ids=users),
        config=runtime(insights_enabled=insights_enabled),
        max_concurrency=concurrency,
    )
    return scheduler, service


@pytest.mark.parametrize("concurrency", [1, 4])
async def test_one_failing_user_does_not_stop_the_others(concurrency):
    users = [uuid.uuid4() for _ in range(3)]
    scheduler, service = make_scheduler(users, failing=[users[1]], concurrency=concurrency)

    report = await scheduler.run_daily_generation()

    assert report.processed == 2
    assert report.failed == 1
    assert str(users[1]) in report.failures
    assert report.partial_failure
    generated_for = {patient for _, patient, *_ in service.calls}
    assert generated_for == {users[0], users[2]}


async def test_three_insight_kinds_per_user_with_expiry():
    user = uuid.uuid4()
    scheduler, service = make_scheduler([user])

    await scheduler.run_daily_generation()

    assert [c[0] for c in service.calls] == [
        InsightType.medication_adherence,
        InsightType.health_trend,
        InsightType.recommendation,
    ]
    assert all(c[4] is not None and c[4] > datetime.utcnow() for c in service.calls)


async def test_generation_flag_disables_generation_but_not_cleanup():
    scheduler, service = make_scheduler([uuid.uuid4()], insights_enabled=False)

    report = await scheduler.run_daily_generation()
    deleted = await scheduler.run_cleanup()

    assert report.processed == 0
    assert service.calls == []
    assert deleted == 4
    assert service.cleanups == 1


async def test_manual_generation_propagates_errors():
    user = uuid.uuid4()
    scheduler, _ = make_scheduler([], failing=[user])

    with pytest.raises(RuntimeError):
        await scheduler.generate_insights_for_user(user, user)


async def test_manual_generation_covers_adherence_and_trend():
    user, patient = uuid.uuid4(), uuid.uuid4()
    scheduler, service = make_scheduler([])

    generated = await scheduler.generate_insights_for_user(user, patient)

    assert len(generated) == 2
    assert [c[0] for c in service.calls] == [InsightType.medication_adherence, InsightType.health_trend]


def test_next_run_is_later_today_or_tomorrow():
    scheduler, _ = make_scheduler([])

    assert scheduler._get_next_run_time(2, datetime(2026, 4, 1, 1, 30)) == datetime(2026, 4, 1, 2, 0)
    assert scheduler._get_next_run_time(2, datetime(2026, 4, 1, 2, 0)) == datetime(2026, 4, 2, 2, 0)


async def test_start_and_stop():
    scheduler, _ = make_scheduler([])

    await scheduler.start()
    assert scheduler.is_running
    await scheduler.stop()
    assert not scheduler.is_running
